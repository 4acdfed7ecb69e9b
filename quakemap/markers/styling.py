"""
Display attributes for earthquake markers.

Magnitude banding, marker sizing, legend entries and date formatting shared by
the marker engine, the popups and the map server.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, List, Optional, Tuple

# -----------------------------
# Magnitude bands
# -----------------------------

@dataclass(frozen=True)
class MagnitudeBand:
    """One color band of the magnitude scale."""
    name: str
    lower: float
    color: str
    label: str


STRONG_RED = MagnitudeBand("strong red", 7.0, "#d32f2f", "7.0+")
ORANGE = MagnitudeBand("orange", 6.0, "#f57c00", "6.0-6.9")
AMBER = MagnitudeBand("amber", 5.0, "#ffa000", "5.0-5.9")
YELLOW = MagnitudeBand("yellow", 4.0, "#fbc02d", "4.0-4.9")
LIGHT_GREEN = MagnitudeBand("light green", -math.inf, "#7cb342", "<4.0")

# Ordered from strongest to calmest; the first band whose lower bound is met wins
MAGNITUDE_BANDS: Tuple[MagnitudeBand, ...] = (STRONG_RED, ORANGE, AMBER, YELLOW, LIGHT_GREEN)

# Marker sizing (display units)
SINGLE_MIN_SIZE = 20
SINGLE_SIZE_PER_MAGNITUDE = 5
CLUSTER_MIN_SIZE = 30
CLUSTER_MAX_SIZE = 60

DATE_UNAVAILABLE = "Date unavailable"


def magnitude_band(magnitude: Any) -> MagnitudeBand:
    """Return the band for ``magnitude`` (non-numeric values fall in the lowest band)."""
    try:
        value = float(magnitude)
    except (TypeError, ValueError):
        return LIGHT_GREEN
    if math.isnan(value):
        return LIGHT_GREEN

    for band in MAGNITUDE_BANDS:
        if value >= band.lower:
            return band
    return LIGHT_GREEN


def magnitude_color(magnitude: Any) -> str:
    """
    Map a magnitude to its marker color.

    Step function with inclusive lower bounds:
        >= 7.0 strong red, >= 6.0 orange, >= 5.0 amber, >= 4.0 yellow,
        otherwise light green.
    """
    return magnitude_band(magnitude).color


def legend_entries() -> List[Tuple[str, str]]:
    """(label, color) pairs for the map legend, strongest first."""
    return [(band.label, band.color) for band in MAGNITUDE_BANDS]


def size_for(kind: str, value: float) -> float:
    """
    Marker size for a marker kind.

    - ``single``: ``max(20, magnitude * 5)``
    - ``cluster``: member count clamped to [30, 60]
    """
    if kind == "single":
        return max(SINGLE_MIN_SIZE, value * SINGLE_SIZE_PER_MAGNITUDE)
    if kind == "cluster":
        return min(max(CLUSTER_MIN_SIZE, value), CLUSTER_MAX_SIZE)
    raise ValueError(f"Unknown marker kind '{kind}'. Expected 'single' or 'cluster'.")


def marker_size(marker: Any, value: Optional[float] = None) -> float:
    """
    Marker size for a descriptor, or for a ``(kind, value)`` pair.

    Examples:
        >>> marker_size("single", 9.1)
        45.5
        >>> marker_size("cluster", 120)
        60
    """
    if isinstance(marker, str):
        if value is None:
            raise ValueError("marker_size(kind, value) needs a value")
        return size_for(marker, value)

    if marker.type == "single":
        return size_for("single", marker.magnitude)
    return size_for("cluster", marker.count)


def format_date(timestamp: Any, tz: Optional[tzinfo] = None) -> str:
    """
    Format a millisecond timestamp like ``Mar 11, 2011, 05:46 AM``.

    Returns ``"Date unavailable"`` when the value cannot be read as a time.
    """
    try:
        moment = datetime.fromtimestamp(float(timestamp) / 1000.0, tz=tz or timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return DATE_UNAVAILABLE
    return f"{moment:%b} {moment.day}, {moment:%Y, %I:%M %p}"


__all__ = [
    "MagnitudeBand",
    "MAGNITUDE_BANDS",
    "STRONG_RED",
    "ORANGE",
    "AMBER",
    "YELLOW",
    "LIGHT_GREEN",
    "DATE_UNAVAILABLE",
    "format_date",
    "legend_entries",
    "magnitude_band",
    "magnitude_color",
    "marker_size",
    "size_for",
]
