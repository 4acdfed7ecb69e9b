"""
Filter-panel settings and the event list table.

The filter panel picks a minimum magnitude and a time range (preset or
custom); the list panel shows valid events sorted by magnitude.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from quakemap.markers.engine import feature_view
from quakemap.spatial.features import validate_features


@dataclass(frozen=True)
class TimeRange:
    """A time range choice in the filter panel (``days=None`` means custom)."""
    label: str
    days: Optional[int]


TIME_RANGES = (
    TimeRange("24 Hours", 1),
    TimeRange("7 Days", 7),
    TimeRange("30 Days", 30),
    TimeRange("Custom Range", None),
)
TIME_RANGE_BY_LABEL: Dict[str, TimeRange] = {r.label: r for r in TIME_RANGES}

# Magnitude slider bounds
MIN_MAGNITUDE_FLOOR = 4.0
MIN_MAGNITUDE_CEIL = 9.0

# Custom "number of days" input bounds
MIN_CUSTOM_DAYS = 1
MAX_CUSTOM_DAYS = 365

TABLE_COLUMNS = ["id", "magnitude", "location", "coordinates", "depth", "time", "timestamp", "url"]


@dataclass
class FilterSettings:
    """
    Filter-panel state.

    Attributes:
        min_magnitude: Slider value, clamped to [4.0, 9.0]
        time_range: Label of one of ``TIME_RANGES``
        custom_days: "Days from today" input, clamped to [1, 365]
        custom_start: Start of a custom date range
        custom_end: End of a custom date range
    """
    min_magnitude: float = 5.0
    time_range: str = "7 Days"
    custom_days: int = 7
    custom_start: Optional[datetime] = None
    custom_end: Optional[datetime] = None

    def __post_init__(self):
        if self.time_range not in TIME_RANGE_BY_LABEL:
            available = ", ".join(TIME_RANGE_BY_LABEL)
            raise ValueError(f"Unknown time range '{self.time_range}'. Available: {available}")
        self.min_magnitude = min(max(float(self.min_magnitude), MIN_MAGNITUDE_FLOOR), MIN_MAGNITUDE_CEIL)
        self.custom_days = min(max(int(self.custom_days), MIN_CUSTOM_DAYS), MAX_CUSTOM_DAYS)

    @property
    def is_custom(self) -> bool:
        return TIME_RANGE_BY_LABEL[self.time_range].days is None

    def lookback_days(self) -> int:
        """Days to query: preset days, custom date range span, or custom days."""
        preset = TIME_RANGE_BY_LABEL[self.time_range]
        if preset.days is not None:
            return preset.days

        if self.custom_start is not None and self.custom_end is not None:
            span = abs((self.custom_end - self.custom_start).total_seconds())
            return max(MIN_CUSTOM_DAYS, math.ceil(span / 86400.0))

        return self.custom_days

    def query_params(self) -> Dict[str, Any]:
        """Keyword arguments for ``get_recent_earthquakes``."""
        return {"days": self.lookback_days(), "min_magnitude": self.min_magnitude}


def earthquake_table(records: Optional[Iterable[Any]], tz: Optional[tzinfo] = None) -> pd.DataFrame:
    """
    Build the list-panel table of valid events, strongest first.

    Ties keep their input order.
    """
    rows = [feature_view(f, tz) for f in validate_features(records)]
    if not rows:
        return pd.DataFrame(columns=TABLE_COLUMNS)

    df = pd.DataFrame(rows, columns=TABLE_COLUMNS)
    return df.sort_values("magnitude", ascending=False, kind="mergesort").reset_index(drop=True)


__all__ = [
    "FilterSettings",
    "TABLE_COLUMNS",
    "TIME_RANGES",
    "TimeRange",
    "earthquake_table",
]
