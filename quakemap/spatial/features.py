"""
Point features, bounding boxes and the validity filter.

Raw event records arrive in one of three shapes:
1. ``PointFeature`` instances (already validated)
2. GeoJSON ``Feature`` mappings, as returned by the USGS event service
3. Flat mappings with ``coordinates``/``magnitude``/``place``/``time`` keys

``coerce_feature`` turns any of them into a ``PointFeature`` or returns None.
Dropping malformed records is a normal outcome, not an error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class PointFeature:
    """One observed seismic event."""

    id: Any
    """Opaque, stable event identifier (string or integer)."""

    longitude: float
    latitude: float

    magnitude: float

    place: str
    """Human-readable location label."""

    time: int
    """Event time in milliseconds since the epoch."""

    depth: Optional[float] = None
    """Depth in kilometers (None when the source omits it)."""

    url: Optional[str] = None
    """External detail page."""

    @property
    def coordinates(self) -> Tuple[float, ...]:
        if self.depth is None:
            return (self.longitude, self.latitude)
        return (self.longitude, self.latitude, self.depth)

    @property
    def depth_km(self) -> float:
        """Depth used for aggregation; a missing depth counts as 0."""
        return self.depth if self.depth is not None else 0.0

    @property
    def properties(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mag": self.magnitude,
            "place": self.place,
            "time": self.time,
            "depth": self.depth_km,
            "url": self.url,
        }

    def to_geojson(self) -> Dict[str, Any]:
        """Return the feature in the USGS GeoJSON shape."""
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": {"type": "Point", "coordinates": list(self.coordinates)},
            "properties": {
                "mag": self.magnitude,
                "place": self.place,
                "time": self.time,
                "url": self.url,
            },
        }


@dataclass(frozen=True)
class BoundingBox:
    """Viewport bounds in degrees."""

    west: float
    south: float
    east: float
    north: float

    def as_list(self) -> List[float]:
        return [self.west, self.south, self.east, self.north]

    @classmethod
    def from_any(cls, value: Any) -> "BoundingBox":
        """
        Build a bounding box from a ``BoundingBox``, a mapping or a sequence.

        Accepted forms:
            BoundingBox(...)
            {"west": .., "south": .., "east": .., "north": ..}
            [west, south, east, north]

        Raises:
            ValueError: If the value cannot be read as four finite numbers
        """
        if isinstance(value, BoundingBox):
            return value

        if isinstance(value, Mapping):
            try:
                parts = [value["west"], value["south"], value["east"], value["north"]]
            except KeyError as exc:
                raise ValueError(f"Bounding box mapping is missing {exc.args[0]!r}") from exc
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            parts = list(value)
        else:
            raise ValueError(f"Cannot read a bounding box from {type(value).__name__}")

        if len(parts) != 4:
            raise ValueError(f"Bounding box needs 4 values (west, south, east, north), got {len(parts)}")

        try:
            west, south, east, north = (float(p) for p in parts)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Bounding box values must be numbers: {parts!r}") from exc

        if not all(math.isfinite(v) for v in (west, south, east, north)):
            raise ValueError(f"Bounding box values must be finite: {parts!r}")

        return cls(west=west, south=south, east=east, north=north)


@dataclass(frozen=True)
class Viewport:
    """Spatial and zoom context for one clustering request."""

    bbox: BoundingBox
    zoom: float

    @property
    def index_zoom(self) -> int:
        """Zoom as the index sees it (fractional levels are floored)."""
        return int(math.floor(self.zoom))


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _as_millis(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    number = _as_float(value)
    return int(number) if number is not None else None


def _unpack_record(raw: Mapping[str, Any]) -> Optional[Tuple[Any, Any, Dict[str, Any]]]:
    """Return (id, coordinates, properties) for GeoJSON or flat records."""

    if "geometry" in raw or "properties" in raw:
        geometry = raw.get("geometry") or {}
        props = raw.get("properties") or {}
        if not isinstance(geometry, Mapping) or not isinstance(props, Mapping):
            return None
        feature_id = raw.get("id", props.get("id"))
        return feature_id, geometry.get("coordinates"), {
            "mag": props.get("mag"),
            "place": props.get("place"),
            "time": props.get("time"),
            "url": props.get("url"),
        }

    return raw.get("id"), raw.get("coordinates"), {
        "mag": raw.get("magnitude", raw.get("mag")),
        "place": raw.get("place", raw.get("location")),
        "time": raw.get("time", raw.get("timestamp")),
        "url": raw.get("url"),
    }


def _is_valid_point(feature: PointFeature) -> bool:
    """Apply the record rules to an already-built ``PointFeature``."""
    return (
        _as_float(feature.longitude) is not None
        and _as_float(feature.latitude) is not None
        and _as_float(feature.magnitude) is not None
        and isinstance(feature.place, str)
        and bool(feature.place)
        and _as_millis(feature.time) is not None
        and (feature.depth is None or _as_float(feature.depth) is not None)
    )


def coerce_feature(raw: Any) -> Optional[PointFeature]:
    """
    Convert a raw record into a ``PointFeature``.

    A record is valid when it has at least two coordinates, a magnitude,
    a non-empty place and a time. Anything else returns None.
    """
    if isinstance(raw, PointFeature):
        return raw if _is_valid_point(raw) else None
    if not isinstance(raw, Mapping):
        return None

    unpacked = _unpack_record(raw)
    if unpacked is None:
        return None
    feature_id, coords, props = unpacked

    if not isinstance(coords, Sequence) or isinstance(coords, (str, bytes)) or len(coords) < 2:
        return None

    lng = _as_float(coords[0])
    lat = _as_float(coords[1])
    if lng is None or lat is None:
        return None
    depth = _as_float(coords[2]) if len(coords) > 2 else None

    magnitude = _as_float(props["mag"])
    if magnitude is None:
        return None

    place = props["place"]
    if not isinstance(place, str) or not place:
        return None

    time_ms = _as_millis(props["time"])
    if time_ms is None:
        return None

    url = props["url"] if isinstance(props["url"], str) and props["url"] else None

    return PointFeature(
        id=feature_id,
        longitude=lng,
        latitude=lat,
        magnitude=magnitude,
        place=place,
        time=time_ms,
        depth=depth,
        url=url,
    )


def validate_features(records: Optional[Iterable[Any]]) -> List[PointFeature]:
    """Keep only valid records, preserving input order."""

    if records is None:
        return []

    valid: List[PointFeature] = []
    for raw in records:
        feature = coerce_feature(raw)
        if feature is not None:
            valid.append(feature)
    return valid


__all__ = [
    "BoundingBox",
    "PointFeature",
    "Viewport",
    "coerce_feature",
    "validate_features",
]
