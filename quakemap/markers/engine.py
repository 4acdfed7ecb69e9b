"""
Spatial clustering engine for earthquake markers.

Given raw event records, a viewport and a zoom level, this module produces
the reduced set of renderable markers:
1. Drop records that are not valid point features
2. Build a fresh hierarchical index (never reused between calls)
3. Aggregate magnitude and depth as points merge into clusters
4. Query the viewport and emit ``single`` / ``cluster`` descriptors

``compute_markers`` returns an explicit ``MarkerResult`` so callers can tell
"nothing in view" apart from "computation failed". ``build_markers`` is the
simple form that always returns a list.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from quakemap.spatial.features import BoundingBox, PointFeature, Viewport, validate_features
from quakemap.spatial.index import ClusterIndexConfig, ClusterNode, HierarchicalClusterIndex

from .styling import format_date, magnitude_color, marker_size


logger = logging.getLogger(__name__)

# Zoom levels added when a cluster marker is clicked
CLICK_ZOOM_STEP = 2


# -----------------------------
# Descriptors
# -----------------------------

def feature_view(feature: PointFeature, tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    """Serialisable view of one event, as the list panel and popups show it."""
    return {
        "id": feature.id,
        "magnitude": feature.magnitude,
        "location": feature.place,
        "coordinates": list(feature.coordinates),
        "depth": feature.depth,
        "time": format_date(feature.time, tz),
        "timestamp": feature.time,
        "url": feature.url,
    }


@dataclass
class SingleMarker:
    """A lone event at the current zoom."""

    feature: PointFeature
    coordinates: Tuple[float, ...]
    magnitude: float
    depth: Optional[float]
    type: str = "single"

    @classmethod
    def from_feature(cls, feature: PointFeature) -> "SingleMarker":
        return cls(
            feature=feature,
            coordinates=feature.coordinates,
            magnitude=feature.magnitude,
            depth=feature.depth,
        )

    def to_dict(self, tz: Optional[tzinfo] = None) -> Dict[str, Any]:
        return {
            "type": self.type,
            "earthquake": feature_view(self.feature, tz),
            "coordinates": list(self.coordinates),
            "magnitude": self.magnitude,
            "depth": self.depth,
            "color": magnitude_color(self.magnitude),
            "size": marker_size(self),
        }


@dataclass
class ClusterMarker:
    """An aggregate of nearby events at the current zoom."""

    cluster_id: int
    coordinates: Tuple[float, float]
    count: int
    """Number of underlying events (may exceed ``len(points)``)."""

    avg_magnitude: float
    avg_depth: float
    points: List[PointFeature] = field(default_factory=list)
    """Sample of member events, capped at the configured leaf sample size."""

    expansion_zoom: Optional[int] = None
    """Zoom at which this cluster splits apart."""

    click_zoom: Optional[int] = None
    """Zoom the map moves to when the marker is clicked."""

    type: str = "cluster"

    def to_dict(self, tz: Optional[tzinfo] = None) -> Dict[str, Any]:
        return {
            "type": self.type,
            "clusterId": self.cluster_id,
            "coordinates": list(self.coordinates),
            "count": self.count,
            "avgMagnitude": self.avg_magnitude,
            "avgDepth": self.avg_depth,
            "points": [feature_view(p, tz) for p in self.points],
            "expansionZoom": self.expansion_zoom,
            "clickZoom": self.click_zoom,
            "color": magnitude_color(self.avg_magnitude),
            "size": marker_size(self),
        }


MarkerDescriptor = Union[SingleMarker, ClusterMarker]


@dataclass
class MarkerResult:
    """Outcome of one marker computation."""

    status: str
    """``"ok"`` or ``"failed"``."""

    markers: List[MarkerDescriptor] = field(default_factory=list)

    reason: Optional[str] = None
    """Failure cause (None when ok)."""

    num_records: int = 0
    """Raw records supplied."""

    num_valid: int = 0
    """Records that passed validation."""

    zoom: Optional[int] = None
    """Integer zoom the index was queried at."""

    @classmethod
    def ok(cls, markers: List[MarkerDescriptor], **diagnostics: Any) -> "MarkerResult":
        return cls(status="ok", markers=markers, **diagnostics)

    @classmethod
    def failed(cls, reason: str, **diagnostics: Any) -> "MarkerResult":
        return cls(status="failed", markers=[], reason=reason, **diagnostics)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @property
    def num_dropped(self) -> int:
        return self.num_records - self.num_valid

    @property
    def num_singles(self) -> int:
        return sum(1 for m in self.markers if m.type == "single")

    @property
    def num_clusters(self) -> int:
        return sum(1 for m in self.markers if m.type == "cluster")


# -----------------------------
# Aggregation
# -----------------------------

def quake_properties(props: Dict[str, Any]) -> Dict[str, Any]:
    """Initial aggregate for one event."""
    return {
        "mag": float(props["mag"]),
        "depth": float(props.get("depth") or 0.0),
        "count": 1,
    }


def merge_running_average(acc: Dict[str, Any], props: Dict[str, Any]) -> None:
    """
    Fold ``props`` into the aggregate ``acc`` in place.

    Each side carries a count; a raw event counts as 1, which gives
    ``avg' = (avg * c + m) / (c + 1)``. Merging a sub-cluster weights its
    averages by its own count.
    """
    c = acc.get("count", 1)
    k = props.get("count", 1)
    total = c + k
    acc["mag"] = (acc["mag"] * c + props["mag"] * k) / total
    acc["depth"] = (acc["depth"] * c + props["depth"] * k) / total
    acc["count"] = total


def build_index(
    features: List[PointFeature],
    config: Optional[ClusterIndexConfig] = None,
) -> HierarchicalClusterIndex:
    """Build a fresh index with magnitude/depth aggregation."""
    index = HierarchicalClusterIndex(
        config or ClusterIndexConfig(),
        map_props=quake_properties,
        reduce=merge_running_average,
    )
    return index.load(features)


def _finite_or_none(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _cluster_marker(
    index: HierarchicalClusterIndex,
    node: ClusterNode,
    zoom: int,
) -> ClusterMarker:
    config = index.config
    leaves: List[PointFeature] = index.get_leaves(node.cluster_id, limit=config.leaf_sample_size)

    # Index aggregates win; the sample mean is only a fallback
    avg_magnitude = _finite_or_none(node.properties.get("mag"))
    if avg_magnitude is None:
        avg_magnitude = _mean([p.magnitude for p in leaves])

    avg_depth = _finite_or_none(node.properties.get("depth"))
    if avg_depth is None:
        avg_depth = _mean([p.depth_km for p in leaves])

    return ClusterMarker(
        cluster_id=node.cluster_id,
        coordinates=node.coordinates,
        count=node.point_count,
        avg_magnitude=avg_magnitude,
        avg_depth=avg_depth,
        points=leaves,
        expansion_zoom=index.get_cluster_expansion_zoom(node.cluster_id),
        click_zoom=min(zoom + CLICK_ZOOM_STEP, config.max_zoom),
    )


def _resolve_viewport(viewport: Any, zoom: Optional[float]) -> Tuple[BoundingBox, int]:
    if isinstance(viewport, Viewport):
        if zoom is None:
            return viewport.bbox, viewport.index_zoom
        viewport = viewport.bbox

    if zoom is None:
        raise ValueError("A zoom level is required when the viewport is a bare bounding box")

    zoom = float(zoom)
    if not math.isfinite(zoom):
        raise ValueError(f"Zoom must be finite, got {zoom}")
    return BoundingBox.from_any(viewport), int(math.floor(zoom))


# -----------------------------
# Public API
# -----------------------------

def compute_markers(
    features: Optional[Iterable[Any]],
    viewport: Any,
    zoom: Optional[float] = None,
    config: Optional[ClusterIndexConfig] = None,
) -> MarkerResult:
    """
    Cluster events for a viewport and return an explicit result.

    Args:
        features: Raw event records (GeoJSON features, flat mappings or
                  ``PointFeature``); malformed ones are dropped
        viewport: ``Viewport``, ``BoundingBox``, ``[west, south, east, north]``
                  or a mapping with those keys
        zoom: Map zoom (floored); optional when ``viewport`` is a ``Viewport``
        config: Index parameters (defaults: radius 60, max zoom 16)

    Returns:
        ``MarkerResult.ok`` with the markers, or ``MarkerResult.failed`` with
        the reason. Never raises.
    """
    num_records = 0
    num_valid = 0
    try:
        records = list(features) if features is not None else []
        num_records = len(records)

        valid = validate_features(records)
        num_valid = len(valid)
        if not valid:
            if num_records:
                logger.warning("No valid earthquake features found (%d dropped)", num_records)
            return MarkerResult.ok([], num_records=num_records, num_valid=0)

        bbox, index_zoom = _resolve_viewport(viewport, zoom)
        index = build_index(valid, config)

        markers: List[MarkerDescriptor] = []
        for item in index.get_clusters(bbox, index_zoom):
            if isinstance(item, ClusterNode):
                markers.append(_cluster_marker(index, item, index_zoom))
            else:
                markers.append(SingleMarker.from_feature(item))

    except Exception as exc:
        logger.exception("Error creating cluster markers")
        return MarkerResult.failed(
            f"{type(exc).__name__}: {exc}",
            num_records=num_records,
            num_valid=num_valid,
        )

    result = MarkerResult.ok(markers, num_records=num_records, num_valid=num_valid, zoom=index_zoom)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Markers at zoom %d: %d singles, %d clusters from %d valid records (%d dropped)",
            index_zoom, result.num_singles, result.num_clusters, num_valid, result.num_dropped,
        )
    return result


def build_markers(
    features: Optional[Iterable[Any]],
    viewport: Any,
    zoom: Optional[float] = None,
    config: Optional[ClusterIndexConfig] = None,
) -> List[MarkerDescriptor]:
    """Cluster events for a viewport. Failures yield an empty list."""
    return compute_markers(features, viewport, zoom, config).markers


__all__ = [
    "ClusterMarker",
    "MarkerDescriptor",
    "MarkerResult",
    "SingleMarker",
    "build_index",
    "build_markers",
    "compute_markers",
    "feature_view",
    "merge_running_average",
    "quake_properties",
]
