"""
Marker Module for the earthquake map

Turns earthquake events into display-ready map markers:
- Zoom-dependent clustering with running magnitude/depth averages
- Magnitude color bands and marker sizing
- Legend entries and popup HTML

Usage:
    from quakemap.markers import build_markers, compute_markers, magnitude_color

    markers = build_markers(features, [-180, -85, 180, 85], zoom=2)

    result = compute_markers(features, viewport)
    if not result.is_ok:
        print(result.reason)
"""

from .engine import (
    ClusterMarker,
    MarkerDescriptor,
    MarkerResult,
    SingleMarker,
    build_index,
    build_markers,
    compute_markers,
    feature_view,
    merge_running_average,
)

from .styling import (
    MAGNITUDE_BANDS,
    format_date,
    legend_entries,
    magnitude_band,
    magnitude_color,
    marker_size,
)

from .popups import event_popup_html, popup_html

__all__ = [
    # Engine
    "ClusterMarker",
    "MarkerDescriptor",
    "MarkerResult",
    "SingleMarker",
    "build_index",
    "build_markers",
    "compute_markers",
    "feature_view",
    "merge_running_average",

    # Styling
    "MAGNITUDE_BANDS",
    "format_date",
    "legend_entries",
    "magnitude_band",
    "magnitude_color",
    "marker_size",

    # Popups
    "event_popup_html",
    "popup_html",
]
