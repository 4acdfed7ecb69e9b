"""Marker helpers built on top of :mod:`quakemap`."""

from __future__ import annotations

from datetime import timezone, tzinfo
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from quakemap.feeds import FilterSettings, get_recent_earthquakes
from quakemap.markers import MarkerResult, compute_markers, legend_entries, popup_html
from quakemap.spatial import Viewport
from quakemap.tools.config_loader import cluster_config_from_profile, feed_config_from_profile

from ..schemas.models import LegendEntry, LegendResponse, MarkerDiagnostics, MarkersResponse


def display_timezone(profile: Dict[str, Any]) -> tzinfo:
    name = (profile.get("display") or {}).get("timezone", "UTC")
    return timezone.utc if name == "UTC" else ZoneInfo(name)


def debounce_seconds(profile: Dict[str, Any]) -> float:
    return float((profile.get("viewport") or {}).get("debounce_ms", 100)) / 1000.0


async def fetch_features(settings: FilterSettings, profile: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Fetch raw GeoJSON features for the filter-panel settings."""

    feed_cfg = profile.get("feed") or {}
    return await get_recent_earthquakes(
        **settings.query_params(),
        limit=int(feed_cfg.get("limit", 100)),
        orderby=feed_cfg.get("orderby", "magnitude"),
        config=feed_config_from_profile(profile),
    )


def markers_for_viewport(
    features: List[Dict[str, Any]],
    viewport: Viewport,
    profile: Dict[str, Any],
) -> MarkerResult:
    return compute_markers(features, viewport, config=cluster_config_from_profile(profile))


def legend_response() -> LegendResponse:
    return LegendResponse(entries=[LegendEntry(label=label, color=color) for label, color in legend_entries()])


def markers_response(result: MarkerResult, tz: Optional[tzinfo] = None) -> MarkersResponse:
    return MarkersResponse(
        markers=[marker.to_dict(tz) for marker in result.markers],
        diagnostics=MarkerDiagnostics.from_result(result),
    )


def initial_view(profile: Dict[str, Any]) -> Dict[str, Any]:
    """Map center ([lng, lat]) and zoom shown before the first viewport arrives."""
    section = profile.get("viewport") or {}
    return {
        "center": list(section.get("initial_center", [0.0, 0.0])),
        "zoom": section.get("initial_zoom", 2),
    }


def widget_payload(
    response: MarkersResponse,
    viewport: Viewport,
    profile: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Layout consumed by the map front-end; each marker carries its popup HTML."""

    return {
        "layout": [
            {
                "widget": "geo.quakeMarkers",
                "props": {
                    "bbox": viewport.bbox.as_list(),
                    "zoom": viewport.zoom,
                    "initialView": initial_view(profile or {}),
                    "markers": [{**marker, "popup": popup_html(marker)} for marker in response.markers],
                },
            },
            {
                "widget": "geo.magnitudeLegend",
                "props": legend_response().model_dump(),
            },
        ],
        "assetsBaseUrl": "/assets",
    }
