"""Popup HTML for single and cluster markers."""

from __future__ import annotations

import logging
from datetime import tzinfo
from html import escape
from typing import Any, Dict, Optional

from .styling import format_date, magnitude_color


logger = logging.getLogger(__name__)

# Sample events listed in a cluster popup
CLUSTER_POPUP_SAMPLE = 5

ERROR_POPUP = """
<div style="padding: 12px;">
  <p style="color: #f44336;">Error displaying earthquake information</p>
</div>
"""


def _fmt(value: Any) -> str:
    """One decimal place, or '?' when the value is missing or zero."""
    return f"{value:.1f}" if value else "?"


def _single_popup(quake: Dict[str, Any]) -> str:
    magnitude = quake.get("magnitude")
    if magnitude is None:
        raise ValueError("Invalid earthquake data for popup")

    link = ""
    if quake.get("url"):
        link = (
            f'<a href="{escape(quake["url"])}" target="_blank" rel="noopener noreferrer" '
            'style="display: inline-block; margin-top: 8px; color: #2196F3; '
            'text-decoration: none; font-size: 13px;">More details &rarr;</a>'
        )

    return f"""
<div class="earthquake-popup">
  <h3 style="margin: 0 0 8px 0; color: {magnitude_color(magnitude)};">M{magnitude:.1f}</h3>
  <p style="margin: 4px 0; font-size: 14px;">{escape(quake.get("location") or "Location unknown")}</p>
  <p style="margin: 4px 0; font-size: 13px; color: #666;">Depth: {_fmt(quake.get("depth"))} km</p>
  <p style="margin: 4px 0; font-size: 13px; color: #666;">Time: {escape(quake.get("time") or "Time unknown")}</p>
  {link}
</div>
"""


def _cluster_popup(cluster: Dict[str, Any]) -> str:
    points = cluster.get("points")
    if not isinstance(points, list) or not points:
        raise ValueError("Invalid cluster data for popup")

    shown = points[:CLUSTER_POPUP_SAMPLE]
    remaining = cluster["count"] - len(shown)

    rows = "".join(
        f"""
    <div style="margin-bottom: 8px;">
      <div style="font-weight: 500; font-size: 13px; color: {magnitude_color(eq["magnitude"])};">M{eq["magnitude"]:.1f}</div>
      <div style="font-size: 12px;">{escape(str(eq.get("location", "")))}</div>
      <div style="font-size: 12px; color: #666;">{escape(str(eq.get("time", "")))}</div>
    </div>"""
        for eq in shown
    )
    more = (
        f'<p style="margin: 8px 0 0 0; font-size: 12px; color: #666;">...and {remaining} more earthquakes</p>'
        if remaining > 0
        else ""
    )

    return f"""
<div class="cluster-popup">
  <h3 style="margin: 0 0 8px 0;">Earthquake Cluster</h3>
  <p style="margin: 4px 0; font-size: 14px;">Contains {cluster["count"]} earthquakes</p>
  <p style="margin: 4px 0; font-size: 13px; color: #666;">Average magnitude: {_fmt(cluster.get("avgMagnitude"))}</p>
  <p style="margin: 4px 0 12px 0; font-size: 13px; color: #666;">Average depth: {_fmt(cluster.get("avgDepth"))} km</p>
  <div style="border-top: 1px solid #eee; padding-top: 8px;">
    <h4 style="margin: 0 0 8px 0; font-size: 13px;">Recent earthquakes in this cluster:</h4>{rows}
    {more}
  </div>
</div>
"""


def popup_html(marker: Any, tz: Optional[tzinfo] = None) -> str:
    """
    Render popup HTML for a marker descriptor or its ``to_dict()`` form.

    Malformed input renders an error snippet instead of raising.
    """
    try:
        data = marker if isinstance(marker, dict) else marker.to_dict(tz)
        if data.get("type") == "single":
            return _single_popup(data.get("earthquake") or data)
        return _cluster_popup(data)
    except (AttributeError, KeyError, TypeError, ValueError):
        logger.exception("Error creating popup content")
        return ERROR_POPUP


def event_popup_html(quake: Dict[str, Any]) -> str:
    """Popup for an event picked from the list panel (``feature_view`` shape)."""
    try:
        view = dict(quake)
        if "time" not in view and "timestamp" in view:
            view["time"] = format_date(view["timestamp"])
        return _single_popup(view)
    except (KeyError, TypeError, ValueError):
        logger.exception("Error creating popup content")
        return ERROR_POPUP


__all__ = ["CLUSTER_POPUP_SAMPLE", "ERROR_POPUP", "event_popup_html", "popup_html"]
