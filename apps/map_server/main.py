"""FastAPI server streaming clustered earthquake markers to the map front-end."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from .schemas.models import (
    EarthquakeListResponse,
    FilterRequest,
    LegendResponse,
    MarkersRequest,
    ViewportRequest,
)
from .tools.debounce import ViewportDebouncer
from .tools.markers import (
    debounce_seconds,
    display_timezone,
    fetch_features,
    legend_response,
    markers_for_viewport,
    markers_response,
    widget_payload,
)
from quakemap.feeds import FeedError, FilterSettings, earthquake_table
from quakemap.markers import event_popup_html
from quakemap.tools.config_loader import ConfigLoader

logger = logging.getLogger(__name__)

app = FastAPI(title="Quake Map Server", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

assets_dir = Path(__file__).parent / "assets"
if assets_dir.exists():
    app.mount("/assets", StaticFiles(directory=assets_dir), name="assets")


@app.get("/health")
async def health_check() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/legend")
async def legend() -> LegendResponse:
    return legend_response()


def _load_profile(name: Optional[str]) -> Dict[str, Any]:
    try:
        if name:
            return ConfigLoader.load_profile(name)
        return ConfigLoader.load_default_or_env_profile()
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


async def _fetch_or_502(settings: FilterSettings, profile: Dict[str, Any]):
    try:
        return await fetch_features(settings, profile)
    except (httpx.HTTPError, FeedError) as exc:
        logger.warning("Earthquake feed unavailable: %s", exc)
        raise HTTPException(status_code=502, detail=f"Earthquake feed unavailable: {exc}") from exc


@app.get("/earthquakes")
async def list_earthquakes(
    min_magnitude: float = Query(5.0, alias="minMagnitude"),
    time_range: str = Query("7 Days", alias="timeRange"),
    custom_days: int = Query(7, alias="customDays"),
    profile: Optional[str] = None,
) -> EarthquakeListResponse:
    try:
        settings = FilterSettings(min_magnitude=min_magnitude, time_range=time_range, custom_days=custom_days)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    profile_data = _load_profile(profile)
    features = await _fetch_or_502(settings, profile_data)

    table = earthquake_table(features, display_timezone(profile_data))
    # NaN is not valid JSON
    table = table.astype(object).where(table.notna(), None)
    records = [{**row, "popup": event_popup_html(row)} for row in table.to_dict(orient="records")]
    return EarthquakeListResponse(count=len(records), earthquakes=records)


@app.post("/actions/earthquake_markers")
async def earthquake_markers_action(request: MarkersRequest) -> Dict[str, Any]:
    profile = _load_profile(request.profile)
    features = await _fetch_or_502(request.filters.to_settings(), profile)

    viewport = request.viewport.to_viewport()
    result = markers_for_viewport(features, viewport, profile)
    response = markers_response(result, display_timezone(profile))

    payload = response.model_dump(by_alias=True)
    payload["_meta"] = {"outputTemplate": widget_payload(response, viewport, profile)}
    return payload


@app.websocket("/ws/markers")
async def markers_socket(
    websocket: WebSocket,
    min_magnitude: float = 5.0,
    time_range: str = "7 Days",
    custom_days: int = 7,
    profile: Optional[str] = None,
) -> None:
    """
    Stream markers as the map moves.

    The client sends ``{"bbox": {...}, "zoom": z}`` on every viewport change;
    markers are recomputed once changes stop for the debounce period and
    only the latest viewport's markers are sent back.
    """
    await websocket.accept()

    try:
        filters = FilterRequest(minMagnitude=min_magnitude, timeRange=time_range, customDays=custom_days)
        profile_data = _load_profile(profile)
        features = await fetch_features(filters.to_settings(), profile_data)
    except (ValidationError, HTTPException, httpx.HTTPError, FeedError) as exc:
        detail = exc.detail if isinstance(exc, HTTPException) else str(exc)
        await websocket.send_json({"type": "error", "detail": detail})
        await websocket.close(code=1011)
        return

    tz = display_timezone(profile_data)

    def compute(viewport):
        return asyncio.to_thread(markers_for_viewport, features, viewport, profile_data)

    async def deliver(result) -> None:
        payload = markers_response(result, tz).model_dump(by_alias=True)
        await websocket.send_json({"type": "markers", **payload})

    debouncer = ViewportDebouncer(compute, deliver, quiet_period_s=debounce_seconds(profile_data))
    try:
        while True:
            message = await websocket.receive_text()
            try:
                request = ViewportRequest.model_validate_json(message)
            except ValidationError as exc:
                await websocket.send_json({"type": "error", "detail": exc.errors(include_url=False, include_context=False)})
                continue
            debouncer.submit(request.to_viewport())
    except WebSocketDisconnect:
        logger.debug("Marker socket closed")
    finally:
        debouncer.cancel()


__all__ = ["app"]
