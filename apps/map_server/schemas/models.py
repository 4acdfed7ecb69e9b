"""Pydantic models for the earthquake map server."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from quakemap.feeds.filters import TIME_RANGE_BY_LABEL, FilterSettings
from quakemap.markers.engine import MarkerResult
from quakemap.spatial.features import BoundingBox, Viewport


class BoundingBoxModel(BaseModel):
    """Visible map bounds in degrees."""

    west: float = Field(..., description="Western longitude")
    south: float = Field(..., ge=-90, le=90, description="Southern latitude")
    east: float = Field(..., description="Eastern longitude")
    north: float = Field(..., ge=-90, le=90, description="Northern latitude")

    @model_validator(mode="after")
    def _check_latitudes(self) -> "BoundingBoxModel":
        if self.south > self.north:
            raise ValueError("south must not exceed north")
        return self

    def to_bbox(self) -> BoundingBox:
        return BoundingBox(west=self.west, south=self.south, east=self.east, north=self.north)


class ViewportRequest(BaseModel):
    bbox: BoundingBoxModel
    zoom: float = Field(..., ge=0, le=24, description="Map zoom (fractional values are floored)")

    def to_viewport(self) -> Viewport:
        return Viewport(bbox=self.bbox.to_bbox(), zoom=self.zoom)


class FilterRequest(BaseModel):
    min_magnitude: float = Field(5.0, alias="minMagnitude", description="Minimum magnitude (4.0-9.0)")
    time_range: str = Field("7 Days", alias="timeRange", description="Time range preset label")
    custom_days: int = Field(7, alias="customDays", ge=1, le=365)
    custom_start: Optional[datetime] = Field(default=None, alias="customStart")
    custom_end: Optional[datetime] = Field(default=None, alias="customEnd")

    model_config = {"populate_by_name": True}

    @field_validator("time_range")
    @classmethod
    def _validate_time_range(cls, value: str) -> str:
        if value not in TIME_RANGE_BY_LABEL:
            raise ValueError(f"Unknown time range. Available: {', '.join(TIME_RANGE_BY_LABEL)}")
        return value

    def to_settings(self) -> FilterSettings:
        return FilterSettings(
            min_magnitude=self.min_magnitude,
            time_range=self.time_range,
            custom_days=self.custom_days,
            custom_start=self.custom_start,
            custom_end=self.custom_end,
        )


class MarkersRequest(BaseModel):
    filters: FilterRequest = Field(default_factory=FilterRequest)
    viewport: ViewportRequest
    profile: Optional[str] = Field(default=None, description="Config profile name")


class MarkerDiagnostics(BaseModel):
    status: str
    reason: Optional[str] = None
    num_records: int = Field(0, alias="numRecords")
    num_valid: int = Field(0, alias="numValid")
    num_dropped: int = Field(0, alias="numDropped")
    num_singles: int = Field(0, alias="numSingles")
    num_clusters: int = Field(0, alias="numClusters")
    zoom: Optional[int] = None

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: MarkerResult) -> "MarkerDiagnostics":
        return cls(
            status=result.status,
            reason=result.reason,
            num_records=result.num_records,
            num_valid=result.num_valid,
            num_dropped=result.num_dropped,
            num_singles=result.num_singles,
            num_clusters=result.num_clusters,
            zoom=result.zoom,
        )


class MarkersResponse(BaseModel):
    markers: List[Dict[str, Any]]
    diagnostics: MarkerDiagnostics


class LegendEntry(BaseModel):
    label: str
    color: str


class LegendResponse(BaseModel):
    title: str = "Magnitude Scale"
    entries: List[LegendEntry]


class EarthquakeListResponse(BaseModel):
    count: int
    earthquakes: List[Dict[str, Any]]
