"""
Pytest configuration and shared fixtures for quake map tests.

This file provides:
- USGS-shaped GeoJSON feature fixtures
- Swarms of nearby events for clustering tests
- Common test utilities
"""

import random
from typing import Any, Dict, List, Optional

import pytest

from quakemap.spatial.features import BoundingBox


# ==============================================================================
# Feature Builders
# ==============================================================================

def make_feature(
    event_id: str,
    lng: float,
    lat: float,
    mag: Optional[float],
    place: Optional[str] = "Test region",
    time_ms: Optional[int] = 1700000000000,
    depth: Optional[float] = 10.0,
    url: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a GeoJSON feature in the shape the USGS service returns."""
    coords: List[Any] = [lng, lat]
    if depth is not None:
        coords.append(depth)
    return {
        "type": "Feature",
        "id": event_id,
        "geometry": {"type": "Point", "coordinates": coords},
        "properties": {
            "mag": mag,
            "place": place,
            "time": time_ms,
            "url": url or f"https://earthquake.usgs.gov/earthquakes/eventpage/{event_id}",
        },
    }


def make_swarm(
    count: int,
    center_lng: float = 142.0,
    center_lat: float = 38.0,
    spread: float = 0.5,
    seed: int = 7,
    base_mag: float = 5.0,
) -> List[Dict[str, Any]]:
    """``count`` events scattered within ``spread`` degrees of a center."""
    rng = random.Random(seed)
    return [
        make_feature(
            f"swarm{i:03d}",
            center_lng + rng.uniform(-spread, spread),
            center_lat + rng.uniform(-spread, spread),
            round(base_mag + rng.uniform(0, 2), 1),
            place=f"Swarm event {i}",
            time_ms=1700000000000 + i * 60000,
            depth=round(rng.uniform(5, 60), 1),
        )
        for i in range(count)
    ]


# ==============================================================================
# Sample Events
# ==============================================================================

@pytest.fixture
def tohoku_feature() -> Dict[str, Any]:
    """The 2011 M9.1 Tohoku event as returned by the USGS service."""
    return make_feature(
        "official20110311054624120_30",
        142.373,
        38.297,
        9.1,
        place="2011 Great Tohoku Earthquake, Japan",
        time_ms=1299822384120,
        depth=29.0,
        url="https://earthquake.usgs.gov/earthquakes/eventpage/official20110311054624120_30",
    )


@pytest.fixture
def sample_features() -> List[Dict[str, Any]]:
    """Events spread over three continents."""
    return [
        make_feature("us1", 142.37, 38.30, 7.2, "Off the coast of Honshu, Japan", 1700000000000, 29.0),
        make_feature("us2", -72.50, -36.20, 6.4, "Maule, Chile", 1700000600000, 35.0),
        make_feature("us3", 27.00, 38.50, 5.1, "Western Turkey", 1700001200000, 10.0),
        make_feature("us4", -155.30, 19.40, 4.6, "Island of Hawaii", 1700001800000, 5.0),
        make_feature("us5", 120.90, 14.60, 3.8, "Luzon, Philippines", 1700002400000, 60.0),
    ]


@pytest.fixture
def swarm_features() -> List[Dict[str, Any]]:
    """Twenty events within half a degree of each other."""
    return make_swarm(20)


@pytest.fixture
def world_bbox() -> BoundingBox:
    return BoundingBox(west=-180.0, south=-85.0, east=180.0, north=85.0)


@pytest.fixture
def sample_profile() -> Dict[str, Any]:
    """Profile dictionary shaped like configs/default.yaml."""
    return {
        "name": "test",
        "clustering": {"radius": 60, "extent": 512, "max_zoom": 16},
        "feed": {"limit": 50, "orderby": "magnitude", "max_retries": 2},
        "viewport": {"debounce_ms": 10},
        "display": {"timezone": "UTC"},
    }


# ==============================================================================
# Utilities
# ==============================================================================

def assert_approx_equal(a: float, b: float, tolerance: float = 1e-9):
    """Assert two floats are approximately equal."""
    assert abs(a - b) < tolerance, f"{a} != {b} (tolerance={tolerance})"
