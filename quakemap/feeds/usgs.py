"""
USGS earthquake event client with retries and error handling.

Wraps the FDSN event query service (GeoJSON format), providing:
- Time-window and recent-events queries
- Exponential backoff with jitter for 5xx and transport errors
- A connection check that never raises

Documentation: https://earthquake.usgs.gov/fdsnws/event/1/
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

import httpx


logger = logging.getLogger(__name__)

# -----------------------------
# Constants
# -----------------------------

USGS_API_BASE = "https://earthquake.usgs.gov/fdsnws/event/1/query"

# Retry configuration
MAX_RETRIES = 4
BACKOFF_BASE = 2
BACKOFF_MAX = 8

DEFAULT_TIMEOUT_S = 30.0

TimeLike = Union[datetime, int, float]


class FeedError(RuntimeError):
    """The event service answered with something that is not a feature collection."""


@dataclass
class FeedConfig:
    """Connection settings for the event service."""
    base_url: str = USGS_API_BASE
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_retries: int = MAX_RETRIES


# -----------------------------
# Helpers
# -----------------------------

def exponential_backoff_with_jitter(attempt: int) -> float:
    """
    Calculate backoff time with exponential growth and jitter.

    Formula: min(BACKOFF_BASE^attempt + random(0,1), BACKOFF_MAX)
    """
    base_delay = BACKOFF_BASE ** attempt
    jitter = random.random()
    return min(base_delay + jitter, BACKOFF_MAX)


def format_query_time(moment: TimeLike) -> str:
    """
    Format a time for the query string: ISO-8601 in UTC, no fractional seconds.

    Accepts a datetime (naive values are taken as UTC) or milliseconds since
    the epoch.
    """
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        value = moment.astimezone(timezone.utc)
    else:
        value = datetime.fromtimestamp(float(moment) / 1000.0, tz=timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S")


async def _request_json(
    params: Dict[str, Any],
    config: Optional[FeedConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """GET the query endpoint with retries on 5xx and transport errors."""

    config = config or FeedConfig()
    query = {"format": "geojson", **params}

    for attempt in range(config.max_retries):
        try:
            if client is not None:
                response = await client.get(config.base_url, params=query)
            else:
                async with httpx.AsyncClient(timeout=config.timeout_s) as owned:
                    response = await owned.get(config.base_url, params=query)

            if response.status_code >= 500 and attempt < config.max_retries - 1:
                sleep_time = exponential_backoff_with_jitter(attempt)
                logger.warning(
                    "USGS API error %d (attempt %d/%d), retrying in %.1fs",
                    response.status_code, attempt + 1, config.max_retries, sleep_time,
                )
                await asyncio.sleep(sleep_time)
                continue

            response.raise_for_status()
            return response.json()

        except httpx.TransportError as e:
            if attempt < config.max_retries - 1:
                sleep_time = exponential_backoff_with_jitter(attempt)
                logger.warning(
                    "USGS API unreachable (%s), retrying in %.1fs", e, sleep_time
                )
                await asyncio.sleep(sleep_time)
                continue
            raise

    raise FeedError("Earthquake query failed after retries")


# -----------------------------
# Queries
# -----------------------------

async def get_earthquakes(
    start_time: Optional[TimeLike] = None,
    end_time: Optional[TimeLike] = None,
    min_magnitude: float = 4.5,
    *,
    config: Optional[FeedConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Get earthquakes within a time range.

    Args:
        start_time: Window start (default: 24 hours ago)
        end_time: Window end (default: now)
        min_magnitude: Minimum magnitude
        config: Connection settings
        client: Optional pre-built client (tests, connection reuse)

    Returns:
        GeoJSON FeatureCollection as a dict

    Raises:
        httpx.HTTPError: If the request fails after retries
    """
    now = datetime.now(timezone.utc)
    params = {
        "starttime": format_query_time(start_time if start_time is not None else now - timedelta(days=1)),
        "endtime": format_query_time(end_time if end_time is not None else now),
        "minmagnitude": str(min_magnitude),
    }
    return await _request_json(params, config, client)


async def get_japan_earthquake_2011(
    *,
    config: Optional[FeedConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """Get the 2011 Tohoku (Japan) M9 earthquake."""
    params = {
        "starttime": "2011-03-11T05:45:00",
        "endtime": "2011-03-11T05:47:00",
        "latitude": "38.297",
        "longitude": "142.373",
        "maxradiuskm": "100",
        "minmagnitude": "9.0",
    }
    return await _request_json(params, config, client)


async def check_connection(
    *,
    config: Optional[FeedConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Return True when the event service answers a one-event query."""
    try:
        await _request_json({"limit": "1", "minmagnitude": "7"}, config, client)
    except (httpx.HTTPError, FeedError, ValueError) as e:
        logger.error("USGS API connection test failed: %s", e)
        return False
    return True


async def get_recent_earthquakes(
    days: int = 7,
    min_magnitude: float = 5.0,
    *,
    limit: int = 100,
    orderby: str = "magnitude",
    config: Optional[FeedConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Dict[str, Any]]:
    """
    Get recent significant earthquakes as raw GeoJSON features.

    Args:
        days: Number of days to look back
        min_magnitude: Minimum magnitude
        limit: Maximum number of events
        orderby: Service-side ordering (``magnitude`` or ``time``)

    Returns:
        List of GeoJSON features, untransformed

    Raises:
        FeedError: If the payload has no feature list
        httpx.HTTPError: If the request fails after retries
    """
    end = datetime.now(timezone.utc)
    start = end - timedelta(days=days)

    params = {
        "starttime": format_query_time(start),
        "endtime": format_query_time(end),
        "minmagnitude": str(min_magnitude),
        "orderby": orderby,
        "limit": str(limit),
    }
    data = await _request_json(params, config, client)

    features = data.get("features") if isinstance(data, dict) else None
    if not isinstance(features, list):
        raise FeedError("Invalid earthquake data received")
    return features


__all__ = [
    "BACKOFF_MAX",
    "FeedConfig",
    "FeedError",
    "MAX_RETRIES",
    "USGS_API_BASE",
    "check_connection",
    "exponential_backoff_with_jitter",
    "format_query_time",
    "get_earthquakes",
    "get_japan_earthquake_2011",
    "get_recent_earthquakes",
]
