"""Earthquake event sources and list/filter helpers."""

from .usgs import (
    FeedConfig,
    FeedError,
    USGS_API_BASE,
    check_connection,
    get_earthquakes,
    get_japan_earthquake_2011,
    get_recent_earthquakes,
)

from .filters import (
    FilterSettings,
    TIME_RANGES,
    TimeRange,
    earthquake_table,
)

__all__ = [
    # USGS client
    "FeedConfig",
    "FeedError",
    "USGS_API_BASE",
    "check_connection",
    "get_earthquakes",
    "get_japan_earthquake_2011",
    "get_recent_earthquakes",

    # Filters and list panel
    "FilterSettings",
    "TIME_RANGES",
    "TimeRange",
    "earthquake_table",
]
