"""Configuration tools."""

from .config_loader import (
    ConfigLoader,
    cluster_config_from_profile,
    feed_config_from_profile,
    get_config,
)

__all__ = [
    "ConfigLoader",
    "cluster_config_from_profile",
    "feed_config_from_profile",
    "get_config",
]
