"""
Configuration loader for map profiles and environment variables.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from quakemap.feeds.usgs import FeedConfig
from quakemap.spatial.index import ClusterIndexConfig


DEFAULT_PROFILE = "default"
PROFILE_ENV_VAR = "QUAKEMAP_PROFILE"


class ConfigLoader:
    """Load and manage configuration from YAML files and environment."""
    
    CONFIG_DIR = Path(__file__).parent.parent.parent / "configs"
    
    @classmethod
    def load_profile(cls, profile_name: str = DEFAULT_PROFILE) -> Dict[str, Any]:
        """
        Load a map profile configuration.
        
        Args:
            profile_name: Name of the profile (default, regional)
            
        Returns:
            Dictionary with configuration values
            
        Raises:
            FileNotFoundError: If profile doesn't exist
        """
        profile_path = cls.CONFIG_DIR / f"{profile_name}.yaml"
        
        if not profile_path.exists():
            available = sorted(f.stem for f in cls.CONFIG_DIR.glob("*.yaml"))
            raise FileNotFoundError(
                f"Profile '{profile_name}' not found. Available profiles: {', '.join(available)}"
            )
        
        with open(profile_path, "r") as f:
            return yaml.safe_load(f) or {}
    
    @classmethod
    def get_profile_from_env(cls) -> Optional[str]:
        """Get profile name from QUAKEMAP_PROFILE environment variable."""
        return os.getenv(PROFILE_ENV_VAR)
    
    @classmethod
    def load_default_or_env_profile(cls) -> Dict[str, Any]:
        """
        Load profile from environment variable or use the default profile.
        
        Returns:
            Configuration dictionary
        """
        profile = cls.get_profile_from_env() or DEFAULT_PROFILE
        return cls.load_profile(profile)


def get_config() -> Dict[str, Any]:
    """Convenience function to get current configuration."""
    return ConfigLoader.load_default_or_env_profile()


def cluster_config_from_profile(profile: Dict[str, Any]) -> ClusterIndexConfig:
    """Build index parameters from a profile's ``clustering`` section."""
    section = profile.get("clustering", {}) or {}
    defaults = ClusterIndexConfig()
    return ClusterIndexConfig(
        radius=float(section.get("radius", defaults.radius)),
        extent=int(section.get("extent", defaults.extent)),
        min_zoom=int(section.get("min_zoom", defaults.min_zoom)),
        max_zoom=int(section.get("max_zoom", defaults.max_zoom)),
        min_points=int(section.get("min_points", defaults.min_points)),
        leaf_sample_size=int(section.get("leaf_sample_size", defaults.leaf_sample_size)),
    )


def feed_config_from_profile(profile: Dict[str, Any]) -> FeedConfig:
    """Build event-service settings from a profile's ``feed`` section."""
    section = profile.get("feed", {}) or {}
    defaults = FeedConfig()
    return FeedConfig(
        base_url=section.get("base_url", defaults.base_url),
        timeout_s=float(section.get("timeout_s", defaults.timeout_s)),
        max_retries=int(section.get("max_retries", defaults.max_retries)),
    )
