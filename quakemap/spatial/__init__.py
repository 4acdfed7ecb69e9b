"""
quakemap/spatial: Point features and the hierarchical clustering index.

This module provides Supercluster-style zoom-dependent clustering with
custom property aggregation.
"""

from .features import (
    BoundingBox,
    PointFeature,
    Viewport,
    coerce_feature,
    validate_features,
)
from .index import (
    ClusterIndexConfig,
    ClusterNode,
    HierarchicalClusterIndex,
)

__all__ = [
    "BoundingBox",
    "PointFeature",
    "Viewport",
    "coerce_feature",
    "validate_features",
    "ClusterIndexConfig",
    "ClusterNode",
    "HierarchicalClusterIndex",
]
