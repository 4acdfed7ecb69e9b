"""
Hierarchical point clustering index for zoomable maps.

The index follows the Supercluster scheme:
1. Points are projected to unit Web-Mercator space
2. A leaf level is built at ``max_zoom + 1``
3. Each lower zoom greedily merges nodes of the level above that lie within
   ``radius / (extent * 2**zoom)`` of each other
4. Optional map/reduce callbacks aggregate custom properties as nodes merge

Cluster ids encode the index of the origin node and the zoom it was built at,
so children and leaves can be recovered without storing explicit trees.
Neighbour lookups go through scikit-learn's ``KDTree``; viewport range queries
use numpy masks over the level's coordinates.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np
from sklearn.neighbors import KDTree

from .features import BoundingBox


logger = logging.getLogger(__name__)

NO_CLUSTER_MSG = "No cluster with the specified id."

MapFn = Callable[[Dict[str, Any]], Dict[str, Any]]
ReduceFn = Callable[[Dict[str, Any], Dict[str, Any]], None]


@dataclass
class ClusterIndexConfig:
    """Tunable parameters of the hierarchical index."""

    radius: float = 60.0
    """Cluster radius in screen pixels (relative to ``extent``)."""

    extent: int = 512
    """Tile extent the radius is measured against."""

    min_zoom: int = 0
    """Lowest zoom level that gets a clustered level."""

    max_zoom: int = 16
    """Highest zoom level that still clusters; above it every point is single."""

    min_points: int = 2
    """Minimum number of points that form a cluster."""

    leaf_sample_size: int = 10
    """Member points retained per cluster marker."""

    def __post_init__(self):
        if self.radius <= 0:
            raise ValueError(f"radius must be positive, got {self.radius}")
        if self.extent <= 0:
            raise ValueError(f"extent must be positive, got {self.extent}")
        if not 0 <= self.min_zoom <= self.max_zoom:
            raise ValueError(
                f"Expected 0 <= min_zoom <= max_zoom, got min_zoom={self.min_zoom}, max_zoom={self.max_zoom}"
            )
        if self.max_zoom > 30:
            raise ValueError("max_zoom above 30 does not fit the cluster id encoding")
        if self.min_points < 2:
            raise ValueError(f"min_points must be at least 2, got {self.min_points}")


@dataclass
class ClusterNode:
    """A cluster as returned by index queries."""

    cluster_id: int
    longitude: float
    latitude: float
    point_count: int
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def coordinates(self) -> tuple:
        return (self.longitude, self.latitude)

    @property
    def point_count_abbreviated(self) -> Union[int, str]:
        if self.point_count >= 10000:
            return f"{round(self.point_count / 1000)}k"
        if self.point_count >= 1000:
            return f"{round(self.point_count / 100) / 10}k"
        return self.point_count


@dataclass
class _Node:
    x: float
    y: float
    zoom: float
    """Last zoom this node was visited at (inf when untouched)."""

    id: int
    """Point index for leaves, cluster id for clusters."""

    parent_id: int = -1
    num_points: int = 1
    prop_index: int = -1


# -----------------------------
# Projection
# -----------------------------

def lng_x(lng: float) -> float:
    return lng / 360.0 + 0.5


def lat_y(lat: float) -> float:
    sin = math.sin(lat * math.pi / 180.0)
    if sin >= 1.0:
        return 0.0
    if sin <= -1.0:
        return 1.0
    y = 0.5 - 0.25 * math.log((1 + sin) / (1 - sin)) / math.pi
    return 0.0 if y < 0 else 1.0 if y > 1 else y


def x_lng(x: float) -> float:
    return (x - 0.5) * 360.0


def y_lat(y: float) -> float:
    y2 = (180.0 - y * 360.0) * math.pi / 180.0
    return 360.0 * math.atan(math.exp(y2)) / math.pi - 90.0


class _Level:
    """Nodes of one zoom level with spatial lookups."""

    def __init__(self, nodes: List[_Node]):
        self.nodes = nodes
        coords = np.array([[n.x, n.y] for n in nodes], dtype=float).reshape(-1, 2)
        self._xs = coords[:, 0]
        self._ys = coords[:, 1]
        self._tree = KDTree(coords) if len(nodes) else None

    def within(self, x: float, y: float, r: float) -> List[int]:
        """Node positions within ``r`` of (x, y), in ascending order."""
        if self._tree is None:
            return []
        ids = self._tree.query_radius(np.array([[x, y]]), r=r)[0]
        return np.sort(ids).tolist()

    def range(self, min_x: float, min_y: float, max_x: float, max_y: float) -> List[int]:
        mask = (
            (self._xs >= min_x)
            & (self._xs <= max_x)
            & (self._ys >= min_y)
            & (self._ys <= max_y)
        )
        return np.flatnonzero(mask).tolist()


class HierarchicalClusterIndex:
    """
    Multi-zoom clustering index over point-like objects.

    Points must expose ``longitude``, ``latitude`` and a ``properties`` mapping.
    ``map_props`` turns a point's properties into the initial aggregate and
    ``reduce`` folds one aggregate into another in place.

    Example:
        >>> index = HierarchicalClusterIndex(ClusterIndexConfig()).load(points)
        >>> for item in index.get_clusters([-180, -85, 180, 85], zoom=2):
        ...     if isinstance(item, ClusterNode):
        ...         leaves = index.get_leaves(item.cluster_id, limit=10)
    """

    def __init__(
        self,
        config: Optional[ClusterIndexConfig] = None,
        map_props: Optional[MapFn] = None,
        reduce: Optional[ReduceFn] = None,
    ):
        self.config = config or ClusterIndexConfig()
        self._map_props = map_props
        self._reduce = reduce
        self.points: List[Any] = []
        self._levels: Dict[int, _Level] = {}
        self._cluster_props: List[Dict[str, Any]] = []

    def load(self, points: Sequence[Any]) -> "HierarchicalClusterIndex":
        """Build every zoom level for ``points``. Returns self."""

        self.points = list(points)
        self._levels = {}
        self._cluster_props = []

        nodes = [
            _Node(x=lng_x(p.longitude), y=lat_y(p.latitude), zoom=math.inf, id=i)
            for i, p in enumerate(self.points)
        ]
        level = _Level(nodes)
        self._levels[self.config.max_zoom + 1] = level

        for zoom in range(self.config.max_zoom, self.config.min_zoom - 1, -1):
            level = _Level(self._cluster(level, zoom))
            self._levels[zoom] = level

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Cluster index built: %d points, %d nodes at zoom %d",
                len(self.points), len(level.nodes), self.config.min_zoom,
            )
        return self

    # -----------------------------
    # Queries
    # -----------------------------

    def get_clusters(self, bbox: Union[BoundingBox, Sequence[float]], zoom: float) -> List[Any]:
        """
        Return clusters and single points visible in ``bbox`` at ``zoom``.

        Single points are returned as the original point objects; clusters as
        ``ClusterNode``. Boxes crossing the antimeridian are split in two.
        """
        west, south, east, north = BoundingBox.from_any(bbox).as_list()

        min_lng = ((west + 180.0) % 360.0) - 180.0
        min_lat = max(-90.0, min(90.0, south))
        max_lng = 180.0 if east == 180 else ((east + 180.0) % 360.0) - 180.0
        max_lat = max(-90.0, min(90.0, north))

        if east - west >= 360:
            min_lng, max_lng = -180.0, 180.0
        elif min_lng > max_lng:
            eastern = self.get_clusters([min_lng, min_lat, 180.0, max_lat], zoom)
            western = self.get_clusters([-180.0, min_lat, max_lng, max_lat], zoom)
            return eastern + western

        level = self._levels[self._limit_zoom(zoom)]
        ids = level.range(lng_x(min_lng), lat_y(max_lat), lng_x(max_lng), lat_y(min_lat))
        return [self._node_output(level.nodes[k]) for k in ids]

    def get_children(self, cluster_id: int) -> List[Any]:
        """Return the immediate children (clusters or points) of a cluster."""

        cluster_id = int(cluster_id)
        origin_id = self._origin_id(cluster_id)
        origin_zoom = self._origin_zoom(cluster_id)

        level = self._levels.get(origin_zoom)
        if level is None or not 0 <= origin_id < len(level.nodes):
            raise ValueError(NO_CLUSTER_MSG)

        origin = level.nodes[origin_id]
        r = self.config.radius / (self.config.extent * 2 ** (origin_zoom - 1))

        children = [
            self._node_output(level.nodes[k])
            for k in level.within(origin.x, origin.y, r)
            if level.nodes[k].parent_id == cluster_id
        ]
        if not children:
            raise ValueError(NO_CLUSTER_MSG)
        return children

    def get_leaves(self, cluster_id: int, limit: Optional[int] = 10, offset: int = 0) -> List[Any]:
        """
        Return up to ``limit`` original points belonging to a cluster.

        Leaves are collected depth-first through the child clusters, each level
        in ascending node order, so the sample is stable for a given input.
        ``limit=None`` returns every leaf.
        """
        leaves: List[Any] = []
        self._append_leaves(leaves, int(cluster_id), limit, offset, 0)
        return leaves

    def get_cluster_expansion_zoom(self, cluster_id: int) -> int:
        """Zoom at which the cluster first splits into more than one child."""

        cluster_id = int(cluster_id)
        expansion_zoom = self._origin_zoom(cluster_id) - 1
        while expansion_zoom <= self.config.max_zoom:
            children = self.get_children(cluster_id)
            expansion_zoom += 1
            if len(children) != 1:
                break
            cluster_id = children[0].cluster_id
        return expansion_zoom

    # -----------------------------
    # Construction
    # -----------------------------

    def _cluster(self, level: _Level, zoom: int) -> List[_Node]:
        r = self.config.radius / (self.config.extent * 2 ** zoom)
        nodes = level.nodes
        next_nodes: List[_Node] = []

        for i, p in enumerate(nodes):
            if p.zoom <= zoom:
                continue
            p.zoom = zoom

            neighbor_ids = level.within(p.x, p.y, r)

            num_points_origin = p.num_points
            num_points = num_points_origin
            for k in neighbor_ids:
                if nodes[k].zoom > zoom:
                    num_points += nodes[k].num_points

            if num_points > num_points_origin and num_points >= self.config.min_points:
                wx = p.x * num_points_origin
                wy = p.y * num_points_origin
                cluster_props: Optional[Dict[str, Any]] = None
                prop_index = -1
                cluster_id = (i << 5) + (zoom + 1) + len(self.points)

                for k in neighbor_ids:
                    b = nodes[k]
                    if b.zoom <= zoom:
                        continue
                    b.zoom = zoom
                    wx += b.x * b.num_points
                    wy += b.y * b.num_points
                    b.parent_id = cluster_id

                    if self._reduce is not None:
                        if cluster_props is None:
                            cluster_props = self._map(p, clone=True)
                            prop_index = len(self._cluster_props)
                            self._cluster_props.append(cluster_props)
                        self._reduce(cluster_props, self._map(b))

                p.parent_id = cluster_id
                next_nodes.append(
                    _Node(
                        x=wx / num_points,
                        y=wy / num_points,
                        zoom=math.inf,
                        id=cluster_id,
                        num_points=num_points,
                        prop_index=prop_index,
                    )
                )
            else:
                next_nodes.append(replace(p))
                if num_points > 1:
                    for k in neighbor_ids:
                        b = nodes[k]
                        if b.zoom <= zoom:
                            continue
                        b.zoom = zoom
                        next_nodes.append(replace(b))

        return next_nodes

    def _map(self, node: _Node, clone: bool = False) -> Dict[str, Any]:
        if node.num_points > 1:
            props = self._cluster_props[node.prop_index]
            return dict(props) if clone else props

        original = self.points[node.id].properties
        result = self._map_props(original) if self._map_props is not None else original
        return dict(result) if clone and result is original else result

    def _append_leaves(
        self,
        result: List[Any],
        cluster_id: int,
        limit: Optional[int],
        offset: int,
        skipped: int,
    ) -> int:
        for child in self.get_children(cluster_id):
            if isinstance(child, ClusterNode):
                if skipped + child.point_count <= offset:
                    skipped += child.point_count
                else:
                    skipped = self._append_leaves(result, child.cluster_id, limit, offset, skipped)
            elif skipped < offset:
                skipped += 1
            else:
                result.append(child)

            if limit is not None and len(result) >= limit:
                break
        return skipped

    def _node_output(self, node: _Node) -> Any:
        if node.num_points > 1:
            props = dict(self._cluster_props[node.prop_index]) if node.prop_index >= 0 else {}
            return ClusterNode(
                cluster_id=node.id,
                longitude=x_lng(node.x),
                latitude=y_lat(node.y),
                point_count=node.num_points,
                properties=props,
            )
        return self.points[node.id]

    def _limit_zoom(self, zoom: float) -> int:
        return max(self.config.min_zoom, min(int(math.floor(zoom)), self.config.max_zoom + 1))

    def _origin_id(self, cluster_id: int) -> int:
        return (cluster_id - len(self.points)) >> 5

    def _origin_zoom(self, cluster_id: int) -> int:
        return (cluster_id - len(self.points)) % 32


__all__ = [
    "ClusterIndexConfig",
    "ClusterNode",
    "HierarchicalClusterIndex",
    "NO_CLUSTER_MSG",
    "lat_y",
    "lng_x",
    "x_lng",
    "y_lat",
]
