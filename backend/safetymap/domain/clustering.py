"""Zoom dependent point clustering for the incident map.

Points are projected to the Web-Mercator unit square. Starting one level
below ``max_zoom`` and walking down to ``min_zoom``, every node of the level
above greedily absorbs the unassigned neighbours that fall inside the
clustering radius (expressed in screen pixels and converted to the unit
square for that zoom). Each level is kept in a uniform grid whose cell size
equals the search radius, so neighbour lookups only visit the 3x3 block of
cells around a node.

Level ``max_zoom`` holds the raw points; queries at or above it never
return clusters.

Cluster ids are derived from the zoom and the ids of the leaves, so the same
group of points keeps its id across rebuilds.
"""
from __future__ import annotations

import hashlib
import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .models import Cluster, GeoPoint, SourceKind, Viewport
from .normalizer import valid_coordinate

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_PX = 40
DEFAULT_EXTENT = 512
DEFAULT_MIN_POINTS = 2
DEFAULT_MIN_ZOOM = 0
DEFAULT_MAX_ZOOM = 16

Bounds = Union[Sequence[float], Viewport]


def lng_x(lng: float) -> float:
    return lng / 360.0 + 0.5


def lat_y(lat: float) -> float:
    sin = math.sin(math.radians(lat))
    if sin >= 1.0:
        return 0.0
    if sin <= -1.0:
        return 1.0
    y = 0.5 - 0.25 * math.log((1 + sin) / (1 - sin)) / math.pi
    return max(0.0, min(1.0, y))


@dataclass
class _Node:
    id: str
    count: int
    lat_sum: float
    lng_sum: float
    point: Optional[GeoPoint] = None
    zoom: Optional[int] = None
    children: List["_Node"] = field(default_factory=list)
    severity_counts: Counter = field(default_factory=Counter)
    kinds: frozenset = frozenset()
    x: float = field(init=False)
    y: float = field(init=False)
    # bounding box of the leaves in projected coordinates
    min_x: float = field(init=False)
    min_y: float = field(init=False)
    max_x: float = field(init=False)
    max_y: float = field(init=False)

    def __post_init__(self):
        self.x = lng_x(self.lat_lng[1])
        self.y = lat_y(self.lat_lng[0])
        if self.children:
            self.min_x = min(child.min_x for child in self.children)
            self.min_y = min(child.min_y for child in self.children)
            self.max_x = max(child.max_x for child in self.children)
            self.max_y = max(child.max_y for child in self.children)
        else:
            self.min_x = self.max_x = self.x
            self.min_y = self.max_y = self.y

    @property
    def lat_lng(self) -> Tuple[float, float]:
        return self.lat_sum / self.count, self.lng_sum / self.count

    @property
    def reach(self) -> float:
        """Largest offset from the node position to the edge of its leaves."""
        return max(self.x - self.min_x, self.max_x - self.x, self.y - self.min_y, self.max_y - self.y)

    def iter_leaves(self) -> Iterator["_Node"]:
        stack = [self]
        while stack:
            node = stack.pop()
            if node.point is not None:
                yield node
            else:
                stack.extend(reversed(node.children))


def _cluster_id(zoom: int, members: Sequence[_Node]) -> str:
    leaf_ids = sorted(leaf.id for member in members for leaf in member.iter_leaves())
    digest = hashlib.sha1("\n".join(leaf_ids).encode("utf-8")).hexdigest()[:12]
    return f"cluster-{zoom}-{digest}"


def _leaf(point: GeoPoint) -> _Node:
    return _Node(
        id=point.id,
        count=1,
        lat_sum=point.lat,
        lng_sum=point.lng,
        point=point,
        severity_counts=Counter({point.severity.value: 1}),
        kinds=frozenset({point.kind}),
    )


def _merge(cluster_id: str, members: List[_Node], zoom: int) -> _Node:
    severity_counts: Counter = Counter()
    kinds: set = set()
    for member in members:
        severity_counts.update(member.severity_counts)
        kinds.update(member.kinds)
    return _Node(
        id=cluster_id,
        count=sum(member.count for member in members),
        lat_sum=sum(member.lat_sum for member in members),
        lng_sum=sum(member.lng_sum for member in members),
        zoom=zoom,
        children=list(members),
        severity_counts=severity_counts,
        kinds=frozenset(kinds),
    )


class _GridIndex:
    def __init__(self, nodes: Sequence[_Node], cell: float):
        self.nodes = nodes
        self.cell = cell
        self.cells: Dict[Tuple[int, int], List[int]] = defaultdict(list)
        for i, node in enumerate(nodes):
            self.cells[self._key(node.x, node.y)].append(i)

    def _key(self, x: float, y: float) -> Tuple[int, int]:
        return int(math.floor(x / self.cell)), int(math.floor(y / self.cell))

    def within(self, x: float, y: float, radius: float) -> List[int]:
        cx, cy = self._key(x, y)
        r2 = radius * radius
        found = []
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for i in self.cells.get((cx + dx, cy + dy), ()):
                    node = self.nodes[i]
                    if (node.x - x) ** 2 + (node.y - y) ** 2 <= r2:
                        found.append(i)
        found.sort()
        return found

    def range(self, min_x: float, min_y: float, max_x: float, max_y: float) -> List[int]:
        x0, y0 = self._key(min_x, min_y)
        x1, y1 = self._key(max_x, max_y)
        span = (x1 - x0 + 1) * (y1 - y0 + 1)
        if span > len(self.cells):
            keys: Iterable[Tuple[int, int]] = [
                key for key in self.cells if x0 <= key[0] <= x1 and y0 <= key[1] <= y1
            ]
        else:
            keys = [(cx, cy) for cx in range(x0, x1 + 1) for cy in range(y0, y1 + 1)]
        found = []
        for key in keys:
            for i in self.cells.get(key, ()):
                node = self.nodes[i]
                if min_x <= node.x <= max_x and min_y <= node.y <= max_y:
                    found.append(i)
        found.sort()
        return found


@dataclass
class _Level:
    nodes: List[_Node]
    index: _GridIndex
    reach: float = 0.0

    @classmethod
    def build(cls, nodes: List[_Node], cell: float) -> "_Level":
        reach = max((node.reach for node in nodes), default=0.0)
        return cls(nodes, _GridIndex(nodes, cell), reach)


def _touches(node: _Node, min_x: float, min_y: float, max_x: float, max_y: float) -> bool:
    """True when the node's marker or any of its leaves falls inside the box."""
    if node.max_x < min_x or node.min_x > max_x or node.max_y < min_y or node.min_y > max_y:
        return False
    if min_x <= node.x <= max_x and min_y <= node.y <= max_y:
        return True
    return any(
        min_x <= leaf.x <= max_x and min_y <= leaf.y <= max_y for leaf in node.iter_leaves()
    )


class SpatialIndex:
    """Clusters map points per integer zoom level.

    The index is rebuilt from scratch on every :meth:`load`; there is no
    incremental insert or delete.
    """

    def __init__(
        self,
        radius: float = DEFAULT_RADIUS_PX,
        extent: int = DEFAULT_EXTENT,
        min_points: int = DEFAULT_MIN_POINTS,
        min_zoom: int = DEFAULT_MIN_ZOOM,
        max_zoom: int = DEFAULT_MAX_ZOOM,
    ):
        if radius <= 0:
            raise ValueError("radius must be positive")
        if min_points < 2:
            raise ValueError("min_points must be at least 2")
        if not 0 <= min_zoom <= max_zoom:
            raise ValueError("expected 0 <= min_zoom <= max_zoom")
        self.radius = radius
        self.extent = extent
        self.min_points = min_points
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self._levels: Dict[int, _Level] = {}
        self._clusters: Dict[str, _Node] = {}
        self._points: List[GeoPoint] = []

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> Tuple[GeoPoint, ...]:
        return tuple(self._points)

    def search_radius(self, zoom: int) -> float:
        return self.radius / (self.extent * 2 ** zoom)

    def load(self, points: Iterable[GeoPoint]) -> "SpatialIndex":
        self._levels = {}
        self._clusters = {}
        self._points = []
        dropped = 0
        for point in points:
            if valid_coordinate(point.lat, point.lng):
                self._points.append(point)
            else:
                dropped += 1

        nodes = [_leaf(point) for point in self._points]
        self._levels[self.max_zoom] = _Level.build(nodes, self.search_radius(self.max_zoom))
        for zoom in range(self.max_zoom - 1, self.min_zoom - 1, -1):
            nodes = self._cluster(nodes, zoom)
            self._levels[zoom] = _Level.build(nodes, self.search_radius(zoom))

        logger.debug(
            "spatial index rebuilt points=%d dropped=%d clusters=%d",
            len(self._points),
            dropped,
            len(self._clusters),
        )
        return self

    def _cluster(self, nodes: List[_Node], zoom: int) -> List[_Node]:
        radius = self.search_radius(zoom)
        grid = _GridIndex(nodes, radius)
        assigned = set()
        result: List[_Node] = []
        for i, node in enumerate(nodes):
            if i in assigned:
                continue
            assigned.add(i)
            neighbours = [j for j in grid.within(node.x, node.y, radius) if j not in assigned]
            assigned.update(neighbours)
            total = node.count + sum(nodes[j].count for j in neighbours)
            if neighbours and total >= self.min_points:
                members = [node] + [nodes[j] for j in neighbours]
                cluster_id = _cluster_id(zoom, members)
                merged = _merge(cluster_id, members, zoom)
                self._clusters[cluster_id] = merged
                result.append(merged)
            else:
                result.append(node)
                # too few to cluster; they stay individual at this zoom
                result.extend(nodes[j] for j in neighbours)
        return result

    def _limit_zoom(self, zoom: float) -> int:
        return max(self.min_zoom, min(int(math.floor(zoom)), self.max_zoom))

    def clusters_for(self, bounds: Bounds, zoom: Optional[float] = None) -> List[Cluster]:
        """Clusters and single points inside ``[west, south, east, north]``."""
        if isinstance(bounds, Viewport):
            if zoom is None:
                zoom = bounds.zoom
            bounds = bounds.bounds
        if zoom is None:
            raise ValueError("zoom is required")
        if not self._levels:
            return []
        west, south, east, north = bounds

        min_lng = ((west + 180) % 360 + 360) % 360 - 180
        min_lat = max(-90.0, min(90.0, south))
        max_lng = 180.0 if east == 180 else ((east + 180) % 360 + 360) % 360 - 180
        max_lat = max(-90.0, min(90.0, north))

        if east - west >= 360:
            min_lng, max_lng = -180.0, 180.0
        elif min_lng > max_lng:
            eastern = self.clusters_for([min_lng, min_lat, 180.0, max_lat], zoom)
            western = self.clusters_for([-180.0, min_lat, max_lng, max_lat], zoom)
            return eastern + western

        level = self._levels[self._limit_zoom(zoom)]
        box = (lng_x(min_lng), lat_y(max_lat), lng_x(max_lng), lat_y(min_lat))
        pad = level.reach
        # a cluster positioned outside the box may still hold leaves inside it
        found = level.index.range(box[0] - pad, box[1] - pad, box[2] + pad, box[3] + pad)
        return [
            self._to_cluster(level.nodes[i]) for i in found if _touches(level.nodes[i], *box)
        ]

    def expansion_zoom(self, cluster_id: str) -> int:
        node = self._get_cluster(cluster_id)
        zoom = node.zoom + 1
        while len(node.children) == 1 and node.children[0].zoom is not None:
            node = node.children[0]
            zoom = node.zoom + 1
        return min(zoom, self.max_zoom)

    def children(self, cluster_id: str) -> List[Cluster]:
        return [self._to_cluster(child) for child in self._get_cluster(cluster_id).children]

    def leaves(self, cluster_id: str, limit: int = 10, offset: int = 0) -> List[GeoPoint]:
        collected = [leaf.point for leaf in self._get_cluster(cluster_id).iter_leaves()]
        return collected[offset : offset + limit]

    def _get_cluster(self, cluster_id: str) -> _Node:
        try:
            return self._clusters[cluster_id]
        except KeyError as exc:
            raise KeyError(f"Cluster '{cluster_id}' not found") from exc

    def _to_cluster(self, node: _Node) -> Cluster:
        if node.point is not None:
            point = node.point
            return Cluster(
                id=node.id,
                lat=point.lat,
                lng=point.lng,
                count=1,
                record=point.record,
                kind=point.kind,
                severity_counts=dict(node.severity_counts),
            )
        lat, lng = node.lat_lng
        kind: Optional[SourceKind] = next(iter(node.kinds)) if len(node.kinds) == 1 else None
        return Cluster(
            id=node.id,
            lat=lat,
            lng=lng,
            count=node.count,
            expansion_zoom=self.expansion_zoom(node.id),
            kind=kind,
            severity_counts=dict(node.severity_counts),
        )
