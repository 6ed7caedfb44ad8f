from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from safetymap.config import Settings
from safetymap.domain.clustering import SpatialIndex
from safetymap.domain.filtering import default_criteria, filter_incidents, filter_news
from safetymap.domain.models import (
    CameraTransition,
    Cluster,
    FilterCriteria,
    GeoPoint,
    Incident,
    NewsItem,
    Record,
    SelectionEvent,
    SourceKind,
    Viewport,
)
from safetymap.domain.normalizer import to_geo_points
from safetymap.domain.stats import MapStats, compute_stats
from safetymap.services.map_store import MapDataStore, RecordSnapshot

logger = logging.getLogger(__name__)

DEFAULT_CENTER = (19.0760, 72.8777)
DEFAULT_ZOOM = 11
MAX_CAMERA_ZOOM = 20
TRANSITION_MS = 500

SelectionListener = Callable[[SelectionEvent], None]


class ViewState(str, Enum):
    IDLE = "idle"
    QUERYING = "querying"


@dataclass(frozen=True)
class FilteredView:
    """Result of one filtering pass, shared by the map and the list views."""

    incidents: Tuple[Incident, ...]
    news: Tuple[NewsItem, ...]
    points: Tuple[GeoPoint, ...]


def build_index(settings: Optional[Settings] = None) -> SpatialIndex:
    settings = settings or Settings()
    return SpatialIndex(
        radius=settings.cluster_radius,
        min_points=settings.cluster_min_points,
        min_zoom=settings.cluster_min_zoom,
        max_zoom=settings.cluster_max_zoom,
    )


def run_pass(
    snapshot: RecordSnapshot,
    criteria: FilterCriteria,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> Tuple[FilteredView, SpatialIndex]:
    """One filtering + clustering pass over an immutable snapshot."""
    if now is None:
        now = datetime.now(timezone.utc)
    incidents = filter_incidents(snapshot.incidents, criteria, now)
    news = filter_news(snapshot.news, criteria, now)
    points = tuple(to_geo_points(incidents + news))
    index = build_index(settings).load(points)
    logger.debug(
        "filter pass incidents=%d news=%d points=%d",
        len(incidents),
        len(news),
        len(points),
    )
    return FilteredView(incidents, news, points), index


def _center_lng(west: float, east: float) -> float:
    if east < west:
        # the viewport crosses the antimeridian
        east += 360
    lng = (west + east) / 2
    if lng > 180:
        lng -= 360
    return lng


class MapViewController:
    """Bridges viewport and click events to cluster queries and selection.

    The controller is the only writer of viewport, criteria and selection
    state. Every pass runs to completion synchronously: ``QUERYING`` is only
    observable from inside a pass (e.g. by a listener).
    """

    def __init__(
        self,
        store: MapDataStore,
        criteria: Optional[FilterCriteria] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._settings = settings or Settings()
        self._criteria = criteria or default_criteria()
        self._clock = clock
        self._index = build_index(self._settings)
        self._state = ViewState.IDLE
        self._center: Tuple[float, float] = DEFAULT_CENTER
        self._zoom: float = DEFAULT_ZOOM
        self._viewport: Optional[Viewport] = None
        self._clusters: List[Cluster] = []
        self._selected: Optional[SelectionEvent] = None
        self._listeners: List[SelectionListener] = []
        self._view = FilteredView((), (), ())
        store.subscribe(self._on_data)
        self.refresh()

    # -- read-only state -------------------------------------------------

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    @property
    def center(self) -> Tuple[float, float]:
        return self._center

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def viewport(self) -> Optional[Viewport]:
        return self._viewport

    @property
    def clusters(self) -> Tuple[Cluster, ...]:
        return tuple(self._clusters)

    @property
    def selected(self) -> Optional[SelectionEvent]:
        return self._selected

    @property
    def view(self) -> FilteredView:
        return self._view

    @property
    def index(self) -> SpatialIndex:
        return self._index

    def stats(self) -> MapStats:
        return compute_stats(self._view.incidents, self._view.news, self._criteria.kinds, now=self._now())

    # -- events ----------------------------------------------------------

    def subscribe(self, listener: SelectionListener) -> None:
        self._listeners.append(listener)

    def set_criteria(self, criteria: FilterCriteria) -> None:
        self._criteria = criteria
        self.refresh()

    def set_layer(self, *kinds: SourceKind) -> None:
        self.set_criteria(replace(self._criteria, kinds=frozenset(kinds)))

    def refresh(self, snapshot: Optional[RecordSnapshot] = None) -> None:
        """Re-filter the current records, rebuild the index and re-query."""
        if snapshot is None:
            snapshot = self._store.snapshot()
        self._view, self._index = run_pass(snapshot, self._criteria, self._settings, self._now())
        self._query()

    def on_viewport_change(self, viewport: Viewport) -> List[Cluster]:
        self._viewport = viewport
        self._zoom = viewport.zoom
        self._center = (
            (viewport.south + viewport.north) / 2,
            _center_lng(viewport.west, viewport.east),
        )
        return self._query()

    def on_cluster_click(self, cluster: Cluster) -> Optional[CameraTransition]:
        if not cluster.is_cluster:
            self.on_point_click(cluster)
            return None
        expansion = cluster.expansion_zoom
        if expansion is None:
            try:
                expansion = self._index.expansion_zoom(cluster.id)
            except KeyError:
                logger.info("ignoring click on stale cluster id=%s", cluster.id)
                return None
        zoom = min(expansion, MAX_CAMERA_ZOOM)
        self._center = (cluster.lat, cluster.lng)
        self._zoom = zoom
        return CameraTransition(lat=cluster.lat, lng=cluster.lng, zoom=zoom, duration_ms=TRANSITION_MS)

    def on_point_click(self, cluster: Cluster) -> SelectionEvent:
        if cluster.record is None:
            raise ValueError("a multi-point cluster has no single record to select")
        return self.select(cluster.record)

    def select(self, record: Record) -> SelectionEvent:
        """Select a record from a list view."""
        event = SelectionEvent(record=record, kind=record.kind)
        self._selected = event
        for listener in list(self._listeners):
            listener(event)
        return event

    def clear_selection(self) -> None:
        self._selected = None

    def close(self) -> None:
        self._store.unsubscribe(self._on_data)

    # -- internals -------------------------------------------------------

    def _on_data(self, snapshot: RecordSnapshot) -> None:
        self.refresh(snapshot)

    def _query(self) -> List[Cluster]:
        if self._viewport is None:
            self._clusters = []
            return []
        self._state = ViewState.QUERYING
        try:
            self._clusters = self._index.clusters_for(self._viewport)
        finally:
            self._state = ViewState.IDLE
        return list(self._clusters)

    def _now(self) -> Optional[datetime]:
        return self._clock() if self._clock else None
