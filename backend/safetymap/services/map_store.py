from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from safetymap.domain.analysis import analyze_incident
from safetymap.domain.models import Incident, NewsItem
from safetymap.domain.records import incident_from_dict, load_records

logger = logging.getLogger(__name__)

Listener = Callable[["RecordSnapshot"], None]


@dataclass(frozen=True)
class RecordSnapshot:
    incidents: Tuple[Incident, ...] = ()
    news: Tuple[NewsItem, ...] = ()


class MapDataStore:
    """Holds the current incident and news record sets.

    Record sets are never mutated in place: every change swaps in a new
    tuple, so a snapshot handed to a filtering/clustering pass stays valid for
    the whole pass.
    """

    def __init__(self, incidents: Iterable[Incident] = (), news: Iterable[NewsItem] = ()):
        self._snapshot = RecordSnapshot(tuple(incidents), tuple(news))
        self._listeners: List[Listener] = []

    def snapshot(self) -> RecordSnapshot:
        return self._snapshot

    @property
    def incidents(self) -> Tuple[Incident, ...]:
        return self._snapshot.incidents

    @property
    def news(self) -> Tuple[NewsItem, ...]:
        return self._snapshot.news

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def replace_incidents(self, incidents: Iterable[Incident]) -> RecordSnapshot:
        return self._swap(replace(self._snapshot, incidents=tuple(incidents)))

    def replace_news(self, news: Iterable[NewsItem]) -> RecordSnapshot:
        return self._swap(replace(self._snapshot, news=tuple(news)))

    def add_incident(self, incident: Incident) -> Incident:
        self._swap(replace(self._snapshot, incidents=(incident,) + self._snapshot.incidents))
        return incident

    def create_incident(self, payload: dict) -> Incident:
        """Build and add an incident from a report form payload.

        Payloads without an ``aiAnalysis`` block are classified with the
        keyword analyzer.
        """
        payload = dict(payload)
        payload.setdefault("id", f"incident_{uuid.uuid4().hex[:12]}")
        payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        incident = incident_from_dict(payload)
        if not payload.get("aiAnalysis"):
            incident = replace(
                incident,
                analysis=analyze_incident(incident.title, incident.description, incident.type),
            )
        return self.add_incident(incident)

    def _swap(self, snapshot: RecordSnapshot) -> RecordSnapshot:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    @classmethod
    def from_json(cls, path: Path) -> "MapDataStore":
        store = cls()
        store.load_json(path)
        return store

    def load_json(self, path: Path) -> RecordSnapshot:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Records file not found: {path}")
        incidents, news = load_records(json.loads(path.read_text()))
        logger.info("loaded records path=%s incidents=%d news=%d", path, len(incidents), len(news))
        return self._swap(RecordSnapshot(tuple(incidents), tuple(news)))


def load_store(path: Optional[Path]) -> MapDataStore:
    """Store for ``path``; an empty one when the file is missing."""
    if path is None or not Path(path).exists():
        logger.warning("records file missing path=%s; starting with an empty store", path)
        return MapDataStore()
    return MapDataStore.from_json(path)
