from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from safetymap.api.deps import get_store
from safetymap.api.main import create_app
from safetymap.config import Settings
from safetymap.domain.records import load_records
from safetymap.services.map_store import MapDataStore


def _payload():
    now = datetime.now(timezone.utc)
    return {
        "incidents": [
            {
                "_id": "inc-high",
                "title": "Chain snatching",
                "description": "Snatched near the station",
                "type": "crime",
                "reporter": "citizen",
                "date": (now - timedelta(hours=1)).isoformat(),
                "location": {"lat": 19.0760, "lng": 72.8777},
                "aiAnalysis": {"severity": "high", "confidence": 0.9, "tags": ["crime"], "threatLevel": 8},
            },
            {
                "_id": "inc-low",
                "title": "Signal broken",
                "description": "Traffic backing up",
                "type": "traffic",
                "reporter": "authority",
                "date": (now - timedelta(hours=2)).isoformat(),
                "location": {"lat": 19.0761, "lng": 72.8778},
                "aiAnalysis": {"severity": "low", "confidence": 0.7, "tags": ["traffic"], "threatLevel": 2},
            },
            {
                "_id": "inc-old",
                "title": "Old report",
                "description": "Reported two weeks ago",
                "type": "suspicious",
                "reporter": "citizen",
                "date": (now - timedelta(days=14)).isoformat(),
                "location": {"lat": 19.05, "lng": 72.85},
                "aiAnalysis": {"severity": "medium", "confidence": 0.8, "tags": [], "threatLevel": 5},
            },
        ],
        "news": [
            {
                "id": "news-unplaced",
                "title": "Road safety week begins",
                "description": "Community initiative",
                "source": "TOI",
                "timestamp": (now - timedelta(hours=3)).isoformat(),
                "aiAnalysis": {"severity": "low", "confidence": 0.75, "tags": ["public-safety"], "threatLevel": 2},
            }
        ],
    }


@pytest.fixture()
def store():
    incidents, news = load_records(_payload())
    return MapDataStore(incidents, news)


@pytest.fixture()
def api_client(store):
    app = create_app(store=store, settings=Settings())
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
