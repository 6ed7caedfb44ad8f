from __future__ import annotations

import json

import pytest

from safetymap.domain.models import Incident, IncidentType, Severity
from safetymap.services.map_store import MapDataStore, load_store


def make_incident(record_id="inc-1"):
    return Incident(
        id=record_id,
        title="Theft",
        description="",
        timestamp="2026-10-17T10:00:00Z",
        type=IncidentType.CRIME,
    )


def test_snapshots_are_replaced_not_mutated():
    store = MapDataStore([make_incident("a")])
    before = store.snapshot()
    store.add_incident(make_incident("b"))
    after = store.snapshot()
    assert [i.id for i in before.incidents] == ["a"]
    assert [i.id for i in after.incidents] == ["b", "a"]
    assert before is not after


def test_listeners_receive_every_replacement():
    store = MapDataStore()
    received = []
    store.subscribe(received.append)
    store.replace_incidents([make_incident("a")])
    store.replace_news([])
    assert len(received) == 2
    assert received[0].incidents[0].id == "a"
    store.unsubscribe(received.append)
    store.replace_incidents([])
    assert len(received) == 2


def test_create_incident_classifies_unanalysed_reports():
    store = MapDataStore()
    incident = store.create_incident(
        {"title": "Fire in kitchen", "description": "Flames visible", "type": "fire"}
    )
    assert incident.id.startswith("incident_")
    assert incident.timestamp is not None
    assert incident.severity == Severity.HIGH
    assert store.incidents[0] is incident


def test_create_incident_keeps_existing_analysis():
    store = MapDataStore()
    incident = store.create_incident(
        {
            "id": "given",
            "type": "fire",
            "aiAnalysis": {"severity": "low", "confidence": 0.5},
        }
    )
    assert incident.severity == Severity.LOW
    assert incident.id == "given"


def test_load_json(tmp_path):
    path = tmp_path / "records.json"
    path.write_text(
        json.dumps(
            {
                "incidents": [{"id": "a", "type": "crime", "timestamp": "2026-10-17T10:00:00Z"}],
                "news": [{"id": "n", "title": "Safety week"}],
            }
        )
    )
    store = MapDataStore.from_json(path)
    assert len(store.incidents) == 1
    assert len(store.news) == 1


def test_load_json_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        MapDataStore().load_json(tmp_path / "missing.json")
    assert load_store(tmp_path / "missing.json").snapshot().incidents == ()


def test_load_json_keeps_valid_records_when_one_is_malformed(tmp_path):
    path = tmp_path / "records.json"
    path.write_text(
        json.dumps(
            {
                "incidents": [
                    {"id": "a", "type": "crime", "timestamp": "2026-10-17T10:00:00Z"},
                    {"id": "b", "type": "crime", "aiAnalysis": {"severity": "low", "confidence": None}},
                ],
                "news": [],
            }
        )
    )
    store = MapDataStore.from_json(path)
    assert [incident.id for incident in store.incidents] == ["a"]
