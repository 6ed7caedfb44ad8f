from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from safetymap.domain.models import IncidentStatus, IncidentType, Reporter, Severity, SourceKind
from safetymap.domain.records import (
    incident_from_dict,
    load_records,
    news_from_dict,
    parse_timestamp,
    record_to_dict,
)


def test_parse_timestamp_variants():
    assert parse_timestamp("2026-10-17T10:00:00Z") == datetime(2026, 10, 17, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2026-10-17T15:30:00+05:30") == datetime(2026, 10, 17, 10, tzinfo=timezone.utc)
    naive = parse_timestamp(datetime(2026, 10, 17, 10))
    assert naive.tzinfo is not None
    assert parse_timestamp("garbage") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp(1760695200) is None


def test_incident_from_store_document():
    incident = incident_from_dict(
        {
            "_id": "abc123",
            "title": "Theft",
            "description": "Wallet stolen",
            "type": "crime",
            "status": "verified",
            "reporter": "authority",
            "date": "2026-10-17T10:00:00Z",
            "location": {"lat": "19.07", "lng": 72.87},
            "aiAnalysis": {"severity": "medium", "confidence": 0.8, "tags": ["crime"], "threatLevel": 6},
        }
    )
    assert incident.id == "abc123"
    assert incident.type == IncidentType.CRIME
    assert incident.status == IncidentStatus.VERIFIED
    assert incident.reporter == Reporter.AUTHORITY
    assert incident.timestamp == "2026-10-17T10:00:00Z"
    assert incident.coordinate == (19.07, 72.87)
    assert incident.severity == Severity.MEDIUM
    assert incident.analysis.threat_level == 6
    assert incident.kind == SourceKind.INCIDENT


def test_incident_defaults_to_low_analysis():
    incident = incident_from_dict({"id": "x", "type": "traffic", "timestamp": "2026-10-17T10:00:00Z"})
    assert incident.severity == Severity.LOW
    assert incident.confidence == 1.0
    assert incident.location is None


def test_incident_requires_id_and_known_type():
    with pytest.raises(ValueError):
        incident_from_dict({"type": "crime"})
    with pytest.raises(ValueError):
        incident_from_dict({"id": "x", "type": "burglary"})


def test_news_accepts_article_shape():
    news = news_from_dict(
        {
            "id": "gnews-1",
            "title": "Road closed",
            "publishedAt": "2026-10-17T08:00:00Z",
            "source": {"name": "Mid-Day"},
        }
    )
    assert news.source == "Mid-Day"
    assert news.timestamp == "2026-10-17T08:00:00Z"
    assert news.coordinate is None
    assert news.kind == SourceKind.NEWS


def test_confidence_is_clamped():
    news = news_from_dict({"id": "n", "aiAnalysis": {"severity": "high", "confidence": 1.7}})
    assert news.confidence == 1.0


def test_record_to_dict_round_trips_core_fields():
    payload = {
        "incidents": [{"id": "i1", "type": "fire", "timestamp": "2026-10-17T10:00:00Z"}],
        "news": [{"id": "n1", "title": "Safety week", "source": "TOI"}],
    }
    incidents, news = load_records(payload)
    incident_payload = record_to_dict(incidents[0])
    assert incident_payload["kind"] == "incident"
    assert incident_payload["type"] == "fire"
    assert incident_payload["aiAnalysis"]["severity"] == "low"
    news_payload = record_to_dict(news[0])
    assert news_payload["kind"] == "news"
    assert news_payload["source"] == "TOI"
    assert news_payload["location"] is None


def test_news_without_analysis_is_classified():
    news = news_from_dict(
        {"id": "n2", "title": "Explosion near market", "description": "Police investigating the blast"}
    )
    assert news.severity == Severity.HIGH
    assert news.analysis.threat_level == 9
    assert "law-enforcement" in news.analysis.tags
    assert news.category == "law-enforcement"


def test_news_keeps_supplied_category_and_analysis():
    news = news_from_dict(
        {
            "id": "n3",
            "title": "Explosion near market",
            "category": "world",
            "aiAnalysis": {"severity": "low", "confidence": 0.7},
        }
    )
    assert news.severity == Severity.LOW
    assert news.category == "world"


def test_load_records_skips_malformed_documents(caplog):
    payload = {
        "incidents": [
            {"id": "ok", "type": "crime"},
            {"id": "null-confidence", "type": "crime", "aiAnalysis": {"severity": "low", "confidence": None}},
            {"id": "bad-severity", "type": "crime", "aiAnalysis": {"severity": "extreme"}},
            {"type": "crime"},
        ],
        "news": [{"id": "n", "title": "Safety week"}, {"title": "no id"}],
    }
    with caplog.at_level(logging.WARNING, logger="safetymap.domain.records"):
        incidents, news = load_records(payload)
    assert [incident.id for incident in incidents] == ["ok"]
    assert [item.id for item in news] == ["n"]
    assert "bad-severity" in caplog.text
    assert "null-confidence" in caplog.text
