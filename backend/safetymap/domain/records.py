from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from .analysis import analyze_news, categorize_news
from .models import (
    AIAnalysis,
    Incident,
    IncidentStatus,
    IncidentType,
    Location,
    NewsItem,
    Record,
    Reporter,
    Severity,
    Timestamp,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Return an aware UTC datetime, or ``None`` when the value can't be read.

    Naive values are assumed to be UTC. ISO strings ending in ``Z`` are
    accepted.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    return as_utc(dt)


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _location_from(payload: Any) -> Optional[Location]:
    if not isinstance(payload, dict):
        return None
    lng = payload.get("lng", payload.get("lon"))
    return Location(
        lat=_as_float(payload.get("lat")),
        lng=_as_float(lng),
        address=payload.get("address"),
    )


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def analysis_from_dict(payload: Optional[Dict[str, Any]]) -> AIAnalysis:
    if not payload:
        return AIAnalysis()
    return AIAnalysis(
        severity=Severity(payload.get("severity", Severity.LOW.value)),
        confidence=float(payload.get("confidence", 1.0)),
        tags=tuple(payload.get("tags") or ()),
        threat_level=int(payload.get("threatLevel", payload.get("threat_level", 1))),
    )


def incident_from_dict(payload: Dict[str, Any]) -> Incident:
    """Build an ``Incident`` from a stored report document.

    Documents coming from the report store use ``_id``/``date``; records
    created locally use ``id``/``timestamp``. Both are accepted.
    """
    record_id = payload.get("_id") or payload.get("id")
    if not record_id:
        raise ValueError("incident id is required")
    raw_analysis = payload.get("aiAnalysis", payload.get("analysis"))
    return Incident(
        id=str(record_id),
        title=payload.get("title", ""),
        description=payload.get("description", ""),
        timestamp=payload.get("date") or payload.get("timestamp"),
        type=IncidentType(payload["type"]),
        location=_location_from(payload.get("location")),
        status=IncidentStatus(payload.get("status", IncidentStatus.PENDING.value)),
        reporter=Reporter(payload.get("reporter", Reporter.CITIZEN.value)),
        analysis=analysis_from_dict(raw_analysis),
        images=tuple(payload.get("images") or ()),
    )


def news_from_dict(payload: Dict[str, Any]) -> NewsItem:
    """Build a ``NewsItem`` from a feed article.

    Articles without an ``aiAnalysis`` block or a category are classified
    with the keyword analyzer.
    """
    record_id = payload.get("id")
    if not record_id:
        raise ValueError("news id is required")
    source = payload.get("source", "")
    if isinstance(source, dict):
        source = source.get("name", "")
    title = payload.get("title", "")
    description = payload.get("description", "")
    raw_analysis = payload.get("aiAnalysis", payload.get("analysis"))
    if raw_analysis:
        analysis = analysis_from_dict(raw_analysis)
    else:
        analysis = analyze_news(title, description)
    return NewsItem(
        id=str(record_id),
        title=title,
        description=description,
        timestamp=payload.get("timestamp") or payload.get("publishedAt"),
        category=payload.get("category") or categorize_news(title, description),
        source=source,
        url=payload.get("url", ""),
        location=_location_from(payload.get("location")),
        analysis=analysis,
    )


def record_to_dict(record: Record) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": record.id,
        "kind": record.kind.value,
        "title": record.title,
        "description": record.description,
        "timestamp": _serialize_timestamp(record.timestamp),
        "location": _serialize_location(record.location),
        "aiAnalysis": {
            "severity": record.analysis.severity.value,
            "confidence": record.analysis.confidence,
            "tags": list(record.analysis.tags),
            "threatLevel": record.analysis.threat_level,
        },
    }
    if isinstance(record, Incident):
        payload.update(
            {
                "type": record.type.value,
                "status": record.status.value,
                "reporter": record.reporter.value,
                "images": list(record.images),
            }
        )
    else:
        payload.update({"category": record.category, "source": record.source, "url": record.url})
    return payload


def _serialize_timestamp(value: Timestamp) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _serialize_location(location: Optional[Location]) -> Optional[Dict[str, Any]]:
    if location is None:
        return None
    return {"lat": location.lat, "lng": location.lng, "address": location.address}


def load_records(payload: Dict[str, Any]) -> tuple[List[Incident], List[NewsItem]]:
    """Parse a stored dataset; malformed documents are skipped with a warning."""
    incidents = _parse_all(payload.get("incidents"), incident_from_dict, "incident")
    news = _parse_all(payload.get("news"), news_from_dict, "news")
    return incidents, news


def _parse_all(
    items: Optional[Iterable[Dict[str, Any]]],
    parse: Callable[[Dict[str, Any]], T],
    label: str,
) -> List[T]:
    parsed: List[T] = []
    for position, item in enumerate(items or ()):
        try:
            parsed.append(parse(item))
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            record_id = (item.get("_id") or item.get("id")) if isinstance(item, dict) else None
            logger.warning("skipping malformed %s record index=%d id=%s: %s", label, position, record_id, exc)
    return parsed
