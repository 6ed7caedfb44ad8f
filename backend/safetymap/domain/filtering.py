from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional, Tuple, TypeVar

from .models import (
    FilterCriteria,
    Incident,
    IncidentType,
    NewsItem,
    Record,
    ReportSource,
    Severity,
    SourceKind,
    TimeRange,
)
from .records import as_utc, parse_timestamp

R = TypeVar("R", Incident, NewsItem)

TIME_RANGE_THRESHOLDS: Dict[TimeRange, timedelta] = {
    TimeRange.LAST_HOUR: timedelta(hours=1),
    TimeRange.LAST_6_HOURS: timedelta(hours=6),
    TimeRange.LAST_24_HOURS: timedelta(hours=24),
    TimeRange.LAST_7_DAYS: timedelta(days=7),
    TimeRange.LAST_30_DAYS: timedelta(days=30),
}

DEFAULT_TIME_RANGE = TimeRange.LAST_24_HOURS

DIMENSIONS = {
    "types": IncidentType,
    "severities": Severity,
    "sources": ReportSource,
    "kinds": SourceKind,
}


def default_criteria() -> FilterCriteria:
    """Everything allowed, last 24 hours. Also what "reset" goes back to."""
    return FilterCriteria(
        types=frozenset(IncidentType),
        time_range=DEFAULT_TIME_RANGE,
        severities=frozenset(Severity),
        sources=frozenset(ReportSource),
        kinds=frozenset(SourceKind),
    )


# Quick filters from the map sidebar; they override only the listed fields.
PRESETS: Dict[str, Dict[str, object]] = {
    "high-risk-24h": {
        "severities": frozenset({Severity.HIGH}),
        "time_range": TimeRange.LAST_24_HOURS,
    },
    "emergencies-6h": {
        "types": frozenset({IncidentType.EMERGENCY, IncidentType.FIRE, IncidentType.MEDICAL}),
        "time_range": TimeRange.LAST_6_HOURS,
    },
    "news-24h": {
        "sources": frozenset({ReportSource.NEWS}),
        "time_range": TimeRange.LAST_24_HOURS,
    },
}


def apply_preset(criteria: FilterCriteria, name: str) -> FilterCriteria:
    try:
        overrides = PRESETS[name]
    except KeyError as exc:
        raise KeyError(f"Unknown filter preset '{name}'") from exc
    return replace(criteria, **overrides)


def toggle(criteria: FilterCriteria, dimension: str, value) -> FilterCriteria:
    """Return new criteria with ``value`` added to or removed from ``dimension``."""
    if dimension not in DIMENSIONS:
        raise ValueError(f"Unknown filter dimension '{dimension}'")
    value = DIMENSIONS[dimension](value)
    current = getattr(criteria, dimension)
    updated = current - {value} if value in current else current | {value}
    return replace(criteria, **{dimension: updated})


def active_filter_count(criteria: FilterCriteria) -> int:
    """Badge count shown next to the filter header."""
    return (
        len(criteria.types)
        + len(criteria.severities)
        + len(criteria.sources)
        + (1 if criteria.time_range != DEFAULT_TIME_RANGE else 0)
    )


def is_recent(timestamp, time_range: TimeRange, now: datetime) -> bool:
    if time_range == TimeRange.ALL:
        return True
    moment = parse_timestamp(timestamp)
    if moment is None:
        return False
    # future timestamps have a negative age and always pass
    return now - moment <= TIME_RANGE_THRESHOLDS[time_range]


def matches(record: Record, criteria: FilterCriteria, now: datetime) -> bool:
    if record.kind not in criteria.kinds:
        return False
    if isinstance(record, Incident) and record.type not in criteria.types:
        return False
    if record.severity not in criteria.severities:
        return False
    if record.report_source not in criteria.sources:
        return False
    return is_recent(record.timestamp, criteria.time_range, now)


def filter_records(
    records: Iterable[R],
    criteria: FilterCriteria,
    now: Optional[datetime] = None,
) -> Tuple[R, ...]:
    now = _utc_now() if now is None else as_utc(now)
    return tuple(record for record in records if matches(record, criteria, now))


def filter_incidents(
    incidents: Iterable[Incident], criteria: FilterCriteria, now: Optional[datetime] = None
) -> Tuple[Incident, ...]:
    return filter_records(incidents, criteria, now)


def filter_news(
    news: Iterable[NewsItem], criteria: FilterCriteria, now: Optional[datetime] = None
) -> Tuple[NewsItem, ...]:
    return filter_records(news, criteria, now)


def criteria_from_params(
    *,
    types: Optional[str] = None,
    severities: Optional[str] = None,
    sources: Optional[str] = None,
    kinds: Optional[str] = None,
    time_range: Optional[str] = None,
) -> FilterCriteria:
    """Build criteria from comma separated request/CLI values.

    ``None`` means "keep the default" (everything allowed); an empty string
    means "nothing allowed" for that dimension.
    """
    criteria = default_criteria()
    overrides: Dict[str, object] = {}
    for name, raw in (("types", types), ("severities", severities), ("sources", sources), ("kinds", kinds)):
        if raw is None:
            continue
        overrides[name] = frozenset(_parse_values(DIMENSIONS[name], raw))
    if time_range is not None:
        overrides["time_range"] = TimeRange(time_range.strip())
    return replace(criteria, **overrides) if overrides else criteria


def _parse_values(enum_cls, raw: str):
    values = []
    for item in raw.split(","):
        item = item.strip().lower()
        if not item:
            continue
        values.append(enum_cls(item))
    return values


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)

