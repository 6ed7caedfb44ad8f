from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from .models import Cluster, GeoPoint, Incident, NewsItem, Severity, SourceKind
from .records import as_utc, parse_timestamp

HEATMAP_WEIGHTS = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
}

RECENT_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class MapStats:
    total_active: int
    high_risk: int
    last_24h: int
    average_confidence_pct: int
    total_incidents: int
    total_news: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "total_active": self.total_active,
            "high_risk": self.high_risk,
            "last_24h": self.last_24h,
            "average_confidence_pct": self.average_confidence_pct,
            "total_incidents": self.total_incidents,
            "total_news": self.total_news,
        }


def compute_stats(
    incidents: Sequence[Incident],
    news: Sequence[NewsItem],
    kinds: Iterable[SourceKind] = tuple(SourceKind),
    now: Optional[datetime] = None,
) -> MapStats:
    """Sidebar statistics over already filtered records.

    High risk, recency and confidence figures are incident-only; the total
    follows the active layer(s).
    """
    now = datetime.now(timezone.utc) if now is None else as_utc(now)
    kinds = set(kinds)
    total_active = 0
    if SourceKind.INCIDENT in kinds:
        total_active += len(incidents)
    if SourceKind.NEWS in kinds:
        total_active += len(news)

    recent = 0
    for incident in incidents:
        moment = parse_timestamp(incident.timestamp)
        if moment is not None and now - moment <= RECENT_WINDOW:
            recent += 1

    average = 0
    if incidents:
        average = round(sum(i.confidence for i in incidents) / len(incidents) * 100)

    return MapStats(
        total_active=total_active,
        high_risk=sum(1 for i in incidents if i.severity == Severity.HIGH),
        last_24h=recent,
        average_confidence_pct=average,
        total_incidents=len(incidents),
        total_news=len(news),
    )


def heatmap_features(points: Iterable[GeoPoint]) -> List[dict]:
    return [
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [point.lng, point.lat]},
            "properties": {
                "id": point.id,
                "pointType": point.kind.value,
                "weight": HEATMAP_WEIGHTS[point.severity],
            },
        }
        for point in points
    ]


def cluster_feature(cluster: Cluster) -> dict:
    """GeoJSON feature for one entry of a cluster query."""
    properties = {
        "id": cluster.id,
        "cluster": cluster.is_cluster,
        "point_count": cluster.count,
        "severity_counts": cluster.severity_counts,
    }
    if cluster.is_cluster:
        properties["expansion_zoom"] = cluster.expansion_zoom
    else:
        record = cluster.record
        properties.update(
            {
                "pointType": cluster.kind.value if cluster.kind else None,
                "severity": record.severity.value,
                "confidence": record.confidence,
                "title": record.title,
            }
        )
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [cluster.lng, cluster.lat]},
        "properties": properties,
    }
