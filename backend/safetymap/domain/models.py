from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SourceKind(str, Enum):
    INCIDENT = "incident"
    NEWS = "news"


class IncidentType(str, Enum):
    CRIME = "crime"
    EMERGENCY = "emergency"
    SUSPICIOUS = "suspicious"
    TRAFFIC = "traffic"
    FIRE = "fire"
    MEDICAL = "medical"


class IncidentStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Reporter(str, Enum):
    CITIZEN = "citizen"
    AUTHORITY = "authority"
    SYSTEM = "system"


class ReportSource(str, Enum):
    """Originating source as exposed by the map filter panel."""

    CITIZEN = "citizen"
    AUTHORITY = "authority"
    NEWS = "news"
    AI = "ai"


class TimeRange(str, Enum):
    LAST_HOUR = "1h"
    LAST_6_HOURS = "6h"
    LAST_24_HOURS = "24h"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    ALL = "all"


REPORTER_SOURCE = {
    Reporter.CITIZEN: ReportSource.CITIZEN,
    Reporter.AUTHORITY: ReportSource.AUTHORITY,
    Reporter.SYSTEM: ReportSource.AI,
}


@dataclass(frozen=True)
class Location:
    lat: Optional[float]
    lng: Optional[float]
    address: Optional[str] = None


@dataclass(frozen=True)
class AIAnalysis:
    severity: Severity = Severity.LOW
    confidence: float = 1.0
    tags: Tuple[str, ...] = ()
    threat_level: int = 1

    def __post_init__(self):
        # clamp into [0, 1]; frozen, so go through object.__setattr__
        object.__setattr__(self, "confidence", max(0.0, min(1.0, float(self.confidence))))


Timestamp = Union[str, datetime, None]


@dataclass(frozen=True)
class Incident:
    id: str
    title: str
    description: str
    timestamp: Timestamp
    type: IncidentType
    location: Optional[Location] = None
    status: IncidentStatus = IncidentStatus.PENDING
    reporter: Reporter = Reporter.CITIZEN
    analysis: AIAnalysis = field(default_factory=AIAnalysis)
    images: Tuple[str, ...] = ()

    kind = SourceKind.INCIDENT

    @property
    def severity(self) -> Severity:
        return self.analysis.severity

    @property
    def confidence(self) -> float:
        return self.analysis.confidence

    @property
    def coordinate(self) -> Optional[Tuple[Optional[float], Optional[float]]]:
        if self.location is None:
            return None
        return self.location.lat, self.location.lng

    @property
    def report_source(self) -> ReportSource:
        return REPORTER_SOURCE[self.reporter]


@dataclass(frozen=True)
class NewsItem:
    id: str
    title: str
    description: str
    timestamp: Timestamp
    category: str = "general"
    source: str = ""
    url: str = ""
    location: Optional[Location] = None
    analysis: AIAnalysis = field(default_factory=AIAnalysis)

    kind = SourceKind.NEWS

    @property
    def severity(self) -> Severity:
        return self.analysis.severity

    @property
    def confidence(self) -> float:
        return self.analysis.confidence

    @property
    def coordinate(self) -> Optional[Tuple[Optional[float], Optional[float]]]:
        if self.location is None:
            return None
        return self.location.lat, self.location.lng

    @property
    def report_source(self) -> ReportSource:
        return ReportSource.NEWS


Record = Union[Incident, NewsItem]


@dataclass(frozen=True)
class GeoPoint:
    id: str
    lat: float
    lng: float
    severity: Severity
    kind: SourceKind
    confidence: float
    record: Record


@dataclass(frozen=True)
class FilterCriteria:
    types: FrozenSet[IncidentType]
    time_range: TimeRange
    severities: FrozenSet[Severity]
    sources: FrozenSet[ReportSource]
    kinds: FrozenSet[SourceKind] = frozenset(SourceKind)

    def __post_init__(self):
        for name in ("types", "severities", "sources", "kinds"):
            object.__setattr__(self, name, frozenset(getattr(self, name)))


@dataclass(frozen=True)
class Cluster:
    id: str
    lat: float
    lng: float
    count: int
    expansion_zoom: Optional[int] = None
    record: Optional[Record] = None
    kind: Optional[SourceKind] = None
    severity_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def is_cluster(self) -> bool:
        return self.count > 1


@dataclass(frozen=True)
class Viewport:
    west: float
    south: float
    east: float
    north: float
    zoom: float

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.west, self.south, self.east, self.north


@dataclass(frozen=True)
class SelectionEvent:
    record: Record
    kind: SourceKind


@dataclass(frozen=True)
class CameraTransition:
    lat: float
    lng: float
    zoom: int
    duration_ms: int = 500
