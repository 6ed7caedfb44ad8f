from __future__ import annotations

from typing import Iterable, List, Tuple

from .models import AIAnalysis, IncidentType, Severity

# Keyword lists used by the report form and the news feed. This is a
# heuristic stand-in for a real classifier.
INCIDENT_HIGH_KEYWORDS = ("murder", "explosion", "shooting", "attack", "fire", "emergency")
INCIDENT_MEDIUM_KEYWORDS = ("accident", "theft", "robbery", "suspicious", "crime")

NEWS_HIGH_KEYWORDS = (
    "murder",
    "terrorist",
    "explosion",
    "shooting",
    "attack",
    "violence",
    "emergency",
    "critical",
)
NEWS_MEDIUM_KEYWORDS = ("accident", "fire", "theft", "robbery", "crime", "arrest", "investigation")

HIGH_SEVERITY_TYPES = {IncidentType.EMERGENCY, IncidentType.FIRE, IncidentType.MEDICAL}

# Midpoints of the 8-10 / 5-7 / 1-4 threat bands.
THREAT_LEVEL = {
    Severity.HIGH: 9,
    Severity.MEDIUM: 6,
    Severity.LOW: 2,
}

BASE_CONFIDENCE = 0.7
CONFIDENCE_PER_MATCH = 0.1

INCIDENT_TAG_RULES: Tuple[Tuple[str, Tuple[str, ...], Tuple[IncidentType, ...]], ...] = (
    ("school-safety", ("school",), ()),
    ("traffic", ("traffic",), (IncidentType.TRAFFIC,)),
    ("fire-emergency", ("fire",), (IncidentType.FIRE,)),
    ("medical-emergency", ("medical",), (IncidentType.MEDICAL,)),
    ("crime", ("crime",), (IncidentType.CRIME,)),
    ("suspicious-activity", ("suspicious",), (IncidentType.SUSPICIOUS,)),
)

NEWS_TAG_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("law-enforcement", ("police", "law enforcement")),
    ("traffic", ("traffic", "accident")),
    ("fire-safety", ("fire",)),
    ("crime", ("crime", "theft")),
    ("emergency", ("emergency",)),
    ("public-safety", ("safety",)),
)

# Evaluated in order; first match wins.
NEWS_CATEGORY_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("law-enforcement", ("police", "law enforcement", "arrest")),
    ("traffic", ("traffic", "accident", "road")),
    ("emergency-services", ("ambulance", "hospital", "emergency")),
    ("fire-safety", ("fire", "firefighter")),
    ("crime", ("crime", "theft", "robbery")),
)


def _content(title: str, description: str) -> str:
    return f"{title or ''} {description or ''}".lower()


def _matches(content: str, keywords: Iterable[str]) -> List[str]:
    return [keyword for keyword in keywords if keyword in content]


def _confidence(match_count: int) -> float:
    return round(min(1.0, BASE_CONFIDENCE + CONFIDENCE_PER_MATCH * match_count), 2)


def analyze_incident(title: str, description: str, incident_type: IncidentType) -> AIAnalysis:
    content = _content(title, description)
    high = _matches(content, INCIDENT_HIGH_KEYWORDS)
    medium = _matches(content, INCIDENT_MEDIUM_KEYWORDS)

    if incident_type in HIGH_SEVERITY_TYPES or high:
        severity = Severity.HIGH
    elif incident_type == IncidentType.CRIME or medium:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    tags = [
        tag
        for tag, keywords, types in INCIDENT_TAG_RULES
        if _matches(content, keywords) or incident_type in types
    ]
    return AIAnalysis(
        severity=severity,
        confidence=_confidence(len(high) + len(medium)),
        tags=tuple(tags or ["general"]),
        threat_level=THREAT_LEVEL[severity],
    )


def analyze_news(title: str, description: str) -> AIAnalysis:
    content = _content(title, description)
    high = _matches(content, NEWS_HIGH_KEYWORDS)
    medium = _matches(content, NEWS_MEDIUM_KEYWORDS)
    if high:
        severity = Severity.HIGH
    elif medium:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW
    tags = [tag for tag, keywords in NEWS_TAG_RULES if _matches(content, keywords)]
    return AIAnalysis(
        severity=severity,
        confidence=_confidence(len(high) + len(medium)),
        tags=tuple(tags or ["general"]),
        threat_level=THREAT_LEVEL[severity],
    )


def categorize_news(title: str, description: str) -> str:
    content = _content(title, description)
    for category, keywords in NEWS_CATEGORY_RULES:
        if _matches(content, keywords):
            return category
    return "general"
