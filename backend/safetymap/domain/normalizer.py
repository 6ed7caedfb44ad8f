from __future__ import annotations

import math
from typing import Iterable, List, Optional

from .models import GeoPoint, Record

LAT_MIN, LAT_MAX = -90.0, 90.0
LNG_MIN, LNG_MAX = -180.0, 180.0


def valid_coordinate(lat: Optional[float], lng: Optional[float]) -> bool:
    if lat is None or lng is None:
        return False
    if isinstance(lat, bool) or isinstance(lng, bool):
        return False
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return LAT_MIN <= lat <= LAT_MAX and LNG_MIN <= lng <= LNG_MAX


def to_geo_point(record: Record) -> Optional[GeoPoint]:
    """Project an incident or news record onto the map.

    Returns ``None`` when the record has no usable coordinate; such records
    still show up in the list views, just not on the map.
    """
    coordinate = record.coordinate
    if coordinate is None:
        return None
    lat, lng = coordinate
    if not valid_coordinate(lat, lng):
        return None
    return GeoPoint(
        id=record.id,
        lat=float(lat),
        lng=float(lng),
        severity=record.severity,
        kind=record.kind,
        confidence=record.confidence,
        record=record,
    )


def to_geo_points(records: Iterable[Record]) -> List[GeoPoint]:
    points = []
    for record in records:
        point = to_geo_point(record)
        if point is not None:
            points.append(point)
    return points
