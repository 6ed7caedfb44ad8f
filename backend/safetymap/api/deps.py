from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Query, Request

from safetymap.config import Settings
from safetymap.domain.filtering import criteria_from_params
from safetymap.domain.models import FilterCriteria
from safetymap.services.map_store import MapDataStore


def get_store(request: Request) -> MapDataStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Record store not configured")
    return store


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or Settings()


def get_criteria(
    types: Optional[str] = Query(None, description="Comma separated incident types"),
    severities: Optional[str] = Query(None, description="Comma separated severities"),
    sources: Optional[str] = Query(None, description="Comma separated report sources"),
    kinds: Optional[str] = Query(None, description="Comma separated layers (incident,news)"),
    time_range: str = Query("24h", pattern="^(1h|6h|24h|7d|30d|all)$"),
) -> FilterCriteria:
    try:
        return criteria_from_params(
            types=types,
            severities=severities,
            sources=sources,
            kinds=kinds,
            time_range=time_range,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
