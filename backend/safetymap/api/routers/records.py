from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from safetymap.api.deps import get_criteria, get_store
from safetymap.domain.filtering import filter_incidents, filter_news
from safetymap.domain.models import FilterCriteria
from safetymap.domain.records import record_to_dict
from safetymap.services.map_store import MapDataStore

router = APIRouter(tags=["records"])


@router.get("/incidents")
def list_incidents(
    limit: int = Query(50, ge=1, le=500),
    criteria: FilterCriteria = Depends(get_criteria),
    store: MapDataStore = Depends(get_store),
):
    incidents = filter_incidents(store.incidents, criteria)
    return [record_to_dict(incident) for incident in incidents[:limit]]


@router.get("/news")
def list_news(
    limit: int = Query(50, ge=1, le=500),
    criteria: FilterCriteria = Depends(get_criteria),
    store: MapDataStore = Depends(get_store),
):
    """Filtered news, including articles with no location."""
    news = filter_news(store.news, criteria)
    return [record_to_dict(item) for item in news[:limit]]
