from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from safetymap.api.deps import get_criteria, get_settings, get_store
from safetymap.config import Settings
from safetymap.domain.models import FilterCriteria, Viewport
from safetymap.domain.stats import cluster_feature, compute_stats, heatmap_features
from safetymap.services.map_store import MapDataStore
from safetymap.services.view_controller import run_pass

router = APIRouter(tags=["map"])


@router.get("/map/clusters")
def get_clusters(
    west: float = Query(..., ge=-540, le=540),
    south: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-540, le=540),
    north: float = Query(..., ge=-90, le=90),
    zoom: float = Query(..., ge=0, le=24),
    criteria: FilterCriteria = Depends(get_criteria),
    store: MapDataStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    if south > north:
        raise HTTPException(status_code=422, detail="south must not exceed north")
    view, index = run_pass(store.snapshot(), criteria, settings)
    viewport = Viewport(west=west, south=south, east=east, north=north, zoom=zoom)
    clusters = index.clusters_for(viewport)
    return {
        "type": "FeatureCollection",
        "zoom": int(zoom),
        "total_points": len(view.points),
        "features": [cluster_feature(cluster) for cluster in clusters],
    }


@router.get("/map/clusters/{cluster_id}/expansion-zoom")
def get_expansion_zoom(
    cluster_id: str,
    criteria: FilterCriteria = Depends(get_criteria),
    store: MapDataStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    _, index = run_pass(store.snapshot(), criteria, settings)
    try:
        zoom = index.expansion_zoom(cluster_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Cluster '{cluster_id}' not found") from exc
    return {"cluster_id": cluster_id, "expansion_zoom": zoom}


@router.get("/map/stats")
def get_stats(
    criteria: FilterCriteria = Depends(get_criteria),
    store: MapDataStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    view, _ = run_pass(store.snapshot(), criteria, settings)
    return compute_stats(view.incidents, view.news, criteria.kinds).as_dict()


@router.get("/map/heatmap")
def get_heatmap(
    criteria: FilterCriteria = Depends(get_criteria),
    store: MapDataStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    view, _ = run_pass(store.snapshot(), criteria, settings)
    return {"type": "FeatureCollection", "features": heatmap_features(view.points)}
