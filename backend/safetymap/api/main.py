from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from safetymap.api.routers import clusters, records
from safetymap.config import Settings, load_settings
from safetymap.services.map_store import MapDataStore, load_store


def create_app(store: Optional[MapDataStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="Civic Safety Map API", version="0.1.0")
    if store is None:
        store = load_store(settings.data_path)
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(clusters.router, prefix="/api")
    app.include_router(records.router, prefix="/api")

    @app.get("/health")
    def health():
        snapshot = app.state.store.snapshot()
        return {"status": "ok", "incidents": len(snapshot.incidents), "news": len(snapshot.news)}

    return app


app = create_app()
