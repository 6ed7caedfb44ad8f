from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from safetymap.domain.clustering import (
    DEFAULT_MAX_ZOOM,
    DEFAULT_MIN_POINTS,
    DEFAULT_MIN_ZOOM,
    DEFAULT_RADIUS_PX,
)

DEFAULT_DATA_PATH = Path(__file__).resolve().parents[2] / "data" / "sample_records.json"
DEFAULT_FRONTEND_ORIGIN = "http://localhost:5173"


@dataclass(frozen=True)
class Settings:
    data_path: Path = DEFAULT_DATA_PATH
    cluster_radius: float = DEFAULT_RADIUS_PX
    cluster_min_points: int = DEFAULT_MIN_POINTS
    cluster_min_zoom: int = DEFAULT_MIN_ZOOM
    cluster_max_zoom: int = DEFAULT_MAX_ZOOM
    frontend_origin: str = DEFAULT_FRONTEND_ORIGIN


def load_settings() -> Settings:
    data_path = os.getenv("SAFETYMAP_DATA_PATH")
    return Settings(
        data_path=Path(data_path) if data_path else DEFAULT_DATA_PATH,
        cluster_radius=_env_number("SAFETYMAP_CLUSTER_RADIUS", float, DEFAULT_RADIUS_PX),
        cluster_min_points=_env_number("SAFETYMAP_CLUSTER_MIN_POINTS", int, DEFAULT_MIN_POINTS),
        cluster_min_zoom=_env_number("SAFETYMAP_CLUSTER_MIN_ZOOM", int, DEFAULT_MIN_ZOOM),
        cluster_max_zoom=_env_number("SAFETYMAP_CLUSTER_MAX_ZOOM", int, DEFAULT_MAX_ZOOM),
        frontend_origin=os.getenv("FRONTEND_ORIGIN", DEFAULT_FRONTEND_ORIGIN),
    )


def _env_number(name: str, cast, default):
    raw: Optional[str] = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
