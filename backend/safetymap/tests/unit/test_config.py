from __future__ import annotations

from pathlib import Path

import pytest

from safetymap.config import DEFAULT_DATA_PATH, load_settings


def test_defaults(monkeypatch):
    for name in (
        "SAFETYMAP_DATA_PATH",
        "SAFETYMAP_CLUSTER_RADIUS",
        "SAFETYMAP_CLUSTER_MIN_POINTS",
        "SAFETYMAP_CLUSTER_MAX_ZOOM",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.data_path == DEFAULT_DATA_PATH
    assert settings.cluster_radius == 40
    assert settings.cluster_min_points == 2
    assert settings.cluster_max_zoom == 16


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("SAFETYMAP_DATA_PATH", str(tmp_path / "records.json"))
    monkeypatch.setenv("SAFETYMAP_CLUSTER_RADIUS", "60")
    monkeypatch.setenv("SAFETYMAP_CLUSTER_MAX_ZOOM", "14")
    settings = load_settings()
    assert settings.data_path == Path(tmp_path / "records.json")
    assert settings.cluster_radius == 60.0
    assert settings.cluster_max_zoom == 14


def test_invalid_number_names_variable(monkeypatch):
    monkeypatch.setenv("SAFETYMAP_CLUSTER_MIN_POINTS", "two")
    with pytest.raises(ValueError, match="SAFETYMAP_CLUSTER_MIN_POINTS"):
        load_settings()
