"""Tests for YAML configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from ringmap.config import (
    DEFAULT_HOME,
    DEFAULT_RESIZE_DEBOUNCE_S,
    DEFAULT_SIZING_MAX_ATTEMPTS,
    DEFAULT_SIZING_RETRY_DELAY_S,
    DEFAULT_VISITED_COUNTRIES,
    AppConfig,
    BasemapConfig,
    EngineConfig,
    load_config,
)
from ringmap.models import GeoPoint


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        cfg = load_config(_write(tmp_path, ""))
        assert cfg.paths.boundaries is None
        assert cfg.engine.view.home == DEFAULT_HOME
        assert cfg.engine.view.metric_mode == "distance"
        assert cfg.engine.lifecycle.sizing_retry_delay_s == DEFAULT_SIZING_RETRY_DELAY_S
        assert cfg.engine.lifecycle.sizing_max_attempts == DEFAULT_SIZING_MAX_ATTEMPTS
        assert cfg.engine.lifecycle.resize_debounce_s == DEFAULT_RESIZE_DEBOUNCE_S
        assert cfg.engine.basemap.home_country == "Taiwan"
        assert cfg.engine.basemap.visited_countries == DEFAULT_VISITED_COUNTRIES

    def test_engine_config_in_code(self) -> None:
        cfg = EngineConfig()
        assert cfg.view.mode_factors["distance"] == pytest.approx(0.085)
        assert cfg.style.marker_radius_px > 0

    def test_visited_countries_default(self) -> None:
        visited = BasemapConfig().visited_countries
        assert len(visited) == 38
        assert "Japan" in visited
        assert "United States of America" in visited
        assert "Taiwan" not in visited

    def test_empty_visited_list_is_kept(self, tmp_path: Path) -> None:
        cfg = load_config(_write(tmp_path, "basemap:\n  visited_countries: []\n"))
        assert cfg.engine.basemap.visited_countries == ()

    def test_from_mapping_without_file(self, tmp_path: Path) -> None:
        cfg = AppConfig.from_mapping({}, tmp_path / "config.yaml")
        assert cfg.paths.markers is None


class TestOverrides:
    def test_full_config(self, tmp_path: Path) -> None:
        cfg = load_config(
            _write(
                tmp_path,
                """
paths:
  boundaries: data/countries.geojson
  markers: /abs/markers.yaml
view:
  home: {lon: 139.6917, lat: 35.6895}
  metric_mode: Radius
  mode_factors:
    radius: 0.2
  figure: {width_px: 640, height_px: 480, dpi: 80}
lifecycle:
  sizing_retry_delay_s: 0.05
  sizing_max_attempts: 3
basemap:
  home_country: Japan
  visited_countries: [France]
style:
  ring_color: "#ff0000"
  ring_width: 2
""",
            )
        )
        assert cfg.paths.boundaries == tmp_path.resolve() / "data" / "countries.geojson"
        assert cfg.paths.markers == Path("/abs/markers.yaml")
        assert cfg.engine.view.home == GeoPoint(lon=139.6917, lat=35.6895)
        assert cfg.engine.view.metric_mode == "radius"
        assert cfg.engine.view.mode_factors == {"distance": 0.085, "radius": 0.2}
        assert cfg.engine.view.figure.width_px == 640
        assert cfg.engine.lifecycle.sizing_max_attempts == 3
        assert cfg.engine.lifecycle.resize_debounce_s == DEFAULT_RESIZE_DEBOUNCE_S
        assert cfg.engine.basemap.visited_countries == ("France",)
        assert cfg.engine.style.ring_color == "#ff0000"
        assert cfg.engine.style.ring_width == 2.0

    def test_null_home_country(self, tmp_path: Path) -> None:
        cfg = load_config(_write(tmp_path, "basemap:\n  home_country: null\n"))
        assert cfg.engine.basemap.home_country is None


class TestValidation:
    @pytest.mark.parametrize(
        "text",
        [
            "view:\n  metric_mode: altitude\n",
            "view:\n  home: {lon: 200, lat: 0}\n",
            "view:\n  padding_px: -1\n",
            "view:\n  mode_factors: {radius: 0}\n",
            "lifecycle:\n  sizing_max_attempts: 0\n",
            "lifecycle:\n  resize_debounce_s: 0\n",
            "lifecycle:\n  sizing_max_attempts: 2.5\n",
            "style:\n  marker_radius_px: 0\n",
            "style:\n  ring_color: 3\n",
            "basemap:\n  visited_countries: France\n",
            "- not a mapping\n",
        ],
    )
    def test_invalid_values_raise(self, tmp_path: Path, text: str) -> None:
        with pytest.raises(ValueError):
            load_config(_write(tmp_path, text))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")
