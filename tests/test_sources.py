"""Tests for boundary dataset and marker list loading."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from ringmap.config import BasemapConfig
from ringmap.models import GeoPoint
from ringmap.sources import BoundaryRepository, features_from_geojson, load_markers


def _square(lon: float, lat: float, size: float = 1.0) -> dict[str, Any]:
    return {
        "type": "Polygon",
        "coordinates": [
            [[lon, lat], [lon + size, lat], [lon + size, lat + size], [lon, lat + size], [lon, lat]]
        ],
    }


def _feature(props: dict[str, Any], geometry: dict[str, Any] | None, **extra: Any) -> dict[str, Any]:
    return {"type": "Feature", "properties": props, "geometry": geometry, **extra}


def _collection(*features: dict[str, Any]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


class TestFeaturesFromGeojson:
    def test_preferred_key_and_name(self) -> None:
        collection = _collection(
            _feature({"ADM0_A3": "FRA", "ISO_A3": "-99", "NAME": "France"}, _square(2.0, 46.0)),
            _feature({"ADM0_A3": "DEU", "ISO_A3": "DEU", "NAME": "Germany"}, _square(10.0, 51.0)),
        )
        features = features_from_geojson(collection)
        assert [(f.key, f.name) for f in features] == [("FRA", "France"), ("DEU", "Germany")]
        assert features[0].geometry.geom_type == "Polygon"

    def test_falls_back_to_scored_column(self) -> None:
        collection = _collection(
            _feature({"iso_a3": "FRA", "ADM0_A3": "-99", "admin": "France"}, _square(2.0, 46.0)),
            _feature({"iso_a3": "DEU", "ADM0_A3": "-99", "admin": "Germany"}, _square(10.0, 51.0)),
        )
        features = features_from_geojson(collection)
        assert [f.key for f in features] == ["FRA", "DEU"]
        assert [f.name for f in features] == ["France", "Germany"]

    def test_feature_id_is_a_key_candidate(self) -> None:
        collection = _collection(
            _feature({"name": "Japan"}, _square(135.0, 33.0), id="JPN"),
            _feature({"name": "Taiwan"}, _square(120.0, 22.0), id="TWN"),
        )
        assert [f.key for f in features_from_geojson(collection)] == ["JPN", "TWN"]

    def test_skips_unusable_rows(self) -> None:
        collection = _collection(
            _feature({"ISO_A3": "FRA", "NAME": "France"}, _square(2.0, 46.0)),
            _feature({"ISO_A3": "-99", "NAME": "Nowhere"}, _square(0.0, 0.0)),
            _feature({"ISO_A3": "PNT", "NAME": "Point"}, {"type": "Point", "coordinates": [0.0, 0.0]}),
            _feature({"ISO_A3": "NUL", "NAME": "Null"}, None),
        )
        assert [f.key for f in features_from_geojson(collection)] == ["FRA"]

    def test_name_defaults_to_key(self) -> None:
        collection = _collection(_feature({"ISO_A3": "FRA"}, _square(2.0, 46.0)))
        assert features_from_geojson(collection)[0].name == "FRA"

    def test_custom_key_columns(self) -> None:
        collection = _collection(
            _feature({"code": "AAA", "ISO_A3": "FRA"}, _square(2.0, 46.0)),
            _feature({"code": "BBB", "ISO_A3": "DEU"}, _square(10.0, 51.0)),
        )
        basemap = BasemapConfig(key_columns=("code",))
        assert [f.key for f in features_from_geojson(collection, basemap)] == ["AAA", "BBB"]

    def test_rejects_non_collection(self) -> None:
        with pytest.raises(ValueError):
            features_from_geojson({"type": "Feature"})

    def test_rejects_missing_key(self) -> None:
        collection = _collection(_feature({"colour": "red"}, _square(2.0, 46.0)))
        with pytest.raises(ValueError):
            features_from_geojson(collection)


class TestBoundaryRepository:
    def test_load_geojson_file(self, tmp_path: Path) -> None:
        path = tmp_path / "countries.geojson"
        path.write_text(
            json.dumps(
                _collection(
                    _feature({"ADM0_A3": "TWN", "NAME": "Taiwan"}, _square(120.0, 22.0, 2.0)),
                    _feature({"ADM0_A3": "JPN", "NAME": "Japan"}, _square(135.0, 33.0, 5.0)),
                )
            ),
            encoding="utf-8",
        )
        repo = BoundaryRepository(path)
        features = repo.load()
        assert sorted(f.key for f in features) == ["JPN", "TWN"]
        assert repo.key_column == "ADM0_A3"
        assert repo.name_column == "NAME"

        again = asyncio.run(repo.load_async())
        assert sorted(f.key for f in again) == ["JPN", "TWN"]


class TestLoadMarkers:
    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "markers.yaml"
        path.write_text(
            "- {id: tokyo, label: Tokyo, lon: 139.6917, lat: 35.6895}\n"
            "- {id: taipei, longitude: 121.5654, latitude: 25.033}\n",
            encoding="utf-8",
        )
        markers = load_markers(path)
        assert [m.id for m in markers] == ["tokyo", "taipei"]
        assert markers[0].coordinate == GeoPoint(lon=139.6917, lat=35.6895)
        assert markers[1].label == "taipei"

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "markers.yaml"
        path.write_text("", encoding="utf-8")
        assert load_markers(path) == []

    def test_duplicate_id(self, tmp_path: Path) -> None:
        path = tmp_path / "markers.yaml"
        path.write_text(
            "- {id: a, lon: 0, lat: 0}\n- {id: a, lon: 1, lat: 1}\n",
            encoding="utf-8",
        )
        with pytest.raises(ValueError, match="Duplicate marker id"):
            load_markers(path)

    def test_out_of_range(self, tmp_path: Path) -> None:
        path = tmp_path / "markers.yaml"
        path.write_text("- {id: a, lon: 0, lat: 95}\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_markers(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_markers(tmp_path / "missing.yaml")
