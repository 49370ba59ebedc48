"""Boundary dataset and marker list loading."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import yaml

from .config import BasemapConfig
from .models import BoundaryFeature, MarkerFeature

_LOGGER = logging.getLogger("ringmap.sources")

_POLYGONAL_TYPES = frozenset({"Polygon", "MultiPolygon"})


class BoundaryRepository:
    """Reads a countries feature collection into keyed boundary features."""

    def __init__(self, path: Path, basemap: BasemapConfig | None = None) -> None:
        self.path = path
        self.basemap = basemap or BasemapConfig()
        self.key_column: str | None = None
        self.name_column: str | None = None

    def load(self) -> list[BoundaryFeature]:
        frame = self._require_geopandas().read_file(self.path)
        key_col = detect_key_column(frame, self.basemap.key_columns)
        if key_col is None:
            cols = ", ".join(str(c) for c in frame.columns)
            raise ValueError(
                f"Could not detect an identity key column in {self.path}. Available columns: {cols}"
            )
        name_col = _first_existing_column(frame.columns, self.basemap.name_columns)
        self.key_column, self.name_column = key_col, name_col
        _LOGGER.info(
            "Boundary dataset %s: %d rows, key column=%s, name column=%s",
            self.path,
            len(frame),
            key_col,
            name_col,
        )

        records: list[dict[str, Any]] = []
        for row in frame.itertuples(index=False):
            row_dict = row._asdict()
            records.append(
                {
                    "key": row_dict.get(key_col),
                    "name": row_dict.get(name_col) if name_col else None,
                    "geometry": row_dict.get("geometry"),
                }
            )
        return _build_features(records)

    async def load_async(self) -> list[BoundaryFeature]:
        return await asyncio.to_thread(self.load)

    @staticmethod
    def _require_geopandas() -> Any:
        try:
            import geopandas as gpd
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError("geopandas is required for boundary dataset loading") from exc
        return gpd


def features_from_geojson(
    collection: Mapping[str, Any],
    basemap: BasemapConfig | None = None,
) -> list[BoundaryFeature]:
    """Convert an already-parsed GeoJSON FeatureCollection mapping."""
    shape = _require_shapely_shape()
    basemap = basemap or BasemapConfig()
    if collection.get("type") != "FeatureCollection":
        raise ValueError("Expected a GeoJSON FeatureCollection")
    raw_features = collection.get("features")
    if not isinstance(raw_features, list):
        raise ValueError("Expected 'features' list in FeatureCollection")

    properties: list[dict[str, Any]] = []
    for item in raw_features:
        props = dict(item.get("properties") or {}) if isinstance(item, Mapping) else {}
        if isinstance(item, Mapping) and item.get("id") is not None:
            props.setdefault("id", item["id"])
        properties.append(props)

    columns: list[str] = []
    for props in properties:
        columns.extend(col for col in props if col not in columns)
    key_col = _select_best_key_column(
        columns,
        lambda col: [props.get(col) for props in properties],
        basemap.key_columns,
    )
    if key_col is None:
        raise ValueError("Could not detect an identity key property in the feature collection")
    name_col = _first_existing_column(columns, basemap.name_columns)

    records: list[dict[str, Any]] = []
    for item, props in zip(raw_features, properties):
        geometry_raw = item.get("geometry") if isinstance(item, Mapping) else None
        records.append(
            {
                "key": props.get(key_col),
                "name": props.get(name_col) if name_col else None,
                "geometry": shape(geometry_raw) if isinstance(geometry_raw, Mapping) else None,
            }
        )
    return _build_features(records)


def detect_key_column(frame: Any, preferred_columns: Sequence[str]) -> str | None:
    columns = [str(col) for col in frame.columns if str(col) != "geometry"]
    return _select_best_key_column(columns, lambda col: frame[col].tolist(), preferred_columns)


def load_markers(path: Path) -> list[MarkerFeature]:
    """Load and validate the static marker list."""
    if not path.exists():
        raise FileNotFoundError(f"Markers file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"Expected list in {path}")

    markers: list[MarkerFeature] = []
    seen_ids: set[str] = set()
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Expected mapping at index {idx} in {path}")
        marker = MarkerFeature.from_mapping(item)
        if marker.id in seen_ids:
            raise ValueError(f"Duplicate marker id '{marker.id}' in {path}")
        seen_ids.add(marker.id)
        markers.append(marker)
    return markers


def _build_features(records: Iterable[Mapping[str, Any]]) -> list[BoundaryFeature]:
    features: list[BoundaryFeature] = []
    skipped = 0
    for record in records:
        key = _normalize_key(record.get("key"))
        geometry = record.get("geometry")
        if key is None or not _is_polygonal(geometry):
            skipped += 1
            continue
        name_raw = record.get("name")
        name = str(name_raw).strip() if name_raw is not None else key
        features.append(BoundaryFeature(key=key, name=name or key, geometry=geometry))
    if skipped:
        _LOGGER.warning("Skipped %d boundary rows without a usable key or polygon geometry", skipped)
    return features


def _is_polygonal(geometry: Any) -> bool:
    if geometry is None:
        return False
    if bool(getattr(geometry, "is_empty", True)):
        return False
    return getattr(geometry, "geom_type", "") in _POLYGONAL_TYPES


def _normalize_key(value: Any) -> str | None:
    if value is None:
        return None
    key = str(value).strip()
    # Natural Earth marks unassigned codes with "-99".
    if not key or key == "-99" or key.casefold() == "nan":
        return None
    return key


def _first_existing_column(columns: Iterable[Any], candidates: Sequence[str]) -> str | None:
    existing = {str(col).lower(): str(col) for col in columns}
    for candidate in candidates:
        match = existing.get(candidate.lower())
        if match:
            return match
    return None


def _select_best_key_column(
    columns: Sequence[str],
    values_of: Any,
    preferred_columns: Sequence[str],
) -> str | None:
    """Pick the most identity-like column: preferred names first, then by score."""
    by_lower = {col.lower(): col for col in columns}
    candidates: list[str] = []
    for candidate in preferred_columns:
        match = by_lower.get(candidate.lower())
        if match and match not in candidates:
            candidates.append(match)
    for candidate in _heuristic_key_candidates(columns):
        if candidate not in candidates:
            candidates.append(candidate)
    if not candidates:
        return None

    best_col: str | None = None
    best_score: tuple[int, int] | None = None
    for candidate in candidates:
        score = _score_key_values(values_of(candidate))
        if best_score is None or score > best_score:
            best_col = candidate
            best_score = score
    if best_col is None or best_score is None or best_score[0] == 0:
        return None
    return best_col


def _score_key_values(values: list[Any]) -> tuple[int, int]:
    keys = [key for key in (_normalize_key(value) for value in values) if key is not None]
    unique_count = len(set(keys))
    # Duplicated keys cannot identify shapes; fewer duplicates breaks ties.
    return (unique_count, unique_count - len(keys))


def _heuristic_key_candidates(columns: Iterable[str]) -> list[str]:
    candidates: list[str] = []
    for column in columns:
        norm = "".join(ch for ch in column.upper() if ch.isalnum())
        if "A3" in norm and any(token in norm for token in ("ISO", "ADM0", "SOV", "GU", "SU", "BRK")):
            candidates.append(column)
    return candidates


def _require_shapely_shape() -> Any:
    try:
        from shapely.geometry import shape
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for GeoJSON geometry parsing") from exc
    return shape
