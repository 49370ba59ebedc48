"""Domain models shared across the projection engine modules."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Literal, Mapping, get_args

MetricMode = Literal["distance", "radius"]
METRIC_MODES: tuple[str, ...] = get_args(MetricMode)


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _require_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected numeric value for '{field_name}'")
    return float(value)


def is_metric_mode(value: Any) -> bool:
    return isinstance(value, str) and value in METRIC_MODES


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """Geographic coordinate in degrees."""

    lon: float
    lat: float

    def __post_init__(self) -> None:
        if not is_valid_coordinate(self.lon, self.lat):
            raise ValueError(f"Invalid coordinate: lon={self.lon!r}, lat={self.lat!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], field_name: str = "point") -> GeoPoint:
        lon_raw = data.get("lon", data.get("longitude"))
        lat_raw = data.get("lat", data.get("latitude"))
        lon = _require_number(lon_raw, f"{field_name}.lon")
        lat = _require_number(lat_raw, f"{field_name}.lat")
        if lon < -180.0 or lon > 180.0:
            raise ValueError(f"{field_name}.lon must be between -180 and 180")
        if lat < -90.0 or lat > 90.0:
            raise ValueError(f"{field_name}.lat must be between -90 and 90")
        return cls(lon=lon, lat=lat)

    @classmethod
    def coerce(cls, value: Any) -> GeoPoint | None:
        """Best-effort conversion of caller input; `None` when out of domain."""
        if isinstance(value, GeoPoint):
            return value
        if isinstance(value, Mapping):
            try:
                return cls.from_mapping(value)
            except ValueError:
                return None
        if isinstance(value, (list, tuple)) and len(value) == 2:
            lon, lat = value
            if is_valid_coordinate(lon, lat):
                return cls(lon=float(lon), lat=float(lat))
        return None


def is_valid_coordinate(lon: Any, lat: Any) -> bool:
    for value in (lon, lat):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
    return -180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0


@dataclass(frozen=True, slots=True)
class ScreenPoint:
    """Pixel coordinate, origin at the top-left corner, y pointing down."""

    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Viewport:
    width: float
    height: float

    @property
    def is_laid_out(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def center(self) -> ScreenPoint:
        return ScreenPoint(self.width / 2.0, self.height / 2.0)


@dataclass(frozen=True, slots=True)
class ProjectionState:
    """Projection parameters owned by the render engine."""

    center: GeoPoint
    scale_px: float
    viewport: Viewport

    def __post_init__(self) -> None:
        if not self.scale_px > 0:
            raise ValueError(f"scale_px must be > 0, got {self.scale_px!r}")


@dataclass(frozen=True, slots=True)
class RingSpec:
    """One reference ring of a metric table."""

    id: str
    label: str
    metric_value: float
    unit: str
    display_metric: MetricMode


@dataclass(frozen=True, slots=True)
class MarkerFeature:
    """Labeled point shown by the marker layer."""

    id: str
    label: str
    coordinate: GeoPoint

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> MarkerFeature:
        marker_id = _require_str(data.get("id"), "id")
        label_raw = data.get("label")
        label = _require_str(label_raw, "label") if label_raw is not None else marker_id
        return cls(
            id=marker_id,
            label=label,
            coordinate=GeoPoint.from_mapping(data, field_name=f"markers[{marker_id}]"),
        )


@dataclass(frozen=True, slots=True)
class BoundaryFeature:
    """Polygon or multipolygon boundary with a stable identity key."""

    key: str
    name: str
    geometry: Any
