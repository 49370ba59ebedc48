"""Geodesic helpers for labels."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from .models import GeoPoint


def geodesic_distance_km(start: GeoPoint, end: GeoPoint) -> float:
    """WGS84 geodesic distance in kilometres."""
    _, _, meters = _require_geod().inv(start.lon, start.lat, end.lon, end.lat)
    return float(meters) / 1000.0


def decimal_to_dms(value: float, *, is_latitude: bool) -> str:
    absolute = abs(value)
    degrees = int(absolute)
    minutes_float = (absolute - degrees) * 60.0
    minutes = int(minutes_float)
    seconds = (minutes_float - minutes) * 60.0
    if is_latitude:
        direction = "N" if value >= 0 else "S"
    else:
        direction = "E" if value >= 0 else "W"
    return f"{degrees}°{minutes}'{seconds:.2f}\"{direction}"


def format_point_dms(point: GeoPoint) -> str:
    return f"{decimal_to_dms(point.lat, is_latitude=True)} {decimal_to_dms(point.lon, is_latitude=False)}"


@lru_cache(maxsize=1)
def _require_geod() -> Any:
    try:
        from pyproj import Geod
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for geodesic distances") from exc
    return Geod(ellps="WGS84")
