"""Center-preserving azimuthal equidistant projection."""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Any, Mapping

import numpy as np

from .models import GeoPoint, MetricMode, ProjectionState, ScreenPoint, Viewport

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000.0

# Angular distance from the antipode (radians) inside which a point has no
# defined screen position.
ANTIPODE_EPSILON_RAD = 1e-6

DEFAULT_PADDING_PX = 20.0
DEFAULT_MODE_FACTORS: Mapping[str, float] = {
    # Largest distance ring (geostationary altitude) is ~5.6 earth radii.
    "distance": 0.085,
    # Largest ring is the pi boundary ring.
    "radius": 0.15,
}
_MIN_SCALE_PX = 1e-3


def compute_scale(
    viewport: Viewport,
    mode: MetricMode,
    *,
    padding_px: float = DEFAULT_PADDING_PX,
    mode_factors: Mapping[str, float] = DEFAULT_MODE_FACTORS,
) -> float:
    """Pixels per radian of angular distance for a viewport and ring mode."""
    inner_width = viewport.width - 2.0 * padding_px
    inner_height = viewport.height - 2.0 * padding_px
    factor = mode_factors[mode]
    return max(min(inner_width, inner_height) * factor, _MIN_SCALE_PX)


class ProjectionModel:
    """Thin stateful wrapper the render engine configures from its state.

    Lon/lat go through a pyproj `aeqd` transformer centered on the active
    point, on a sphere of `EARTH_RADIUS_M`. Metres from the center become
    pixels through `scale_px / EARTH_RADIUS_M`, with screen y pointing down.
    """

    def __init__(self, state: ProjectionState) -> None:
        self.scale_px = state.scale_px
        self.translate = state.viewport.center
        self.set_center(state.center)

    def apply(self, state: ProjectionState) -> None:
        self.set_center(state.center)
        self.scale_px = state.scale_px
        self.translate = state.viewport.center

    def set_center(self, point: GeoPoint) -> None:
        self.center = point
        self._transformer = _require_aeqd_transformer(point.lon, point.lat)

    @property
    def boundary_radius_px(self) -> float:
        """Pixel radius of the antipodal edge of the projection."""
        return math.pi * self.scale_px

    def angular_distance(self, point: GeoPoint) -> float:
        """Great-circle angle (radians) between the center and `point`."""
        return float(self._angular_distances(np.array([point.lon]), np.array([point.lat]))[0])

    def project(self, point: GeoPoint) -> ScreenPoint | None:
        row = self.project_many([point.lon], [point.lat])[0]
        if not np.isfinite(row).all():
            return None
        return ScreenPoint(x=float(row[0]), y=float(row[1]))

    def project_many(self, lons: Any, lats: Any) -> np.ndarray:
        """Vectorized `project`; rows are NaN where the projection is undefined."""
        lons = np.asarray(lons, dtype=float).ravel()
        lats = np.asarray(lats, dtype=float).ravel()
        out = np.full((lons.size, 2), np.nan, dtype=float)
        if lons.size == 0:
            return out
        x_m, y_m = self._transformer.transform(lons, lats)
        px_per_m = self.scale_px / EARTH_RADIUS_M
        out[:, 0] = self.translate.x + np.asarray(x_m, dtype=float) * px_per_m
        out[:, 1] = self.translate.y - np.asarray(y_m, dtype=float) * px_per_m
        undefined = (np.pi - self._angular_distances(lons, lats)) < ANTIPODE_EPSILON_RAD
        out[undefined | ~np.isfinite(out).all(axis=1)] = np.nan
        return out

    def _angular_distances(self, lons: np.ndarray, lats: np.ndarray) -> np.ndarray:
        center_lons = np.full(lons.shape, self.center.lon, dtype=float)
        center_lats = np.full(lats.shape, self.center.lat, dtype=float)
        _, _, meters = _require_sphere_geod().inv(center_lons, center_lats, lons, lats)
        return np.asarray(meters, dtype=float) / EARTH_RADIUS_M


@lru_cache(maxsize=32)
def _require_aeqd_transformer(lon: float, lat: float) -> Any:
    try:
        from pyproj import CRS, Transformer
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for the azimuthal equidistant projection") from exc
    target = CRS.from_proj4(f"+proj=aeqd +lat_0={lat} +lon_0={lon} +R={EARTH_RADIUS_M} +units=m +no_defs")
    return Transformer.from_crs("EPSG:4326", target, always_xy=True)


@lru_cache(maxsize=1)
def _require_sphere_geod() -> Any:
    try:
        from pyproj import Geod
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for angular distances") from exc
    return Geod(a=EARTH_RADIUS_M, f=0.0)
