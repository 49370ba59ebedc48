"""Polygon basemap layer reconciled by boundary identity key."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Sequence

import numpy as np
from matplotlib.patches import PathPatch
from matplotlib.path import Path

from .config import BasemapConfig, StyleConfig
from .models import BoundaryFeature, GeoPoint
from .projection import ProjectionModel
from .reconcile import JoinSummary, KeyedJoin

_LOGGER = logging.getLogger("ringmap.basemap")

CLASS_HOME = "home"
CLASS_VISITED = "visited"
CLASS_OTHER = "other"

_EMPTY_PATH_VERTICES = np.empty((0, 2), dtype=float)

# Screen shoelace sign of an exterior ring (counter-clockwise in lon/lat).
_EXTERIOR_SIGN = -1.0
_DENSIFY_STEP_DEG = 0.5
_ARC_STEP_RAD = 2.0 * math.pi / 720


class BasemapLayer:
    """Country shapes; one `PathPatch` per boundary key."""

    def __init__(
        self,
        ax: Any,
        *,
        style: StyleConfig,
        basemap: BasemapConfig,
        zorder: int,
    ) -> None:
        self._ax = ax
        self._style = style
        self._basemap = basemap
        self._zorder = zorder
        self._projection: ProjectionModel | None = None
        self._shapes: KeyedJoin[str, BoundaryFeature, PathPatch] = KeyedJoin(
            key=lambda feature: feature.key,
            enter=self._enter,
            update=self._update,
            exit=lambda patch: patch.remove(),
        )

    @property
    def shape_count(self) -> int:
        return len(self._shapes)

    def shape(self, key: str) -> PathPatch | None:
        return self._shapes.get(key)

    def render(self, features: Sequence[BoundaryFeature], projection: ProjectionModel) -> JoinSummary:
        self._projection = projection
        summary = self._shapes.apply(features)
        _LOGGER.debug(
            "[basemap] entered=%d updated=%d exited=%d",
            len(summary.entered),
            len(summary.updated),
            len(summary.exited),
        )
        return summary

    def clear(self) -> None:
        self._shapes.clear()
        self._projection = None

    def classify(self, name: str) -> str:
        return classify_country(name, self._basemap)

    def _enter(self, key: str, feature: BoundaryFeature) -> PathPatch:
        patch = PathPatch(
            Path(_EMPTY_PATH_VERTICES),
            facecolor=self._fill_for(feature),
            edgecolor=self._style.country_edge_color,
            linewidth=self._style.country_edge_width,
            zorder=self._zorder,
        )
        patch.set_gid(f"country-{key}")
        self._ax.add_patch(patch)
        return patch

    def _update(self, patch: PathPatch, feature: BoundaryFeature) -> None:
        if self._projection is None:
            raise RuntimeError("Basemap shapes cannot be updated before a projection is rendered")
        path = project_geometry_path(feature.geometry, self._projection)
        patch.set_path(path)
        patch.set_facecolor(self._fill_for(feature))
        patch.set_visible(len(path.vertices) > 0)

    def _fill_for(self, feature: BoundaryFeature) -> str:
        klass = self.classify(feature.name)
        if klass == CLASS_HOME:
            return self._style.home_fill
        if klass == CLASS_VISITED:
            return self._style.visited_fill
        return self._style.other_fill


def classify_country(name: str, basemap: BasemapConfig) -> str:
    """Fill class of a country by its trimmed name."""
    normalized = name.strip()
    if not normalized:
        return CLASS_OTHER
    if basemap.home_country is not None and normalized == basemap.home_country:
        return CLASS_HOME
    for visited in basemap.visited_countries:
        # "United States" should still match "United States of America".
        if normalized == visited or normalized in visited or visited in normalized:
            return CLASS_VISITED
    return CLASS_OTHER


def project_geometry_path(geometry: Any, projection: ProjectionModel) -> Path:
    """Project polygon rings into one compound path in screen pixels.

    Rings are densified in lon/lat first so that edges follow the curved
    projection. A ring that encloses the projection's antipode is drawn
    inverted, and its polygon gets the boundary circle as an extra outer
    ring, so the fill is the band between the ring and the edge. A ring
    that passes through the antipode is closed along the boundary circle.
    """
    shapely = _require_shapely()
    antipode = _antipode(projection.center)
    rings: list[np.ndarray] = []
    for polygon in _iter_polygons(geometry):
        exterior = _project_ring(polygon.exterior, projection, antipode, exterior=True)
        if exterior is None:
            continue
        if exterior.encloses_antipode and bool(shapely.contains_xy(polygon, *antipode)):
            rings.append(_oriented(_boundary_circle(projection), _EXTERIOR_SIGN))
        rings.append(exterior.xy)
        for interior in polygon.interiors:
            hole = _project_ring(interior, projection, antipode, exterior=False)
            if hole is not None:
                rings.append(hole.xy)
    if not rings:
        return Path(_EMPTY_PATH_VERTICES)

    vertices: list[np.ndarray] = []
    codes: list[np.ndarray] = []
    for ring in rings:
        ring_codes = np.full(len(ring) + 1, Path.LINETO, dtype=Path.code_type)
        ring_codes[0] = Path.MOVETO
        ring_codes[-1] = Path.CLOSEPOLY
        vertices.append(np.vstack([ring, ring[:1]]))
        codes.append(ring_codes)
    return Path(np.concatenate(vertices), np.concatenate(codes))


@dataclass(frozen=True, slots=True)
class _ProjectedRing:
    xy: np.ndarray
    encloses_antipode: bool


def _project_ring(
    ring: Any,
    projection: ProjectionModel,
    antipode: tuple[float, float],
    *,
    exterior: bool,
) -> _ProjectedRing | None:
    shapely = _require_shapely()
    lon_lat = np.asarray(shapely.segmentize(ring, _DENSIFY_STEP_DEG).coords, dtype=float)[:-1, :2]
    if len(lon_lat) < 3:
        return None
    xy = projection.project_many(lon_lat[:, 0], lon_lat[:, 1])
    if int(np.isfinite(xy).all(axis=1).sum()) < 3:
        return None

    want = _EXTERIOR_SIGN if exterior else -_EXTERIOR_SIGN
    runs = _continuous_runs(xy, projection.boundary_radius_px)
    # Unbroken rings come back as the same array.
    if runs[0] is not xy:
        return _ProjectedRing(xy=_bridge_runs(runs, projection, want), encloses_antipode=False)

    encloses = bool(shapely.contains_xy(shapely.Polygon(ring), *antipode))
    if encloses:
        # The antipode is the whole boundary circle, so orientation flips.
        want = -want
    return _ProjectedRing(xy=_oriented(xy, want), encloses_antipode=encloses)


def _continuous_runs(xy: np.ndarray, max_jump: float) -> list[np.ndarray]:
    """Split a closed ring at undefined vertices and antipodal jumps."""
    valid = np.isfinite(xy).all(axis=1)
    following = np.roll(xy, -1, axis=0)
    steps = np.nan_to_num(np.hypot(following[:, 0] - xy[:, 0], following[:, 1] - xy[:, 1]), nan=np.inf)
    linked = valid & np.roll(valid, -1) & (steps <= max_jump)
    if linked.all():
        return [xy]

    start = (int(np.flatnonzero(~linked)[0]) + 1) % len(xy)
    runs: list[np.ndarray] = []
    current: list[int] = []
    for idx in np.roll(np.arange(len(xy)), -start):
        if valid[idx]:
            current.append(int(idx))
        if not linked[idx] and current:
            runs.append(xy[current])
            current = []
    if current:
        runs.append(xy[current])
    return runs


def _bridge_runs(runs: list[np.ndarray], projection: ProjectionModel, want: float) -> np.ndarray:
    """Join runs with arcs along the boundary circle, picking the arc direction by orientation."""
    candidates: list[np.ndarray] = []
    for direction in (1.0, -1.0):
        parts: list[np.ndarray] = []
        for idx, run in enumerate(runs):
            parts.append(run)
            parts.append(_boundary_arc(projection, run[-1], runs[(idx + 1) % len(runs)][0], direction))
        candidates.append(np.concatenate(parts))
    for candidate in candidates:
        if np.sign(_signed_area(candidate)) == want:
            return candidate
    return candidates[0]


def _boundary_arc(projection: ProjectionModel, start: np.ndarray, end: np.ndarray, direction: float) -> np.ndarray:
    cx, cy = projection.translate.x, projection.translate.y
    from_angle = math.atan2(cy - start[1], start[0] - cx)
    to_angle = math.atan2(cy - end[1], end[0] - cx)
    sweep = (to_angle - from_angle) % (2.0 * math.pi)
    if direction < 0:
        sweep -= 2.0 * math.pi
    steps = max(int(math.ceil(abs(sweep) / _ARC_STEP_RAD)), 1)
    angles = from_angle + sweep * np.arange(steps + 1) / steps
    radius = projection.boundary_radius_px
    return np.column_stack([cx + radius * np.cos(angles), cy - radius * np.sin(angles)])


def _boundary_circle(projection: ProjectionModel) -> np.ndarray:
    angles = np.arange(0.0, 2.0 * math.pi, _ARC_STEP_RAD)
    radius = projection.boundary_radius_px
    cx, cy = projection.translate.x, projection.translate.y
    return np.column_stack([cx + radius * np.cos(angles), cy - radius * np.sin(angles)])


def _oriented(xy: np.ndarray, want: float) -> np.ndarray:
    area = _signed_area(xy)
    if area != 0.0 and np.sign(area) != want:
        return xy[::-1].copy()
    return xy


def _signed_area(xy: np.ndarray) -> float:
    """Shoelace area in screen pixels (y down), so clockwise on screen is positive."""
    x = xy[:, 0]
    y = xy[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def _antipode(center: GeoPoint) -> tuple[float, float]:
    lon = center.lon + 180.0 if center.lon <= 0.0 else center.lon - 180.0
    return (lon, -center.lat)


def _iter_polygons(geometry: Any) -> list[Any]:
    if geometry is None or bool(getattr(geometry, "is_empty", True)):
        return []
    geom_type = getattr(geometry, "geom_type", "")
    if geom_type == "Polygon":
        return [geometry]
    if geom_type in ("MultiPolygon", "GeometryCollection"):
        out: list[Any] = []
        for part in geometry.geoms:
            out.extend(_iter_polygons(part))
        return out
    return []


@lru_cache(maxsize=1)
def _require_shapely() -> Any:
    try:
        import shapely
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for projecting boundary polygons") from exc
    return shapely
