"""Concentric reference rings for the active metric mode."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Hashable, Mapping

from matplotlib.patches import Circle

from .config import StyleConfig
from .models import MetricMode, RingSpec
from .projection import EARTH_RADIUS_KM, ProjectionModel
from .reconcile import JoinSummary, KeyedJoin
from .tooltip import Tooltip

_LOGGER = logging.getLogger("ringmap.rings")

# Radius-mode values are divided by this before conversion to pixels so that
# planetary radii stay comparable to the distance-mode circles.
RADIUS_MODE_DIVISOR = 10.0

BOUNDARY_KEY = "boundary"

RING_SPECS: Mapping[str, tuple[RingSpec, ...]] = {
    "distance": (
        RingSpec("iss", "International Space Station", 408.0, "km", "distance"),
        RingSpec("hubble", "Hubble Space Telescope", 540.0, "km", "distance"),
        RingSpec("gps", "GPS constellation", 20_180.0, "km", "distance"),
        RingSpec("galileo", "Galileo constellation", 23_222.0, "km", "distance"),
        RingSpec("geo", "Geostationary orbit", 35_786.0, "km", "distance"),
    ),
    "radius": (
        RingSpec("moon", "Moon", 1_737.4, "km", "radius"),
        RingSpec("mercury", "Mercury", 2_439.7, "km", "radius"),
        RingSpec("mars", "Mars", 3_389.5, "km", "radius"),
        RingSpec("venus", "Venus", 6_051.8, "km", "radius"),
        RingSpec("earth", "Earth", 6_371.0, "km", "radius"),
        RingSpec("neptune", "Neptune", 24_622.0, "km", "radius"),
        RingSpec("uranus", "Uranus", 25_362.0, "km", "radius"),
        RingSpec("saturn", "Saturn", 58_232.0, "km", "radius"),
        RingSpec("jupiter", "Jupiter", 69_911.0, "km", "radius"),
    ),
}


def ring_radius_px(spec: RingSpec, scale_px: float, earth_radius_km: float = EARTH_RADIUS_KM) -> float:
    value = spec.metric_value
    if spec.display_metric == "radius":
        value /= RADIUS_MODE_DIVISOR
    return value / earth_radius_km * scale_px


def format_metric(value: float, unit: str) -> str:
    if float(value).is_integer():
        return f"{value:,.0f} {unit}"
    return f"{value:,.1f} {unit}"


@dataclass(frozen=True, slots=True)
class _RingView:
    key: int | str
    radius_px: float
    spec: RingSpec | None


class RingLayer:
    """Circles keyed by spec index, plus the permanent antipodal boundary ring."""

    def __init__(self, ax: Any, *, style: StyleConfig, tooltip: Tooltip, zorder: int) -> None:
        self._ax = ax
        self._style = style
        self._tooltip = tooltip
        self._zorder = zorder
        self._mode: MetricMode | None = None
        self._center: tuple[float, float] = (0.0, 0.0)
        self._views: dict[int | str, _RingView] = {}
        self._rings: KeyedJoin[int | str, _RingView, Circle] = KeyedJoin(
            key=lambda view: view.key,
            enter=self._enter,
            update=self._update,
            exit=lambda circle: circle.remove(),
        )

    @property
    def mode(self) -> MetricMode | None:
        return self._mode

    @property
    def ring_count(self) -> int:
        return len(self._rings)

    def ring(self, key: int | str) -> Circle | None:
        return self._rings.get(key)

    def radii(self) -> dict[int | str, float]:
        return {key: view.radius_px for key, view in self._views.items()}

    def render(self, mode: MetricMode, projection: ProjectionModel) -> JoinSummary:
        if mode != self._mode:
            for circle in self._rings.artists.values():
                circle.set_visible(False)
            if self._mode is not None:
                _LOGGER.debug("[rings] mode switch %s -> %s", self._mode, mode)
            self._mode = mode
        self._hide_tooltip()

        self._center = (projection.translate.x, projection.translate.y)
        views = [
            _RingView(key=idx, radius_px=ring_radius_px(spec, projection.scale_px), spec=spec)
            for idx, spec in enumerate(RING_SPECS[mode])
        ]
        views.append(_RingView(key=BOUNDARY_KEY, radius_px=projection.boundary_radius_px, spec=None))
        self._views = {view.key: view for view in views}
        return self._rings.apply(views)

    def hit_test(self, x: float, y: float) -> int | None:
        """Index of the hoverable ring whose stroke lies under the pointer."""
        hit = self._hit(x, y)
        return hit[0] if hit is not None else None

    def pointer_moved(self, x: float, y: float) -> bool:
        hit = self._hit(x, y)
        if hit is None:
            self._hide_tooltip()
            return False
        key, spec = hit
        owner = _owner(key)
        if self._tooltip.visible and self._tooltip.owner == owner:
            self._tooltip.move(x, y)
        else:
            self._tooltip.enter(owner, f"{spec.label}: {format_metric(spec.metric_value, spec.unit)}", x, y)
        return True

    def pointer_left(self) -> None:
        self._hide_tooltip()

    def clear(self) -> None:
        self._hide_tooltip()
        self._rings.clear()
        self._views = {}
        self._mode = None

    def _hit(self, x: float, y: float) -> tuple[int, RingSpec] | None:
        distance = math.hypot(x - self._center[0], y - self._center[1])
        best: tuple[float, int, RingSpec] | None = None
        for key, view in self._views.items():
            if view.spec is None or not isinstance(key, int):
                continue
            gap = abs(distance - view.radius_px)
            if gap <= self._style.hit_tolerance_px and (best is None or gap < best[0]):
                best = (gap, key, view.spec)
        return (best[1], best[2]) if best is not None else None

    def _hide_tooltip(self) -> None:
        if self._tooltip.owner is not None and _is_ring_owner(self._tooltip.owner):
            self._tooltip.leave()

    def _enter(self, key: int | str, view: _RingView) -> Circle:
        boundary = view.spec is None
        circle = Circle(
            self._center,
            radius=view.radius_px,
            fill=False,
            edgecolor=self._style.boundary_ring_color if boundary else self._style.ring_color,
            linewidth=self._style.boundary_ring_width if boundary else self._style.ring_width,
            linestyle="--" if boundary else "-",
            zorder=self._zorder + 1 if boundary else self._zorder,
        )
        circle.set_gid(f"ring-{key}")
        self._ax.add_patch(circle)
        return circle

    def _update(self, circle: Circle, view: _RingView) -> None:
        circle.set_center(self._center)
        circle.set_radius(view.radius_px)
        circle.set_visible(True)


def _owner(key: int) -> Hashable:
    return ("ring", key)


def _is_ring_owner(owner: Hashable) -> bool:
    return isinstance(owner, tuple) and len(owner) == 2 and owner[0] == "ring"
