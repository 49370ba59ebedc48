"""Render engine orchestrating the projection and the three map layers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, Sequence

from .basemap import BasemapLayer
from .config import EngineConfig
from .markers import MarkerLayer
from .models import BoundaryFeature, GeoPoint, MarkerFeature, MetricMode, ProjectionState, Viewport, is_metric_mode
from .projection import ProjectionModel, compute_scale
from .rings import RingLayer
from .tooltip import Tooltip

_LOGGER = logging.getLogger("ringmap.engine")

BASEMAP_ZORDER = 10
RINGS_ZORDER = 20
MARKERS_ZORDER = 30
TOOLTIP_ZORDER = 40


class Container(Protocol):
    """Host surface the engine draws into."""

    @property
    def figure(self) -> Any: ...

    def size(self) -> Viewport: ...

    def connect_pointer(
        self,
        on_move: Callable[[float, float], None],
        on_leave: Callable[[], None],
    ) -> list[int]: ...

    def disconnect(self, cids: Sequence[int]) -> None: ...

    def request_redraw(self) -> None: ...


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    SIZING = "sizing"
    READY = "ready"
    NAVIGATING = "navigating"
    RESIZING = "resizing"
    DISPOSED = "disposed"


@dataclass(slots=True)
class _EngineResources:
    ax: Any
    projection: ProjectionModel
    basemap: BasemapLayer
    rings: RingLayer
    markers: MarkerLayer
    tooltip: Tooltip
    boundaries: tuple[BoundaryFeature, ...]
    marker_features: tuple[MarkerFeature, ...]
    viewport: Viewport
    pointer_cids: list[int] = field(default_factory=list)


class EngineHandle:
    """Capability handed to the host once the engine is ready."""

    def __init__(self, engine: RenderEngine) -> None:
        self._engine: RenderEngine | None = engine

    @property
    def active(self) -> bool:
        return self._engine is not None

    def navigate_to(self, point: Any) -> None:
        if self._engine is None:
            _LOGGER.debug("[engine] navigate_to on a released handle ignored")
            return
        self._engine.navigate_to(point)

    def _release(self) -> None:
        self._engine = None


class RenderEngine:
    def __init__(self, container: Container, config: EngineConfig | None = None) -> None:
        self._container = container
        self._config = config or EngineConfig()
        self._state = EngineState.UNINITIALIZED
        self._mode: MetricMode = self._config.view.metric_mode
        self._center: GeoPoint = self._config.view.home
        self._resources: _EngineResources | None = None
        self._handle: EngineHandle | None = None
        self.render_count = 0

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is EngineState.READY

    @property
    def metric_mode(self) -> MetricMode:
        return self._mode

    @property
    def center(self) -> GeoPoint:
        return self._center

    @property
    def projection(self) -> ProjectionModel | None:
        return self._resources.projection if self._resources else None

    @property
    def viewport(self) -> Viewport | None:
        return self._resources.viewport if self._resources else None

    @property
    def basemap(self) -> BasemapLayer | None:
        return self._resources.basemap if self._resources else None

    @property
    def rings(self) -> RingLayer | None:
        return self._resources.rings if self._resources else None

    @property
    def markers(self) -> MarkerLayer | None:
        return self._resources.markers if self._resources else None

    @property
    def tooltip(self) -> Tooltip | None:
        return self._resources.tooltip if self._resources else None

    def begin_sizing(self) -> None:
        if self._state is not EngineState.UNINITIALIZED:
            _LOGGER.warning("[engine] begin_sizing ignored in state %s", self._state.value)
            return
        self._state = EngineState.SIZING

    def start(
        self,
        viewport: Viewport,
        boundaries: Sequence[BoundaryFeature],
        markers: Sequence[MarkerFeature],
    ) -> EngineHandle:
        """Create the axes and layers, draw the first frame and become READY."""
        if self._state is EngineState.UNINITIALIZED:
            self.begin_sizing()
        if self._state is not EngineState.SIZING:
            raise RuntimeError(f"Engine cannot start from state {self._state.value}")
        if not viewport.is_laid_out:
            raise ValueError(f"Cannot start on an empty viewport {viewport.width}x{viewport.height}")

        style = self._config.style
        fig = self._container.figure
        fig.set_facecolor(style.background)
        ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
        ax.set_axis_off()
        ax.set_autoscale_on(False)
        _set_pixel_limits(ax, viewport)

        tooltip = Tooltip(
            ax,
            text_color=style.tooltip_text_color,
            face_color=style.tooltip_face_color,
            font_size=style.font_size,
            zorder=TOOLTIP_ZORDER,
        )
        resources = _EngineResources(
            ax=ax,
            projection=ProjectionModel(self._projection_state(viewport)),
            basemap=BasemapLayer(ax, style=style, basemap=self._config.basemap, zorder=BASEMAP_ZORDER),
            rings=RingLayer(ax, style=style, tooltip=tooltip, zorder=RINGS_ZORDER),
            markers=MarkerLayer(ax, style=style, zorder=MARKERS_ZORDER),
            tooltip=tooltip,
            boundaries=tuple(boundaries),
            marker_features=tuple(markers),
            viewport=viewport,
        )
        resources.pointer_cids = self._container.connect_pointer(self.handle_pointer, self.pointer_left)
        self._resources = resources

        self._render_all()
        self._state = EngineState.READY
        self._handle = EngineHandle(self)
        _LOGGER.info(
            "[engine] ready: viewport=%gx%g, boundaries=%d, markers=%d, mode=%s",
            viewport.width,
            viewport.height,
            len(resources.boundaries),
            len(resources.marker_features),
            self._mode,
        )
        return self._handle

    def navigate_to(self, point: Any) -> None:
        target = GeoPoint.coerce(point)
        if target is None:
            _LOGGER.warning("[engine] Ignoring invalid navigation target: %r", point)
            return
        if self._state is not EngineState.READY or self._resources is None:
            _LOGGER.info("[engine] navigate_to ignored in state %s", self._state.value)
            return

        self._state = EngineState.NAVIGATING
        try:
            self._center = target
            self._resources.projection.apply(self._projection_state(self._resources.viewport))
            self._render_all()
        finally:
            self._state = EngineState.READY
        _LOGGER.debug("[engine] centered on lon=%.4f lat=%.4f", target.lon, target.lat)

    def resize(self, viewport: Viewport) -> None:
        if self._state is not EngineState.READY or self._resources is None:
            _LOGGER.debug("[engine] resize ignored in state %s", self._state.value)
            return
        if not viewport.is_laid_out:
            _LOGGER.warning("[engine] Ignoring resize to empty viewport %gx%g", viewport.width, viewport.height)
            return

        self._state = EngineState.RESIZING
        try:
            self._resources.viewport = viewport
            _set_pixel_limits(self._resources.ax, viewport)
            self._resources.projection.apply(self._projection_state(viewport))
            self._render_all()
        finally:
            self._state = EngineState.READY
        _LOGGER.debug("[engine] resized to %gx%g", viewport.width, viewport.height)

    def set_metric_mode(self, mode: Any) -> None:
        if not is_metric_mode(mode):
            _LOGGER.warning("[engine] Ignoring unknown metric mode: %r", mode)
            return
        if self._state is EngineState.DISPOSED:
            return
        if mode == self._mode and self._state is EngineState.READY:
            return
        self._mode = mode
        if self._state is not EngineState.READY or self._resources is None:
            return
        self._resources.projection.apply(self._projection_state(self._resources.viewport))
        self._render_all()

    def handle_pointer(self, x: float, y: float) -> bool:
        """Dispatch a pointer position; markers take precedence over rings."""
        if self._state is not EngineState.READY or self._resources is None:
            return False
        res = self._resources
        if res.markers.pointer_moved(x, y):
            res.rings.pointer_left()
            hit = True
        else:
            hit = res.rings.pointer_moved(x, y)
        self._container.request_redraw()
        return hit

    def pointer_left(self) -> None:
        if self._resources is None:
            return
        self._resources.markers.pointer_left()
        self._resources.rings.pointer_left()
        self._container.request_redraw()

    def dispose(self) -> None:
        if self._state is EngineState.DISPOSED:
            return
        res = self._resources
        self._resources = None
        if res is not None:
            self._container.disconnect(res.pointer_cids)
            res.markers.clear()
            res.rings.clear()
            res.basemap.clear()
            res.tooltip.remove()
            res.ax.remove()
            self._container.request_redraw()
        if self._handle is not None:
            self._handle._release()
            self._handle = None
        self._state = EngineState.DISPOSED
        _LOGGER.info("[engine] disposed")

    def _projection_state(self, viewport: Viewport) -> ProjectionState:
        view = self._config.view
        scale = compute_scale(viewport, self._mode, padding_px=view.padding_px, mode_factors=view.mode_factors)
        return ProjectionState(center=self._center, scale_px=scale, viewport=viewport)

    def _render_all(self) -> None:
        res = self._resources
        if res is None:
            raise RuntimeError("Engine has no layers to render; call start() first")
        res.basemap.render(res.boundaries, res.projection)
        res.rings.render(self._mode, res.projection)
        res.markers.render(res.marker_features, res.projection)
        self.render_count += 1
        self._container.request_redraw()


def _set_pixel_limits(ax: Any, viewport: Viewport) -> None:
    # Data units are pixels with the origin at the top-left corner.
    ax.set_xlim(0.0, viewport.width)
    ax.set_ylim(viewport.height, 0.0)
