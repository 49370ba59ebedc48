"""Shared pytest fixtures for the ringmap test suite."""

from __future__ import annotations

from typing import Any, Callable, Sequence

import matplotlib

matplotlib.use("Agg")

import pytest
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from shapely.geometry import box

from ringmap.config import EngineConfig, LifecycleConfig
from ringmap.host import FigureContainer
from ringmap.models import BoundaryFeature, GeoPoint, MarkerFeature, ProjectionState, Viewport
from ringmap.projection import ProjectionModel, compute_scale

VIEWPORT = Viewport(1000.0, 800.0)
TOKYO = GeoPoint(lon=139.6917, lat=35.6895)
TAIPEI = GeoPoint(lon=121.5654, lat=25.0330)


# ---------------------------------------------------------------------------
# Host doubles
# ---------------------------------------------------------------------------


class _ManualHandle:
    def __init__(self, due: float, seq: int, callback: Callable[[], None]) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by an explicit clock instead of wall time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = 0
        self._handles: list[_ManualHandle] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _ManualHandle:
        self._seq += 1
        handle = _ManualHandle(self.now + delay_s, self._seq, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._handles if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: (h.due, h.seq))
            self._handles.remove(handle)
            self.now = max(self.now, handle.due)
            handle.callback()
        self._handles = [h for h in self._handles if not h.cancelled]
        self.now = max(self.now, target)


class ScriptedContainer(FigureContainer):
    """Figure container whose reported sizes follow a script.

    The last scripted size repeats once the script is exhausted. Resize
    notifications are emitted by the test instead of the canvas.
    """

    def __init__(self, figure: Any, sizes: Sequence[Viewport] = ()) -> None:
        super().__init__(figure)
        self._sizes = list(sizes)
        self.size_calls = 0
        self.redraw_requests = 0
        self.disconnected: list[int] = []
        self._observers: dict[int, Callable[[Viewport], None]] = {}
        self._next_cid = 10_000

    def size(self) -> Viewport:
        self.size_calls += 1
        if not self._sizes:
            return super().size()
        if len(self._sizes) > 1:
            return self._sizes.pop(0)
        return self._sizes[0]

    def set_size(self, viewport: Viewport) -> None:
        self._sizes = [viewport]

    def observe_resize(self, callback: Callable[[Viewport], None]) -> int:
        self._next_cid += 1
        self._observers[self._next_cid] = callback
        return self._next_cid

    def emit_resize(self, viewport: Viewport) -> None:
        for callback in list(self._observers.values()):
            callback(viewport)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def disconnect(self, cids: Sequence[int]) -> None:
        for cid in cids:
            self.disconnected.append(cid)
            if self._observers.pop(cid, None) is None:
                super().disconnect([cid])

    def request_redraw(self) -> None:
        self.redraw_requests += 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def make_figure(width_px: int = 1000, height_px: int = 800, dpi: int = 100) -> Figure:
    fig = Figure(figsize=(width_px / dpi, height_px / dpi), dpi=dpi)
    FigureCanvasAgg(fig)
    return fig


def make_projection(center: GeoPoint = TOKYO, viewport: Viewport = VIEWPORT, mode: str = "distance") -> ProjectionModel:
    scale = compute_scale(viewport, mode)  # type: ignore[arg-type]
    return ProjectionModel(ProjectionState(center=center, scale_px=scale, viewport=viewport))


@pytest.fixture()
def figure() -> Figure:
    return make_figure()


@pytest.fixture()
def pixel_axes(figure: Figure) -> Any:
    """Axes filling the figure with pixel data coordinates, y pointing down."""
    ax = figure.add_axes((0.0, 0.0, 1.0, 1.0))
    ax.set_axis_off()
    ax.set_autoscale_on(False)
    ax.set_xlim(0.0, VIEWPORT.width)
    ax.set_ylim(VIEWPORT.height, 0.0)
    return ax


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def container(figure: Figure) -> ScriptedContainer:
    return ScriptedContainer(figure)


@pytest.fixture()
def engine_config() -> EngineConfig:
    return EngineConfig(
        lifecycle=LifecycleConfig(sizing_retry_delay_s=0.1, sizing_max_attempts=5, resize_debounce_s=0.2)
    )


@pytest.fixture()
def boundaries() -> list[BoundaryFeature]:
    """Three small square countries around East Asia."""
    return [
        BoundaryFeature(key="TWN", name="Taiwan", geometry=box(120.0, 22.0, 122.0, 25.0)),
        BoundaryFeature(key="JPN", name="Japan", geometry=box(135.0, 33.0, 141.0, 38.0)),
        BoundaryFeature(key="KOR", name="South Korea", geometry=box(126.0, 34.0, 129.0, 38.0)),
    ]


@pytest.fixture()
def markers() -> list[MarkerFeature]:
    return [
        MarkerFeature(id="tokyo", label="Tokyo", coordinate=TOKYO),
        MarkerFeature(id="taipei", label="Taipei", coordinate=TAIPEI),
    ]
