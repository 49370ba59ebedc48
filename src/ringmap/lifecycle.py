"""Bootstrap, bounded sizing retry, debounced resize and teardown."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Protocol, Sequence, TypeVar

from .config import EngineConfig
from .engine import Container, EngineHandle, RenderEngine
from .models import BoundaryFeature, MarkerFeature, Viewport

_LOGGER = logging.getLogger("ringmap.lifecycle")

T = TypeVar("T")

BoundaryLoader = Callable[[], Awaitable[Sequence[BoundaryFeature]]]


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    """Host event loop adapter offering cancellable delayed calls."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> Cancellable: ...


class ObservableContainer(Container, Protocol):
    def observe_resize(self, callback: Callable[[Viewport], None]) -> int: ...


class AsyncioScheduler:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_s, callback)


class Debouncer(Generic[T]):
    """Collapses a burst of triggers into one call after a quiet window."""

    def __init__(self, scheduler: Scheduler, window_s: float, callback: Callable[[T], None]) -> None:
        self._scheduler = scheduler
        self._window_s = window_s
        self._callback = callback
        self._pending: Cancellable | None = None
        self._latest: T | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def trigger(self, value: T) -> None:
        self._latest = value
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self._scheduler.call_later(self._window_s, self._fire)

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
        self._pending = None
        self._latest = None

    def _fire(self) -> None:
        value = self._latest
        self._pending = None
        self._latest = None
        if value is not None:
            self._callback(value)


class BootstrapError(Exception):
    """Terminal failure while bringing the engine to READY."""


class DataLoadFailure(BootstrapError):
    pass


class SizingTimeout(BootstrapError):
    def __init__(self, attempts: int, delay_s: float) -> None:
        super().__init__(
            f"Container had no usable size after {attempts} attempts ({delay_s:.3f}s apart)"
        )
        self.attempts = attempts


@dataclass(slots=True)
class BootstrapReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    sizing_attempts: int = 0
    failure: BootstrapError | None = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


def format_bootstrap_lines(report: BootstrapReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.ok:
        lines.append(f"[OK] Engine bootstrap completed after {report.sizing_attempts} sizing attempt(s).")
    return lines


class LifecycleController:
    """Drives a RenderEngine from mount to disposal.

    `mount()` awaits the boundary loader, then polls the container size
    through the scheduler until it is laid out or the attempt budget is
    spent. Failures are delivered to `on_failure` and recorded on the
    report; they are never raised.
    """

    def __init__(
        self,
        container: ObservableContainer,
        scheduler: Scheduler,
        loader: BoundaryLoader,
        markers: Sequence[MarkerFeature] = (),
        config: EngineConfig | None = None,
        *,
        on_ready: Callable[[EngineHandle], None] | None = None,
        on_failure: Callable[[BootstrapError], None] | None = None,
    ) -> None:
        self._container = container
        self._scheduler = scheduler
        self._loader = loader
        self._markers = tuple(markers)
        self._config = config or EngineConfig()
        self._on_ready = on_ready
        self._on_failure = on_failure
        self.engine = RenderEngine(container, self._config)
        self.report = BootstrapReport()
        self._handle: EngineHandle | None = None
        self._boundaries: tuple[BoundaryFeature, ...] = ()
        self._attempts = 0
        self._retry: Cancellable | None = None
        self._resize_cid: int | None = None
        self._resize_debouncer: Debouncer[Viewport] = Debouncer(
            scheduler, self._config.lifecycle.resize_debounce_s, self._on_resize_settled
        )
        self._mounted = False
        self._disposed = False

    @property
    def handle(self) -> EngineHandle | None:
        return self._handle

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def mount(self) -> BootstrapReport:
        if self._mounted or self._disposed:
            _LOGGER.warning("[lifecycle] mount called twice or after dispose; ignored")
            return self.report
        self._mounted = True
        self._resize_cid = self._container.observe_resize(self._resize_debouncer.trigger)

        try:
            boundaries = await self._loader()
        except Exception as exc:
            if not self._disposed:
                self._fail(DataLoadFailure(f"Boundary dataset load failed: {exc}"))
            return self.report

        if self._disposed:
            self.report.add_warning("Disposed while the boundary dataset was loading")
            return self.report
        self._boundaries = tuple(boundaries)
        self.report.add_info(f"Loaded {len(self._boundaries)} boundary features")
        self.engine.begin_sizing()
        self._attempt_sizing()
        return self.report

    def set_metric_mode(self, mode: Any) -> None:
        self.engine.set_metric_mode(mode)

    def navigate_to(self, point: Any) -> None:
        self.engine.navigate_to(point)

    def navigate_home(self) -> None:
        self.engine.navigate_to(self._config.view.home)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None
        self._resize_debouncer.cancel()
        if self._resize_cid is not None:
            self._container.disconnect([self._resize_cid])
            self._resize_cid = None
        self.engine.dispose()
        self._handle = None
        _LOGGER.info("[lifecycle] disposed")

    def _attempt_sizing(self) -> None:
        self._retry = None
        if self._disposed:
            return
        policy = self._config.lifecycle
        self._attempts += 1
        self.report.sizing_attempts = self._attempts
        viewport = self._container.size()
        if viewport.is_laid_out:
            self._start(viewport)
            return
        if self._attempts >= policy.sizing_max_attempts:
            self._fail(SizingTimeout(self._attempts, policy.sizing_retry_delay_s))
            return
        _LOGGER.debug(
            "[lifecycle] container not laid out (attempt %d/%d), retrying in %.3fs",
            self._attempts,
            policy.sizing_max_attempts,
            policy.sizing_retry_delay_s,
        )
        self._retry = self._scheduler.call_later(policy.sizing_retry_delay_s, self._attempt_sizing)

    def _start(self, viewport: Viewport) -> None:
        self._handle = self.engine.start(viewport, self._boundaries, self._markers)
        self.report.add_info(
            f"Engine ready at {viewport.width:g}x{viewport.height:g} "
            f"with {len(self._markers)} markers"
        )
        if self._on_ready is not None:
            self._on_ready(self._handle)

    def _fail(self, error: BootstrapError) -> None:
        _LOGGER.error("[lifecycle] %s", error)
        self.report.add_error(str(error))
        self.report.failure = error
        if self._on_failure is not None:
            self._on_failure(error)

    def _on_resize_settled(self, viewport: Viewport) -> None:
        if self._disposed:
            return
        if not self.engine.is_ready:
            _LOGGER.debug("[lifecycle] resize before ready ignored")
            return
        self.engine.resize(viewport)
