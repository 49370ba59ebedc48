"""Matplotlib figure adapters: container events and canvas timers."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from .models import Viewport

_LOGGER = logging.getLogger("ringmap.host")


class FigureContainer:
    """Exposes a figure canvas as a sized surface with resize and pointer events.

    Pointer coordinates are reported in viewport pixels with the origin at the
    top-left corner, matching the engine's axes limits.
    """

    def __init__(self, figure: Any) -> None:
        self._figure = figure

    @property
    def figure(self) -> Any:
        return self._figure

    @property
    def canvas(self) -> Any:
        return self._figure.canvas

    def size(self) -> Viewport:
        bbox = self._figure.bbox
        return Viewport(width=float(bbox.width), height=float(bbox.height))

    def observe_resize(self, callback: Callable[[Viewport], None]) -> int:
        def _on_resize(_event: Any) -> None:
            callback(self.size())

        return int(self.canvas.mpl_connect("resize_event", _on_resize))

    def connect_pointer(
        self,
        on_move: Callable[[float, float], None],
        on_leave: Callable[[], None],
    ) -> list[int]:
        def _on_motion(event: Any) -> None:
            if event.x is None or event.y is None:
                on_leave()
                return
            on_move(float(event.x), float(self._figure.bbox.height) - float(event.y))

        def _on_leave(_event: Any) -> None:
            on_leave()

        return [
            int(self.canvas.mpl_connect("motion_notify_event", _on_motion)),
            int(self.canvas.mpl_connect("figure_leave_event", _on_leave)),
        ]

    def disconnect(self, cids: Sequence[int]) -> None:
        for cid in cids:
            self.canvas.mpl_disconnect(cid)

    def request_redraw(self) -> None:
        self.canvas.draw_idle()


class _TimerHandle:
    def __init__(self, owner: FigureScheduler, timer: Any) -> None:
        self._owner = owner
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()
        self._owner._timers.discard(self._timer)


class FigureScheduler:
    """Single-shot delayed calls on the canvas' GUI event loop."""

    def __init__(self, canvas: Any) -> None:
        self._canvas = canvas
        # Running timers must stay referenced until they fire.
        self._timers: set[Any] = set()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _TimerHandle:
        timer = self._canvas.new_timer(interval=max(int(round(delay_s * 1000.0)), 1))
        timer.single_shot = True

        def _fire() -> None:
            self._timers.discard(timer)
            callback()

        timer.add_callback(_fire)
        self._timers.add(timer)
        timer.start()
        _LOGGER.debug("[host] timer scheduled in %.3fs", delay_s)
        return _TimerHandle(self, timer)
