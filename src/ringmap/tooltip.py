"""Pointer tooltip with explicit hidden/shown state."""

from __future__ import annotations

from enum import Enum
from typing import Any, Hashable


class TooltipState(Enum):
    HIDDEN = "hidden"
    SHOWN = "shown"


class Tooltip:
    """Annotation that follows the pointer.

    The only transitions are `enter` (hidden -> shown, or retarget while
    shown), `move` (shown -> shown) and `leave` (any -> hidden).
    """

    def __init__(self, ax: Any, *, text_color: str, face_color: str, font_size: float, zorder: int) -> None:
        self.state = TooltipState.HIDDEN
        self.owner: Hashable | None = None
        self._annotation = ax.annotate(
            "",
            xy=(0.0, 0.0),
            xytext=(12, 12),
            textcoords="offset pixels",
            color=text_color,
            fontsize=font_size,
            bbox={"boxstyle": "round,pad=0.3", "fc": face_color, "ec": "none", "alpha": 0.9},
            zorder=zorder,
            annotation_clip=False,
        )
        self._annotation.set_visible(False)

    @property
    def visible(self) -> bool:
        return self.state is TooltipState.SHOWN

    @property
    def text(self) -> str:
        return str(self._annotation.get_text())

    @property
    def position(self) -> tuple[float, float]:
        x, y = self._annotation.xy
        return (float(x), float(y))

    def enter(self, owner: Hashable, text: str, x: float, y: float) -> None:
        self.owner = owner
        self._annotation.set_text(text)
        self._annotation.xy = (x, y)
        self._annotation.set_visible(True)
        self.state = TooltipState.SHOWN

    def move(self, x: float, y: float) -> None:
        if self.state is not TooltipState.SHOWN:
            return
        self._annotation.xy = (x, y)

    def leave(self) -> None:
        self.owner = None
        self._annotation.set_visible(False)
        self.state = TooltipState.HIDDEN

    def remove(self) -> None:
        self.leave()
        self._annotation.remove()
