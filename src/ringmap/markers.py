"""Labeled point markers reprojected on every projection change."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Sequence

from matplotlib.patches import Circle

from .config import StyleConfig
from .geo import format_point_dms, geodesic_distance_km
from .models import MarkerFeature, ScreenPoint
from .projection import ProjectionModel
from .reconcile import JoinSummary, KeyedJoin

_LOGGER = logging.getLogger("ringmap.markers")

_LABEL_OFFSET_PX = 8.0


@dataclass(frozen=True, slots=True)
class _ProjectedMarker:
    marker: MarkerFeature
    position: ScreenPoint | None
    distance_km: float

    @property
    def label_text(self) -> str:
        return f"{self.marker.label} ({self.distance_km:,.0f} km)\n{format_point_dms(self.marker.coordinate)}"


class MarkerLayer:
    """Dots and their hover labels as two reconciled sets keyed by marker id."""

    def __init__(self, ax: Any, *, style: StyleConfig, zorder: int) -> None:
        self._ax = ax
        self._style = style
        self._zorder = zorder
        self._projected: dict[str, _ProjectedMarker] = {}
        self._hovered: str | None = None
        self._dots: KeyedJoin[str, _ProjectedMarker, Circle] = KeyedJoin(
            key=lambda item: item.marker.id,
            enter=self._enter_dot,
            update=self._update_dot,
            exit=lambda dot: dot.remove(),
        )
        self._labels: KeyedJoin[str, _ProjectedMarker, Any] = KeyedJoin(
            key=lambda item: item.marker.id,
            enter=self._enter_label,
            update=self._update_label,
            exit=lambda text: text.remove(),
        )

    @property
    def hovered(self) -> str | None:
        return self._hovered

    @property
    def marker_count(self) -> int:
        return len(self._dots)

    @property
    def label_count(self) -> int:
        return len(self._labels)

    def dot(self, marker_id: str) -> Circle | None:
        return self._dots.get(marker_id)

    def label(self, marker_id: str) -> Any | None:
        return self._labels.get(marker_id)

    def render(self, markers: Sequence[MarkerFeature], projection: ProjectionModel) -> JoinSummary:
        self._hovered = None
        center = projection.center
        projected = [
            _ProjectedMarker(
                marker=marker,
                position=projection.project(marker.coordinate),
                distance_km=geodesic_distance_km(center, marker.coordinate),
            )
            for marker in markers
        ]
        self._projected = {item.marker.id: item for item in projected}
        hidden = sum(1 for item in projected if item.position is None)
        if hidden:
            _LOGGER.debug("[markers] %d markers have no projection this frame", hidden)
        summary = self._dots.apply(projected)
        self._labels.apply(projected)
        return summary

    def hit_test(self, x: float, y: float) -> str | None:
        reach = self._style.marker_radius_px * self._style.marker_hover_scale + self._style.hit_tolerance_px / 2.0
        best: tuple[float, str] | None = None
        for marker_id, item in self._projected.items():
            if item.position is None:
                continue
            distance = math.hypot(x - item.position.x, y - item.position.y)
            if distance <= reach and (best is None or distance < best[0]):
                best = (distance, marker_id)
        return best[1] if best is not None else None

    def pointer_moved(self, x: float, y: float) -> bool:
        marker_id = self.hit_test(x, y)
        if marker_id == self._hovered:
            return marker_id is not None
        self.pointer_left()
        if marker_id is None:
            return False
        dot = self._dots.get(marker_id)
        label = self._labels.get(marker_id)
        if dot is not None:
            dot.set_radius(self._style.marker_radius_px * self._style.marker_hover_scale)
        if label is not None:
            label.set_visible(True)
        self._hovered = marker_id
        return True

    def pointer_left(self) -> None:
        if self._hovered is None:
            return
        dot = self._dots.get(self._hovered)
        label = self._labels.get(self._hovered)
        if dot is not None:
            dot.set_radius(self._style.marker_radius_px)
        if label is not None:
            label.set_visible(False)
        self._hovered = None

    def clear(self) -> None:
        self._hovered = None
        self._dots.clear()
        self._labels.clear()
        self._projected = {}

    def _enter_dot(self, marker_id: str, item: _ProjectedMarker) -> Circle:
        dot = Circle(
            (0.0, 0.0),
            radius=self._style.marker_radius_px,
            facecolor=self._style.marker_color,
            edgecolor="none",
            zorder=self._zorder,
        )
        dot.set_gid(f"marker-{marker_id}")
        self._ax.add_patch(dot)
        return dot

    def _update_dot(self, dot: Circle, item: _ProjectedMarker) -> None:
        dot.set_radius(self._style.marker_radius_px)
        if item.position is None:
            dot.set_visible(False)
            return
        dot.set_center((item.position.x, item.position.y))
        dot.set_visible(True)

    def _enter_label(self, marker_id: str, item: _ProjectedMarker) -> Any:
        text = self._ax.text(
            0.0,
            0.0,
            item.label_text,
            color=self._style.label_color,
            fontsize=self._style.font_size,
            ha="left",
            va="center",
            clip_on=False,
            zorder=self._zorder + 1,
        )
        text.set_gid(f"marker-label-{marker_id}")
        text.set_visible(False)
        return text

    def _update_label(self, text: Any, item: _ProjectedMarker) -> None:
        text.set_text(item.label_text)
        text.set_visible(False)
        if item.position is not None:
            text.set_position((item.position.x + _LABEL_OFFSET_PX, item.position.y))
