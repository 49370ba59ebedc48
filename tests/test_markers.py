"""Tests for the marker layer."""

from __future__ import annotations

from typing import Any

import pytest

from conftest import TAIPEI, TOKYO, make_projection
from ringmap.config import StyleConfig
from ringmap.geo import format_point_dms
from ringmap.markers import MarkerLayer
from ringmap.models import GeoPoint, MarkerFeature

STYLE = StyleConfig()


def _layer(ax: Any) -> MarkerLayer:
    return MarkerLayer(ax, style=STYLE, zorder=30)


class TestMarkerRender:
    def test_markers_and_labels_are_keyed_by_id(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        summary = layer.render(markers, make_projection(TOKYO))
        assert summary.entered == ["tokyo", "taipei"]
        assert layer.marker_count == 2
        assert layer.label_count == 2
        assert layer.dot("tokyo").get_gid() == "marker-tokyo"

    def test_center_marker_sits_at_viewport_center(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        layer.render(markers, make_projection(TOKYO))
        assert tuple(layer.dot("tokyo").get_center()) == pytest.approx((500.0, 400.0), abs=1e-6)

    def test_labels_start_hidden_with_distance(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        layer.render(markers, make_projection(TOKYO))
        tokyo = layer.label("tokyo")
        taipei = layer.label("taipei")
        assert not tokyo.get_visible()
        assert tokyo.get_text() == "Tokyo (0 km)\n35°41'22.20\"N 139°41'30.12\"E"
        headline, coordinates = taipei.get_text().splitlines()
        assert headline.startswith("Taipei (2,")
        assert headline.endswith(" km)")
        assert coordinates == format_point_dms(TAIPEI)

    def test_label_distance_follows_center(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        layer.render(markers, make_projection(TOKYO))
        layer.render(markers, make_projection(TAIPEI))
        assert layer.label("taipei").get_text().splitlines()[0] == "Taipei (0 km)"

    def test_removed_marker_exits(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        projection = make_projection(TOKYO)
        layer.render(markers, projection)
        summary = layer.render(markers[:1], projection)
        assert summary.exited == ["taipei"]
        assert layer.marker_count == 1
        assert layer.label_count == 1
        assert layer.dot("taipei") is None

    def test_antipodal_marker_is_hidden(self, pixel_axes: Any) -> None:
        layer = _layer(pixel_axes)
        origin = GeoPoint(lon=0.0, lat=0.0)
        features = [
            MarkerFeature(id="here", label="Here", coordinate=origin),
            MarkerFeature(id="there", label="There", coordinate=GeoPoint(lon=180.0, lat=0.0)),
        ]
        layer.render(features, make_projection(origin))
        assert layer.dot("here").get_visible()
        assert not layer.dot("there").get_visible()
        assert layer.hit_test(500.0, 400.0) == "here"


class TestMarkerHover:
    def test_hover_enlarges_and_shows_label(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        layer.render(markers, make_projection(TOKYO))
        assert layer.pointer_moved(501.0, 400.0)
        assert layer.hovered == "tokyo"
        assert layer.dot("tokyo").get_radius() == pytest.approx(STYLE.marker_radius_px * STYLE.marker_hover_scale)
        assert layer.label("tokyo").get_visible()

    def test_leave_restores(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        layer.render(markers, make_projection(TOKYO))
        layer.pointer_moved(500.0, 400.0)
        layer.pointer_left()
        assert layer.hovered is None
        assert layer.dot("tokyo").get_radius() == pytest.approx(STYLE.marker_radius_px)
        assert not layer.label("tokyo").get_visible()

    def test_moving_off_marker_clears_hover(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        layer.render(markers, make_projection(TOKYO))
        layer.pointer_moved(500.0, 400.0)
        assert not layer.pointer_moved(700.0, 100.0)
        assert layer.hovered is None
        assert not layer.label("tokyo").get_visible()

    def test_reprojection_clears_hover(self, pixel_axes: Any, markers: list[MarkerFeature]) -> None:
        layer = _layer(pixel_axes)
        projection = make_projection(TOKYO)
        layer.render(markers, projection)
        layer.pointer_moved(500.0, 400.0)
        layer.render(markers, projection)
        assert layer.hovered is None
        assert layer.dot("tokyo").get_radius() == pytest.approx(STYLE.marker_radius_px)
        assert not layer.label("tokyo").get_visible()
