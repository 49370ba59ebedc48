"""Tests for geodesic and coordinate formatting helpers."""

from __future__ import annotations

import pytest

from ringmap.geo import decimal_to_dms, format_point_dms, geodesic_distance_km
from ringmap.models import GeoPoint

PARIS = GeoPoint(lon=2.3522, lat=48.8566)
LONDON = GeoPoint(lon=-0.1276, lat=51.5072)


def test_distance_to_self_is_zero() -> None:
    assert geodesic_distance_km(PARIS, PARIS) == pytest.approx(0.0, abs=1e-6)


def test_paris_london() -> None:
    assert geodesic_distance_km(PARIS, LONDON) == pytest.approx(344.0, abs=3.0)


def test_distance_is_symmetric() -> None:
    assert geodesic_distance_km(PARIS, LONDON) == pytest.approx(geodesic_distance_km(LONDON, PARIS))


@pytest.mark.parametrize(
    ("value", "is_latitude", "expected"),
    [
        (25.5, True, "25°30'0.00\"N"),
        (-33.25, True, "33°15'0.00\"S"),
        (121.0, False, "121°0'0.00\"E"),
        (-0.5, False, "0°30'0.00\"W"),
    ],
)
def test_decimal_to_dms(value: float, is_latitude: bool, expected: str) -> None:
    assert decimal_to_dms(value, is_latitude=is_latitude) == expected


def test_format_point_dms() -> None:
    assert format_point_dms(GeoPoint(lon=121.0, lat=25.5)) == "25°30'0.00\"N 121°0'0.00\"E"
