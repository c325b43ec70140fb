"""Shared pytest fixtures and footprint builders."""

import math
from datetime import date, datetime

import pytest
from pytz import timezone, utc

from sunnyspot.geodesy import destination
from sunnyspot.models import BuildingFootprint, GeoPoint

AMSTERDAM = GeoPoint(lng=4.9041, lat=52.3676)
MIDSUMMER = date(2024, 6, 21)
AMSTERDAM_TZ = timezone("Europe/Amsterdam")

# Local solar noon in Amsterdam on 2024-06-21 is close to 13:42 CEST
AMSTERDAM_SOLAR_NOON = AMSTERDAM_TZ.localize(datetime(2024, 6, 21, 13, 42))

_M_PER_DEG_LAT = 111_320.0


def square_ring(center: GeoPoint, half_size_m: float) -> tuple[GeoPoint, ...]:
    """Closed axis-aligned square ring around ``center``."""
    dlat = half_size_m / _M_PER_DEG_LAT
    dlng = half_size_m / (_M_PER_DEG_LAT * math.cos(math.radians(center.lat)))
    sw = GeoPoint(lng=center.lng - dlng, lat=center.lat - dlat)
    se = GeoPoint(lng=center.lng + dlng, lat=center.lat - dlat)
    ne = GeoPoint(lng=center.lng + dlng, lat=center.lat + dlat)
    nw = GeoPoint(lng=center.lng - dlng, lat=center.lat + dlat)
    return (sw, se, ne, nw, sw)


def square_footprint(
    origin: GeoPoint,
    distance_m: float,
    bearing_deg: float,
    height_m: float,
    half_size_m: float = 5.0,
    footprint_id: str = "b1",
) -> BuildingFootprint:
    """A square building whose centre lies ``distance_m`` from ``origin`` along a bearing."""
    center = destination(origin, distance_m / 1000, bearing_deg)
    return BuildingFootprint(
        id=footprint_id,
        polygons=((square_ring(center, half_size_m),),),
        height_m=height_m,
    )


@pytest.fixture
def origin() -> GeoPoint:
    return AMSTERDAM


@pytest.fixture
def fixed_clock():
    """Clock pinned to Amsterdam solar noon on midsummer day."""
    now = AMSTERDAM_SOLAR_NOON.astimezone(utc)
    return lambda: now
