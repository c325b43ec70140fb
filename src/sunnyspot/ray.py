"""3D sun ray construction — projected endpoints and the extrudable ribbon."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

from sunnyspot.geodesy import destination, initial_bearing
from sunnyspot.models import Destination3D, GeoPoint, RaySegment3D

DEFAULT_SEGMENT_COUNT = 20
RIBBON_WIDTH_M = 0.2


def compute_3d_destination(
    origin: GeoPoint, distance_km: float, bearing_deg: float, altitude_deg: float
) -> Destination3D:
    """Project a ray of length ``distance_km`` toward the sun.

    The travel distance is split into a ground component along the bearing
    and a vertical component that becomes the elevation at the end point.

    Args:
        origin: Ground point the ray starts from.
        distance_km: Length of the ray in kilometres.
        bearing_deg: Sun bearing, clockwise from true north.
        altitude_deg: Sun altitude above the horizon.

    Returns:
        Destination3D with the ground position under the ray end and its
        elevation in metres.
    """
    altitude = math.radians(altitude_deg)
    horizontal_km = distance_km * math.cos(altitude)
    vertical_km = distance_km * math.sin(altitude)
    return Destination3D(
        position=destination(origin, horizontal_km, bearing_deg),
        elevation_m=vertical_km * 1000,
    )


@dataclass(frozen=True)
class RaySegments:
    """A ray as an ordered, finite run of ribbon segments.

    Segments are computed on iteration and never cached, so iterating twice
    yields equal but distinct segment objects.
    """

    start: GeoPoint
    end: GeoPoint
    start_elevation_m: float
    end_elevation_m: float
    segment_count: int = DEFAULT_SEGMENT_COUNT
    width_m: float = RIBBON_WIDTH_M

    def __post_init__(self) -> None:
        if self.segment_count < 1:
            raise ValueError(f"segment_count must be >= 1, got {self.segment_count}")

    def __len__(self) -> int:
        return self.segment_count

    def __iter__(self) -> Iterator[RaySegment3D]:
        stations = self._stations()
        heading = initial_bearing(self.start, self.end)
        for i in range(self.segment_count):
            yield self._segment(i, stations, heading)

    def __getitem__(self, index: int) -> RaySegment3D:
        if index < 0:
            index += self.segment_count
        if not 0 <= index < self.segment_count:
            raise IndexError("ray segment index out of range")
        return self._segment(index, self._stations(), initial_bearing(self.start, self.end))

    def _segment(self, i: int, stations, heading: float) -> RaySegment3D:
        lngs, lats, elevations = stations
        return _ribbon_quad(
            GeoPoint(lng=float(lngs[i]), lat=float(lats[i])),
            GeoPoint(lng=float(lngs[i + 1]), lat=float(lats[i + 1])),
            float(elevations[i]),
            float(elevations[i + 1]),
            heading,
            self.width_m / 2 / 1000,
        )

    def _stations(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        # segment_count + 1 evenly spaced stations from start to end
        n = self.segment_count + 1
        lngs = np.linspace(self.start.lng, self.end.lng, n)
        lats = np.linspace(self.start.lat, self.end.lat, n)
        elevations = np.linspace(self.start_elevation_m, self.end_elevation_m, n)
        return lngs, lats, elevations

    def coordinates(self) -> list[list[float]]:
        """The ray as a two-point ground polyline."""
        return [self.start.as_lnglat(), self.end.as_lnglat()]


def _ribbon_quad(
    a: GeoPoint,
    b: GeoPoint,
    base: float,
    top: float,
    heading: float,
    half_width_km: float,
) -> RaySegment3D:
    left = (heading - 90) % 360
    right = (heading + 90) % 360
    a_left = destination(a, half_width_km, left)
    a_right = destination(a, half_width_km, right)
    b_left = destination(b, half_width_km, left)
    b_right = destination(b, half_width_km, right)
    return RaySegment3D(
        base_elevation_m=base,
        top_elevation_m=top,
        quad=(a_left, b_left, b_right, a_right, a_left),
    )


def build_ray_segments(
    start: GeoPoint,
    end: GeoPoint,
    start_elevation_m: float,
    end_elevation_m: float,
    segment_count: int = DEFAULT_SEGMENT_COUNT,
) -> RaySegments:
    """Tessellate a ray into ``segment_count`` extrudable ribbon segments."""
    return RaySegments(
        start=start,
        end=end,
        start_elevation_m=start_elevation_m,
        end_elevation_m=end_elevation_m,
        segment_count=segment_count,
    )
