"""Data model definitions — explicit boundaries between input, solar, geometry, and session layers."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sunnyspot.ray import RaySegments


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 position. Longitude first, matching GeoJSON coordinate order."""

    lng: float  # Longitude (decimal degrees)
    lat: float  # Latitude (decimal degrees)

    @classmethod
    def from_lnglat(cls, pair: Any) -> GeoPoint:
        """Build a GeoPoint from a ``[lng, lat]`` pair (GeoJSON position)."""
        lng, lat = pair[0], pair[1]
        return cls(lng=float(lng), lat=float(lat))

    def as_lnglat(self) -> list[float]:
        return [self.lng, self.lat]

    def is_finite(self) -> bool:
        """True when both coordinates are finite numbers inside WGS84 bounds."""
        if not (math.isfinite(self.lng) and math.isfinite(self.lat)):
            return False
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lng <= 180.0


@dataclass(frozen=True)
class SolarState:
    """Sun position for one point and instant. Recomputed, never mutated."""

    bearing_deg: float  # Clockwise from true north, 0..360
    altitude_deg: float  # Above the horizon, -90..90
    point: GeoPoint
    when: datetime  # Aware datetime the state was computed for

    @property
    def is_night(self) -> bool:
        return self.altitude_deg <= 0


@dataclass(frozen=True)
class SunWindow:
    """Sunrise/sunset for a calendar date, as instants and local decimal hours."""

    sunrise: datetime
    sunset: datetime
    sunrise_hour: float  # Local hour + minute / 60
    sunset_hour: float

    # Time-control range used when no sunrise/sunset exists (polar day/night)
    DEFAULT_HOURS = (6.0, 18.0)


@dataclass(frozen=True)
class BuildingFootprint:
    """Ground plan of a building with the height used for occlusion.

    ``polygons`` holds one entry per simple polygon (one for a Polygon, several
    for a MultiPolygon). Each entry is the outer ring followed by any holes,
    and each ring is a sequence of points. Rings are stored as received;
    validity is checked when the footprint is used.
    """

    id: str
    polygons: tuple[tuple[tuple[GeoPoint, ...], ...], ...]
    height_m: float
    properties: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    @property
    def is_blocking(self) -> bool:
        return self.height_m > 0


@dataclass(frozen=True)
class Destination3D:
    """A ground position plus the elevation a sun ray reaches above it."""

    position: GeoPoint
    elevation_m: float


@dataclass(frozen=True)
class RaySegment3D:
    """One extrudable slice of the ray ribbon."""

    base_elevation_m: float
    top_elevation_m: float
    quad: tuple[GeoPoint, ...]  # Closed ring: 4 corners + first corner repeated


@dataclass(frozen=True)
class ShadowResult:
    """Output of one shadow resolve. Fresh object per call."""

    is_in_shadow: bool
    blocker: BuildingFootprint | None = None
    intersection: GeoPoint | None = None
    ray: RaySegments | None = None
    ray_height_m: float | None = None  # Ray elevation at the intersection, when blocked

    @classmethod
    def neutral(cls) -> ShadowResult:
        """Safe answer for unusable input: sunlit, nothing to draw."""
        return cls(is_in_shadow=False)

    @classmethod
    def night(cls) -> ShadowResult:
        return cls(is_in_shadow=True)


class AnalysisState(Enum):
    """Lifecycle of an AnalysisSession."""

    INACTIVE = "inactive"
    FETCHING = "fetching"  # Active, waiting on the footprint provider
    RESOLVED = "resolved"  # Active, result available
