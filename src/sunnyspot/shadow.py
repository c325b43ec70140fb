"""Shadow resolver — traces the sun ray from a ground point against building footprints.

Physical model: flat ground, point sun, no refraction or penumbra. A
footprint edge crossed by the ray at ground distance ``d`` blocks the sun
when the building is taller than the ray at that distance,
``height > d * tan(altitude)``. The blocking crossing nearest to the origin
wins; on an exact distance tie the first one encountered is kept.
"""

import logging
import math
from collections.abc import Iterable

from shapely.errors import GEOSException

from sunnyspot.compute import validate_point
from sunnyspot.errors import GeometryError, InputError
from sunnyspot.geodesy import distance_meters, line_intersection_points, polygon_from_rings
from sunnyspot.models import BuildingFootprint, GeoPoint, ShadowResult, SolarState
from sunnyspot.ray import build_ray_segments, compute_3d_destination

logger = logging.getLogger(__name__)

TRACE_DISTANCE_KM = 1.0  # Length of the traced ray
DEFAULT_RAY_KM = 0.5  # Ray drawn when there is nothing to trace against


def _default_ray(origin: GeoPoint, bearing_deg: float, altitude_deg: float) -> ShadowResult:
    end = compute_3d_destination(origin, DEFAULT_RAY_KM, bearing_deg, altitude_deg)
    return ShadowResult(
        is_in_shadow=False,
        ray=build_ray_segments(origin, end.position, 0.0, end.elevation_m),
    )


def resolve_shadow(
    origin: GeoPoint | None,
    bearing_deg: float,
    altitude_deg: float,
    footprints: Iterable[BuildingFootprint] | None,
) -> ShadowResult:
    """Decide whether ``origin`` is in a building's shadow and build the ray to draw.

    Args:
        origin: Ground point under analysis.
        bearing_deg: Sun bearing, clockwise from true north.
        altitude_deg: Sun altitude above the horizon.
        footprints: Nearby buildings with resolved heights.

    Returns:
        ShadowResult. At night the point is in shadow with no ray. When the
        point is blocked the ray ends at the blocking wall; otherwise it runs
        the full trace distance toward the sun. Unusable input yields
        ``ShadowResult.neutral()``.
    """
    try:
        origin = validate_point(origin)
        if not math.isfinite(bearing_deg):
            raise InputError("bearing_deg", bearing_deg)
        if not math.isfinite(altitude_deg):
            raise InputError("altitude_deg", altitude_deg)
    except (InputError, TypeError) as e:
        logger.debug("Shadow resolve skipped: %s", e)
        return ShadowResult.neutral()

    if altitude_deg <= 0:
        return ShadowResult.night()

    footprints = list(footprints or [])
    if not footprints:
        return _default_ray(origin, bearing_deg, altitude_deg)

    ray_end = compute_3d_destination(origin, TRACE_DISTANCE_KM, bearing_deg, altitude_deg)
    # Oriented from the sun side toward the observer
    ray_line = (ray_end.position, origin)
    tan_altitude = math.tan(math.radians(altitude_deg))

    blocker: BuildingFootprint | None = None
    closest: GeoPoint | None = None
    closest_height = 0.0
    min_distance = math.inf

    for footprint in footprints:
        if footprint is None or not footprint.is_blocking:
            continue
        try:
            for rings in footprint.polygons:
                try:
                    polygon = polygon_from_rings(rings, footprint.id)
                except GeometryError as e:
                    logger.debug("Skipping polygon: %s", e)
                    continue
                for hit in line_intersection_points(ray_line, polygon):
                    dist = distance_meters(origin, hit)
                    ray_height = dist * tan_altitude
                    if footprint.height_m > ray_height and dist < min_distance:
                        min_distance = dist
                        blocker = footprint
                        closest = hit
                        closest_height = ray_height
        except (GeometryError, GEOSException, TypeError, ValueError) as e:
            logger.warning("Skipping footprint %s: %s", getattr(footprint, "id", "?"), e)
            continue

    if blocker is not None:
        logger.debug(
            "Blocked by %s (%.1f m) at %.1f m, ray height %.1f m",
            blocker.id,
            blocker.height_m,
            min_distance,
            closest_height,
        )
        return ShadowResult(
            is_in_shadow=True,
            blocker=blocker,
            intersection=closest,
            ray=build_ray_segments(origin, closest, 0.0, closest_height),
            ray_height_m=closest_height,
        )

    return ShadowResult(
        is_in_shadow=False,
        ray=build_ray_segments(origin, ray_end.position, 0.0, ray_end.elevation_m),
    )


def resolve_for_state(
    solar_state: SolarState | None, footprints: Iterable[BuildingFootprint] | None
) -> ShadowResult:
    """Resolve shadow for the point and sun position held by a SolarState."""
    if solar_state is None:
        return ShadowResult.neutral()
    return resolve_shadow(
        solar_state.point, solar_state.bearing_deg, solar_state.altitude_deg, footprints
    )
