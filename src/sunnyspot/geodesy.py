"""Geodesic primitives — spherical distance/destination and planar footprint intersection.

Distances and destinations use a spherical Earth. Intersections treat
polygon edges as straight segments in lon/lat space, which is accurate
enough at city-block scale.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

from shapely.geometry import LineString, Point, Polygon

from sunnyspot.errors import GeometryError
from sunnyspot.models import BuildingFootprint, GeoPoint

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088  # Mean radius

Ring = Sequence[GeoPoint]
PolygonRings = Sequence[Ring]


def destination(point: GeoPoint, distance_km: float, bearing_deg: float) -> GeoPoint:
    """Point reached by travelling ``distance_km`` from ``point`` along a great circle.

    Args:
        point: Start point.
        distance_km: Distance to travel in kilometres.
        bearing_deg: Initial bearing, clockwise from true north.

    Returns:
        Destination point, longitude normalised to [-180, 180).
    """
    lat1 = math.radians(point.lat)
    lng1 = math.radians(point.lng)
    bearing = math.radians(bearing_deg)
    delta = distance_km / EARTH_RADIUS_KM

    lat2 = math.asin(
        math.sin(lat1) * math.cos(delta)
        + math.cos(lat1) * math.sin(delta) * math.cos(bearing)
    )
    lng2 = lng1 + math.atan2(
        math.sin(bearing) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )
    lng2 = (math.degrees(lng2) + 540) % 360 - 180
    return GeoPoint(lng=lng2, lat=math.degrees(lat2))


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine great-circle distance in metres."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * 1000 * math.asin(math.sqrt(min(1.0, h)))


def initial_bearing(a: GeoPoint, b: GeoPoint) -> float:
    """Bearing from ``a`` toward ``b``, degrees clockwise from north (0 if equal)."""
    if a == b:
        return 0.0
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlng = math.radians(b.lng - a.lng)
    y = math.sin(dlng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlng)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def valid_ring(ring: Ring) -> bool:
    """A usable ring has at least 4 points and ends where it starts."""
    if ring is None or len(ring) < 4:
        return False
    return ring[0] == ring[-1]


def polygon_from_rings(rings: PolygonRings, footprint_id: str | None = None) -> Polygon:
    """Build a shapely Polygon (outer ring + holes).

    Malformed holes are dropped; a malformed outer ring is an error.

    Raises:
        GeometryError: If the outer ring is missing, malformed or degenerate.
    """
    if not rings:
        raise GeometryError("polygon has no rings", footprint_id)
    outer, *holes = rings
    if not valid_ring(outer):
        raise GeometryError(
            f"outer ring needs >= 4 closed points, got {len(outer) if outer else 0}",
            footprint_id,
        )
    if not all(p.is_finite() for p in outer):
        raise GeometryError("outer ring has non-finite coordinates", footprint_id)

    shell = [(p.lng, p.lat) for p in outer]
    interiors = [[(p.lng, p.lat) for p in hole] for hole in holes if valid_ring(hole)]
    polygon = Polygon(shell, interiors)
    if polygon.is_empty or polygon.area == 0:
        raise GeometryError("polygon has zero area", footprint_id)
    return polygon


def expand_polygons(geometry: dict[str, Any]) -> list[list[list[GeoPoint]]]:
    """Split a GeoJSON Polygon/MultiPolygon geometry into simple polygons.

    Returns:
        One ring list per simple polygon, each ring a list of GeoPoint.

    Raises:
        GeometryError: For other geometry types or missing coordinates.
    """
    if not geometry or not geometry.get("coordinates"):
        raise GeometryError("geometry has no coordinates")

    geom_type = geometry.get("type")
    coords = geometry["coordinates"]
    if geom_type == "Polygon":
        parts = [coords]
    elif geom_type == "MultiPolygon":
        parts = list(coords)
    else:
        raise GeometryError(f"unsupported geometry type {geom_type!r}")

    try:
        return [
            [[GeoPoint.from_lnglat(pos) for pos in ring] for ring in part]
            for part in parts
        ]
    except (TypeError, ValueError, IndexError) as e:
        raise GeometryError(f"unreadable coordinates ({e})") from e


def _usable_polygon(polygon: PolygonRings | Polygon) -> Polygon | None:
    """Polygon for intersection tests, or None when the outer ring is unusable."""
    if isinstance(polygon, Polygon):
        return polygon
    try:
        return polygon_from_rings(polygon)
    except GeometryError as e:
        logger.debug("Skipping rings: %s", e)
        return None


def _ring_edges(polygon: Polygon):
    for ring in (polygon.exterior, *polygon.interiors):
        coords = list(ring.coords)
        for i in range(len(coords) - 1):
            yield coords[i], coords[i + 1]


def line_intersection_points(
    line: tuple[GeoPoint, GeoPoint], polygon: PolygonRings | Polygon
) -> list[GeoPoint]:
    """Points where a straight line crosses a polygon boundary.

    Edges are tested in ring order (outer ring first, then holes), so the
    result order is stable for identical input. An edge collinear with the
    line contributes the ends of the shared stretch. Malformed rings are
    skipped; with no usable outer ring the result is empty.
    """
    polygon = _usable_polygon(polygon)
    if polygon is None:
        return []
    start, end = line
    ray = LineString([(start.lng, start.lat), (end.lng, end.lat)])

    points: list[GeoPoint] = []
    for a, b in _ring_edges(polygon):
        if a == b:
            continue
        hit = ray.intersection(LineString([a, b]))
        if hit.is_empty:
            continue
        if isinstance(hit, Point):
            points.append(GeoPoint(lng=hit.x, lat=hit.y))
        elif isinstance(hit, LineString):
            # Collinear overlap: keep both ends of the shared stretch
            (x0, y0), (x1, y1) = hit.coords[0], hit.coords[-1]
            points.append(GeoPoint(lng=x0, lat=y0))
            points.append(GeoPoint(lng=x1, lat=y1))
    return points


def line_intersects_polygon(line: tuple[GeoPoint, GeoPoint], polygon: PolygonRings | Polygon) -> bool:
    """True when the line touches the polygon (boundary or interior)."""
    polygon = _usable_polygon(polygon)
    if polygon is None:
        return False
    start, end = line
    return LineString([(start.lng, start.lat), (end.lng, end.lat)]).intersects(polygon)


def footprint_center(footprint: BuildingFootprint) -> GeoPoint:
    """Centre of the footprint's bounding box."""
    points = [p for rings in footprint.polygons for ring in rings for p in ring]
    if not points:
        raise GeometryError("footprint has no points", footprint.id)
    lngs = [p.lng for p in points]
    lats = [p.lat for p in points]
    return GeoPoint(lng=(min(lngs) + max(lngs)) / 2, lat=(min(lats) + max(lats)) / 2)
