"""GeoJSON renderer — plain dicts a map layer can feed to fill-extrusion and line layers.

Nothing here draws; the output is data only. Extrusion features carry
``base_height`` and ``height`` properties in metres.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sunnyspot.errors import GeometryError
from sunnyspot.geodesy import footprint_center
from sunnyspot.models import BuildingFootprint, RaySegment3D, ShadowResult

logger = logging.getLogger(__name__)


def _ring(points) -> list[list[float]]:
    return [p.as_lnglat() for p in points]


def segment_feature(segment: RaySegment3D, index: int, in_shadow: bool) -> dict[str, Any]:
    return {
        "type": "Feature",
        "id": index,
        "properties": {
            "base_height": segment.base_elevation_m,
            "height": segment.top_elevation_m,
            "in_shadow": in_shadow,
        },
        "geometry": {"type": "Polygon", "coordinates": [_ring(segment.quad)]},
    }


def ray_feature_collection(result: ShadowResult | None) -> dict[str, Any]:
    """Ray ribbon as a FeatureCollection; empty at night or without a result."""
    if result is None or result.ray is None:
        return {"type": "FeatureCollection", "features": []}
    return {
        "type": "FeatureCollection",
        "features": [
            segment_feature(segment, i, result.is_in_shadow) for i, segment in enumerate(result.ray)
        ],
    }


def ray_line_feature(result: ShadowResult | None) -> dict[str, Any] | None:
    """Ground trace of the ray as a LineString feature."""
    if result is None or result.ray is None:
        return None
    return {
        "type": "Feature",
        "properties": {"in_shadow": result.is_in_shadow},
        "geometry": {"type": "LineString", "coordinates": result.ray.coordinates()},
    }


def footprint_geometry(footprint: BuildingFootprint) -> dict[str, Any]:
    polygons = [[_ring(ring) for ring in rings] for rings in footprint.polygons]
    if len(polygons) == 1:
        return {"type": "Polygon", "coordinates": polygons[0]}
    return {"type": "MultiPolygon", "coordinates": polygons}


def blocker_feature(result: ShadowResult | None) -> dict[str, Any] | None:
    """The blocking building, for highlighting. None when nothing blocks."""
    if result is None or result.blocker is None:
        return None
    blocker = result.blocker
    return {
        "type": "Feature",
        "id": blocker.id,
        "properties": {"base_height": 0.0, "height": blocker.height_m},
        "geometry": footprint_geometry(blocker),
    }


def building_markers(footprints: Iterable[BuildingFootprint]) -> list[dict[str, Any]]:
    """A centre marker and an outline entry per footprint."""
    markers: list[dict[str, Any]] = []
    for i, footprint in enumerate(footprints):
        try:
            center = footprint_center(footprint)
        except GeometryError as e:
            logger.debug("No marker for footprint: %s", e)
            continue
        markers.append(
            {
                "id": f"building-center-{i}",
                "type": "center",
                "coordinates": center.as_lnglat(),
                "height": footprint.height_m,
            }
        )
        markers.append(
            {
                "id": f"building-outline-{i}",
                "type": "outline",
                "geometry": footprint_geometry(footprint),
                "height": footprint.height_m,
            }
        )
    return markers
