"""Footprint ingestion — height-estimation policy and conversion from GeoJSON / Overpass data."""

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from shapely.geometry import Point

from sunnyspot.errors import GeometryError
from sunnyspot.geodesy import expand_polygons, polygon_from_rings, valid_ring
from sunnyspot.models import BuildingFootprint, GeoPoint

logger = logging.getLogger(__name__)

METERS_PER_LEVEL = 3.0
DEFAULT_BUILDING_HEIGHT_M = 15.0  # Roughly a five-storey building

_HEIGHT_KEYS = ("height", "render_height")
_LEVEL_KEYS = ("levels", "building_levels", "building:levels")
_BUILDING_TYPES = {"building", "apartments"}
_NUMBER = re.compile(r"[-+]?\d+(?:[.,]\d+)?")


def _parse_number(value: Any) -> float | None:
    """Read a number from a tag value such as ``12``, ``"12.5"`` or ``"12 m"``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER.search(str(value))
    if match is None:
        return None
    return float(match.group().replace(",", "."))


def is_building(properties: Mapping[str, Any]) -> bool:
    """Whether the source data marks this feature as a building at all."""
    building = properties.get("building")
    if building is not None and building not in ("no", False):
        return True
    if properties.get("height") is not None or properties.get("min_height") is not None:
        return True
    if str(properties.get("extrude", "")).lower() == "true":
        return True
    return properties.get("type") in _BUILDING_TYPES


def estimate_height(properties: Mapping[str, Any]) -> float:
    """Height policy applied once, when a footprint enters the system.

    1. An explicit height wins.
    2. Otherwise a level count times three metres.
    3. Otherwise 15 m for anything flagged as a building.
    4. Otherwise 0: the footprint does not block the sun.

    Unparseable values fall through to the next rule.
    """
    for key in _HEIGHT_KEYS:
        height = _parse_number(properties.get(key))
        if height is not None:
            return max(height, 0.0)

    for key in _LEVEL_KEYS:
        levels = _parse_number(properties.get(key))
        if levels is not None:
            return max(levels * METERS_PER_LEVEL, 0.0)

    if is_building(properties):
        return DEFAULT_BUILDING_HEIGHT_M
    return 0.0


def footprint_from_feature(feature: Mapping[str, Any], fallback_id: str) -> BuildingFootprint | None:
    """Convert one GeoJSON Feature into a BuildingFootprint.

    Returns:
        The footprint, or None when the feature has no polygonal geometry.
        Malformed rings are kept; the shadow resolver skips them.
    """
    properties = dict(feature.get("properties") or {})
    try:
        polygons = expand_polygons(feature.get("geometry") or {})
    except GeometryError as e:
        logger.debug("Skipping feature %s: %s", fallback_id, e)
        return None

    footprint_id = feature.get("id", properties.get("id", fallback_id))
    return BuildingFootprint(
        id=str(footprint_id),
        polygons=tuple(tuple(tuple(ring) for ring in rings) for rings in polygons),
        height_m=estimate_height(properties),
        properties=properties,
    )


def footprints_from_geojson(data: Mapping[str, Any] | Iterable[Mapping[str, Any]]) -> list[BuildingFootprint]:
    """Convert a FeatureCollection (or a plain list of Features) into footprints."""
    if isinstance(data, Mapping):
        features = data.get("features") or []
    else:
        features = list(data)

    footprints: list[BuildingFootprint] = []
    for i, feature in enumerate(features):
        if not feature:
            continue
        footprint = footprint_from_feature(feature, fallback_id=f"feature-{i}")
        if footprint is not None:
            footprints.append(footprint)
    logger.debug("Ingested %d of %d features as footprints", len(footprints), len(features))
    return footprints


def _way_ring(way: Mapping[str, Any], nodes: Mapping[int, Mapping[str, Any]]) -> list[GeoPoint]:
    ring = []
    for node_id in way.get("nodes", []):
        node = nodes.get(node_id)
        if node is not None:
            ring.append(GeoPoint(lng=float(node["lon"]), lat=float(node["lat"])))
    return ring


def _join_ways(node_lists: list[list[int]]) -> list[list[int]]:
    """Stitch member ways that share end nodes into rings.

    Ways may run in either direction. A chain that cannot be closed is
    returned open; callers decide what to do with it.
    """
    pending = [list(nodes) for nodes in node_lists if nodes]
    rings: list[list[int]] = []
    while pending:
        current = pending.pop(0)
        extended = True
        while current[0] != current[-1] and extended:
            extended = False
            for i, other in enumerate(pending):
                if other[0] == current[-1]:
                    current.extend(other[1:])
                elif other[-1] == current[-1]:
                    current.extend(reversed(other[:-1]))
                elif other[-1] == current[0]:
                    current[:0] = other[:-1]
                elif other[0] == current[0]:
                    current[:0] = reversed(other[1:])
                else:
                    continue
                del pending[i]
                extended = True
                break
        rings.append(current)
    return rings


def _relation_polygons(
    relation: Mapping[str, Any], ways: Mapping[int, Mapping[str, Any]], nodes: Mapping[int, Mapping[str, Any]]
) -> list[list[list[GeoPoint]]]:
    """Outer member ways become polygons; inner ways become holes of the outer that contains them.

    Rings split across several member ways are joined first. Outer rings that
    still do not close are dropped.
    """
    outer_ways: list[list[int]] = []
    inner_ways: list[list[int]] = []
    for member in relation.get("members", []):
        if member.get("type") != "way" or member.get("ref") not in ways:
            continue
        node_ids = list(ways[member["ref"]].get("nodes", []))
        if member.get("role") == "inner":
            inner_ways.append(node_ids)
        else:
            outer_ways.append(node_ids)

    outers: list[list[list[GeoPoint]]] = []
    for node_ids in _join_ways(outer_ways):
        if node_ids[0] != node_ids[-1]:
            logger.debug("Relation %s: outer ring does not close, skipped", relation.get("id"))
            continue
        outers.append([_way_ring({"nodes": node_ids}, nodes)])

    for node_ids in _join_ways(inner_ways):
        hole = _way_ring({"nodes": node_ids}, nodes)
        if not valid_ring(hole):
            continue
        inside = Point(hole[0].lng, hole[0].lat)
        for rings in outers:
            try:
                if polygon_from_rings(rings[:1]).contains(inside):
                    rings.append(hole)
                    break
            except GeometryError:
                continue
    return outers


def footprints_from_overpass(payload: Mapping[str, Any]) -> list[BuildingFootprint]:
    """Convert an Overpass API JSON response into footprints.

    Expects the output of a query ending in ``out body; >; out skel qt;`` so
    that member ways and nodes are present in ``elements``.
    """
    elements = payload.get("elements") or []
    nodes = {e["id"]: e for e in elements if e.get("type") == "node"}
    ways = {e["id"]: e for e in elements if e.get("type") == "way"}

    footprints: list[BuildingFootprint] = []
    for element in elements:
        tags = element.get("tags")
        if not tags or "building" not in tags:
            continue

        if element["type"] == "way":
            polygons = [[_way_ring(element, nodes)]]
        elif element["type"] == "relation":
            polygons = _relation_polygons(element, ways, nodes)
        else:
            continue
        if not polygons:
            continue

        footprints.append(
            BuildingFootprint(
                id=f"{element['type']}/{element['id']}",
                polygons=tuple(tuple(tuple(ring) for ring in rings) for rings in polygons),
                height_m=estimate_height(tags),
                properties=tags,
            )
        )
    logger.debug("Parsed %d footprints from %d Overpass elements", len(footprints), len(elements))
    return footprints
