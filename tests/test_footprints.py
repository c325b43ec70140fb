"""
Tests for the height-estimation policy and footprint ingestion.
"""

import pytest

from sunnyspot.footprints import (
    DEFAULT_BUILDING_HEIGHT_M,
    estimate_height,
    footprint_from_feature,
    footprints_from_geojson,
    footprints_from_overpass,
    is_building,
)
from sunnyspot.models import GeoPoint

SQUARE = [[4.90, 52.36], [4.91, 52.36], [4.91, 52.37], [4.90, 52.37], [4.90, 52.36]]


class TestEstimateHeight:
    @pytest.mark.parametrize(
        "properties,expected",
        [
            ({"height": 30}, 30.0),
            ({"height": "12.5"}, 12.5),
            ({"height": "12 m"}, 12.0),
            ({"height": 8, "building:levels": 10}, 8.0),
            ({"render_height": 21}, 21.0),
            ({"building:levels": "4"}, 12.0),
            ({"levels": 6, "building": "yes"}, 18.0),
            ({"building_levels": 2}, 6.0),
            ({"height": "unknown", "building:levels": "3"}, 9.0),
            ({"building": "yes"}, DEFAULT_BUILDING_HEIGHT_M),
            ({"extrude": "true"}, DEFAULT_BUILDING_HEIGHT_M),
            ({"type": "apartments"}, DEFAULT_BUILDING_HEIGHT_M),
            ({"min_height": 0}, DEFAULT_BUILDING_HEIGHT_M),
            ({}, 0.0),
            ({"building": "no"}, 0.0),
            ({"type": "park"}, 0.0),
            ({"height": -4}, 0.0),
        ],
    )
    def test_policy(self, properties, expected):
        assert estimate_height(properties) == pytest.approx(expected)

    def test_is_building(self):
        assert is_building({"building": "house"})
        assert not is_building({"landuse": "grass"})


class TestGeoJSON:
    def test_polygon_feature(self):
        feature = {
            "type": "Feature",
            "id": 42,
            "properties": {"height": 20, "name": "Tower"},
            "geometry": {"type": "Polygon", "coordinates": [SQUARE]},
        }
        footprint = footprint_from_feature(feature, fallback_id="f0")
        assert footprint.id == "42"
        assert footprint.height_m == 20
        assert footprint.properties["name"] == "Tower"
        assert footprint.polygons[0][0][0] == GeoPoint(4.90, 52.36)

    def test_properties_are_read_only(self):
        feature = {"properties": {"height": 20}, "geometry": {"type": "Polygon", "coordinates": [SQUARE]}}
        footprint = footprint_from_feature(feature, fallback_id="f0")
        with pytest.raises(TypeError):
            footprint.properties["height"] = 1

    def test_feature_collection(self):
        collection = {
            "type": "FeatureCollection",
            "features": [
                {"properties": {"building": "yes"}, "geometry": {"type": "Polygon", "coordinates": [SQUARE]}},
                {"properties": {}, "geometry": {"type": "MultiPolygon", "coordinates": [[SQUARE], [SQUARE]]}},
                {"properties": {"height": 9}, "geometry": {"type": "Point", "coordinates": [4.9, 52.3]}},
                None,
            ],
        }
        footprints = footprints_from_geojson(collection)
        assert [f.id for f in footprints] == ["feature-0", "feature-1"]
        assert footprints[0].height_m == DEFAULT_BUILDING_HEIGHT_M
        assert footprints[1].height_m == 0.0
        assert len(footprints[1].polygons) == 2

    def test_feature_list(self):
        features = [{"properties": {"id": "abc"}, "geometry": {"type": "Polygon", "coordinates": [SQUARE]}}]
        assert footprints_from_geojson(features)[0].id == "abc"

    def test_malformed_ring_is_kept_for_the_resolver(self):
        feature = {"properties": {"height": 10}, "geometry": {"type": "Polygon", "coordinates": [SQUARE[:2]]}}
        footprint = footprint_from_feature(feature, fallback_id="f0")
        assert len(footprint.polygons[0][0]) == 2


def _node(node_id, lng, lat):
    return {"type": "node", "id": node_id, "lat": lat, "lon": lng}


OVERPASS_PAYLOAD = {
    "elements": [
        {"type": "way", "id": 100, "nodes": [1, 2, 3, 4, 1], "tags": {"building": "yes", "building:levels": "5"}},
        {
            "type": "relation",
            "id": 200,
            "members": [
                {"type": "way", "ref": 101, "role": "outer"},
                {"type": "way", "ref": 102, "role": "inner"},
            ],
            "tags": {"building": "apartments", "type": "multipolygon", "height": "40 m"},
        },
        {"type": "way", "id": 103, "nodes": [1, 2, 3, 1], "tags": {"highway": "footway"}},
        {"type": "way", "id": 101, "nodes": [10, 11, 12, 13, 10]},
        {"type": "way", "id": 102, "nodes": [20, 21, 22, 23, 20]},
        _node(1, 4.900, 52.360),
        _node(2, 4.901, 52.360),
        _node(3, 4.901, 52.361),
        _node(4, 4.900, 52.361),
        _node(10, 4.910, 52.360),
        _node(11, 4.920, 52.360),
        _node(12, 4.920, 52.370),
        _node(13, 4.910, 52.370),
        _node(20, 4.914, 52.364),
        _node(21, 4.916, 52.364),
        _node(22, 4.916, 52.366),
        _node(23, 4.914, 52.366),
    ]
}


class TestOverpass:
    def test_ways_and_relations(self):
        footprints = footprints_from_overpass(OVERPASS_PAYLOAD)
        assert [f.id for f in footprints] == ["way/100", "relation/200"]

        way, relation = footprints
        assert way.height_m == 15.0
        assert len(way.polygons) == 1
        assert len(way.polygons[0][0]) == 5
        assert way.polygons[0][0][0] == GeoPoint(4.900, 52.360)

        assert relation.height_m == 40.0
        assert len(relation.polygons) == 1
        outer_and_hole = relation.polygons[0]
        assert len(outer_and_hole) == 2
        assert outer_and_hole[1][0] == GeoPoint(4.914, 52.364)

    @pytest.mark.parametrize(
        "first,second",
        [
            ([10, 11, 12], [12, 13, 10]),
            ([10, 11, 12], [10, 13, 12]),
            ([12, 13, 10], [10, 11, 12]),
            ([11, 12], [12, 13, 10, 11]),
        ],
    )
    def test_outer_ring_split_across_ways(self, first, second):
        payload = {
            "elements": [
                {
                    "type": "relation",
                    "id": 300,
                    "members": [
                        {"type": "way", "ref": 1, "role": "outer"},
                        {"type": "way", "ref": 2, "role": "outer"},
                        {"type": "way", "ref": 3, "role": "inner"},
                        {"type": "way", "ref": 4, "role": "inner"},
                    ],
                    "tags": {"building": "yes"},
                },
                {"type": "way", "id": 1, "nodes": first},
                {"type": "way", "id": 2, "nodes": second},
                {"type": "way", "id": 3, "nodes": [20, 21, 22]},
                {"type": "way", "id": 4, "nodes": [22, 23, 20]},
            ]
            + [e for e in OVERPASS_PAYLOAD["elements"] if e["type"] == "node"],
        }
        (footprint,) = footprints_from_overpass(payload)
        outer, hole = footprint.polygons[0]
        assert len(outer) == 5
        assert outer[0] == outer[-1]
        assert {(p.lng, p.lat) for p in outer} == {(4.910, 52.360), (4.920, 52.360), (4.920, 52.370), (4.910, 52.370)}
        assert len(hole) == 5
        assert hole[0] == hole[-1]

    def test_unclosed_outer_relation_is_dropped(self):
        payload = {
            "elements": [
                {
                    "type": "relation",
                    "id": 301,
                    "members": [{"type": "way", "ref": 1, "role": "outer"}],
                    "tags": {"building": "yes"},
                },
                {"type": "way", "id": 1, "nodes": [10, 11, 12]},
            ]
            + [e for e in OVERPASS_PAYLOAD["elements"] if e["type"] == "node"],
        }
        assert footprints_from_overpass(payload) == []

    def test_unknown_nodes_are_dropped(self):
        payload = {
            "elements": [
                {"type": "way", "id": 1, "nodes": [1, 2, 99], "tags": {"building": "yes"}},
                _node(1, 4.9, 52.3),
                _node(2, 4.91, 52.3),
            ]
        }
        (footprint,) = footprints_from_overpass(payload)
        assert len(footprint.polygons[0][0]) == 2

    def test_empty_payload(self):
        assert footprints_from_overpass({"elements": []}) == []
