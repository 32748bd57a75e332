from __future__ import annotations

import math

import pytest
import utm

from cadastre.geo import (
    GeoPoint,
    ProjectedPoint,
    distance_km,
    nearby,
    parse_point,
    project,
    to_geographic,
)


@pytest.mark.parametrize(
    ("easting", "northing"),
    [
        (288456.789, 532123.456),
        (500000.0, 600000.0),
        (650000.0, 1250000.0),
    ],
)
def test_projection_agrees_with_independent_utm_reference(easting, northing):
    lat, lon = project(easting, northing)
    ref_lat, ref_lon = utm.to_latlon(easting, northing, 32, northern=True)

    assert lat == pytest.approx(ref_lat, abs=1e-5)
    assert lon == pytest.approx(ref_lon, abs=1e-5)


def test_central_meridian_projects_to_nine_degrees_east():
    _lat, lon = project(500000.0, 600000.0)
    assert lon == pytest.approx(9.0, abs=1e-9)


def test_distance_is_zero_for_same_point_and_symmetric():
    a = GeoPoint(latitude=6.45, longitude=3.39)
    b = GeoPoint(latitude=6.50, longitude=3.40)

    assert distance_km(a, a) == 0.0
    assert distance_km(a, b) == pytest.approx(distance_km(b, a))


def test_distance_matches_one_degree_of_latitude():
    a = GeoPoint(latitude=0.0, longitude=9.0)
    b = GeoPoint(latitude=1.0, longitude=9.0)
    assert distance_km(a, b) == pytest.approx(6371.0 * math.pi / 180, rel=1e-9)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "288456.789,532123.456",
        {},
        {"easting": "abc", "northing": "532123.456"},
        {"easting": "288456.789"},
        {"easting": True, "northing": "532123.456"},
        {"easting": "nan", "northing": "532123.456"},
        {"easting": "inf", "northing": "1"},
    ],
)
def test_parse_point_skips_malformed_coordinates(raw):
    assert parse_point(raw) is None


def test_parse_point_accepts_strings_and_numbers():
    assert parse_point({"easting": " 288456.789 ", "northing": 532123}) == ProjectedPoint(
        easting=288456.789, northing=532123.0
    )


def test_nearby_filters_by_radius_and_sorts_by_distance():
    center = to_geographic(ProjectedPoint(easting=500000.0, northing=600000.0))
    candidates = [
        ("far", {"easting": "510000", "northing": "600000"}),
        ("three", {"easting": "503000", "northing": "600000"}),
        ("one", {"easting": "500000", "northing": "601000"}),
        ("broken", {"easting": "n/a", "northing": "600000"}),
        ("missing", None),
    ]

    ranked = nearby(center, candidates, 5.0)

    assert [item for item, _dist in ranked] == ["one", "three"]
    assert ranked[0][1] == pytest.approx(1.0, abs=0.01)
    assert ranked[1][1] == pytest.approx(3.0, abs=0.05)
    assert all(dist <= 5.0 for _item, dist in ranked)


def test_nearby_keeps_input_order_for_equal_distances_and_applies_limit():
    center = to_geographic(ProjectedPoint(easting=500000.0, northing=600000.0))
    same = {"easting": "500000", "northing": "600000"}
    candidates = [("a", same), ("b", same), ("c", same), ("d", dict(same))]

    assert [item for item, _ in nearby(center, candidates, 0.0)] == ["a", "b", "c", "d"]
    assert [item for item, _ in nearby(center, candidates, 1.0, limit=2)] == ["a", "b"]


@pytest.mark.parametrize(("radius", "limit"), [(-0.1, 10), (5.0, 0)])
def test_nearby_rejects_invalid_radius_or_limit(radius, limit):
    center = GeoPoint(latitude=5.0, longitude=9.0)
    with pytest.raises(ValueError):
        nearby(center, [], radius, limit)
