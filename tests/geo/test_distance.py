import math

import pytest

from src.geo_attendance.geo_attendance.core.exceptions import InvalidLocationError, ValidationError
from src.geo_attendance.geo_attendance.geo.distance import (
    distance_between,
    distance_meters,
    is_within_range,
    validate_coordinate,
)
from src.geo_attendance.geo_attendance.geo.model import Coordinate

POINTS = [
    (0.0, 0.0),
    (28.6139, 77.2090),
    (-33.8688, 151.2093),
    (51.5074, -0.1278),
    (89.9, 179.9),
]


@pytest.mark.parametrize("lat, lon", POINTS)
def test_distance_to_self_is_zero(lat, lon):
    assert distance_meters(lat, lon, lat, lon) == 0


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_distance_is_symmetric(a, b):
    assert distance_meters(a[0], a[1], b[0], b[1]) == pytest.approx(distance_meters(b[0], b[1], a[0], a[1]))


def test_one_degree_of_longitude_at_equator():
    assert distance_meters(0, 0, 0, 1) == pytest.approx(111_195, abs=1)


def test_one_degree_of_latitude():
    assert distance_meters(0, 0, 1, 0) == pytest.approx(111_195, abs=1)


def test_known_city_pair():
    # New Delhi -> Mumbai, roughly 1,150 km great-circle.
    d = distance_meters(28.6139, 77.2090, 19.0760, 72.8777)
    assert 1_140_000 < d < 1_160_000


def test_antipodes_are_half_circumference():
    assert distance_meters(0, 0, 0, 180) == pytest.approx(math.pi * 6_371_000)


def test_nan_propagates():
    assert math.isnan(distance_meters(float("nan"), 0, 0, 0))


def test_within_range_boundary_is_inclusive():
    center = Coordinate(longitude=77.2090, latitude=28.6139)
    point = Coordinate(longitude=77.2090, latitude=28.6139 + 0.00004)
    exact = distance_between(center, point)

    assert is_within_range(point, center, exact).within is True
    assert is_within_range(point, center, exact - 0.001).within is False


def test_validate_coordinate_accepts_pair_and_mapping():
    assert validate_coordinate([77.2, 28.6]) == Coordinate(longitude=77.2, latitude=28.6)
    assert validate_coordinate({"coordinates": ["77.2", "28.6"]}) == Coordinate(longitude=77.2, latitude=28.6)


@pytest.mark.parametrize(
    "value",
    [
        None,
        [],
        [1.0],
        [1.0, 2.0, 3.0],
        ["east", 2.0],
        [True, 2.0],
        [float("nan"), 2.0],
        [181.0, 0.0],
        [0.0, -90.5],
        {"coordinates": None},
        "77.2,28.6",
    ],
)
def test_validate_coordinate_rejects_malformed(value):
    with pytest.raises(ValidationError):
        validate_coordinate(value)


def test_validate_coordinate_uses_requested_error_type():
    with pytest.raises(InvalidLocationError):
        validate_coordinate({"coordinates": "nope"}, error=InvalidLocationError)
