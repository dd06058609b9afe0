import math

from src.attendance_verifier.attendance_verifier.geo.distance import Coordinate, distance, is_valid_coordinate


MAIN = Coordinate(28.6139, 77.2090)


def test_distance_is_symmetric():
    pairs = [
        (MAIN, Coordinate(28.6150, 77.2100)),
        (Coordinate(-33.8688, 151.2093), Coordinate(51.5074, -0.1278)),
        (Coordinate(0.0, 179.9), Coordinate(0.0, -179.9)),
    ]
    for a, b in pairs:
        assert math.isclose(distance(a, b), distance(b, a), rel_tol=1e-12)


def test_distance_to_self_is_zero():
    assert distance(MAIN, MAIN) < 1e-6


def test_distance_matches_known_values():
    assert round(distance(MAIN, Coordinate(28.6150, 77.2100))) == 156
    # One hundredth of a degree of latitude is about 1.1 km anywhere.
    assert 1110 < distance(Coordinate(10.0, 20.0), Coordinate(10.01, 20.0)) < 1113


def test_antipodal_points_do_not_raise():
    d = distance(Coordinate(0.0, 0.0), Coordinate(0.0, 180.0))
    assert math.isclose(d, math.pi * 6_371_008.8, rel_tol=1e-9)


def test_normalized_rounds_to_six_decimals():
    assert Coordinate(28.61390049, 77.20900051).normalized() == Coordinate(28.6139, 77.209001)


def test_is_valid_coordinate_bounds():
    assert is_valid_coordinate(90, -180)
    assert not is_valid_coordinate(90.0001, 0)
    assert not is_valid_coordinate(0, 180.5)
    assert not is_valid_coordinate(float("nan"), 0)
    assert not is_valid_coordinate("north", 0)
