import logging
import math

from src.attendance_verifier.attendance_verifier.centers.model import Center
from src.attendance_verifier.attendance_verifier.centers.resolver import CenterResolver
from src.attendance_verifier.attendance_verifier.geo.distance import Coordinate
from src.attendance_verifier.attendance_verifier.students.model import Eligibility

MAIN = Center(center_id="main", name="Main", coordinate=Coordinate(28.6139, 77.2090), radius_m=2000)
NORTH = Center(center_id="north", name="North", coordinate=Coordinate(28.7041, 77.1025), radius_m=2000)


def test_point_inside_main_radius_matches():
    res = CenterResolver().resolve(Coordinate(28.6150, 77.2100), [MAIN, NORTH], Eligibility.any_center())

    assert res.matched is True
    assert res.center == MAIN
    assert res.distance_m < 2000


def test_point_15km_away_does_not_match_but_reports_nearest():
    res = CenterResolver().resolve(Coordinate(28.7500, 77.2090), [MAIN], Eligibility.any_center())

    assert res.matched is False
    assert res.center == MAIN
    assert 15000 < res.distance_m < 15300


def test_nearest_hit_wins_over_listed_order():
    wide = Center(center_id="wide", name="Wide", coordinate=Coordinate(28.6200, 77.2090), radius_m=5000)
    res = CenterResolver().resolve(Coordinate(28.6140, 77.2090), [wide, MAIN], Eligibility.any_center())

    assert res.center == MAIN


def test_hit_beats_nearer_miss():
    tiny = Center(center_id="tiny", name="Tiny", coordinate=Coordinate(28.6141, 77.2090), radius_m=10)
    res = CenterResolver().resolve(Coordinate(28.6150, 77.2100), [tiny, MAIN], Eligibility.any_center())

    assert res.matched is True
    assert res.center == MAIN


def test_exact_tie_goes_to_first_listed_center():
    twin = Center(center_id="twin", name="Twin", coordinate=MAIN.coordinate, radius_m=2000)
    point = Coordinate(28.6150, 77.2100)

    assert CenterResolver().resolve(point, [MAIN, twin], Eligibility.any_center()).center == MAIN
    assert CenterResolver().resolve(point, [twin, MAIN], Eligibility.any_center()).center == twin


def test_inactive_centers_are_ignored():
    inactive_main = Center(center_id="main", name="Main", coordinate=MAIN.coordinate, is_active=False)
    res = CenterResolver().resolve(Coordinate(28.6150, 77.2100), [inactive_main, NORTH], Eligibility.any_center())

    assert res.matched is False
    assert res.center == NORTH


def test_no_centers_gives_no_candidate():
    res = CenterResolver().resolve(Coordinate(28.6150, 77.2100), [], Eligibility.any_center())

    assert res.matched is False
    assert math.isinf(res.distance_m)
    assert res.center is None
    assert not res.has_candidate


def test_assigned_inactive_center_never_falls_back_to_another():
    assigned = Center(center_id="north", name="North", coordinate=NORTH.coordinate, is_active=False)
    res = CenterResolver().resolve(Coordinate(28.6150, 77.2100), [MAIN, assigned], Eligibility.assigned("north"))

    assert res.matched is False
    assert res.center is None
    assert math.isinf(res.distance_m)


def test_assigned_center_matched_by_name_only_considers_that_center():
    res = CenterResolver().resolve(Coordinate(28.6150, 77.2100), [MAIN, NORTH], Eligibility.assigned("North"))

    assert res.matched is False
    assert res.center == NORTH


def test_unknown_assigned_center_gives_no_candidate():
    res = CenterResolver().resolve(Coordinate(28.6150, 77.2100), [MAIN], Eligibility.assigned("Nowhere"))

    assert res.center is None


def test_invalid_center_is_excluded_and_logged(caplog):
    broken = Center(center_id="bad", name="Bad", coordinate=Coordinate(128.0, 77.2090))
    zero_radius = Center(center_id="zero", name="Zero", coordinate=MAIN.coordinate, radius_m=0)

    with caplog.at_level(logging.WARNING):
        res = CenterResolver().resolve(Coordinate(28.6150, 77.2100), [broken, zero_radius, MAIN], Eligibility.any_center())

    assert res.matched is True
    assert res.center == MAIN
    assert "Excluding center bad" in caplog.text
    assert "Excluding center zero" in caplog.text
