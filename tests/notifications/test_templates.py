import math
from datetime import date, datetime

import pytest

from src.attendance_verifier.attendance_verifier.core.enums import AttendanceStatus
from src.attendance_verifier.attendance_verifier.core.exceptions import ConfigurationError
from src.attendance_verifier.attendance_verifier.notifications.templates import (
    DEFAULT_TEMPLATES,
    NotificationComposer,
    format_distance,
)


def test_confirmation_renders_date_and_time():
    text = NotificationComposer().compose(
        "attendance_present", date=date(2025, 1, 6), time=datetime(2025, 1, 6, 9, 5)
    )

    assert text == "Your attendance has been marked successfully for 06/01/2025 at 9:05 AM."


def test_outside_radius_renders_whole_meters_and_center():
    text = NotificationComposer().compose("outside_radius", center="Main", distance_m=15134.6)

    assert text.startswith("You are 15135m away from Main.")
    assert "could not be verified" in text


def test_infinite_distance_reads_far():
    text = NotificationComposer().compose("outside_radius", center=None, distance_m=math.inf)

    assert text.startswith("You are far away from any center.")


def test_status_is_humanized():
    text = NotificationComposer().compose("attendance_already_verified", status=AttendanceStatus.ABSENT)

    assert text == "Your attendance for today has already been verified as absent."


def test_every_default_key_renders_without_context():
    composer = NotificationComposer()
    for key in DEFAULT_TEMPLATES:
        assert composer.compose(key)


def test_templates_can_be_overridden():
    composer = NotificationComposer({"attendance_present": "OK {date}"})

    assert composer.compose("attendance_present", date=date(2025, 1, 6)) == "OK 06/01/2025"
    assert composer.has_template("help")


def test_unknown_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        NotificationComposer().compose("no_such_key")


@pytest.mark.parametrize("value,expected", [(None, "far"), (0.4, "0m"), (1999.5, "2000m"), (float("nan"), "far")])
def test_format_distance(value, expected):
    assert format_distance(value) == expected
