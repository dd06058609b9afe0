from __future__ import annotations

from datetime import datetime

from ...common.datetime_utils import minute_of_day
from ...core.enums import AttendanceStatus
from ...timewindows.classifier import WindowMatch
from .base import AttendanceStrategy, StatusDecision


class LateStrategy(AttendanceStrategy):
    """Late check-in: past the grace period, or outside every window."""

    def decide_checkin(self, *, local_time: datetime, match: WindowMatch, grace_minutes: int) -> StatusDecision:
        if not match.within_hours:
            return StatusDecision(status=AttendanceStatus.LATE, note="Outside operating hours")
        minutes_late = minute_of_day(local_time) - match.window.start
        return StatusDecision(
            status=AttendanceStatus.LATE,
            note=f"{minutes_late} min after {match.window.name} start (grace {grace_minutes} min)",
        )
