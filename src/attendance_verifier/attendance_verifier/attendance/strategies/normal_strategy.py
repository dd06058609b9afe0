from __future__ import annotations

from datetime import datetime

from ...common.datetime_utils import minute_of_day
from ...core.enums import AttendanceStatus
from ...timewindows.classifier import WindowMatch
from .base import AttendanceStrategy, StatusDecision


class NormalStrategy(AttendanceStrategy):
    """On-time check-in inside a window (at or before start + grace)."""

    def decide_checkin(self, *, local_time: datetime, match: WindowMatch, grace_minutes: int) -> StatusDecision:
        offset = minute_of_day(local_time) - match.window.start
        if offset <= 0:
            return StatusDecision(status=AttendanceStatus.PRESENT)
        return StatusDecision(
            status=AttendanceStatus.PRESENT,
            note=f"{offset} min after {match.window.name} start, within grace",
        )
