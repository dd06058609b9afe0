from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..timewindows.classifier import TimeWindowClassifier, WindowMatch
from .strategies.base import AttendanceStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.normal_strategy import NormalStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    classifier: TimeWindowClassifier = field(default_factory=TimeWindowClassifier)

    def for_checkin(self, *, local_time: datetime, match: WindowMatch, grace_minutes: int) -> AttendanceStrategy:
        # Outside every window is never on time.
        if not match.within_hours:
            return LateStrategy()
        if self.classifier.is_late(match.window.start, local_time, grace_minutes):
            return LateStrategy()
        return NormalStrategy()
