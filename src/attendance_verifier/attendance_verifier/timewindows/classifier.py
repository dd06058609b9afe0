from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Sequence, Union

from ..common.datetime_utils import minute_of_day
from .model import TimeWindow


@dataclass(frozen=True)
class WindowMatch:
    window: Optional[TimeWindow]
    within_hours: bool

    @property
    def name(self) -> Optional[str]:
        return self.window.name if self.window else None


OUTSIDE_HOURS = WindowMatch(window=None, within_hours=False)


class TimeWindowClassifier:
    """Place a local wall-clock instant into a center's operating windows.

    The instant must already be expressed in the deployment's zone; only its
    hour and minute are compared.
    """

    def classify(self, windows: Sequence[TimeWindow], instant: datetime) -> WindowMatch:
        minute = minute_of_day(instant)
        # First match in declared order wins when windows overlap.
        for window in windows:
            if window.contains(minute):
                return WindowMatch(window=window, within_hours=True)
        return OUTSIDE_HOURS

    def is_late(self, window_start: Union[int, time], instant: datetime, grace_minutes: int) -> bool:
        if isinstance(window_start, time):
            window_start = window_start.hour * 60 + window_start.minute
        return (minute_of_day(instant) - int(window_start)) > int(grace_minutes)
