from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Tuple

from ..common.datetime_utils import format_hhmm, parse_hhmm
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class TimeWindow:
    """A named operating interval, both bounds in minute-of-day and inclusive."""

    name: str
    start: int
    end: int

    def __post_init__(self):
        if not (0 <= self.start < 24 * 60) or not (0 <= self.end < 24 * 60):
            raise ValidationError(f"Time window {self.name!r} is outside the day")

    @classmethod
    def from_hhmm(cls, name: str, start: str, end: str) -> "TimeWindow":
        return cls(name=name, start=parse_hhmm(start), end=parse_hhmm(end))

    def contains(self, minute: int) -> bool:
        return self.start <= minute <= self.end

    @property
    def start_label(self) -> str:
        return format_hhmm(self.start)

    @property
    def end_label(self) -> str:
        return format_hhmm(self.end)


def windows_from_mapping(mapping: Mapping[str, Mapping[str, str]]) -> Tuple[TimeWindow, ...]:
    """Build windows from {"morning": {"start": "09:00", "end": "13:00"}, ...}.

    Declared order is kept; it decides which window wins when two overlap.
    Entries missing a bound are skipped.
    """
    windows = []
    for name, bounds in mapping.items():
        if not bounds or not bounds.get("start") or not bounds.get("end"):
            continue
        windows.append(TimeWindow.from_hhmm(name, bounds["start"], bounds["end"]))
    return tuple(windows)
