from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence, Tuple

from ..core.constants import DEFAULT_CENTER_RADIUS_M
from ..geo.distance import Coordinate
from ..timewindows.model import TimeWindow


@dataclass(frozen=True)
class ContactInfo:
    phone: Optional[str] = None
    email: Optional[str] = None
    manager: Optional[str] = None


@dataclass(frozen=True)
class Center:
    """Domain entity: a training center with its geofence and operating windows."""

    center_id: str
    name: str
    coordinate: Coordinate
    radius_m: float = DEFAULT_CENTER_RADIUS_M
    is_active: bool = True
    address: str = ""
    time_windows: Tuple[TimeWindow, ...] = ()
    contact: Optional[ContactInfo] = None
    # None means the deployment default grace applies.
    late_grace_minutes: Optional[int] = None

    def configuration_problem(self) -> Optional[str]:
        """Why this center cannot take part in resolution, or None if it can."""
        if not self.coordinate.is_valid():
            return f"coordinates out of range ({self.coordinate.latitude}, {self.coordinate.longitude})"
        try:
            radius = float(self.radius_m)
        except (TypeError, ValueError):
            return f"radius is not a number ({self.radius_m!r})"
        if not radius > 0:
            return f"radius must be positive ({self.radius_m!r})"
        return None

    def effective_windows(self, defaults: Sequence[TimeWindow]) -> Tuple[TimeWindow, ...]:
        return self.time_windows if self.time_windows else tuple(defaults)

    def matches_ref(self, ref: str) -> bool:
        """Students reference their assigned center by id or by name."""
        return str(ref) == str(self.center_id) or str(ref) == self.name


@dataclass(frozen=True)
class CenterDirectory:
    """Immutable snapshot of the configured centers.

    A resolution reads exactly one snapshot from start to finish; refreshes
    publish a new instance instead of mutating this one.
    """

    centers: Tuple[Center, ...]
    version: int = 0
    loaded_at: Optional[datetime] = None
    default_windows: Tuple[TimeWindow, ...] = field(default=())

    def __iter__(self):
        return iter(self.centers)

    def __len__(self) -> int:
        return len(self.centers)

    def get(self, center_id: str) -> Optional[Center]:
        for center in self.centers:
            if str(center.center_id) == str(center_id):
                return center
        return None

    def windows_for(self, center: Center) -> Tuple[TimeWindow, ...]:
        return center.effective_windows(self.default_windows)
