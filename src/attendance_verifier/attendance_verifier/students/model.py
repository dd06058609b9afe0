from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Eligibility:
    """Which centers a student may check into.

    ``assigned_center`` is a center id or name; None means any active center.
    """

    assigned_center: Optional[str] = None

    @classmethod
    def any_center(cls) -> "Eligibility":
        return cls(None)

    @classmethod
    def assigned(cls, center_ref: str) -> "Eligibility":
        return cls(str(center_ref))

    @property
    def is_restricted(self) -> bool:
        return self.assigned_center is not None


@dataclass(frozen=True)
class Student:
    """Domain entity: a student who checks in over the messaging channel."""

    student_id: str
    name: str
    phone: str
    assigned_center: Optional[str] = None
    is_active: bool = True

    @property
    def eligibility(self) -> Eligibility:
        if self.assigned_center:
            return Eligibility.assigned(self.assigned_center)
        return Eligibility.any_center()
