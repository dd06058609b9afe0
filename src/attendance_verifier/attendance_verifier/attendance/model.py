from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional, Tuple

from ..core.enums import AttendanceStatus, OutcomeKind, VerificationMethod
from ..evidence.model import Evidence


@dataclass(frozen=True)
class Verification:
    is_verified: bool = False
    verified_at: Optional[datetime] = None
    method: Optional[VerificationMethod] = None
    verified_by: Optional[str] = None
    notes: Optional[str] = None


UNVERIFIED = Verification()


@dataclass(frozen=True)
class TimeWindowInfo:
    name: Optional[str]
    expected_start: Optional[str] = None
    expected_end: Optional[str] = None


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's attendance for one calendar day.

    Records are values; the ledger derives a new one for every change and
    the repository persists it with a version check.
    """

    attendance_id: Optional[int]
    student_id: str
    calendar_date: date
    status: AttendanceStatus = AttendanceStatus.PENDING_VERIFICATION
    resolved_center_id: Optional[str] = None
    resolved_center_name: Optional[str] = None
    distance_m: Optional[float] = None
    verification: Verification = UNVERIFIED
    time_window: Optional[TimeWindowInfo] = None
    checked_in_at: Optional[datetime] = None
    evidence: Tuple[Evidence, ...] = ()
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_locked(self) -> bool:
        """Manual verification is sticky against automatic evidence."""
        return self.verification.method == VerificationMethod.MANUAL_ADMIN

    @property
    def is_auto_verified(self) -> bool:
        return (
            self.verification.method == VerificationMethod.AUTO_GEO
            and self.status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE)
        )

    def has_evidence(self, source_message_id: str) -> bool:
        return any(e.source_message_id == source_message_id for e in self.evidence)

    def with_evidence(self, evidence: Evidence) -> "AttendanceRecord":
        if self.has_evidence(evidence.source_message_id):
            return self
        return replace(self, evidence=self.evidence + (evidence,))


@dataclass(frozen=True)
class AttendanceOutcome:
    """What the ledger did with one evidence item, for the notifier.

    ``notification_key`` selects a message template; ``center_name`` and
    ``distance_m`` fill it in.
    """

    kind: OutcomeKind
    record: AttendanceRecord
    notification_key: str
    center_name: Optional[str] = None
    distance_m: Optional[float] = None
