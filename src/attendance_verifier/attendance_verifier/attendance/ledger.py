from __future__ import annotations

import logging
import math
import time
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Hashable, List, Optional, Tuple, TypeVar

from ..centers.directory import CenterDirectoryProvider
from ..centers.model import CenterDirectory
from ..centers.resolver import CenterResolver, Resolution
from ..common.datetime_utils import get_zone, now_utc, to_local
from ..core.constants import (
    DEFAULT_LATE_GRACE_MINUTES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_TIMEZONE,
)
from ..core.enums import AttendanceStatus, OutcomeKind, VerificationMethod
from ..core.exceptions import (
    ConcurrencyConflictError,
    DirectoryUnavailableError,
    DuplicateRecordError,
    PersistenceTimeoutError,
    RecordNotFoundError,
    RetryExhaustedError,
    ValidationError,
)
from ..evidence.model import Evidence
from ..students.model import Eligibility
from ..timewindows.classifier import TimeWindowClassifier
from .factory import AttendanceStrategyFactory
from .locks import KeyedLock
from .model import UNVERIFIED, AttendanceOutcome, AttendanceRecord, TimeWindowInfo, Verification
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MARKED = (AttendanceStatus.PRESENT, AttendanceStatus.LATE)
_MANUAL_STATUSES = (AttendanceStatus.PRESENT, AttendanceStatus.LATE, AttendanceStatus.ABSENT)


class AttendanceLedger:
    """Authoritative per-student, per-day attendance state.

    Every change is a read-resolve-merge-write cycle on one
    (student_id, calendar_date) key. Within a process the cycle runs under a
    key-scoped lock; across processes the repository's unique key and
    version check turn a lost race into a retry that merges again. Applying
    the same evidence twice (same source_message_id) changes nothing.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        directory: CenterDirectoryProvider,
        *,
        resolver: CenterResolver | None = None,
        classifier: TimeWindowClassifier | None = None,
        strategy_factory: AttendanceStrategyFactory | None = None,
        timezone: str = DEFAULT_TIMEZONE,
        grace_minutes: int = DEFAULT_LATE_GRACE_MINUTES,
        max_attempts: int = DEFAULT_MAX_RETRIES,
        retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        sleep: Callable[[float], None] = time.sleep,
        locks: KeyedLock | None = None,
    ):
        self._attendance = attendance
        self._directory = directory
        self._resolver = resolver or CenterResolver()
        self._classifier = classifier or TimeWindowClassifier()
        self._factory = strategy_factory or AttendanceStrategyFactory(classifier=self._classifier)
        self._zone = get_zone(timezone)
        self._grace_minutes = int(grace_minutes)
        self._max_attempts = max(1, int(max_attempts))
        self._backoff = float(retry_backoff_seconds)
        self._clock = clock
        self._sleep = sleep
        self._locks = locks or KeyedLock()

    def calendar_date_for(self, instant: datetime) -> date:
        return to_local(instant, self._zone).date()

    def today(self) -> date:
        return self.calendar_date_for(self._clock())

    # ---- automatic evidence -------------------------------------------------

    def apply_evidence(
        self,
        student_id: str,
        evidence: Evidence,
        eligibility: Eligibility | None = None,
    ) -> AttendanceOutcome:
        eligibility = eligibility or Eligibility.any_center()
        if evidence.timestamp.tzinfo is None:
            evidence = replace(evidence, timestamp=to_local(evidence.timestamp, self._zone))
        calendar_date = self.calendar_date_for(evidence.timestamp)
        return self._with_retries(
            (str(student_id), calendar_date),
            lambda: self._apply_once(str(student_id), calendar_date, evidence, eligibility),
            f"evidence {evidence.source_message_id}",
        )

    def _apply_once(
        self, student_id: str, calendar_date: date, evidence: Evidence, eligibility: Eligibility
    ) -> AttendanceOutcome:
        existing = self._attendance.get_for_student_and_date(student_id, calendar_date)
        now = self._clock()
        record = existing or AttendanceRecord(
            attendance_id=None,
            student_id=student_id,
            calendar_date=calendar_date,
            created_at=now,
        )

        if record.has_evidence(evidence.source_message_id):
            logger.info("Evidence %s already applied to %s/%s", evidence.source_message_id, student_id, calendar_date)
            return self._outcome(OutcomeKind.DUPLICATE, record)

        if record.is_locked:
            saved = self._save(existing, record.with_evidence(evidence), now)
            return self._outcome(OutcomeKind.LOCKED, saved)

        merged, kind, resolution = self._evaluate(record, evidence, eligibility, now)
        saved = self._save(existing, merged.with_evidence(evidence), now)
        return self._outcome(kind, saved, resolution)

    def _evaluate(
        self, record: AttendanceRecord, evidence: Evidence, eligibility: Eligibility, now: datetime
    ) -> Tuple[AttendanceRecord, OutcomeKind, Optional[Resolution]]:
        if not evidence.has_location:
            return record, OutcomeKind.NO_LOCATION, None

        try:
            directory = self._directory.snapshot()
        except DirectoryUnavailableError as e:
            logger.warning("Deferring resolution of %s: %s", evidence.source_message_id, e)
            return record, OutcomeKind.DEFERRED, None

        resolution = self._resolver.resolve(evidence.coordinate, directory, eligibility)

        if resolution.matched:
            # The earliest hit decides; a later hit neither demotes nor moves the record.
            if record.is_auto_verified and record.checked_in_at and record.checked_in_at <= evidence.timestamp:
                return record, OutcomeKind.VERIFIED, resolution
            return self._verified(record, evidence, resolution, directory, now), OutcomeKind.VERIFIED, resolution

        if record.status in _MARKED:
            return record, OutcomeKind.OUTSIDE_RADIUS, resolution

        center = resolution.center
        diagnostics = replace(
            record,
            status=AttendanceStatus.PENDING_VERIFICATION,
            resolved_center_id=center.center_id if center else None,
            resolved_center_name=center.name if center else None,
            distance_m=resolution.distance_m if math.isfinite(resolution.distance_m) else None,
        )
        return diagnostics, OutcomeKind.OUTSIDE_RADIUS, resolution

    def _verified(
        self,
        record: AttendanceRecord,
        evidence: Evidence,
        resolution: Resolution,
        directory: CenterDirectory,
        now: datetime,
    ) -> AttendanceRecord:
        center = resolution.center
        grace = center.late_grace_minutes if center.late_grace_minutes is not None else self._grace_minutes
        local_time = to_local(evidence.timestamp, self._zone)

        match = self._classifier.classify(directory.windows_for(center), local_time)
        strategy = self._factory.for_checkin(local_time=local_time, match=match, grace_minutes=grace)
        decision = strategy.decide_checkin(local_time=local_time, match=match, grace_minutes=grace)

        return replace(
            record,
            status=decision.status,
            resolved_center_id=center.center_id,
            resolved_center_name=center.name,
            distance_m=resolution.distance_m,
            verification=Verification(
                is_verified=True,
                verified_at=now,
                method=VerificationMethod.AUTO_GEO,
                verified_by="system",
                notes=decision.note,
            ),
            time_window=TimeWindowInfo(
                name=match.name,
                expected_start=match.window.start_label if match.window else None,
                expected_end=match.window.end_label if match.window else None,
            ),
            checked_in_at=evidence.timestamp,
        )

    # ---- administrative actions -------------------------------------------

    def manual_verify(
        self,
        attendance_id: int,
        status: AttendanceStatus,
        notes: Optional[str] = None,
        *,
        verified_by: str = "admin",
    ) -> AttendanceRecord:
        try:
            status = AttendanceStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status!r}")
        if status not in _MANUAL_STATUSES:
            raise ValidationError(f"Status {status.value} cannot be set manually")

        def op() -> AttendanceRecord:
            current = self._require(attendance_id)
            now = self._clock()
            updated = replace(
                current,
                status=status,
                verification=Verification(
                    is_verified=True,
                    verified_at=now,
                    method=VerificationMethod.MANUAL_ADMIN,
                    verified_by=verified_by,
                    notes=(notes or "").strip() or None,
                ),
                updated_at=now,
            )
            return self._attendance.update(updated, expected_version=current.version)

        record = self._require(attendance_id)
        saved = self._with_retries((record.student_id, record.calendar_date), op, f"manual verify of #{attendance_id}")
        logger.info("Record #%s manually set to %s by %s", attendance_id, status.value, verified_by)
        return saved

    def reset_verification(self, attendance_id: int, eligibility: Eligibility | None = None) -> AttendanceRecord:
        """Undo any verification (manual included) and re-evaluate stored evidence."""
        eligibility = eligibility or Eligibility.any_center()

        def op() -> AttendanceRecord:
            current = self._require(attendance_id)
            now = self._clock()
            cleared = replace(
                current,
                status=AttendanceStatus.PENDING_VERIFICATION,
                resolved_center_id=None,
                resolved_center_name=None,
                distance_m=None,
                verification=UNVERIFIED,
                time_window=None,
                checked_in_at=None,
            )
            replayed = self._replay(cleared, eligibility, now)
            return self._attendance.update(replace(replayed, updated_at=now), expected_version=current.version)

        record = self._require(attendance_id)
        return self._with_retries((record.student_id, record.calendar_date), op, f"reset of #{attendance_id}")

    def reconcile(
        self, student_id: str, calendar_date: date, eligibility: Eligibility | None = None
    ) -> Optional[AttendanceRecord]:
        """Retry resolution for a pending record, e.g. after a deferred outcome."""
        eligibility = eligibility or Eligibility.any_center()

        def op() -> Optional[AttendanceRecord]:
            current = self._attendance.get_for_student_and_date(str(student_id), calendar_date)
            if current is None or current.is_locked or current.status != AttendanceStatus.PENDING_VERIFICATION:
                return current
            now = self._clock()
            replayed = self._replay(current, eligibility, now)
            if replayed == current:
                return current
            return self._attendance.update(replace(replayed, updated_at=now), expected_version=current.version)

        return self._with_retries((str(student_id), calendar_date), op, "reconciliation")

    def get_record(self, attendance_id: int) -> AttendanceRecord:
        return self._require(attendance_id)

    def record_for(self, student_id: str, calendar_date: date | None = None) -> Optional[AttendanceRecord]:
        """The student's record for ``calendar_date`` (today in the local zone by default)."""
        if calendar_date is None:
            calendar_date = self.today()
        return self._attendance.get_for_student_and_date(str(student_id), calendar_date)

    def pending_records(self, calendar_date: date) -> List[AttendanceRecord]:
        return list(self._attendance.list_pending(calendar_date))

    # ---- helpers ------------------------------------------------------------

    def _replay(self, record: AttendanceRecord, eligibility: Eligibility, now: datetime) -> AttendanceRecord:
        for evidence in sorted(record.evidence, key=lambda e: e.timestamp):
            record, _, _ = self._evaluate(record, evidence, eligibility, now)
        return record

    def _require(self, attendance_id: int) -> AttendanceRecord:
        record = self._attendance.get_by_id(int(attendance_id))
        if record is None:
            raise RecordNotFoundError(f"Attendance record #{attendance_id} not found")
        return record

    def _save(self, existing: Optional[AttendanceRecord], record: AttendanceRecord, now: datetime) -> AttendanceRecord:
        record = replace(record, updated_at=now)
        if existing is None:
            return self._attendance.insert(record)
        return self._attendance.update(record, expected_version=existing.version)

    def _with_retries(self, key: Hashable, operation: Callable[[], T], description: str) -> T:
        with self._locks.hold(key):
            last_error: Exception | None = None
            for attempt in range(1, self._max_attempts + 1):
                try:
                    return operation()
                except (DuplicateRecordError, ConcurrencyConflictError) as e:
                    last_error = e
                    logger.debug("Write race on %s (attempt %s/%s), merging again", key, attempt, self._max_attempts)
                except PersistenceTimeoutError as e:
                    last_error = e
                    logger.warning("Persistence timeout on %s (attempt %s/%s): %s", key, attempt, self._max_attempts, e)
                if attempt < self._max_attempts and self._backoff > 0:
                    self._sleep(self._backoff * attempt)

        logger.error("Giving up on %s for %s after %s attempts: %s", description, key, self._max_attempts, last_error)
        raise RetryExhaustedError(f"Could not persist {description} after {self._max_attempts} attempts") from last_error

    def _outcome(
        self, kind: OutcomeKind, record: AttendanceRecord, resolution: Optional[Resolution] = None
    ) -> AttendanceOutcome:
        already_marked = record.status in _MARKED

        if kind == OutcomeKind.DUPLICATE:
            key = "duplicate_evidence"
        elif kind == OutcomeKind.LOCKED:
            key = "attendance_already_verified"
        elif kind == OutcomeKind.DEFERRED:
            key = "resolution_deferred"
        elif kind == OutcomeKind.VERIFIED:
            key = "attendance_late" if record.status == AttendanceStatus.LATE else "attendance_present"
        elif already_marked:
            key = "attendance_already_marked"
        elif kind == OutcomeKind.NO_LOCATION:
            key = "photo_without_location"
        else:
            key = "outside_radius"

        if kind == OutcomeKind.OUTSIDE_RADIUS and resolution is not None and not already_marked:
            center_name = resolution.center.name if resolution.center else None
            distance_m = resolution.distance_m
        else:
            center_name = record.resolved_center_name
            distance_m = record.distance_m

        return AttendanceOutcome(
            kind=kind,
            record=record,
            notification_key=key,
            center_name=center_name,
            distance_m=distance_m,
        )
