from __future__ import annotations

import re
import threading
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import pytest

from src.attendance_verifier.attendance_verifier.attendance.ledger import AttendanceLedger
from src.attendance_verifier.attendance_verifier.attendance.model import AttendanceRecord
from src.attendance_verifier.attendance_verifier.centers.directory import CenterDirectoryProvider
from src.attendance_verifier.attendance_verifier.centers.model import Center
from src.attendance_verifier.attendance_verifier.core.constants import DEFAULT_TIME_WINDOWS
from src.attendance_verifier.attendance_verifier.core.enums import AttendanceStatus, PrecisionHint
from src.attendance_verifier.attendance_verifier.core.exceptions import (
    ConcurrencyConflictError,
    DuplicateRecordError,
)
from src.attendance_verifier.attendance_verifier.evidence.model import Evidence
from src.attendance_verifier.attendance_verifier.geo.distance import Coordinate
from src.attendance_verifier.attendance_verifier.students.model import Student
from src.attendance_verifier.attendance_verifier.timewindows.model import windows_from_mapping

IST = ZoneInfo("Asia/Kolkata")
DAY = date(2025, 1, 6)
MAIN = Coordinate(28.6139, 77.2090)
NEAR_MAIN = Coordinate(28.6150, 77.2100)
FAR_FROM_MAIN = Coordinate(28.7500, 77.2090)


class InMemoryAttendance:
    """Mirrors the MySQL adapter: unique (student, date), version check, append-only evidence."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[int, AttendanceRecord] = {}
        self._id = 0
        self.failures: list[Exception] = []
        self.writes = 0

    def fail_next(self, *errors: Exception) -> None:
        self.failures.extend(errors)

    def _maybe_fail(self) -> None:
        if self.failures:
            raise self.failures.pop(0)

    def get_for_student_and_date(self, student_id: str, calendar_date: date) -> Optional[AttendanceRecord]:
        with self._lock:
            for r in self._rows.values():
                if r.student_id == student_id and r.calendar_date == calendar_date:
                    return r
            return None

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with self._lock:
            return self._rows.get(int(attendance_id))

    def list_pending(self, calendar_date: date) -> list[AttendanceRecord]:
        with self._lock:
            return [
                r for _, r in sorted(self._rows.items())
                if r.calendar_date == calendar_date and r.status == AttendanceStatus.PENDING_VERIFICATION
            ]

    def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        with self._lock:
            self._maybe_fail()
            for r in self._rows.values():
                if r.student_id == record.student_id and r.calendar_date == record.calendar_date:
                    raise DuplicateRecordError("duplicate (student_id, calendar_date)")
            self._id += 1
            saved = replace(record, attendance_id=self._id, version=0)
            self._rows[self._id] = saved
            self.writes += 1
            return saved

    def update(self, record: AttendanceRecord, *, expected_version: int) -> AttendanceRecord:
        with self._lock:
            self._maybe_fail()
            current = self._rows.get(int(record.attendance_id))
            if current is None or current.version != expected_version:
                raise ConcurrencyConflictError("version changed")
            stored_ids = {e.source_message_id for e in current.evidence}
            evidence = current.evidence + tuple(e for e in record.evidence if e.source_message_id not in stored_ids)
            saved = replace(record, evidence=evidence, version=expected_version + 1)
            self._rows[saved.attendance_id] = saved
            self.writes += 1
            return saved

    def all(self) -> list[AttendanceRecord]:
        with self._lock:
            return list(self._rows.values())


class InMemoryCenters:
    def __init__(self, centers):
        self.centers = list(centers)
        self.calls = 0
        self.error: Optional[Exception] = None

    def list_centers(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.centers)


class InMemoryStudents:
    def __init__(self, students):
        self._by_id = {s.student_id: s for s in students}

    def get_by_id(self, student_id: str) -> Optional[Student]:
        return self._by_id.get(str(student_id))

    def find_by_phone(self, phone: str) -> Optional[Student]:
        digits = re.sub(r"\D", "", phone or "")
        if not digits:
            return None
        for s in self._by_id.values():
            if s.phone in (phone, digits):
                return s
        for s in self._by_id.values():
            if re.sub(r"\D", "", s.phone).endswith(digits[-10:]):
                return s
        return None


class Clock:
    """Settable clock shared by the directory, the ledger and the ingestor."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fixed_now() -> datetime:
    # 09:05 in Asia/Kolkata
    return datetime(2025, 1, 6, 3, 35, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now) -> Clock:
    return Clock(fixed_now)


@pytest.fixture
def local_time() -> Callable[..., datetime]:
    def make(hour: int, minute: int, day: date = DAY) -> datetime:
        return datetime(day.year, day.month, day.day, hour, minute, tzinfo=IST)

    return make


@pytest.fixture
def main_center() -> Center:
    return Center(center_id="main", name="Main", coordinate=MAIN, radius_m=2000)


@pytest.fixture
def centers_repo(main_center) -> InMemoryCenters:
    return InMemoryCenters([main_center])


@pytest.fixture
def attendance_repo() -> InMemoryAttendance:
    return InMemoryAttendance()


@pytest.fixture
def students_repo() -> InMemoryStudents:
    return InMemoryStudents(
        [
            Student(student_id="S1", name="Asha", phone="9876543210"),
            Student(student_id="S2", name="Ravi", phone="9123456780", is_active=False),
            Student(student_id="S3", name="Meena", phone="9000000001", assigned_center="North"),
        ]
    )


@pytest.fixture
def directory(centers_repo, clock) -> CenterDirectoryProvider:
    return CenterDirectoryProvider(
        centers_repo,
        default_windows=windows_from_mapping(DEFAULT_TIME_WINDOWS),
        max_age_seconds=300,
        clock=clock,
    )


@pytest.fixture
def ledger(attendance_repo, directory, clock) -> AttendanceLedger:
    return AttendanceLedger(
        attendance_repo,
        directory,
        timezone="Asia/Kolkata",
        grace_minutes=15,
        max_attempts=3,
        retry_backoff_seconds=0,
        clock=clock,
    )


@pytest.fixture
def make_evidence(local_time) -> Callable[..., Evidence]:
    def make(
        message_id: str,
        hour: int = 9,
        minute: int = 5,
        coordinate: Optional[Coordinate] = NEAR_MAIN,
        precision: PrecisionHint = PrecisionHint.DEVICE,
    ) -> Evidence:
        return Evidence(
            source_message_id=message_id,
            timestamp=local_time(hour, minute),
            precision_hint=precision,
            coordinate=coordinate,
        )

    return make
