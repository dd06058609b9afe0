from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol

from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    """Storage keyed uniquely by (student_id, calendar_date).

    Implementations must detect both races the ledger retries on:
    ``insert`` raises DuplicateRecordError when the key already exists and
    ``update`` raises ConcurrencyConflictError when ``expected_version`` no
    longer matches. Timeouts raise PersistenceTimeoutError.
    """

    def get_for_student_and_date(self, student_id: str, calendar_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_pending(self, calendar_date: date) -> List[AttendanceRecord]:
        """Records for ``calendar_date`` still in pending_verification, oldest first."""

        raise NotImplementedError

    def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        """Create the record with its evidence; returns it with id and version set."""

        raise NotImplementedError

    def update(self, record: AttendanceRecord, *, expected_version: int) -> AttendanceRecord:
        """Overwrite mutable fields and append evidence not stored yet.

        Evidence already stored is never removed or rewritten.
        """

        raise NotImplementedError
