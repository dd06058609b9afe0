from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Sequence

import mysql.connector

from ..core.enums import AttendanceStatus, PrecisionHint, VerificationMethod
from ..core.exceptions import ConcurrencyConflictError, DuplicateRecordError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, is_duplicate_key, to_db_datetime
from ..evidence.model import Evidence
from ..geo.distance import Coordinate
from .model import AttendanceRecord, TimeWindowInfo, Verification
from .repository import AttendanceRepository

_RECORD_COLUMNS = """
    attendance_id, student_id, calendar_date, status, resolved_center_id, resolved_center_name,
    distance_m, is_verified, verified_at, verification_method, verified_by, verification_notes,
    window_name, expected_start, expected_end, checked_in_at, version, created_at, updated_at
"""


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_student_and_date(self, student_id: str, calendar_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_RECORD_COLUMNS} FROM attendance_records WHERE student_id=%s AND calendar_date=%s",
                (str(student_id), calendar_date),
            )
            r = fetchone(cur)
            if not r:
                return None
            return self._to_record(r, self._load_evidence(cur, int(r["attendance_id"])))

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_RECORD_COLUMNS} FROM attendance_records WHERE attendance_id=%s",
                (int(attendance_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return self._to_record(r, self._load_evidence(cur, int(r["attendance_id"])))

    def list_pending(self, calendar_date: date) -> List[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS} FROM attendance_records
                WHERE calendar_date=%s AND status=%s
                ORDER BY attendance_id ASC
                """,
                (calendar_date, AttendanceStatus.PENDING_VERIFICATION.value),
            )
            rows = fetchall(cur)
            return [self._to_record(r, self._load_evidence(cur, int(r["attendance_id"]))) for r in rows]

    def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(
                        student_id, calendar_date, status, resolved_center_id, resolved_center_name,
                        distance_m, is_verified, verified_at, verification_method, verified_by,
                        verification_notes, window_name, expected_start, expected_end, checked_in_at,
                        version, created_at, updated_at)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (record.student_id, record.calendar_date) + self._mutable_values(record)
                    + (0, to_db_datetime(record.created_at), to_db_datetime(record.updated_at)),
                )
                attendance_id = int(cur.lastrowid)
                self._append_evidence(cur, attendance_id, record.evidence, start=0)
        except mysql.connector.errors.IntegrityError as e:
            if is_duplicate_key(e):
                raise DuplicateRecordError(
                    f"Attendance for {record.student_id} on {record.calendar_date} already exists"
                ) from e
            raise
        return replace(record, attendance_id=attendance_id, version=0)

    def update(self, record: AttendanceRecord, *, expected_version: int) -> AttendanceRecord:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET status=%s, resolved_center_id=%s, resolved_center_name=%s, distance_m=%s,
                    is_verified=%s, verified_at=%s, verification_method=%s, verified_by=%s,
                    verification_notes=%s, window_name=%s, expected_start=%s, expected_end=%s,
                    checked_in_at=%s, updated_at=%s, version=version+1
                WHERE attendance_id=%s AND version=%s
                """,
                self._mutable_values(record)
                + (to_db_datetime(record.updated_at), int(record.attendance_id), int(expected_version)),
            )
            if cur.rowcount == 0:
                raise ConcurrencyConflictError(
                    f"Attendance #{record.attendance_id} changed since version {expected_version}"
                )

            cur.execute(
                "SELECT source_message_id FROM attendance_evidence WHERE attendance_id=%s",
                (int(record.attendance_id),),
            )
            stored = {row["source_message_id"] for row in fetchall(cur)}
            new_items = [e for e in record.evidence if e.source_message_id not in stored]
            self._append_evidence(cur, int(record.attendance_id), new_items, start=len(stored))

        return replace(record, version=int(expected_version) + 1)

    @staticmethod
    def _mutable_values(record: AttendanceRecord) -> tuple:
        v = record.verification
        w = record.time_window or TimeWindowInfo(name=None)
        return (
            record.status.value,
            record.resolved_center_id,
            record.resolved_center_name,
            record.distance_m,
            1 if v.is_verified else 0,
            to_db_datetime(v.verified_at),
            v.method.value if v.method else None,
            v.verified_by,
            v.notes,
            w.name,
            w.expected_start,
            w.expected_end,
            to_db_datetime(record.checked_in_at),
        )

    @staticmethod
    def _append_evidence(cur, attendance_id: int, items: Sequence[Evidence], *, start: int) -> None:
        for position, e in enumerate(items, start=start):
            cur.execute(
                """
                INSERT INTO attendance_evidence(
                    attendance_id, source_message_id, latitude, longitude, precision_hint,
                    accuracy_m, observed_at, captured_at, position)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    attendance_id,
                    e.source_message_id,
                    e.coordinate.latitude if e.coordinate else None,
                    e.coordinate.longitude if e.coordinate else None,
                    e.precision_hint.value,
                    e.accuracy_m,
                    to_db_datetime(e.timestamp),
                    e.captured_at.replace(tzinfo=None) if e.captured_at else None,
                    position,
                ),
            )

    @staticmethod
    def _load_evidence(cur, attendance_id: int) -> List[Evidence]:
        cur.execute(
            """
            SELECT source_message_id, latitude, longitude, precision_hint, accuracy_m, observed_at, captured_at
            FROM attendance_evidence
            WHERE attendance_id=%s
            ORDER BY position ASC, evidence_id ASC
            """,
            (attendance_id,),
        )
        items = []
        for r in fetchall(cur):
            coordinate = None
            if r.get("latitude") is not None and r.get("longitude") is not None:
                coordinate = Coordinate(latitude=float(r["latitude"]), longitude=float(r["longitude"]))
            items.append(
                Evidence(
                    source_message_id=r["source_message_id"],
                    timestamp=from_db_datetime(r["observed_at"]),
                    precision_hint=PrecisionHint(r["precision_hint"]),
                    coordinate=coordinate,
                    accuracy_m=float(r["accuracy_m"]) if r.get("accuracy_m") is not None else None,
                    captured_at=r.get("captured_at"),
                )
            )
        return items

    @staticmethod
    def _to_record(r: Dict, evidence: Sequence[Evidence]) -> AttendanceRecord:
        method = r.get("verification_method")
        time_window = None
        if r.get("window_name") or r.get("expected_start"):
            time_window = TimeWindowInfo(
                name=r.get("window_name"),
                expected_start=r.get("expected_start"),
                expected_end=r.get("expected_end"),
            )
        return AttendanceRecord(
            attendance_id=int(r["attendance_id"]),
            student_id=str(r["student_id"]),
            calendar_date=r["calendar_date"],
            status=AttendanceStatus(r["status"]),
            resolved_center_id=r.get("resolved_center_id"),
            resolved_center_name=r.get("resolved_center_name"),
            distance_m=float(r["distance_m"]) if r.get("distance_m") is not None else None,
            verification=Verification(
                is_verified=bool(r["is_verified"]),
                verified_at=from_db_datetime(r.get("verified_at")),
                method=VerificationMethod(method) if method else None,
                verified_by=r.get("verified_by"),
                notes=r.get("verification_notes"),
            ),
            time_window=time_window,
            checked_in_at=from_db_datetime(r.get("checked_in_at")),
            evidence=tuple(evidence),
            version=int(r["version"]),
            created_at=from_db_datetime(r.get("created_at")),
            updated_at=from_db_datetime(r.get("updated_at")),
        )
