from __future__ import annotations

import re
from typing import Optional

from ..core.constants import PHONE_MATCH_DIGITS
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Student
from .repository import StudentRepository


def _row_to_student(r: dict) -> Student:
    return Student(
        student_id=str(r["student_id"]),
        name=r["name"],
        phone=r["phone"],
        assigned_center=r.get("assigned_center") or None,
        is_active=bool(r["is_active"]),
    )


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, student_id: str) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id, name, phone, assigned_center, is_active FROM students WHERE student_id=%s",
                (str(student_id),),
            )
            r = fetchone(cur)
            return _row_to_student(r) if r else None

    def find_by_phone(self, phone: str) -> Optional[Student]:
        digits = re.sub(r"\D", "", phone or "")
        if not digits:
            return None
        suffix = digits[-PHONE_MATCH_DIGITS:]

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT student_id, name, phone, assigned_center, is_active
                FROM students
                WHERE phone=%s OR phone=%s OR phone LIKE %s
                ORDER BY (phone=%s OR phone=%s) DESC, student_id ASC
                """,
                (phone, digits, f"%{suffix}", phone, digits),
            )
            rows = fetchall(cur)
            return _row_to_student(rows[0]) if rows else None
