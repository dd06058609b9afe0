from __future__ import annotations

from typing import Optional, Protocol

from .model import Student


class StudentRepository(Protocol):
    def get_by_id(self, student_id: str) -> Optional[Student]:
        raise NotImplementedError

    def find_by_phone(self, phone: str) -> Optional[Student]:
        """Exact match first, then a match on the trailing digits.

        Transports prefix numbers with country codes inconsistently, so
        ``919876543210`` must find a student stored as ``9876543210``.
        """

        raise NotImplementedError
