from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Mapping, Optional

from ..attendance.ledger import AttendanceLedger
from ..attendance.model import AttendanceOutcome, AttendanceRecord
from ..common.datetime_utils import get_zone, to_local
from ..core.constants import DEFAULT_TIMEZONE
from ..core.enums import AttendanceStatus
from ..core.exceptions import InputError
from ..evidence.ingestor import EvidenceIngestor
from ..evidence.model import InboundMessage
from ..notifications.templates import NotificationComposer
from ..students.model import Eligibility
from ..students.repository import StudentRepository

logger = logging.getLogger(__name__)

_HELP_WORDS = ("help", "?")


@dataclass(frozen=True)
class Reply:
    to: str
    key: str
    text: str
    message_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"to": self.to, "key": self.key, "text": self.text}


class CheckInService:
    """Handles inbound messages from students and returns the replies to send."""

    def __init__(
        self,
        students: StudentRepository,
        ingestor: EvidenceIngestor,
        ledger: AttendanceLedger,
        composer: NotificationComposer | None = None,
        *,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self._students = students
        self._ingestor = ingestor
        self._ledger = ledger
        self._composer = composer or NotificationComposer()
        self._zone = get_zone(timezone)

    def handle_webhook(self, payload: Mapping[str, Any]) -> List[Reply]:
        return [self.handle_message(m) for m in self._ingestor.parse_webhook(payload)]

    def handle_message(self, message: InboundMessage) -> Reply:
        student = self._students.find_by_phone(message.sender)
        if student is None:
            logger.info("No student registered for %s", message.sender)
            return self._reply(message, "student_not_registered")
        if not student.is_active:
            return self._reply(message, "student_inactive")

        if message.message_type == "location" or message.carries_photo:
            try:
                evidence = self._ingestor.to_evidence(message)
            except InputError as e:
                logger.info("Unreadable evidence in message %s: %s", message.message_id, e)
                return self._reply(message, "location_unreadable")
            outcome = self._ledger.apply_evidence(student.student_id, evidence, student.eligibility)
            return self._reply_for_outcome(message, outcome)

        if message.message_type == "button_reply":
            return self._reply_for_button(message, student.student_id)

        if message.message_type == "document":
            return self._reply(message, "send_image")

        if message.message_type == "text":
            text = (message.text or "").lower()
            if any(word in text for word in _HELP_WORDS):
                return self._reply(message, "help")
            return self._reply(message, "how_to_checkin")

        return self._reply(message, "how_to_checkin")

    # ---- administrative actions -------------------------------------------

    def verify(
        self,
        attendance_id: int,
        status: AttendanceStatus,
        notes: Optional[str] = None,
        *,
        verified_by: str = "admin",
    ) -> AttendanceRecord:
        return self._ledger.manual_verify(attendance_id, status, notes, verified_by=verified_by)

    def reset(self, attendance_id: int) -> AttendanceRecord:
        record = self._ledger.get_record(attendance_id)
        return self._ledger.reset_verification(attendance_id, self._eligibility_for(record.student_id))

    def reconcile(self, student_id: str, calendar_date: date) -> Optional[AttendanceRecord]:
        return self._ledger.reconcile(student_id, calendar_date, self._eligibility_for(student_id))

    def reconcile_pending(self, calendar_date: date) -> List[AttendanceRecord]:
        """Retry every record of the day that is still pending."""
        results = []
        for record in self._ledger.pending_records(calendar_date):
            reconciled = self.reconcile(record.student_id, calendar_date)
            if reconciled is not None:
                results.append(reconciled)
        logger.info("Reconciled %s pending record(s) for %s", len(results), calendar_date.isoformat())
        return results

    # ---- helpers ------------------------------------------------------------

    def _reply_for_button(self, message: InboundMessage, student_id: str) -> Reply:
        if message.button_payload == "check_status":
            record = self._ledger.record_for(student_id)
            if record is None:
                return self._reply(
                    message, "attendance_status", date=self._ledger.today(), status=AttendanceStatus.ABSENT
                )
            return self._reply(message, "attendance_status", date=record.calendar_date, status=record.status)
        return self._reply(message, "how_to_checkin")

    def _eligibility_for(self, student_id: str) -> Eligibility:
        student = self._students.get_by_id(student_id)
        return student.eligibility if student else Eligibility.any_center()

    def _reply_for_outcome(self, message: InboundMessage, outcome: AttendanceOutcome) -> Reply:
        record = outcome.record
        checked_in_at = record.checked_in_at
        return self._reply(
            message,
            outcome.notification_key,
            date=record.calendar_date,
            time=to_local(checked_in_at, self._zone) if checked_in_at else None,
            center=outcome.center_name,
            distance_m=outcome.distance_m,
            status=record.status,
        )

    def _reply(self, message: InboundMessage, key: str, **context: Any) -> Reply:
        return Reply(
            to=message.sender,
            key=key,
            text=self._composer.compose(key, **context),
            message_id=message.message_id,
        )
