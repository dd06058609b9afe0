import logging
import math
from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

from src.attendance_verifier.attendance_verifier.core.enums import (
    AttendanceStatus,
    OutcomeKind,
    PrecisionHint,
    VerificationMethod,
)
from src.attendance_verifier.attendance_verifier.core.exceptions import (
    ConcurrencyConflictError,
    DuplicateRecordError,
    PersistenceTimeoutError,
    RecordNotFoundError,
    RetryExhaustedError,
    ValidationError,
)
from src.attendance_verifier.attendance_verifier.evidence.model import Evidence
from src.attendance_verifier.attendance_verifier.geo.distance import Coordinate
from src.attendance_verifier.attendance_verifier.students.model import Eligibility

DAY = date(2025, 1, 6)
FAR = Coordinate(28.7500, 77.2090)


def test_on_time_hit_marks_present(ledger, make_evidence, attendance_repo):
    outcome = ledger.apply_evidence("S1", make_evidence("m1", 9, 5))

    record = outcome.record
    assert outcome.kind == OutcomeKind.VERIFIED
    assert outcome.notification_key == "attendance_present"
    assert record.status == AttendanceStatus.PRESENT
    assert record.calendar_date == DAY
    assert record.resolved_center_name == "Main"
    assert record.distance_m < 2000
    assert record.verification.is_verified is True
    assert record.verification.method == VerificationMethod.AUTO_GEO
    assert record.time_window.name == "morning"
    assert record.time_window.expected_start == "09:00"
    assert [e.source_message_id for e in record.evidence] == ["m1"]
    assert attendance_repo.get_for_student_and_date("S1", DAY) == record


def test_hit_after_grace_marks_late(ledger, make_evidence):
    outcome = ledger.apply_evidence("S1", make_evidence("m1", 9, 20))

    assert outcome.record.status == AttendanceStatus.LATE
    assert outcome.notification_key == "attendance_late"
    assert outcome.record.verification.notes == "20 min after morning start (grace 15 min)"


def test_hit_outside_every_window_is_late_without_window(ledger, make_evidence):
    outcome = ledger.apply_evidence("S1", make_evidence("m1", 23, 30))

    assert outcome.record.status == AttendanceStatus.LATE
    assert outcome.record.time_window.name is None
    assert outcome.record.calendar_date == DAY


def test_center_grace_overrides_default(ledger, make_evidence, centers_repo, main_center):
    centers_repo.centers[0] = replace(main_center, late_grace_minutes=30)

    assert ledger.apply_evidence("S1", make_evidence("m1", 9, 20)).record.status == AttendanceStatus.PRESENT


def test_duplicate_evidence_is_idempotent(ledger, make_evidence, attendance_repo):
    first = ledger.apply_evidence("S1", make_evidence("m1", 9, 5))
    writes = attendance_repo.writes

    again = ledger.apply_evidence("S1", make_evidence("m1", 9, 5))

    assert again.kind == OutcomeKind.DUPLICATE
    assert again.notification_key == "duplicate_evidence"
    assert again.record.status == first.record.status
    assert len(again.record.evidence) == 1
    assert attendance_repo.writes == writes


def test_miss_stays_pending_with_diagnostics(ledger, make_evidence):
    outcome = ledger.apply_evidence("S1", make_evidence("m1", coordinate=FAR))

    assert outcome.kind == OutcomeKind.OUTSIDE_RADIUS
    assert outcome.notification_key == "outside_radius"
    assert outcome.center_name == "Main"
    assert 15000 < outcome.distance_m < 15300
    assert outcome.record.status == AttendanceStatus.PENDING_VERIFICATION
    assert outcome.record.verification.is_verified is False
    assert outcome.record.resolved_center_id == "main"


def test_miss_then_hit_verifies_and_keeps_both_evidence(ledger, make_evidence):
    ledger.apply_evidence("S1", make_evidence("m1", 9, 1, coordinate=FAR))
    outcome = ledger.apply_evidence("S1", make_evidence("m2", 9, 5))

    assert outcome.record.status == AttendanceStatus.PRESENT
    assert [e.source_message_id for e in outcome.record.evidence] == ["m1", "m2"]


def test_miss_after_hit_does_not_demote(ledger, make_evidence):
    ledger.apply_evidence("S1", make_evidence("m1", 9, 5))
    outcome = ledger.apply_evidence("S1", make_evidence("m2", 10, 0, coordinate=FAR))

    assert outcome.record.status == AttendanceStatus.PRESENT
    assert outcome.notification_key == "attendance_already_marked"
    assert len(outcome.record.evidence) == 2


def test_later_hit_does_not_change_status(ledger, make_evidence, local_time):
    ledger.apply_evidence("S1", make_evidence("m1", 9, 5))
    outcome = ledger.apply_evidence("S1", make_evidence("m2", 9, 40))

    assert outcome.record.status == AttendanceStatus.PRESENT
    assert outcome.record.checked_in_at == local_time(9, 5)


def test_earlier_hit_delivered_late_promotes_to_present(ledger, make_evidence, local_time):
    assert ledger.apply_evidence("S1", make_evidence("m2", 9, 20)).record.status == AttendanceStatus.LATE

    outcome = ledger.apply_evidence("S1", make_evidence("m1", 9, 5))

    assert outcome.record.status == AttendanceStatus.PRESENT
    assert outcome.record.checked_in_at == local_time(9, 5)


def test_photo_without_location_is_kept_but_not_resolved(ledger, make_evidence):
    outcome = ledger.apply_evidence(
        "S1", make_evidence("p1", coordinate=None, precision=PrecisionHint.PHOTO_EXIF)
    )

    assert outcome.kind == OutcomeKind.NO_LOCATION
    assert outcome.notification_key == "photo_without_location"
    assert outcome.record.status == AttendanceStatus.PENDING_VERIFICATION
    assert outcome.record.has_evidence("p1")


def test_calendar_date_follows_local_zone(ledger):
    # 23:30 UTC on the 5th is 05:00 on the 6th in Asia/Kolkata.
    evidence = Evidence(
        source_message_id="m1",
        timestamp=datetime(2025, 1, 5, 23, 30, tzinfo=timezone.utc),
        precision_hint=PrecisionHint.DEVICE,
        coordinate=Coordinate(28.6150, 77.2100),
    )

    assert ledger.apply_evidence("S1", evidence).record.calendar_date == DAY


def test_naive_timestamp_is_local_wall_clock(ledger):
    evidence = Evidence(
        source_message_id="m1",
        timestamp=datetime(2025, 1, 6, 9, 5),
        precision_hint=PrecisionHint.DEVICE,
        coordinate=Coordinate(28.6150, 77.2100),
    )

    assert ledger.apply_evidence("S1", evidence).record.status == AttendanceStatus.PRESENT


def test_assigned_center_exclusivity(ledger, make_evidence):
    outcome = ledger.apply_evidence("S3", make_evidence("m1"), Eligibility.assigned("North"))

    assert outcome.kind == OutcomeKind.OUTSIDE_RADIUS
    assert outcome.record.status == AttendanceStatus.PENDING_VERIFICATION
    assert outcome.center_name is None
    assert math.isinf(outcome.distance_m)
    assert outcome.record.distance_m is None


def test_directory_unavailable_defers_then_reconcile_verifies(ledger, make_evidence, centers_repo):
    centers_repo.error = PersistenceTimeoutError("db down")

    deferred = ledger.apply_evidence("S1", make_evidence("m1", 9, 5))

    assert deferred.kind == OutcomeKind.DEFERRED
    assert deferred.notification_key == "resolution_deferred"
    assert deferred.record.status == AttendanceStatus.PENDING_VERIFICATION
    assert deferred.record.has_evidence("m1")

    centers_repo.error = None
    reconciled = ledger.reconcile("S1", DAY)

    assert reconciled.status == AttendanceStatus.PRESENT
    assert reconciled.checked_in_at is not None


def test_reconcile_leaves_verified_and_missing_records_alone(ledger, make_evidence):
    assert ledger.reconcile("S1", DAY) is None

    present = ledger.apply_evidence("S1", make_evidence("m1", 9, 5)).record

    assert ledger.reconcile("S1", DAY) == present


def test_manual_absent_is_sticky(ledger, make_evidence):
    record = ledger.apply_evidence("S1", make_evidence("m1", 9, 5)).record

    manual = ledger.manual_verify(record.attendance_id, "absent", "  left early ", verified_by="coordinator-1")
    assert manual.status == AttendanceStatus.ABSENT
    assert manual.verification.method == VerificationMethod.MANUAL_ADMIN
    assert manual.verification.verified_by == "coordinator-1"
    assert manual.verification.notes == "left early"

    outcome = ledger.apply_evidence("S1", make_evidence("m2", 9, 6))

    assert outcome.kind == OutcomeKind.LOCKED
    assert outcome.notification_key == "attendance_already_verified"
    assert outcome.record.status == AttendanceStatus.ABSENT
    assert outcome.record.has_evidence("m2")


def test_manual_verify_rejects_bad_input(ledger, make_evidence):
    record = ledger.apply_evidence("S1", make_evidence("m1", coordinate=FAR)).record

    with pytest.raises(ValidationError):
        ledger.manual_verify(record.attendance_id, "excused")
    with pytest.raises(ValidationError):
        ledger.manual_verify(record.attendance_id, AttendanceStatus.PENDING_VERIFICATION)
    with pytest.raises(RecordNotFoundError):
        ledger.manual_verify(999, AttendanceStatus.PRESENT)


def test_reset_verification_replays_stored_evidence(ledger, make_evidence):
    record = ledger.apply_evidence("S1", make_evidence("m1", 9, 5)).record
    ledger.manual_verify(record.attendance_id, AttendanceStatus.ABSENT)

    reset = ledger.reset_verification(record.attendance_id)

    assert reset.status == AttendanceStatus.PRESENT
    assert reset.verification.method == VerificationMethod.AUTO_GEO
    assert ledger.get_record(record.attendance_id) == reset


def test_reset_without_hits_returns_to_pending(ledger, make_evidence):
    record = ledger.apply_evidence("S1", make_evidence("m1", coordinate=FAR)).record
    ledger.manual_verify(record.attendance_id, AttendanceStatus.PRESENT)

    reset = ledger.reset_verification(record.attendance_id)

    assert reset.status == AttendanceStatus.PENDING_VERIFICATION
    assert reset.verification.is_verified is False


def test_transient_write_failures_are_retried(ledger, make_evidence, attendance_repo):
    attendance_repo.fail_next(PersistenceTimeoutError("timeout"), DuplicateRecordError("race"))

    outcome = ledger.apply_evidence("S1", make_evidence("m1", 9, 5))

    assert outcome.record.status == AttendanceStatus.PRESENT
    assert len(attendance_repo.all()) == 1


def test_retry_exhaustion_is_raised_and_logged(ledger, make_evidence, attendance_repo, caplog):
    attendance_repo.fail_next(*(ConcurrencyConflictError("race") for _ in range(3)))

    with caplog.at_level(logging.ERROR):
        with pytest.raises(RetryExhaustedError):
            ledger.apply_evidence("S1", make_evidence("m1", 9, 5))

    assert "Giving up on evidence m1" in caplog.text
    assert attendance_repo.all() == []
