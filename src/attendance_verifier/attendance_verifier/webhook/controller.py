from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from ..attendance.model import AttendanceRecord
from ..core.exceptions import (
    DirectoryUnavailableError,
    PersistenceTimeoutError,
    RecordNotFoundError,
    RetryExhaustedError,
    ValidationError,
)
from ..container import Container

logger = logging.getLogger(__name__)


def _record_json(record: AttendanceRecord) -> dict:
    v = record.verification
    w = record.time_window
    return {
        "id": record.attendance_id,
        "studentId": record.student_id,
        "date": record.calendar_date.isoformat(),
        "status": record.status.value,
        "center": {"id": record.resolved_center_id, "name": record.resolved_center_name},
        "distance": round(record.distance_m, 1) if record.distance_m is not None else None,
        "verification": {
            "isVerified": v.is_verified,
            "verifiedAt": v.verified_at.isoformat() if v.verified_at else None,
            "method": v.method.value if v.method else None,
            "verifiedBy": v.verified_by,
            "notes": v.notes,
        },
        "timeWindow": {
            "name": w.name,
            "expectedStart": w.expected_start,
            "expectedEnd": w.expected_end,
        } if w else None,
        "checkedInAt": record.checked_in_at.isoformat() if record.checked_in_at else None,
        "evidenceCount": len(record.evidence),
        "version": record.version,
    }


def register(app: Flask, container: Container) -> None:
    def _error(message: str, status: int):
        return jsonify({"success": False, "message": message}), status

    @app.route("/api/webhook/whatsapp", methods=["POST"], endpoint="webhook_whatsapp")
    def webhook_whatsapp():
        payload = request.get_json(silent=True)
        if payload is None:
            return _error("Request body must be JSON", 400)
        try:
            replies = container.checkin_service.handle_webhook(payload)
        except ValidationError as e:
            return _error(str(e), 400)
        except (RetryExhaustedError, PersistenceTimeoutError) as e:
            # The provider redelivers on non-2xx; evidence already stored is skipped.
            logger.warning("Webhook not processed, asking for redelivery: %s", e)
            return _error("Attendance could not be saved, please retry", 503)
        return jsonify({"success": True, "replies": [r.to_dict() for r in replies]}), 200

    @app.route("/api/attendance/<int:attendance_id>/verify", methods=["PUT"], endpoint="attendance_verify")
    def attendance_verify(attendance_id: int):
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            return _error("status is required", 400)
        try:
            record = container.checkin_service.verify(
                attendance_id,
                status,
                data.get("notes"),
                verified_by=str(data.get("verifiedBy") or "admin"),
            )
        except ValidationError as e:
            return _error(str(e), 400)
        except RecordNotFoundError as e:
            return _error(str(e), 404)
        except RetryExhaustedError as e:
            return _error(str(e), 503)
        return jsonify({"success": True, "data": _record_json(record)}), 200

    @app.route("/api/attendance/<int:attendance_id>/reset", methods=["POST"], endpoint="attendance_reset")
    def attendance_reset(attendance_id: int):
        try:
            record = container.checkin_service.reset(attendance_id)
        except RecordNotFoundError as e:
            return _error(str(e), 404)
        except RetryExhaustedError as e:
            return _error(str(e), 503)
        return jsonify({"success": True, "data": _record_json(record)}), 200

    @app.route("/api/centers/refresh", methods=["POST"], endpoint="centers_refresh")
    def centers_refresh():
        try:
            directory = container.directory.refresh()
        except DirectoryUnavailableError as e:
            logger.warning("Manual center refresh failed: %s", e)
            return _error(str(e), 503)
        return jsonify(
            {
                "success": True,
                "data": {
                    "version": directory.version,
                    "centers": len(directory),
                    "loadedAt": directory.loaded_at.isoformat() if directory.loaded_at else None,
                },
            }
        ), 200
