from __future__ import annotations

import math
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..core.exceptions import ConfigurationError

REJECTION_MESSAGE = (
    "Your attendance could not be verified. Please ensure you are at the training center and try again."
)

HELP_MESSAGE = """Smart Attendance System Help:

1. Share your location to mark attendance
2. Or send a photo as a DOCUMENT (not as image) so its GPS data is kept
3. You must be at your training center

Need more help? Contact your administrator."""

DEFAULT_TEMPLATES: Dict[str, str] = {
    "attendance_present": "Your attendance has been marked successfully for {date} at {time}.",
    "attendance_late": "Your attendance has been marked as LATE for {date} at {time}.",
    "outside_radius": "You are {distance} away from {center}. " + REJECTION_MESSAGE,
    "photo_without_location": (
        "Photo received, but it has no GPS location data. Please share your location, "
        "or send photos as DOCUMENTS to preserve their GPS data."
    ),
    "resolution_deferred": (
        "We received your location but could not check it against the training centers right now. "
        "It will be verified shortly."
    ),
    "attendance_already_verified": "Your attendance for today has already been verified as {status}.",
    "attendance_already_marked": "Your attendance for today has already been marked as {status}.",
    "duplicate_evidence": "This message has already been processed.",
    "student_not_registered": (
        "Sorry, you are not registered in our system. Please contact your administrator."
    ),
    "student_inactive": "Your account is currently inactive. Please contact your administrator.",
    "location_unreadable": "We could not read the location you sent. Please share your current location again.",
    "help": HELP_MESSAGE,
    "how_to_checkin": "Please share your location and send a photo as a document to mark your attendance.",
    "send_image": "Please send an image file or photo to mark your attendance.",
    "attendance_status": "Your attendance status for {date}: {status}.",
}


def format_distance(distance_m: Optional[float]) -> str:
    """Whole meters; no finite candidate reads as "far"."""
    if distance_m is None or not math.isfinite(distance_m):
        return "far"
    return f"{int(round(distance_m))}m"


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def format_time(value: datetime) -> str:
    return value.strftime("%I:%M %p").lstrip("0")


class NotificationComposer:
    """Turns ledger notification keys into message text.

    Deployments may override any template; placeholders are ``{date}``,
    ``{time}``, ``{center}``, ``{distance}`` and ``{status}``.
    """

    def __init__(self, templates: Optional[Mapping[str, str]] = None):
        self._templates = dict(DEFAULT_TEMPLATES)
        if templates:
            self._templates.update(templates)

    def has_template(self, key: str) -> bool:
        return key in self._templates

    def compose(self, key: str, **context: Any) -> str:
        template = self._templates.get(key)
        if template is None:
            raise ConfigurationError(f"No message template for {key!r}")
        return template.format_map(self._render_context(context))

    @staticmethod
    def _render_context(context: Mapping[str, Any]) -> Dict[str, str]:
        status = context.get("status")
        if isinstance(status, Enum):
            status = status.value
        when = context.get("time")
        day = context.get("date") or (when.date() if isinstance(when, datetime) else None)

        return {
            "date": format_date(day) if isinstance(day, date) else str(day or ""),
            "time": format_time(when) if isinstance(when, datetime) else str(when or ""),
            "center": context.get("center") or "any center",
            "distance": format_distance(context.get("distance_m")),
            "status": (status or "pending_verification").replace("_", " "),
        }
