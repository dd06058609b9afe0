from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Normalized attendance status stored in the database."""

    PENDING_VERIFICATION = "pending_verification"
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"


class VerificationMethod(str, Enum):
    AUTO_GEO = "auto_geo"
    MANUAL_ADMIN = "manual_admin"


class PrecisionHint(str, Enum):
    """Where an evidence coordinate came from."""

    DEVICE = "device"
    PHOTO_EXIF = "photo-exif"


class OutcomeKind(str, Enum):
    """Result of applying one evidence item to the ledger."""

    VERIFIED = "verified"
    OUTSIDE_RADIUS = "outside_radius"
    NO_LOCATION = "no_location"
    DEFERRED = "deferred"
    LOCKED = "locked"
    DUPLICATE = "duplicate"
