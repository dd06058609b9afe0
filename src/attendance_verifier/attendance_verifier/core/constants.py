"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_MEAN_RADIUS_M = 6_371_008.8
COORDINATE_DECIMALS = 6

DEFAULT_CENTER_RADIUS_M = 2000
DEFAULT_LATE_GRACE_MINUTES = 15
DEFAULT_TIMEZONE = "Asia/Kolkata"

# Inherited by centers that declare no windows of their own.
DEFAULT_TIME_WINDOWS = {
    "morning": {"start": "09:00", "end": "13:00"},
    "afternoon": {"start": "14:00", "end": "18:00"},
}

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.05
DEFAULT_DIRECTORY_REFRESH_SECONDS = 300

PHONE_MATCH_DIGITS = 10
