import os

from .config import Config

SECRET_KEY = "test-secret"

DB_CONFIG = Config.db_config(database=os.getenv("DB_NAME", "attendance_verifier_test"))

DEBUG = False
TESTING = True

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

TIMEZONE = "Asia/Kolkata"
LATE_GRACE_MINUTES = 15
DEFAULT_TIME_WINDOWS = {
    "morning": {"start": "09:00", "end": "13:00"},
    "afternoon": {"start": "14:00", "end": "18:00"},
}

PERSISTENCE_MAX_RETRIES = 3
RETRY_BACKOFF_SECONDS = 0.0
DIRECTORY_REFRESH_SECONDS = 300

LOG_LEVEL = "WARNING"
