import os

from .config import Config

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = Config.db_config()

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

TIMEZONE = Config.TIMEZONE
LATE_GRACE_MINUTES = Config.LATE_GRACE_MINUTES
DEFAULT_TIME_WINDOWS = Config.DEFAULT_TIME_WINDOWS

PERSISTENCE_MAX_RETRIES = Config.PERSISTENCE_MAX_RETRIES
RETRY_BACKOFF_SECONDS = Config.RETRY_BACKOFF_SECONDS
DIRECTORY_REFRESH_SECONDS = Config.DIRECTORY_REFRESH_SECONDS

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
