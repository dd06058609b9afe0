import os

from .config import Config

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = Config.db_config()

DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

TIMEZONE = Config.TIMEZONE
LATE_GRACE_MINUTES = Config.LATE_GRACE_MINUTES
DEFAULT_TIME_WINDOWS = Config.DEFAULT_TIME_WINDOWS

PERSISTENCE_MAX_RETRIES = Config.PERSISTENCE_MAX_RETRIES
RETRY_BACKOFF_SECONDS = Config.RETRY_BACKOFF_SECONDS
DIRECTORY_REFRESH_SECONDS = Config.DIRECTORY_REFRESH_SECONDS

LOG_LEVEL = Config.LOG_LEVEL
