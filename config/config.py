import json
import os


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


def _env_windows(name: str, default: dict) -> dict:
    # JSON object: {"morning": {"start": "09:00", "end": "13:00"}, ...}
    raw = os.environ.get(name)
    return json.loads(raw) if raw else default


class Config:
    """Values shared by every environment; each settings module starts from these."""

    SECRET_KEY = os.environ.get("SECRET_KEY") or "attendance-verifier-secret"

    DB_USER = os.environ.get("DB_USER", "root")
    DB_PASSWORD = os.environ.get("DB_PASSWORD", "")
    DB_HOST = os.environ.get("DB_HOST", "localhost")
    DB_PORT = _env_int("DB_PORT", 3306)
    DB_NAME = os.environ.get("DB_NAME", "attendance_verifier")
    DB_CONNECTION_TIMEOUT = _env_int("DB_CONNECTION_TIMEOUT", 5)

    TIMEZONE = os.environ.get("TIMEZONE", "Asia/Kolkata")
    LATE_GRACE_MINUTES = _env_int("LATE_GRACE_MINUTES", 15)
    DEFAULT_TIME_WINDOWS = _env_windows(
        "DEFAULT_TIME_WINDOWS",
        {
            "morning": {"start": "09:00", "end": "13:00"},
            "afternoon": {"start": "14:00", "end": "18:00"},
        },
    )

    PERSISTENCE_MAX_RETRIES = _env_int("PERSISTENCE_MAX_RETRIES", 3)
    RETRY_BACKOFF_SECONDS = _env_float("RETRY_BACKOFF_SECONDS", 0.05)
    DIRECTORY_REFRESH_SECONDS = _env_float("DIRECTORY_REFRESH_SECONDS", 300)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    @classmethod
    def db_config(cls, **overrides) -> dict:
        config = {
            "host": cls.DB_HOST,
            "port": cls.DB_PORT,
            "user": cls.DB_USER,
            "password": cls.DB_PASSWORD,
            "database": cls.DB_NAME,
            "connection_timeout": cls.DB_CONNECTION_TIMEOUT,
        }
        config.update(overrides)
        return config
