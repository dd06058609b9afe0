from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import PersistenceTimeoutError
from .connection import DatabaseConnection

# Errors that mean "the server did not answer in time / the link dropped".
_TRANSIENT_ERRORS = (mysql.connector.errors.OperationalError, mysql.connector.errors.InterfaceError)


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    try:
        conn = conn_factory.connect()
    except _TRANSIENT_ERRORS as e:
        raise PersistenceTimeoutError(f"Database unreachable: {e}") from e
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except _TRANSIENT_ERRORS as e:
        _safe_rollback(conn)
        raise PersistenceTimeoutError(f"Database call failed: {e}") from e
    except Exception:
        _safe_rollback(conn)
        raise
    finally:
        conn.close()


def _safe_rollback(conn) -> None:
    try:
        conn.rollback()
    except _TRANSIENT_ERRORS:
        # The connection is already gone; the server discards the transaction.
        pass


def is_duplicate_key(error: Exception) -> bool:
    return getattr(error, "errno", None) == errorcode.ER_DUP_ENTRY


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def to_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """DATETIME columns hold naive UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def normalize_mysql_time(value: Any) -> Optional[time]:
    """Normalize MySQL TIME values across connector implementations.

    mysql-connector can return TIME as:
    - datetime.time
    - datetime.timedelta
    - string (e.g. '08:30:00')
    """

    if value is None:
        return None

    if isinstance(value, time):
        return value

    if isinstance(value, timedelta):
        total_seconds = int(value.total_seconds()) % 86400
        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        seconds = total_seconds % 60
        return time(hour=hours, minute=minutes, second=seconds)

    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) < 2:
            raise ValueError(f"Invalid time string: {value!r}")
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(parts[2]) if len(parts) >= 3 and parts[2] else 0
        return time(hour=hours, minute=minutes, second=seconds)

    raise TypeError(f"Unsupported MySQL TIME value type: {type(value)!r}")
