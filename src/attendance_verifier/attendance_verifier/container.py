from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from .attendance.factory import AttendanceStrategyFactory
from .attendance.ledger import AttendanceLedger
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .centers.directory import CenterDirectoryProvider
from .centers.mysql_center_repository import MySQLCenterRepository
from .centers.repository import CenterRepository
from .centers.resolver import CenterResolver
from .checkin.service import CheckInService
from .common.datetime_utils import now_utc
from .core import constants
from .database.connection import DBConfig, DatabaseConnection
from .evidence.ingestor import EvidenceIngestor
from .notifications.templates import NotificationComposer
from .students.mysql_student_repository import MySQLStudentRepository
from .students.repository import StudentRepository
from .timewindows.classifier import TimeWindowClassifier
from .timewindows.model import TimeWindow, windows_from_mapping


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    students_repo: StudentRepository
    centers_repo: CenterRepository
    attendance_repo: AttendanceRepository

    directory: CenterDirectoryProvider
    ledger: AttendanceLedger
    ingestor: EvidenceIngestor
    composer: NotificationComposer
    checkin_service: CheckInService


def _default_windows(settings: Any) -> tuple[TimeWindow, ...]:
    return windows_from_mapping(getattr(settings, "DEFAULT_TIME_WINDOWS", constants.DEFAULT_TIME_WINDOWS))


def build_services(
    *,
    students: StudentRepository,
    centers: CenterRepository,
    attendance: AttendanceRepository,
    settings: Any = None,
    conn: Optional[DatabaseConnection] = None,
    clock: Callable[[], datetime] = now_utc,
) -> Container:
    """Wire the engine around any repository implementations."""
    timezone = getattr(settings, "TIMEZONE", constants.DEFAULT_TIMEZONE)

    directory = CenterDirectoryProvider(
        centers,
        default_windows=_default_windows(settings),
        max_age_seconds=getattr(settings, "DIRECTORY_REFRESH_SECONDS", constants.DEFAULT_DIRECTORY_REFRESH_SECONDS),
        clock=clock,
    )
    classifier = TimeWindowClassifier()
    ledger = AttendanceLedger(
        attendance,
        directory,
        resolver=CenterResolver(),
        classifier=classifier,
        strategy_factory=AttendanceStrategyFactory(classifier=classifier),
        timezone=timezone,
        grace_minutes=getattr(settings, "LATE_GRACE_MINUTES", constants.DEFAULT_LATE_GRACE_MINUTES),
        max_attempts=getattr(settings, "PERSISTENCE_MAX_RETRIES", constants.DEFAULT_MAX_RETRIES),
        retry_backoff_seconds=getattr(settings, "RETRY_BACKOFF_SECONDS", constants.DEFAULT_RETRY_BACKOFF_SECONDS),
        clock=clock,
    )
    ingestor = EvidenceIngestor(clock=clock)
    composer = NotificationComposer(getattr(settings, "MESSAGE_TEMPLATES", None))
    checkin_service = CheckInService(students, ingestor, ledger, composer, timezone=timezone)

    return Container(
        conn=conn,
        students_repo=students,
        centers_repo=centers,
        attendance_repo=attendance,
        directory=directory,
        ledger=ledger,
        ingestor=ingestor,
        composer=composer,
        checkin_service=checkin_service,
    )


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        connection_timeout=int(db_config.get("connection_timeout", 5)),
    )
    conn = DatabaseConnection.get_instance(config)

    return build_services(
        students=MySQLStudentRepository(conn),
        centers=MySQLCenterRepository(conn),
        attendance=MySQLAttendanceRepository(conn),
        settings=settings,
        conn=conn,
    )
