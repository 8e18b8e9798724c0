from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.factory import GeofenceStatusFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .core.constants import DEFAULT_DURATION_MINUTES, DEFAULT_RADIUS_M
from .database.connection import DBConfig, DatabaseConnection
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.repository import SessionRepository
from .sessions.service import SessionService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    sessions_repo: SessionRepository
    attendance_repo: AttendanceRepository

    session_service: SessionService
    attendance_service: AttendanceService


def assemble(
    *,
    sessions_repo: SessionRepository,
    attendance_repo: AttendanceRepository,
    conn: Optional[DatabaseConnection] = None,
    **service_options,
) -> Container:
    """Wire services around already-built repositories."""

    session_service = SessionService(sessions_repo, **service_options)
    attendance_service = AttendanceService(
        attendance_repo,
        session_service,
        status_factory=GeofenceStatusFactory(),
    )
    return Container(
        conn=conn,
        sessions_repo=sessions_repo,
        attendance_repo=attendance_repo,
        session_service=session_service,
        attendance_service=attendance_service,
    )


def build_container(
    *,
    db_config: dict,
    default_radius_m: float = DEFAULT_RADIUS_M,
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
) -> Container:
    conn = DatabaseConnection(DBConfig.from_mapping(db_config))
    return assemble(
        sessions_repo=MySQLSessionRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        conn=conn,
        default_radius_m=default_radius_m,
        default_duration_minutes=default_duration_minutes,
    )
