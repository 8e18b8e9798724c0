from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import SessionFilter, SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..geo.model import Coordinate
from .model import AttendanceSession, Geofence, NewSession
from .repository import SessionRepository

_COLUMNS = """
    session_id, session_code, owner_id, subject, center_lon, center_lat,
    location_name, radius_m, status, attendance_count, created_at, expires_at
"""


def _row_to_session(r: Dict[str, Any]) -> AttendanceSession:
    return AttendanceSession(
        session_id=r["session_id"],
        session_code=r["session_code"],
        owner_id=r["owner_id"],
        subject=r["subject"],
        geofence=Geofence(
            center=Coordinate(longitude=float(r["center_lon"]), latitude=float(r["center_lat"])),
            radius_m=float(r["radius_m"]),
            name=r["location_name"],
        ),
        created_at=r["created_at"],
        expires_at=r["expires_at"],
        status=SessionStatus(r["status"]),
        attendance_count=int(r.get("attendance_count") or 0),
    )


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def code_exists(self, session_code: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 AS hit FROM attendance_sessions WHERE session_code=%s", (session_code,))
            return fetchone(cur) is not None

    def insert(self, new: NewSession, *, session_code: str) -> AttendanceSession:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_sessions(
                    session_id, session_code, owner_id, subject, center_lon, center_lat,
                    location_name, radius_m, status, attendance_count, created_at, expires_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,0,%s,%s)
                """,
                (
                    new.session_id,
                    session_code,
                    new.owner_id,
                    new.subject,
                    new.geofence.center.longitude,
                    new.geofence.center.latitude,
                    new.geofence.name,
                    new.geofence.radius_m,
                    SessionStatus.ACTIVE.value,
                    new.created_at,
                    new.expires_at,
                ),
            )
        return AttendanceSession(
            session_id=new.session_id,
            session_code=session_code,
            owner_id=new.owner_id,
            subject=new.subject,
            geofence=new.geofence,
            created_at=new.created_at,
            expires_at=new.expires_at,
            status=SessionStatus.ACTIVE,
            attendance_count=0,
        )

    def get_by_id(self, session_id: str) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_sessions WHERE session_id=%s", (session_id,))
            r = fetchone(cur)
            return _row_to_session(r) if r else None

    def get_active_by_code(self, session_code: str, *, now: datetime) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_sessions
                WHERE session_code=%s AND status=%s AND expires_at > %s
                """,
                (session_code, SessionStatus.ACTIVE.value, now),
            )
            r = fetchone(cur)
            return _row_to_session(r) if r else None

    def mark_ended(self, session_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_sessions SET status=%s WHERE session_id=%s AND status=%s",
                (SessionStatus.ENDED.value, session_id, SessionStatus.ACTIVE.value),
            )
            return cur.rowcount > 0

    def delete(self, session_id: str) -> bool:
        # attendance_records rows go with it (ON DELETE CASCADE).
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_sessions WHERE session_id=%s", (session_id,))
            return cur.rowcount > 0

    def list_for_owner(
        self,
        owner_id: str,
        *,
        which: SessionFilter,
        now: datetime,
        limit: int,
        offset: int = 0,
    ) -> Sequence[AttendanceSession]:
        clauses = ["owner_id=%s"]
        params: list[object] = [owner_id]

        if which == SessionFilter.ACTIVE:
            clauses.append("status=%s AND expires_at > %s")
            params.extend([SessionStatus.ACTIVE.value, now])
        elif which == SessionFilter.PAST:
            clauses.append("(status=%s OR expires_at <= %s)")
            params.extend([SessionStatus.ENDED.value, now])

        where = " AND ".join(clauses)
        params.extend([int(limit), int(offset)])

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_sessions
                WHERE {where}
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params),
            )
            return [_row_to_session(r) for r in fetchall(cur)]

    def increment_attendance(self, session_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_sessions SET attendance_count = attendance_count + 1 WHERE session_id=%s",
                (session_id,),
            )
            return cur.rowcount > 0
