from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..geo.model import Coordinate
from .model import AttendanceRecord, DeviceInfo, HistoryEntry, NewAttendanceRecord, RecordedLocation
from .repository import AttendanceRepository

_COLUMNS = """
    ar.record_id, ar.session_id, ar.participant_id, ar.marked_at, ar.lon, ar.lat,
    ar.accuracy_m, ar.distance_m, ar.location_name, ar.status, ar.verified,
    ar.user_agent, ar.ip_address, ar.platform, ar.os, ar.browser
"""


def _row_to_record(r: Dict[str, Any]) -> AttendanceRecord:
    accuracy = r.get("accuracy_m")
    return AttendanceRecord(
        record_id=int(r["record_id"]),
        participant_id=r["participant_id"],
        session_id=r["session_id"],
        marked_at=r["marked_at"],
        location=RecordedLocation(
            coordinate=Coordinate(longitude=float(r["lon"]), latitude=float(r["lat"])),
            distance_m=float(r["distance_m"]),
            accuracy_m=float(accuracy) if accuracy is not None else None,
            name=r.get("location_name"),
        ),
        status=AttendanceStatus(r["status"]),
        verified=bool(r["verified"]),
        device=DeviceInfo(
            user_agent=r.get("user_agent"),
            ip_address=r.get("ip_address"),
            platform=r.get("platform"),
            os=r.get("os"),
            browser=r.get("browser"),
        ),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_participant_and_session(self, participant_id: str, session_id: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records ar
                WHERE ar.participant_id=%s AND ar.session_id=%s
                """,
                (participant_id, session_id),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def insert(self, new: NewAttendanceRecord) -> AttendanceRecord:
        # uq_participant_session rejects the second of two racing inserts (1062).
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_records(
                    session_id, participant_id, marked_at, lon, lat, accuracy_m, distance_m,
                    location_name, status, verified, user_agent, ip_address, platform, os, browser
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    new.session_id,
                    new.participant_id,
                    new.marked_at,
                    new.location.coordinate.longitude,
                    new.location.coordinate.latitude,
                    new.location.accuracy_m,
                    new.location.distance_m,
                    new.location.name,
                    new.status.value,
                    1 if new.verified else 0,
                    new.device.user_agent,
                    new.device.ip_address,
                    new.device.platform,
                    new.device.os,
                    new.device.browser,
                ),
            )
            record_id = int(cur.lastrowid)

        return AttendanceRecord(
            record_id=record_id,
            participant_id=new.participant_id,
            session_id=new.session_id,
            marked_at=new.marked_at,
            location=new.location,
            status=new.status,
            verified=new.verified,
            device=new.device,
        )

    def list_for_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records ar
                WHERE ar.session_id=%s
                ORDER BY ar.marked_at DESC, ar.record_id DESC
                """,
                (session_id,),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_history_for_participant(
        self,
        participant_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        subject: Optional[str] = None,
        limit: int,
        offset: int = 0,
    ) -> Sequence[HistoryEntry]:
        clauses = ["ar.participant_id=%s"]
        params: list[object] = [participant_id]

        if start is not None:
            clauses.append("ar.marked_at >= %s")
            params.append(start)
        if end is not None:
            clauses.append("ar.marked_at <= %s")
            params.append(end)
        if subject:
            clauses.append("LOWER(s.subject) LIKE %s")
            params.append(f"%{_escape_like(subject.lower())}%")

        where = " AND ".join(clauses)
        params.extend([int(limit), int(offset)])

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}, s.subject, s.session_code, s.owner_id, s.expires_at
                FROM attendance_records ar
                JOIN attendance_sessions s ON s.session_id = ar.session_id
                WHERE {where}
                ORDER BY ar.marked_at DESC, ar.record_id DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params),
            )
            return [
                HistoryEntry(
                    record=_row_to_record(r),
                    subject=r["subject"],
                    session_code=r["session_code"],
                    owner_id=r["owner_id"],
                    expires_at=r["expires_at"],
                )
                for r in fetchall(cur)
            ]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
