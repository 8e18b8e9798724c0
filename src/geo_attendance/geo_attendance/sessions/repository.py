from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import SessionFilter
from .model import AttendanceSession, NewSession


class SessionRepository(Protocol):
    def code_exists(self, session_code: str) -> bool:
        raise NotImplementedError

    def insert(self, new: NewSession, *, session_code: str) -> AttendanceSession:
        """Insert a session.

        Raises DuplicateKeyError when session_code is already taken.
        """

        raise NotImplementedError

    def get_by_id(self, session_id: str) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def get_active_by_code(self, session_code: str, *, now: datetime) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def mark_ended(self, session_id: str) -> bool:
        raise NotImplementedError

    def delete(self, session_id: str) -> bool:
        raise NotImplementedError

    def list_for_owner(
        self,
        owner_id: str,
        *,
        which: SessionFilter,
        now: datetime,
        limit: int,
        offset: int = 0,
    ) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def increment_attendance(self, session_id: str) -> bool:
        raise NotImplementedError
