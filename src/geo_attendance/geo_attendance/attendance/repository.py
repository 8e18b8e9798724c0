from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import AttendanceRecord, HistoryEntry, NewAttendanceRecord


class AttendanceRepository(Protocol):
    def get_for_participant_and_session(self, participant_id: str, session_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def insert(self, new: NewAttendanceRecord) -> AttendanceRecord:
        """Atomically insert a record.

        The (participant_id, session_id) uniqueness check and the write are
        one statement; a second insert for the same pair raises
        DuplicateKeyError.
        """

        raise NotImplementedError

    def list_for_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

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
        raise NotImplementedError
