from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import AttendanceStatus
from ..geo.model import Coordinate
from ..sessions.model import AttendanceSession


@dataclass(frozen=True)
class DeviceInfo:
    """Diagnostic metadata about the submitting device. Never used for verification."""

    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    platform: Optional[str] = None
    os: Optional[str] = None
    browser: Optional[str] = None


@dataclass(frozen=True)
class RecordedLocation:
    coordinate: Coordinate
    distance_m: float
    accuracy_m: Optional[float] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one participant's attendance for one session. Immutable."""

    record_id: int
    participant_id: str
    session_id: str
    marked_at: datetime
    location: RecordedLocation
    status: AttendanceStatus
    verified: bool
    device: DeviceInfo = DeviceInfo()


@dataclass(frozen=True)
class NewAttendanceRecord:
    participant_id: str
    session_id: str
    marked_at: datetime
    location: RecordedLocation
    status: AttendanceStatus
    verified: bool
    device: DeviceInfo = DeviceInfo()


@dataclass(frozen=True)
class SubmittedLocation:
    """Validated participant location."""

    coordinate: Coordinate
    accuracy_m: Optional[float] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class SessionRef:
    """How a participant points at a session: by id or by code, never both."""

    session_id: Optional[str] = None
    session_code: Optional[str] = None

    @classmethod
    def by_id(cls, session_id: str) -> "SessionRef":
        return cls(session_id=session_id)

    @classmethod
    def by_code(cls, session_code: str) -> "SessionRef":
        return cls(session_code=session_code)


@dataclass(frozen=True)
class AttendanceOutcome:
    record: AttendanceRecord
    session: AttendanceSession
    distance_m: float
    allowed_radius_m: float

    @property
    def verified(self) -> bool:
        return self.record.verified


@dataclass(frozen=True)
class HistoryEntry:
    """Read-model: a participant's record joined with its session's display fields."""

    record: AttendanceRecord
    subject: str
    session_code: str
    owner_id: str
    expires_at: datetime
