from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..core.enums import SessionStatus
from ..geo.model import Coordinate


@dataclass(frozen=True)
class Geofence:
    center: Coordinate
    radius_m: float
    name: str


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: a time-boxed, geofenced attendance session."""

    session_id: str
    session_code: str
    owner_id: str
    subject: str
    geofence: Geofence
    created_at: datetime
    expires_at: datetime
    status: SessionStatus
    attendance_count: int = 0

    def is_active(self, now: datetime) -> bool:
        return self.status == SessionStatus.ACTIVE and now < self.expires_at

    def effective_status(self, now: datetime) -> SessionStatus:
        """Stored status, downgraded to ENDED once expires_at has passed."""
        return SessionStatus.ACTIVE if self.is_active(now) else SessionStatus.ENDED


@dataclass(frozen=True)
class NewSession:
    """Validated values for a session insert (code is chosen per attempt)."""

    session_id: str
    owner_id: str
    subject: str
    geofence: Geofence
    created_at: datetime
    expires_at: datetime
