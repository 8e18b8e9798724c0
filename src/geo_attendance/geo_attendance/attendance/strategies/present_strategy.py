from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ...geo.model import RangeCheck
from ...sessions.model import AttendanceSession
from .base import AttendanceStrategy, StatusDecision


class PresentStrategy(AttendanceStrategy):
    """Inside the geofence while the session is open."""

    def decide(self, *, check: RangeCheck, session: AttendanceSession, now: datetime) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT, verified=True)
