from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ...geo.model import RangeCheck
from ...sessions.model import AttendanceSession
from .base import AttendanceStrategy, StatusDecision


class OutOfRangeStrategy(AttendanceStrategy):
    """Outside the geofence: recorded, but not verified."""

    def decide(self, *, check: RangeCheck, session: AttendanceSession, now: datetime) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.OUT_OF_RANGE, verified=False)
