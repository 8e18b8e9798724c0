from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from ...core.enums import AttendanceStatus
from ...geo.model import RangeCheck
from ...sessions.model import AttendanceSession


@dataclass(frozen=True)
class StatusDecision:
    status: AttendanceStatus
    verified: bool


class AttendanceStrategy(ABC):
    """Strategy Pattern: encapsulate how we decide an attendance status."""

    @abstractmethod
    def decide(self, *, check: RangeCheck, session: AttendanceSession, now: datetime) -> StatusDecision:
        raise NotImplementedError
