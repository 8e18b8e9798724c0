from __future__ import annotations

from dataclasses import dataclass

from ..geo.model import RangeCheck
from .strategies.base import AttendanceStrategy
from .strategies.out_of_range_strategy import OutOfRangeStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class GeofenceStatusFactory:
    """Factory Pattern: choose the status strategy for a submission.

    There is no grace-period rule yet, so LATE is never chosen.
    """

    def for_submission(self, *, check: RangeCheck) -> AttendanceStrategy:
        if check.within:
            return PresentStrategy()
        return OutOfRangeStrategy()
