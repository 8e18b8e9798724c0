from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Coordinate:
    """A point on Earth in degrees. Serialized as [longitude, latitude]."""

    longitude: float
    latitude: float

    def as_pair(self) -> list[float]:
        return [self.longitude, self.latitude]


@dataclass(frozen=True)
class RangeCheck:
    within: bool
    distance_m: float
