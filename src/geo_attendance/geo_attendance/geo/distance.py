"""Great-circle distance and geofence checks.

All angles are in degrees and all distances in meters. Nothing here rounds:
rounding is a presentation concern of the caller.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Type

from ..common.validators import as_finite_float
from ..core.constants import EARTH_RADIUS_M
from ..core.exceptions import ValidationError
from .model import Coordinate, RangeCheck


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two points.

    NaN inputs propagate to a NaN result; range checking is up to the caller
    (see ``validate_coordinate``).
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_between(a: Coordinate, b: Coordinate) -> float:
    return distance_meters(a.latitude, a.longitude, b.latitude, b.longitude)


def is_within_range(point: Coordinate, reference: Coordinate, max_distance_m: float) -> RangeCheck:
    """Inclusive geofence test: a point exactly on the boundary is inside."""
    distance = distance_between(reference, point)
    return RangeCheck(within=distance <= max_distance_m, distance_m=distance)


def validate_coordinate(
    value: Any,
    field_name: str = "location",
    *,
    error: Type[ValidationError] = ValidationError,
) -> Coordinate:
    """Parse a ``[longitude, latitude]`` pair into a Coordinate.

    Accepts the pair itself or a mapping holding it under ``coordinates``
    (the GeoJSON-ish shape clients send). Anything else raises ``error``.
    """
    pair = value.get("coordinates") if isinstance(value, Mapping) else value
    if not isinstance(pair, (list, tuple)) or len(pair) != 2:
        raise error(f"{field_name} must be a [longitude, latitude] pair")

    longitude = as_finite_float(pair[0])
    latitude = as_finite_float(pair[1])
    if longitude is None or latitude is None:
        raise error(f"{field_name} coordinates must be numbers")
    if not -180.0 <= longitude <= 180.0:
        raise error(f"{field_name} longitude must be within [-180, 180]")
    if not -90.0 <= latitude <= 90.0:
        raise error(f"{field_name} latitude must be within [-90, 90]")
    return Coordinate(longitude=longitude, latitude=latitude)
