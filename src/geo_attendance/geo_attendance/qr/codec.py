"""Session descriptor carried inside the scannable QR code.

The payload is compact JSON so any phone scanner shows something readable.
It holds only what a participant's client needs to find the session and show
context; owner identity is never included. A decoded descriptor is advisory:
the server re-resolves the session before trusting anything in it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..attendance.model import SessionRef
from ..common.datetime_utils import parse_iso_datetime, to_iso
from ..common.validators import as_finite_float
from ..core.constants import QR_PAYLOAD_VERSION
from ..core.exceptions import PayloadDecodeError
from ..geo.model import Coordinate
from ..sessions.model import AttendanceSession


@dataclass(frozen=True)
class SessionDescriptor:
    session_id: str
    session_code: str
    subject: Optional[str] = None
    expires_at: Optional[datetime] = None
    center: Optional[Coordinate] = None
    radius_m: Optional[float] = None
    location_name: Optional[str] = None
    version: int = QR_PAYLOAD_VERSION

    def to_session_ref(self) -> SessionRef:
        return SessionRef.by_id(self.session_id)


def encode(session: AttendanceSession) -> str:
    payload = {
        "v": QR_PAYLOAD_VERSION,
        "sessionId": session.session_id,
        "sessionCode": session.session_code,
        "subject": session.subject,
        "expiresAt": to_iso(session.expires_at),
        "location": {
            "coordinates": session.geofence.center.as_pair(),
            "radius": session.geofence.radius_m,
            "name": session.geofence.name,
        },
    }
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def decode(text: Any) -> SessionDescriptor:
    if not isinstance(text, str) or not text.strip():
        raise PayloadDecodeError()
    try:
        data = json.loads(text)
    except ValueError:
        raise PayloadDecodeError()
    if not isinstance(data, dict):
        raise PayloadDecodeError()

    session_id = _required_str(data, "sessionId")
    session_code = _required_str(data, "sessionCode")

    location = data.get("location") if isinstance(data.get("location"), dict) else {}
    version = data.get("v")

    return SessionDescriptor(
        session_id=session_id,
        session_code=session_code,
        subject=data["subject"] if isinstance(data.get("subject"), str) else None,
        expires_at=_optional_datetime(data.get("expiresAt")),
        center=_optional_coordinate(location.get("coordinates")),
        radius_m=as_finite_float(location.get("radius")),
        location_name=location["name"] if isinstance(location.get("name"), str) else None,
        version=version if isinstance(version, int) and not isinstance(version, bool) else QR_PAYLOAD_VERSION,
    )


def _required_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise PayloadDecodeError(f"QR code is missing {key}")
    return value.strip()


def _optional_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        return None


def _optional_coordinate(value: Any) -> Optional[Coordinate]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    lon = as_finite_float(value[0])
    lat = as_finite_float(value[1])
    if lon is None or lat is None:
        return None
    return Coordinate(longitude=lon, latitude=lat)
