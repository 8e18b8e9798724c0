from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Optional

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date, to_iso
from ..common.http import (
    Identity,
    client_ip,
    error_response,
    json_body,
    offset_arg,
    roles_required,
    server_error_response,
)
from ..common.validators import optional_positive_int, optional_text, reject_unknown_keys
from ..container import Container
from ..core.enums import PARTICIPANT_ROLES
from ..core.exceptions import DomainError, ValidationError
from ..qr import codec
from .model import AttendanceRecord, DeviceInfo, HistoryEntry, SessionRef, SubmittedLocation
from .service import describe_outcome, parse_submitted_location

MARK_FIELDS = {"session_id", "session_code", "qr_payload", "location", "device"}
DEVICE_FIELDS = {"platform", "os", "browser"}


@dataclass(frozen=True)
class MarkAttendanceInput:
    session_ref: SessionRef
    location: SubmittedLocation
    device: DeviceInfo

    @classmethod
    def from_request(cls, body: dict[str, Any], *, user_agent: Optional[str], ip_address: Optional[str]):
        reject_unknown_keys(body, MARK_FIELDS)

        refs = [k for k in ("session_id", "session_code", "qr_payload") if body.get(k) not in (None, "")]
        if len(refs) != 1:
            raise ValidationError("Provide exactly one of session_id, session_code or qr_payload")

        key = refs[0]
        value = body[key]
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be text")
        if key == "qr_payload":
            session_ref = codec.decode(value).to_session_ref()
        elif key == "session_id":
            session_ref = SessionRef.by_id(value)
        else:
            session_ref = SessionRef.by_code(value)

        raw_device = body.get("device") or {}
        if not isinstance(raw_device, dict):
            raise ValidationError("device must be an object")
        reject_unknown_keys(raw_device, DEVICE_FIELDS)

        return cls(
            session_ref=session_ref,
            location=parse_submitted_location(body.get("location")),
            device=DeviceInfo(
                user_agent=user_agent[:512] if user_agent else None,
                ip_address=ip_address[:64] if ip_address else None,
                platform=optional_text(raw_device.get("platform"), "platform", max_len=64),
                os=optional_text(raw_device.get("os"), "os", max_len=64),
                browser=optional_text(raw_device.get("browser"), "browser", max_len=64),
            ),
        )


def record_to_dict(r: AttendanceRecord) -> dict:
    return {
        "record_id": r.record_id,
        "participant_id": r.participant_id,
        "session_id": r.session_id,
        "marked_at": to_iso(r.marked_at),
        "status": r.status.value,
        "verified": r.verified,
        "location": {
            "coordinates": r.location.coordinate.as_pair(),
            "accuracy": r.location.accuracy_m,
            "distance": round(r.location.distance_m, 2),
            "name": r.location.name,
        },
    }


def history_to_dict(h: HistoryEntry) -> dict:
    data = record_to_dict(h.record)
    data["session"] = {
        "subject": h.subject,
        "session_code": h.session_code,
        "expires_at": to_iso(h.expires_at),
    }
    return data


def _date_arg(name: str, *, end_of_day: bool = False) -> Optional[datetime]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        day = parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")
    return datetime.combine(day, time.max if end_of_day else time.min)


def register(app: Flask, container: Container) -> None:
    attendance = container.attendance_service

    @app.route("/api/attendance/mark", methods=["POST"], endpoint="api_mark_attendance")
    @roles_required(PARTICIPANT_ROLES)
    def mark_attendance(identity: Identity):
        try:
            data = MarkAttendanceInput.from_request(
                json_body(),
                user_agent=request.headers.get("User-Agent"),
                ip_address=client_ip(),
            )
            outcome = attendance.mark_attendance(
                participant_id=identity.user_id,
                session_ref=data.session_ref,
                location=data.location,
                device=data.device,
            )
            return jsonify(
                {
                    "success": True,
                    "status": outcome.record.status.value,
                    "verified": outcome.verified,
                    "distance_m": round(outcome.distance_m, 2),
                    "allowed_radius_m": outcome.allowed_radius_m,
                    "marked_at": to_iso(outcome.record.marked_at),
                    "session": {
                        "session_id": outcome.session.session_id,
                        "subject": outcome.session.subject,
                    },
                    "message": describe_outcome(outcome),
                }
            )
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

    @app.route("/api/attendance/history", methods=["GET"], endpoint="api_attendance_history")
    @roles_required(PARTICIPANT_ROLES)
    def history(identity: Identity):
        try:
            entries = attendance.list_for_participant(
                identity.user_id,
                start=_date_arg("start"),
                end=_date_arg("end", end_of_day=True),
                subject=request.args.get("subject"),
                limit=optional_positive_int(request.args.get("limit"), "limit"),
                offset=offset_arg(),
            )
            return jsonify({"success": True, "data": [history_to_dict(h) for h in entries], "count": len(entries)})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()
