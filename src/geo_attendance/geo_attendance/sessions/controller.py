from __future__ import annotations

import base64
import csv
import io
from dataclasses import dataclass
from typing import Any, Optional

import qrcode
from flask import Flask, jsonify, request, send_file

from ..attendance.controller import record_to_dict
from ..attendance.service import CSV_FIELDS
from ..common.datetime_utils import to_iso
from ..common.http import Identity, error_response, json_body, offset_arg, roles_required, server_error_response
from ..common.validators import optional_positive_int, reject_unknown_keys
from ..container import Container
from ..core.enums import INSTRUCTOR_ROLES, Role
from ..core.exceptions import DomainError
from ..qr import codec
from .model import AttendanceSession

CREATE_FIELDS = {"subject", "location", "radius", "duration_minutes", "location_name"}


@dataclass(frozen=True)
class NewSessionInput:
    """Raw create-session fields; the service validates and clamps them."""

    subject: Any
    location: Any
    radius: Any = None
    duration_minutes: Any = None
    location_name: Optional[str] = None

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "NewSessionInput":
        reject_unknown_keys(body, CREATE_FIELDS)
        location = body.get("location")
        name = body.get("location_name")
        if name is None and isinstance(location, dict):
            name = location.get("name")
        return cls(
            subject=body.get("subject"),
            location=location,
            radius=body.get("radius"),
            duration_minutes=body.get("duration_minutes"),
            location_name=name,
        )


def session_to_dict(s: AttendanceSession, *, now, include_owner: bool = True) -> dict:
    data = {
        "session_id": s.session_id,
        "session_code": s.session_code,
        "subject": s.subject,
        "geofence": {
            "coordinates": s.geofence.center.as_pair(),
            "radius": s.geofence.radius_m,
            "name": s.geofence.name,
        },
        "created_at": to_iso(s.created_at),
        "expires_at": to_iso(s.expires_at),
        "status": s.effective_status(now).value,
        "attendance_count": s.attendance_count,
    }
    if include_owner:
        data["owner_id"] = s.owner_id
    return data


def render_qr_png(payload: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=8,
        border=1,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def register(app: Flask, container: Container) -> None:
    sessions = container.session_service
    attendance = container.attendance_service

    @app.route("/api/sessions", methods=["POST"], endpoint="api_create_session")
    @roles_required(INSTRUCTOR_ROLES)
    def create_session(identity: Identity):
        try:
            data = NewSessionInput.from_request(json_body())
            s = sessions.create_session(
                owner_id=identity.user_id,
                subject=data.subject,
                center=data.location,
                radius_m=data.radius,
                duration_minutes=data.duration_minutes,
                location_name=data.location_name,
            )
            payload = codec.encode(s)
            qr_png = base64.b64encode(render_qr_png(payload)).decode("ascii")
            return (
                jsonify(
                    {
                        "success": True,
                        "session": session_to_dict(s, now=sessions.now()),
                        "encoded_payload": payload,
                        "qr_png": f"data:image/png;base64,{qr_png}",
                    }
                ),
                201,
            )
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

    @app.route("/api/sessions", methods=["GET"], endpoint="api_list_sessions")
    @roles_required(INSTRUCTOR_ROLES)
    def list_sessions(identity: Identity):
        try:
            items = sessions.list_for_owner(
                identity.user_id,
                which=request.args.get("status", "active"),
                limit=optional_positive_int(request.args.get("limit"), "limit"),
                offset=offset_arg(),
            )
            now = sessions.now()
            return jsonify({"success": True, "data": [session_to_dict(s, now=now) for s in items], "count": len(items)})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

    @app.route("/api/sessions/<session_id>", methods=["GET"], endpoint="api_get_session")
    @roles_required(Role)
    def get_session(identity: Identity, session_id: str):
        try:
            s = sessions.get_by_id(session_id)
            return jsonify(
                {
                    "success": True,
                    "session": session_to_dict(s, now=sessions.now(), include_owner=s.owner_id == identity.user_id),
                }
            )
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

    @app.route("/api/sessions/<session_id>/end", methods=["POST"], endpoint="api_end_session")
    @roles_required(INSTRUCTOR_ROLES)
    def end_session(identity: Identity, session_id: str):
        try:
            before = sessions.get_owned(session_id, identity.user_id)
            s = sessions.end_session(session_id=session_id, requester_id=identity.user_id)
            return jsonify(
                {
                    "success": True,
                    "already_ended": before.status == s.status,
                    "session": session_to_dict(s, now=sessions.now()),
                }
            )
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

    @app.route("/api/sessions/<session_id>", methods=["DELETE"], endpoint="api_delete_session")
    @roles_required(INSTRUCTOR_ROLES)
    def delete_session(identity: Identity, session_id: str):
        try:
            sessions.delete_session(session_id=session_id, requester_id=identity.user_id)
            return jsonify({"success": True})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

    @app.route("/api/sessions/<session_id>/records", methods=["GET"], endpoint="api_session_records")
    @roles_required(INSTRUCTOR_ROLES)
    def session_records(identity: Identity, session_id: str):
        try:
            records = attendance.list_session_records(session_id=session_id, requester_id=identity.user_id)
            return jsonify({"success": True, "data": [record_to_dict(r) for r in records], "total": len(records)})
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

    @app.route("/api/sessions/<session_id>/records.csv", methods=["GET"], endpoint="api_session_records_csv")
    @roles_required(INSTRUCTOR_ROLES)
    def session_records_csv(identity: Identity, session_id: str):
        try:
            s = sessions.get_owned(session_id, identity.user_id)
            rows = attendance.export_session_csv_rows(session_id=session_id, requester_id=identity.user_id)
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

        filename = f"attendance_{s.session_code}_{s.created_at.strftime('%Y%m%d')}.csv"
        return app.response_class(
            out.getvalue().encode("utf-8-sig"),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/sessions/<session_id>/qr.png", methods=["GET"], endpoint="api_session_qr")
    @roles_required(INSTRUCTOR_ROLES)
    def session_qr(identity: Identity, session_id: str):
        try:
            s = sessions.get_owned(session_id, identity.user_id)
            buf = io.BytesIO(render_qr_png(codec.encode(s)))
            return send_file(buf, mimetype="image/png")
        except DomainError as e:
            return error_response(e)
        except Exception:
            return server_error_response()

