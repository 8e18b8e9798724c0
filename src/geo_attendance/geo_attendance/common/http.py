"""Helpers shared by the Flask controllers."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Iterable

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CodeAllocationError,
    DomainError,
    DuplicateAttendanceError,
    NotFoundError,
    SessionExpiredError,
    StorageError,
    StorageTimeoutError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[DomainError], int]] = [
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (DuplicateAttendanceError, 409),
    (SessionExpiredError, 410),
    (StorageTimeoutError, 504),
    (StorageError, 503),
    (CodeAllocationError, 503),
]


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role


def current_identity() -> Identity:
    """Caller identity from the login session, never from the request body."""
    user_id = session.get("user_id")
    if user_id is None or str(user_id).strip() == "":
        raise AuthenticationError()
    try:
        role = Role(session.get("role"))
    except ValueError:
        raise AuthorizationError("Unknown role")
    return Identity(user_id=str(user_id), role=role)


def roles_required(roles: Iterable[Role]):
    allowed = frozenset(roles)

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                identity = current_identity()
                if identity.role not in allowed:
                    raise AuthorizationError()
            except DomainError as e:
                return error_response(e)
            return view(identity, *args, **kwargs)

        return wrapper

    return decorator


def status_for(exc: DomainError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


def error_response(exc: DomainError):
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.path, exc)
    return jsonify({"success": False, "error": exc.kind, "message": str(exc)}), status


def server_error_response():
    logger.exception("Unhandled error in %s %s", request.method, request.path)
    return jsonify({"success": False, "error": "server_error", "message": "Internal server error"}), 500


def json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def client_ip() -> str | None:
    """Best-effort caller address for diagnostics; None when it does not parse."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    candidate = forwarded.split(",")[0].strip() if forwarded else request.remote_addr
    if not candidate:
        return None
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


def offset_arg() -> int | None:
    raw = request.args.get("offset")
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("offset must be a whole number")
