from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..common.validators import as_finite_float, optional_positive_int, optional_text, require_non_empty
from ..core.constants import (
    CODE_ALPHABET,
    CODE_LENGTH,
    DEFAULT_DURATION_MINUTES,
    DEFAULT_LOCATION_NAME,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RADIUS_M,
    MAX_CODE_ATTEMPTS,
    MAX_DURATION_MINUTES,
    MAX_PAGE_SIZE,
    MAX_RADIUS_M,
    MAX_SUBJECT_LENGTH,
    MIN_RADIUS_M,
)
from ..core.enums import SessionFilter, SessionStatus
from ..core.exceptions import (
    AuthorizationError,
    CodeAllocationError,
    DuplicateKeyError,
    SessionNotFoundError,
    ValidationError,
)
from ..geo.distance import validate_coordinate
from .model import AttendanceSession, Geofence, NewSession
from .repository import SessionRepository

logger = logging.getLogger(__name__)


def generate_session_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().upper()


def clamp_radius(value: Any, default: float = DEFAULT_RADIUS_M) -> float:
    """Clamp to [MIN_RADIUS_M, MAX_RADIUS_M]; non-numeric or missing -> default."""
    radius = as_finite_float(value)
    if radius is None:
        radius = default
    return min(max(radius, MIN_RADIUS_M), MAX_RADIUS_M)


def clamp_page(limit: Optional[int], offset: Optional[int]) -> tuple[int, int]:
    limit = DEFAULT_PAGE_SIZE if limit is None else int(limit)
    offset = 0 if offset is None else int(offset)
    if limit <= 0:
        raise ValidationError("limit must be positive")
    if offset < 0:
        raise ValidationError("offset must not be negative")
    return min(limit, MAX_PAGE_SIZE), offset


class SessionService:
    """Creates, resolves, ends and lists attendance sessions."""

    def __init__(
        self,
        sessions: SessionRepository,
        *,
        clock: Callable[[], datetime] = now_utc,
        code_generator: Callable[[], str] = generate_session_code,
        default_radius_m: float = DEFAULT_RADIUS_M,
        default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
    ):
        self._sessions = sessions
        self._clock = clock
        self._code_generator = code_generator
        self._default_radius_m = clamp_radius(default_radius_m, DEFAULT_RADIUS_M)
        self._default_duration = int(default_duration_minutes)

    def now(self) -> datetime:
        return self._clock()

    def create_session(
        self,
        *,
        owner_id: str,
        subject: str,
        center: Any,
        radius_m: Any = None,
        duration_minutes: Any = None,
        location_name: Optional[str] = None,
    ) -> AttendanceSession:
        owner_id = require_non_empty(owner_id, "Owner")
        subject = require_non_empty(subject, "Subject", max_len=MAX_SUBJECT_LENGTH)
        coordinate = validate_coordinate(center, "Session location")
        duration = optional_positive_int(duration_minutes, "Duration", max_value=MAX_DURATION_MINUTES)
        name = optional_text(location_name, "Location name", max_len=120) or DEFAULT_LOCATION_NAME

        created_at = self.now()
        new = NewSession(
            session_id=uuid.uuid4().hex,
            owner_id=owner_id,
            subject=subject,
            geofence=Geofence(
                center=coordinate,
                radius_m=clamp_radius(radius_m, self._default_radius_m),
                name=name,
            ),
            created_at=created_at,
            expires_at=created_at + timedelta(minutes=duration or self._default_duration),
        )

        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = normalize_code(self._code_generator())
            if self._sessions.code_exists(code):
                logger.info("Session code collision on attempt %d, regenerating", attempt)
                continue
            try:
                session = self._sessions.insert(new, session_code=code)
            except DuplicateKeyError:
                # Lost a race for the same code between the check and the insert.
                logger.info("Session code taken concurrently on attempt %d, regenerating", attempt)
                continue

            logger.info(
                "Session %s created by %s (code=%s, radius=%.1fm, expires=%s)",
                session.session_id,
                owner_id,
                session.session_code,
                session.geofence.radius_m,
                session.expires_at.isoformat(),
            )
            return session

        logger.error("Could not allocate a session code after %d attempts", MAX_CODE_ATTEMPTS)
        raise CodeAllocationError()

    def get_by_id(self, session_id: str) -> AttendanceSession:
        """Resolve a session by id, whether or not it is still active."""
        if not isinstance(session_id, str) or not session_id.strip():
            raise SessionNotFoundError()
        session = self._sessions.get_by_id(session_id.strip())
        if not session:
            raise SessionNotFoundError()
        return session

    def get_active_by_code(self, session_code: str) -> AttendanceSession:
        """Resolve an active session by its code; expired or ended codes are not found."""
        code = normalize_code(session_code)
        if not code:
            raise SessionNotFoundError()
        session = self._sessions.get_active_by_code(code, now=self.now())
        if not session:
            raise SessionNotFoundError()
        return session

    def get_owned(self, session_id: str, requester_id: str) -> AttendanceSession:
        session = self.get_by_id(session_id)
        if session.owner_id != requester_id:
            raise AuthorizationError("Only the session owner can do this")
        return session

    def end_session(self, *, session_id: str, requester_id: str) -> AttendanceSession:
        """End a session. Ending an already ended session returns it unchanged."""
        session = self.get_owned(session_id, requester_id)
        if session.status == SessionStatus.ENDED:
            logger.info("Session %s already ended", session.session_id)
            return session

        self._sessions.mark_ended(session.session_id)
        logger.info("Session %s ended by %s", session.session_id, requester_id)
        return self.get_by_id(session.session_id)

    def delete_session(self, *, session_id: str, requester_id: str) -> None:
        session = self.get_owned(session_id, requester_id)
        self._sessions.delete(session.session_id)
        logger.info("Session %s deleted by %s", session.session_id, requester_id)

    def list_for_owner(
        self,
        owner_id: str,
        *,
        which: SessionFilter | str = SessionFilter.ACTIVE,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Sequence[AttendanceSession]:
        try:
            which = SessionFilter(which)
        except ValueError:
            raise ValidationError("status must be one of: active, past, all")
        limit, offset = clamp_page(limit, offset)
        return self._sessions.list_for_owner(owner_id, which=which, now=self.now(), limit=limit, offset=offset)

    def increment_attendance(self, session_id: str) -> None:
        self._sessions.increment_attendance(session_id)
