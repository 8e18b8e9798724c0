from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from ..common.validators import as_finite_float, optional_text, require_non_empty
from ..core.exceptions import (
    DuplicateAttendanceError,
    DuplicateKeyError,
    InvalidLocationError,
    SessionExpiredError,
    StorageError,
    ValidationError,
)
from ..geo.distance import is_within_range, validate_coordinate
from ..sessions.model import AttendanceSession
from ..sessions.service import SessionService, clamp_page
from .factory import GeofenceStatusFactory
from .model import (
    AttendanceOutcome,
    AttendanceRecord,
    DeviceInfo,
    HistoryEntry,
    NewAttendanceRecord,
    RecordedLocation,
    SessionRef,
    SubmittedLocation,
)
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

CSV_FIELDS = [
    "participant_id",
    "marked_at",
    "status",
    "verified",
    "distance_m",
    "accuracy_m",
    "longitude",
    "latitude",
    "location_name",
]


def parse_submitted_location(value: Any) -> SubmittedLocation:
    """Validate a participant's location payload.

    Expected shape: ``{"coordinates": [lon, lat], "accuracy": 12.5, "name": "..."}``
    or just the ``[lon, lat]`` pair.
    """
    if value is None:
        raise InvalidLocationError()
    coordinate = validate_coordinate(value, "Location", error=InvalidLocationError)

    accuracy = None
    name = None
    if isinstance(value, dict):
        raw_accuracy = value.get("accuracy")
        if raw_accuracy is not None:
            accuracy = as_finite_float(raw_accuracy)
            if accuracy is None or accuracy < 0:
                raise InvalidLocationError("Location accuracy must be a non-negative number")
        try:
            name = optional_text(value.get("name"), "Location name", max_len=120)
        except ValidationError as e:
            raise InvalidLocationError(str(e))

    return SubmittedLocation(coordinate=coordinate, accuracy_m=accuracy, name=name)


class AttendanceService:
    """Verifies submitted locations and records attendance at most once per session."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        sessions: SessionService,
        *,
        status_factory: GeofenceStatusFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._attendance = attendance
        self._sessions = sessions
        self._factory = status_factory or GeofenceStatusFactory()
        self._clock = clock or sessions.now

    def resolve_session(self, ref: SessionRef) -> AttendanceSession:
        """Find the session a participant points at.

        Codes only resolve active sessions; ids also resolve expired ones so
        the caller can be told the session is over instead of missing.
        """
        if ref.session_id:
            return self._sessions.get_by_id(ref.session_id)
        if ref.session_code:
            return self._sessions.get_active_by_code(ref.session_code)
        raise ValidationError("Session id or session code is required")

    def mark_attendance(
        self,
        *,
        participant_id: str,
        session_ref: SessionRef,
        location: Any,
        device: DeviceInfo | None = None,
    ) -> AttendanceOutcome:
        participant_id = require_non_empty(participant_id, "Participant")
        submitted = location if isinstance(location, SubmittedLocation) else parse_submitted_location(location)

        session = self.resolve_session(session_ref)
        now = self._clock()
        if not session.is_active(now):
            logger.info("Rejected attendance for %s: session %s is over", participant_id, session.session_id)
            raise SessionExpiredError()

        if self._attendance.get_for_participant_and_session(participant_id, session.session_id):
            logger.info("Duplicate attendance for %s in session %s", participant_id, session.session_id)
            raise DuplicateAttendanceError()

        check = is_within_range(submitted.coordinate, session.geofence.center, session.geofence.radius_m)
        strategy = self._factory.for_submission(check=check)
        decision = strategy.decide(check=check, session=session, now=now)

        new = NewAttendanceRecord(
            participant_id=participant_id,
            session_id=session.session_id,
            marked_at=now,
            location=RecordedLocation(
                coordinate=submitted.coordinate,
                distance_m=check.distance_m,
                accuracy_m=submitted.accuracy_m,
                name=submitted.name,
            ),
            status=decision.status,
            verified=decision.verified,
            device=device or DeviceInfo(),
        )

        try:
            record = self._attendance.insert(new)
        except DuplicateKeyError:
            # Another submission for the same pair committed first.
            logger.warning("Concurrent duplicate attendance for %s in session %s", participant_id, session.session_id)
            raise DuplicateAttendanceError()

        try:
            self._sessions.increment_attendance(session.session_id)
        except StorageError:
            logger.warning(
                "Attendance counter not incremented for session %s; record %s stands",
                session.session_id,
                record.record_id,
                exc_info=True,
            )

        logger.info(
            "Attendance %s for %s in session %s (distance=%.2fm, radius=%.1fm)",
            record.status.value,
            participant_id,
            session.session_id,
            check.distance_m,
            session.geofence.radius_m,
        )
        return AttendanceOutcome(
            record=record,
            session=session,
            distance_m=check.distance_m,
            allowed_radius_m=session.geofence.radius_m,
        )

    def list_session_records(self, *, session_id: str, requester_id: str) -> Sequence[AttendanceRecord]:
        session = self._sessions.get_owned(session_id, requester_id)
        return self._attendance.list_for_session(session.session_id)

    def list_for_participant(
        self,
        participant_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        subject: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Sequence[HistoryEntry]:
        if start and end and start > end:
            raise ValidationError("start must not be after end")
        limit, offset = clamp_page(limit, offset)
        return self._attendance.list_history_for_participant(
            participant_id,
            start=start,
            end=end,
            subject=optional_text(subject, "Subject"),
            limit=limit,
            offset=offset,
        )

    def export_session_csv_rows(self, *, session_id: str, requester_id: str) -> list[dict]:
        """Rows for the per-session CSV download, newest first."""
        rows = []
        for r in self.list_session_records(session_id=session_id, requester_id=requester_id):
            rows.append(
                {
                    "participant_id": r.participant_id,
                    "marked_at": r.marked_at.strftime("%Y-%m-%d %H:%M:%S"),
                    "status": r.status.value,
                    "verified": "yes" if r.verified else "no",
                    "distance_m": f"{r.location.distance_m:.2f}",
                    "accuracy_m": "" if r.location.accuracy_m is None else f"{r.location.accuracy_m:.1f}",
                    "longitude": r.location.coordinate.longitude,
                    "latitude": r.location.coordinate.latitude,
                    "location_name": r.location.name or "",
                }
            )
        return rows


def describe_outcome(outcome: AttendanceOutcome) -> str:
    radius = outcome.allowed_radius_m
    if outcome.verified:
        return f"Attendance marked: {outcome.distance_m:.1f} m from the class location (allowed {radius:g} m)"
    beyond = outcome.distance_m - radius
    return f"You are {beyond:.1f} m beyond the allowed {radius:g} m; attendance recorded as out of range"
