from __future__ import annotations

import math
from datetime import datetime, timedelta

import pytest

from src.geo_attendance.geo_attendance.attendance.model import DeviceInfo, SessionRef
from src.geo_attendance.geo_attendance.attendance.service import (
    AttendanceService,
    describe_outcome,
    parse_submitted_location,
)
from src.geo_attendance.geo_attendance.core.constants import EARTH_RADIUS_M
from src.geo_attendance.geo_attendance.core.enums import AttendanceStatus
from src.geo_attendance.geo_attendance.core.exceptions import (
    AuthorizationError,
    DuplicateAttendanceError,
    InvalidLocationError,
    SessionExpiredError,
    SessionNotFoundError,
    ValidationError,
)
from src.geo_attendance.geo_attendance.geo.distance import distance_meters
from src.geo_attendance.geo_attendance.sessions.service import SessionService
from tests.fakes import FixedClock, InMemoryAttendance, InMemorySessions

LON, LAT = 77.2090, 28.6139
NOW = datetime(2026, 3, 2, 9, 0, 0)


def north_of_center(meters: float) -> list[float]:
    return [LON, LAT + math.degrees(meters / EARTH_RADIUS_M)]


class Env:
    def __init__(self):
        self.clock = FixedClock(NOW)
        self.sessions_repo = InMemorySessions()
        self.attendance_repo = InMemoryAttendance(self.sessions_repo)
        self.sessions = SessionService(self.sessions_repo, clock=self.clock)
        self.attendance = AttendanceService(self.attendance_repo, self.sessions)

    def open_session(self, **kwargs):
        params = {"owner_id": "teacher-1", "subject": "Physics", "center": [LON, LAT], "radius_m": 5, "duration_minutes": 30}
        params.update(kwargs)
        return self.sessions.create_session(**params)


@pytest.fixture
def env():
    return Env()


def test_same_coordinate_is_present(env):
    s = env.open_session()
    outcome = env.attendance.mark_attendance(
        participant_id="student-1",
        session_ref=SessionRef.by_id(s.session_id),
        location={"coordinates": [LON, LAT], "accuracy": 8},
    )

    assert outcome.verified is True
    assert outcome.record.status == AttendanceStatus.PRESENT
    assert outcome.distance_m == pytest.approx(0, abs=1e-6)
    assert outcome.allowed_radius_m == 5
    assert outcome.record.marked_at == NOW
    assert outcome.record.location.accuracy_m == 8
    assert env.sessions_repo.get_by_id(s.session_id).attendance_count == 1


def test_two_hundred_meters_away_is_recorded_out_of_range(env):
    s = env.open_session()
    outcome = env.attendance.mark_attendance(
        participant_id="student-1",
        session_ref=SessionRef.by_code(s.session_code),
        location={"coordinates": north_of_center(200)},
    )

    assert outcome.verified is False
    assert outcome.record.status == AttendanceStatus.OUT_OF_RANGE
    assert outcome.distance_m == pytest.approx(200, abs=0.5)
    assert len(env.attendance_repo.all()) == 1
    assert "beyond" in describe_outcome(outcome)


def test_exactly_on_the_boundary_is_verified(env):
    point = north_of_center(4.5)
    exact = distance_meters(LAT, LON, point[1], point[0])
    s = env.open_session(radius_m=exact)

    outcome = env.attendance.mark_attendance(
        participant_id="student-1",
        session_ref=SessionRef.by_id(s.session_id),
        location=point,
    )
    assert outcome.verified is True
    assert outcome.record.status == AttendanceStatus.PRESENT


def test_one_meter_beyond_the_boundary_is_out_of_range(env):
    s = env.open_session(radius_m=5)
    outcome = env.attendance.mark_attendance(
        participant_id="student-1",
        session_ref=SessionRef.by_id(s.session_id),
        location=north_of_center(6),
    )
    assert outcome.verified is False
    assert outcome.record.status == AttendanceStatus.OUT_OF_RANGE


def test_second_submission_is_duplicate(env):
    s = env.open_session()
    ref = SessionRef.by_id(s.session_id)
    env.attendance.mark_attendance(participant_id="student-1", session_ref=ref, location=[LON, LAT])

    with pytest.raises(DuplicateAttendanceError):
        env.attendance.mark_attendance(participant_id="student-1", session_ref=ref, location=north_of_center(300))

    assert len(env.attendance_repo.all()) == 1
    assert env.sessions_repo.get_by_id(s.session_id).attendance_count == 1


def test_same_participant_in_two_sessions_is_fine(env):
    a = env.open_session(subject="A")
    b = env.open_session(subject="B")
    env.attendance.mark_attendance(participant_id="student-1", session_ref=SessionRef.by_id(a.session_id), location=[LON, LAT])
    env.attendance.mark_attendance(participant_id="student-1", session_ref=SessionRef.by_id(b.session_id), location=[LON, LAT])
    assert len(env.attendance_repo.all()) == 2


def test_unknown_session(env):
    with pytest.raises(SessionNotFoundError):
        env.attendance.mark_attendance(participant_id="student-1", session_ref=SessionRef.by_code("NOPE0000"), location=[LON, LAT])
    with pytest.raises(SessionNotFoundError):
        env.attendance.mark_attendance(participant_id="student-1", session_ref=SessionRef.by_id("missing"), location=[LON, LAT])


def test_missing_session_reference(env):
    with pytest.raises(ValidationError):
        env.attendance.mark_attendance(participant_id="student-1", session_ref=SessionRef(), location=[LON, LAT])


def test_expired_session_by_code_is_not_found_but_by_id_is_expired(env):
    s = env.open_session(duration_minutes=30)
    env.clock.advance(minutes=31)

    with pytest.raises(SessionNotFoundError):
        env.attendance.mark_attendance(
            participant_id="student-1", session_ref=SessionRef.by_code(s.session_code), location=[LON, LAT]
        )
    with pytest.raises(SessionExpiredError):
        env.attendance.mark_attendance(
            participant_id="student-1", session_ref=SessionRef.by_id(s.session_id), location=[LON, LAT]
        )
    assert env.attendance_repo.all() == []


def test_ended_session_by_id_is_expired(env):
    s = env.open_session()
    env.sessions.end_session(session_id=s.session_id, requester_id="teacher-1")
    with pytest.raises(SessionExpiredError):
        env.attendance.mark_attendance(
            participant_id="student-1", session_ref=SessionRef.by_id(s.session_id), location=[LON, LAT]
        )


@pytest.mark.parametrize(
    "location",
    [None, {}, {"coordinates": []}, {"coordinates": ["a", "b"]}, [LON], {"coordinates": [LON, LAT], "accuracy": -1}],
)
def test_invalid_location(env, location):
    s = env.open_session()
    with pytest.raises(InvalidLocationError):
        env.attendance.mark_attendance(
            participant_id="student-1", session_ref=SessionRef.by_id(s.session_id), location=location
        )


def test_counter_failure_does_not_undo_the_record(env, caplog):
    s = env.open_session()
    env.sessions_repo.fail_increment = True

    outcome = env.attendance.mark_attendance(
        participant_id="student-1", session_ref=SessionRef.by_id(s.session_id), location=[LON, LAT]
    )

    assert outcome.record.status == AttendanceStatus.PRESENT
    assert len(env.attendance_repo.all()) == 1
    assert env.sessions_repo.get_by_id(s.session_id).attendance_count == 0
    assert "not incremented" in caplog.text


def test_device_info_is_kept_but_ignored(env):
    s = env.open_session()
    device = DeviceInfo(user_agent="UA", ip_address="10.0.0.1", platform="Android")
    outcome = env.attendance.mark_attendance(
        participant_id="student-1",
        session_ref=SessionRef.by_id(s.session_id),
        location=north_of_center(50),
        device=device,
    )
    assert outcome.record.device == device
    assert outcome.record.status == AttendanceStatus.OUT_OF_RANGE


def test_parse_submitted_location():
    loc = parse_submitted_location({"coordinates": ["77.2", 28.6], "accuracy": "12.5", "name": " Hall A "})
    assert loc.coordinate.longitude == 77.2
    assert loc.accuracy_m == 12.5
    assert loc.name == "Hall A"


def test_session_records_are_owner_only_and_newest_first(env):
    s = env.open_session()
    ref = SessionRef.by_id(s.session_id)
    env.attendance.mark_attendance(participant_id="student-1", session_ref=ref, location=[LON, LAT])
    env.clock.advance(minutes=1)
    env.attendance.mark_attendance(participant_id="student-2", session_ref=ref, location=north_of_center(20))

    records = env.attendance.list_session_records(session_id=s.session_id, requester_id="teacher-1")
    assert [r.participant_id for r in records] == ["student-2", "student-1"]

    with pytest.raises(AuthorizationError):
        env.attendance.list_session_records(session_id=s.session_id, requester_id="student-1")


def test_csv_rows(env):
    s = env.open_session()
    env.attendance.mark_attendance(
        participant_id="student-1",
        session_ref=SessionRef.by_id(s.session_id),
        location={"coordinates": north_of_center(200), "accuracy": 3},
    )

    rows = env.attendance.export_session_csv_rows(session_id=s.session_id, requester_id="teacher-1")
    assert len(rows) == 1
    assert rows[0]["participant_id"] == "student-1"
    assert rows[0]["status"] == "out_of_range"
    assert rows[0]["verified"] == "no"
    assert rows[0]["accuracy_m"] == "3.0"
    assert rows[0]["marked_at"] == "2026-03-02 09:00:00"


def test_participant_history_filters(env):
    physics = env.open_session(subject="Physics")
    env.clock.advance(hours=1)
    chemistry = env.open_session(subject="Organic Chemistry")

    env.attendance.mark_attendance(participant_id="s1", session_ref=SessionRef.by_id(chemistry.session_id), location=[LON, LAT])
    env.clock.now = NOW + timedelta(minutes=5)
    env.attendance.mark_attendance(participant_id="s1", session_ref=SessionRef.by_id(physics.session_id), location=[LON, LAT])
    env.attendance.mark_attendance(participant_id="s2", session_ref=SessionRef.by_id(physics.session_id), location=[LON, LAT])

    everything = env.attendance.list_for_participant("s1")
    assert [h.subject for h in everything] == ["Organic Chemistry", "Physics"]

    chem = env.attendance.list_for_participant("s1", subject="chem")
    assert [h.subject for h in chem] == ["Organic Chemistry"]

    early = env.attendance.list_for_participant("s1", end=NOW + timedelta(minutes=30))
    assert [h.subject for h in early] == ["Physics"]

    with pytest.raises(ValidationError):
        env.attendance.list_for_participant("s1", start=NOW, end=NOW - timedelta(days=1))
