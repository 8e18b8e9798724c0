from __future__ import annotations

import threading
from datetime import datetime

from src.geo_attendance.geo_attendance.attendance.model import SessionRef
from src.geo_attendance.geo_attendance.attendance.service import AttendanceService
from src.geo_attendance.geo_attendance.core.exceptions import DuplicateAttendanceError
from src.geo_attendance.geo_attendance.sessions.service import SessionService
from tests.fakes import FixedClock, InMemoryAttendance, InMemorySessions

CENTER = [77.2090, 28.6139]
NOW = datetime(2026, 3, 2, 9, 0, 0)


class RacingAttendance(InMemoryAttendance):
    """Both submissions pass the pre-check before either inserts."""

    def __init__(self, sessions, parties: int):
        super().__init__(sessions)
        self.barrier = threading.Barrier(parties, timeout=5)

    def get_for_participant_and_session(self, participant_id, session_id):
        found = super().get_for_participant_and_session(participant_id, session_id)
        self.barrier.wait()
        return found


def _race(attendance_repo, participant_ids):
    sessions_repo = attendance_repo._sessions
    sessions = SessionService(sessions_repo, clock=FixedClock(NOW))
    service = AttendanceService(attendance_repo, sessions)
    s = sessions.create_session(owner_id="t1", subject="Physics", center=CENTER, radius_m=5)

    results = []
    lock = threading.Lock()

    def submit(pid):
        try:
            outcome = service.mark_attendance(
                participant_id=pid, session_ref=SessionRef.by_id(s.session_id), location=CENTER
            )
            result = ("ok", outcome)
        except DuplicateAttendanceError as e:
            result = ("duplicate", e)
        with lock:
            results.append(result)

    threads = [threading.Thread(target=submit, args=(pid,)) for pid in participant_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    return s, results, sessions_repo


def test_simultaneous_submissions_record_once():
    sessions_repo = InMemorySessions()
    repo = RacingAttendance(sessions_repo, parties=2)

    s, results, sessions_repo = _race(repo, ["student-1", "student-1"])

    kinds = sorted(kind for kind, _ in results)
    assert kinds == ["duplicate", "ok"]
    assert len(repo.all()) == 1
    assert sessions_repo.get_by_id(s.session_id).attendance_count == 1


def test_many_threads_same_participant():
    sessions_repo = InMemorySessions()
    repo = InMemoryAttendance(sessions_repo)

    s, results, sessions_repo = _race(repo, ["student-1"] * 8)

    assert [kind for kind, _ in results].count("ok") == 1
    assert len(results) == 8
    assert len(repo.all()) == 1
    assert sessions_repo.get_by_id(s.session_id).attendance_count == 1


def test_different_participants_do_not_collide():
    sessions_repo = InMemorySessions()
    repo = RacingAttendance(sessions_repo, parties=3)

    s, results, sessions_repo = _race(repo, ["a", "b", "c"])

    assert [kind for kind, _ in results] == ["ok", "ok", "ok"]
    assert len(repo.all()) == 3
    assert sessions_repo.get_by_id(s.session_id).attendance_count == 3
