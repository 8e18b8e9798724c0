"""Example: drive the service layer directly (no Flask).

Creates a session, prints its QR payload, and marks one participant.
"""

import importlib

from config import get_settings_module

from src.geo_attendance.geo_attendance.attendance.model import SessionRef
from src.geo_attendance.geo_attendance.container import build_container
from src.geo_attendance.geo_attendance.qr import codec


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)

    session = container.session_service.create_session(
        owner_id="teacher-1",
        subject="Physics 101",
        center=[77.2090, 28.6139],
        radius_m=10,
        duration_minutes=30,
    )
    print(codec.encode(session))

    outcome = container.attendance_service.mark_attendance(
        participant_id="student-1",
        session_ref=SessionRef.by_code(session.session_code),
        location={"coordinates": [77.2090, 28.6139], "accuracy": 8},
    )
    print(outcome.record.status.value, round(outcome.distance_m, 2))


if __name__ == "__main__":
    main()
