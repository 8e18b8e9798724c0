from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller roles as issued by the external login component."""

    TEACHER = "teacher"
    FACULTY = "faculty"
    STUDENT = "student"


INSTRUCTOR_ROLES = frozenset({Role.TEACHER, Role.FACULTY})
PARTICIPANT_ROLES = frozenset({Role.STUDENT, Role.FACULTY})


class SessionStatus(str, Enum):
    """Stored lifecycle state of an attendance session."""

    ACTIVE = "active"
    ENDED = "ended"


class SessionFilter(str, Enum):
    ACTIVE = "active"
    PAST = "past"
    ALL = "all"


class AttendanceStatus(str, Enum):
    """Status stored on an attendance record.

    LATE is reserved for a grace-period policy and ABSENT is only ever set by
    an instructor; the recorder emits PRESENT or OUT_OF_RANGE.
    """

    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    OUT_OF_RANGE = "out_of_range"
