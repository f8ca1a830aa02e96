import pytest
from fastapi.testclient import TestClient #fake http client that calls the FastAPI routes without a running server

from gridforge.core.config import get_settings
from gridforge.main import app
from gridforge.schemas.catalogue import Catalogue
from gridforge.schemas.timetable import ScheduledSession, WeeklyGrid

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

THEORY_WINDOWS = [("09:00", "10:00"), ("10:00", "11:00"), ("11:00", "12:00"), ("13:00", "14:00"), ("14:00", "15:00")]
LAB_WINDOWS = [("14:00", "16:00")]


@pytest.fixture()
def client():
    get_settings.cache_clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def build_catalogue():
    """Factory for small catalogues; defaults give one theory room, one lab and the standard slot template."""

    def _build(
        *,
        courses=(),
        faculty=("F1",),
        rooms=None,
        theory_windows=THEORY_WINDOWS,
        lab_windows=LAB_WINDOWS,
    ) -> Catalogue:
        if rooms is None:
            rooms = [
                {"id": "R1", "name": "Room 1", "type": "classroom", "capacity": 60},
                {"id": "LAB1", "name": "Lab 1", "type": "lab", "capacity": 60},
            ]
        timeslots = [
            {"id": f"T{index}", "order": index, "start": start, "end": end, "kind": "theory"}
            for index, (start, end) in enumerate(theory_windows, start=1)
        ] + [
            {"id": f"L{index}", "order": 100 + index, "start": start, "end": end, "kind": "lab"}
            for index, (start, end) in enumerate(lab_windows, start=1)
        ]
        return Catalogue.model_validate(
            {
                "courses": list(courses),
                "faculty": [{"id": item, "name": f"Prof {item}"} for item in faculty],
                "rooms": list(rooms),
                "timeslots": timeslots,
            }
        )

    return _build


@pytest.fixture()
def theory_course():
    def _course(course_id, faculty_id="F1", enrollment=50, **extra):
        return {
            "id": course_id,
            "name": f"Course {course_id}",
            "code": course_id,
            "type": "theory",
            "credits": 3,
            "faculty_id": faculty_id,
            "expected_enrollment": enrollment,
            **extra,
        }

    return _course


@pytest.fixture()
def lab_course():
    def _course(course_id, faculty_id="F1", enrollment=30, **extra):
        return {
            "id": course_id,
            "name": f"Course {course_id}",
            "code": course_id,
            "type": "lab",
            "credits": 0,
            "lab_credits": 2,
            "faculty_id": faculty_id,
            "expected_enrollment": enrollment,
            **extra,
        }

    return _course


@pytest.fixture()
def make_session():
    def _session(session_id, day="Monday", start="09:00", end="10:00", *, faculty="F1", room="R1", kind="theory", **extra):
        values = {
            "session_id": session_id,
            "kind": kind,
            "course_id": session_id,
            "course_code": session_id.upper(),
            "course_name": f"Course {session_id}",
            "day": day,
            "timeslot_id": extra.pop("timeslot_id", f"{start}-{end}"),
            "start_time": start,
            "end_time": end,
            "room_id": room,
            "faculty_id": faculty,
            "student_count": extra.pop("student_count", 40),
        }
        values.update(extra)
        return ScheduledSession(**values)

    return _session


@pytest.fixture()
def empty_grid():
    def _grid(days=WEEKDAYS) -> WeeklyGrid:
        return WeeklyGrid.empty(list(days))

    return _grid
