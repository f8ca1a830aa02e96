"""Pure placement predicates shared by construction, repair and the genetic search.

Spans are half-open ``(start_minute, end_minute)`` pairs, so a session ending at
10:00 never overlaps one starting at 10:00. None of these functions mutate the
grid.
"""
from __future__ import annotations

from gridforge.schemas.catalogue import Course
from gridforge.schemas.constraints import SchedulingConstraints
from gridforge.schemas.timetable import ScheduledSession, WeeklyGrid

Span = tuple[int, int]


def spans_overlap(left: Span, right: Span) -> bool:
    return max(left[0], right[0]) < min(left[1], right[1])


def _others(grid: WeeklyGrid, day: str, ignore: ScheduledSession | None) -> list[ScheduledSession]:
    return [session for session in grid.sessions(day) if session is not ignore]


def teacher_free(
    grid: WeeklyGrid,
    day: str,
    span: Span,
    faculty_id: str,
    *,
    ignore: ScheduledSession | None = None,
) -> bool:
    return not any(
        session.faculty_id == faculty_id and spans_overlap(session.span, span)
        for session in _others(grid, day, ignore)
    )


def room_free(
    grid: WeeklyGrid,
    day: str,
    span: Span,
    room_id: str,
    *,
    ignore: ScheduledSession | None = None,
) -> bool:
    return not any(
        session.room_id == room_id and spans_overlap(session.span, span)
        for session in _others(grid, day, ignore)
    )


def faculty_day_free(
    grid: WeeklyGrid,
    day: str,
    faculty_id: str,
    *,
    ignore: ScheduledSession | None = None,
) -> bool:
    # Labs reserve the whole day for their faculty.
    return not any(session.faculty_id == faculty_id for session in _others(grid, day, ignore))


def daily_capacity_ok(grid: WeeklyGrid, day: str, constraints: SchedulingConstraints) -> bool:
    return len(grid.sessions(day)) < constraints.max_classes_per_day


def daily_hours_ok(
    grid: WeeklyGrid,
    day: str,
    span: Span,
    constraints: SchedulingConstraints,
) -> bool:
    booked = sum(session.span[1] - session.span[0] for session in grid.sessions(day))
    return booked + (span[1] - span[0]) <= constraints.max_hours_per_day * 60


def lab_already_scheduled(grid: WeeklyGrid, course: Course) -> bool:
    return any(
        session.kind == "lab" and session.course_id == course.id
        for session in grid.all_sessions()
    )
