from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from gridforge.schemas.catalogue import Room
from gridforge.schemas.conflict import CapacityShortfall, ConflictDetail
from gridforge.schemas.timetable import ScheduledSession, WeeklyGrid
from gridforge.services.conflict_checker import spans_overlap

BASE_SCORE = 100
CONFLICT_PENALTY = 10
IMBALANCE_PENALTY = 5


@dataclass
class ScoreResult:
    score: float
    raw_score: float
    conflicts: list[ConflictDetail] = field(default_factory=list)
    imbalance: int = 0


def _clash_detail(kind: str, day: str, earlier: list[ScheduledSession], session: ScheduledSession) -> ConflictDetail:
    first = earlier[0]
    if kind == "faculty_conflict":
        prefix, subject = "fac", f"Teacher {session.faculty_id}"
    else:
        prefix, subject = "room", f"Room {session.room_id}"
    return ConflictDetail(
        id=f"{prefix}-{first.session_id}-{session.session_id}",
        conflict_type=kind,
        day=day,
        description=(
            f"{subject} double booked on {day}: "
            f"{first.course_code} {first.start_time}-{first.end_time} and "
            f"{session.course_code} {session.start_time}-{session.end_time}"
        ),
        affected_sessions=[item.session_id for item in earlier] + [session.session_id],
    )


def detect_conflicts(grid: WeeklyGrid) -> list[ConflictDetail]:
    """One conflict per session that overlaps an earlier session of the same faculty or room.

    A group of n clashing sessions therefore costs n - 1 conflicts per shared
    resource, not one per pair.
    """
    conflicts: list[ConflictDetail] = []
    for day in grid.days:
        seen_faculty: dict[str, list[ScheduledSession]] = defaultdict(list)
        seen_rooms: dict[str, list[ScheduledSession]] = defaultdict(list)
        for session in grid.sessions(day):
            clashing = [item for item in seen_faculty[session.faculty_id] if spans_overlap(item.span, session.span)]
            if clashing:
                conflicts.append(_clash_detail("faculty_conflict", day, clashing, session))
            clashing = [item for item in seen_rooms[session.room_id] if spans_overlap(item.span, session.span)]
            if clashing:
                conflicts.append(_clash_detail("room_conflict", day, clashing, session))
            seen_faculty[session.faculty_id].append(session)
            seen_rooms[session.room_id].append(session)
    return conflicts


def daily_imbalance(grid: WeeklyGrid) -> int:
    counts = list(grid.session_counts().values())
    if not counts:
        return 0
    return max(counts) - min(counts)


def capacity_shortfalls(grid: WeeklyGrid, rooms: list[Room]) -> list[CapacityShortfall]:
    capacities = {room.id: room.capacity for room in rooms}
    shortfalls = []
    for session in grid.all_sessions():
        capacity = capacities.get(session.room_id)
        if capacity is None or capacity < session.student_count:
            shortfalls.append(CapacityShortfall(
                session_id=session.session_id,
                room_id=session.room_id,
                capacity=capacity,
                student_count=session.student_count,
            ))
    return shortfalls


def score_grid(grid: WeeklyGrid, *, extra_conflicts: int = 0) -> ScoreResult:
    """100, minus 10 per detected conflict, minus 5 per unit of max-min daily load; floored at 0.

    ``extra_conflicts`` lets the genetic search charge placements that break
    rules the overlap scan cannot see (lab day reservation, daily ceilings).
    """
    conflicts = detect_conflicts(grid)
    imbalance = daily_imbalance(grid)
    raw = BASE_SCORE - CONFLICT_PENALTY * (len(conflicts) + extra_conflicts) - IMBALANCE_PENALTY * imbalance
    return ScoreResult(score=max(0, raw), raw_score=raw, conflicts=conflicts, imbalance=imbalance)
