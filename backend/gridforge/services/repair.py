from __future__ import annotations

import logging
import math

from gridforge.schemas.catalogue import Catalogue, Room, RoomType
from gridforge.schemas.constraints import SchedulingConstraints
from gridforge.schemas.timetable import RepairStats, ScheduledSession, WeeklyGrid
from gridforge.services.conflict_checker import (
    daily_capacity_ok,
    daily_hours_ok,
    faculty_day_free,
    room_free,
    spans_overlap,
    teacher_free,
)

logger = logging.getLogger(__name__)


class RepairOptimizer:
    """Post-construction passes: teacher conflicts, room conflicts, daily balance.

    With ``constraints.revalidate_repairs`` off, the passes reproduce the legacy
    behaviour: relocations and room swaps are not checked against the rest of the
    grid and may introduce new conflicts, which the scorer then reports.
    """

    def __init__(self, catalogue: Catalogue, constraints: SchedulingConstraints) -> None:
        self.catalogue = catalogue
        self.constraints = constraints
        self.revalidate = constraints.revalidate_repairs
        self.timeslots = {slot.id: slot for slot in catalogue.timeslots}

    def optimize(self, grid: WeeklyGrid) -> tuple[WeeklyGrid, RepairStats]:
        optimized = grid.model_copy(deep=True)
        stats = RepairStats(revalidated=self.revalidate)

        self.resolve_teacher_conflicts(optimized, stats)
        self.resolve_room_conflicts(optimized, stats)
        self.balance_daily_workload(optimized, stats)

        logger.info(
            "Repair finished | revalidated=%s teacher_conflicts=%s relocations=%s room_conflicts=%s "
            "reassignments=%s balanced_moves=%s",
            stats.revalidated,
            stats.teacher_conflicts_found,
            stats.teacher_relocations,
            stats.room_conflicts_found,
            stats.room_reassignments,
            stats.balanced_moves,
        )
        return optimized, stats

    # Teacher conflicts

    def resolve_teacher_conflicts(self, grid: WeeklyGrid, stats: RepairStats) -> None:
        for day in list(grid.days):
            kept: list[ScheduledSession] = []
            for session in list(grid.sessions(day)):
                clash = any(
                    other.faculty_id == session.faculty_id and spans_overlap(other.span, session.span)
                    for other in kept
                )
                if not clash:
                    kept.append(session)
                    continue
                stats.teacher_conflicts_found += 1
                target = self._relocation_day(grid, session)
                if target is None:
                    logger.warning(
                        "Residual teacher conflict | faculty=%s day=%s time=%s-%s course=%s",
                        session.faculty_id,
                        day,
                        session.start_time,
                        session.end_time,
                        session.course_code,
                    )
                    kept.append(session)
                    continue
                grid.move(session, target)
                stats.teacher_relocations += 1

    def _relocation_day(self, grid: WeeklyGrid, session: ScheduledSession) -> str | None:
        for day in grid.days:
            if day == session.day:
                continue
            if not teacher_free(grid, day, session.span, session.faculty_id):
                continue
            if self.revalidate and not self._fits_on_day(grid, session, day):
                continue
            return day
        return None

    def _fits_on_day(self, grid: WeeklyGrid, session: ScheduledSession, day: str) -> bool:
        allowed_days = self.constraints.lab_days if session.kind == "lab" else self.constraints.teaching_days
        if day not in allowed_days:
            return False
        slot = self.timeslots.get(session.timeslot_id)
        if slot is not None and not slot.usable_on(day):
            return False
        if session.kind == "lab" and not faculty_day_free(grid, day, session.faculty_id, ignore=session):
            return False
        if any(
            other.kind == "lab" and other.faculty_id == session.faculty_id
            for other in grid.sessions(day)
            if other is not session
        ):
            return False
        if not teacher_free(grid, day, session.span, session.faculty_id, ignore=session):
            return False
        if not room_free(grid, day, session.span, session.room_id, ignore=session):
            return False
        return daily_capacity_ok(grid, day, self.constraints) and daily_hours_ok(
            grid, day, session.span, self.constraints
        )

    # Room conflicts

    def resolve_room_conflicts(self, grid: WeeklyGrid, stats: RepairStats) -> None:
        for day in list(grid.days):
            kept: list[ScheduledSession] = []
            for session in grid.sessions(day):
                clash = any(
                    other.room_id == session.room_id and spans_overlap(other.span, session.span)
                    for other in kept
                )
                if clash:
                    stats.room_conflicts_found += 1
                    new_room = (
                        self._alternative_catalogue_room(grid, session)
                        if self.revalidate
                        else self._alternative_legacy_room(session.room_id)
                    )
                    if new_room is None:
                        logger.warning(
                            "Residual room conflict | room=%s day=%s time=%s-%s course=%s",
                            session.room_id,
                            day,
                            session.start_time,
                            session.end_time,
                            session.course_code,
                        )
                    else:
                        session.room_id, session.fallback_room = new_room
                        stats.room_reassignments += 1
                kept.append(session)

    def _alternative_legacy_room(self, current_room_id: str) -> tuple[str, bool]:
        for room_id in self.constraints.alternative_rooms:
            if room_id != current_room_id:
                return room_id, True
        return self.constraints.default_room_id, True

    def _alternative_catalogue_room(self, grid: WeeklyGrid, session: ScheduledSession) -> tuple[str, bool] | None:
        room_type = RoomType.lab if session.kind == "lab" else RoomType.classroom
        rooms = self.catalogue.rooms_of_type(room_type)
        free: list[Room] = [
            room
            for room in rooms
            if room.id != session.room_id and room_free(grid, session.day, session.span, room.id, ignore=session)
        ]
        if any(room.capacity >= session.student_count for room in rooms):
            fitting = [room for room in free if room.capacity >= session.student_count]
            if not fitting:
                return None
            best = min(fitting, key=lambda room: (room.capacity - session.student_count, room.id))
            return best.id, False
        if free:
            return free[0].id, True
        return None

    # Daily balance

    def balance_daily_workload(self, grid: WeeklyGrid, stats: RepairStats) -> None:
        counts = grid.session_counts()
        if not counts:
            return
        mean = sum(counts.values()) / len(counts)

        for day, count in counts.items():
            if count <= mean + 1:
                continue
            quota = math.floor(count - mean)
            theory = sorted(
                (session for session in grid.sessions(day) if session.kind == "theory"),
                key=lambda item: item.span,
            )
            moved = 0
            for session in theory:
                if moved >= quota:
                    break
                target = self._balance_target(grid, session)
                if target is None:
                    continue
                grid.move(session, target)
                moved += 1
            stats.balanced_moves += moved

    def _balance_target(self, grid: WeeklyGrid, session: ScheduledSession) -> str | None:
        current = grid.session_counts()
        others = sorted((day for day in grid.days if day != session.day), key=lambda day: current[day])
        if not others:
            return None
        if not self.revalidate:
            return others[0]
        for day in others:
            if current[day] + 1 >= current[session.day]:
                break
            if self._fits_on_day(grid, session, day):
                return day
        return None
