from __future__ import annotations

from dataclasses import dataclass
import logging
import random

from gridforge.schemas.catalogue import Catalogue, Course, CourseType, Room, RoomType, SlotKind, Timeslot
from gridforge.schemas.constraints import SchedulingConstraints
from gridforge.schemas.timetable import ScheduledSession, UnplacedCourse, WeeklyGrid
from gridforge.services.conflict_checker import (
    Span,
    daily_capacity_ok,
    daily_hours_ok,
    faculty_day_free,
    lab_already_scheduled,
    room_free,
    teacher_free,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomChoice:
    room_id: str
    fallback: bool


def session_id_for(course: Course, kind: str) -> str:
    return f"{course.id}:{kind}"


def select_room(
    grid: WeeklyGrid,
    day: str,
    span: Span,
    course: Course,
    rooms: list[Room],
    default_room_id: str,
    rng: random.Random,
) -> RoomChoice | None:
    """Pick a free room of the right type for ``course`` at ``(day, span)``.

    Rooms large enough for the enrollment are preferred and drawn at random. If
    no room of the type is large enough at all, the first free one is used; if
    there is no room of the type, the default id stands in. Returns None when
    every candidate is busy.
    """
    if not rooms:
        if room_free(grid, day, span, default_room_id):
            return RoomChoice(default_room_id, fallback=True)
        return None

    qualifying = [room for room in rooms if room.capacity >= course.enrollment]
    if qualifying:
        free = [room for room in qualifying if room_free(grid, day, span, room.id)]
        if not free:
            return None
        return RoomChoice(rng.choice(free).id, fallback=False)

    for room in rooms:
        if room_free(grid, day, span, room.id):
            return RoomChoice(room.id, fallback=True)
    return None


class ConstructiveScheduler:
    def __init__(
        self,
        catalogue: Catalogue,
        constraints: SchedulingConstraints,
        rng: random.Random,
    ) -> None:
        self.catalogue = catalogue
        self.constraints = constraints
        self.random = rng
        self.theory_slots = catalogue.slots_of_kind(SlotKind.theory)
        self.lab_slots = catalogue.slots_of_kind(SlotKind.lab)
        self.classrooms = catalogue.rooms_of_type(RoomType.classroom)
        self.lab_rooms = catalogue.rooms_of_type(RoomType.lab)

    def run(self) -> tuple[WeeklyGrid, list[UnplacedCourse]]:
        grid = WeeklyGrid.empty(self.constraints.grid_days)
        unplaced: list[UnplacedCourse] = []

        theory_courses = [course for course in self.catalogue.courses if course.type == CourseType.theory]
        lab_courses = [course for course in self.catalogue.courses if course.type == CourseType.lab]

        for course in theory_courses:
            failure = self._place_theory(grid, course)
            if failure is not None:
                unplaced.append(failure)
        for course in lab_courses:
            failure = self._place_lab(grid, course)
            if failure is not None:
                unplaced.append(failure)

        for item in unplaced:
            logger.warning(
                "Could not schedule %s course %s (%s) after %s attempts: %s",
                item.kind,
                item.course_code,
                item.course_name,
                item.attempts,
                item.reason,
            )
        return grid, unplaced

    def _sample(self, days: list[str], slots: list[Timeslot]) -> tuple[str, Timeslot] | None:
        day = self.random.choice(days)
        candidates = [slot for slot in slots if slot.usable_on(day)]
        if not candidates:
            return None
        return day, self.random.choice(candidates)

    def _place_theory(self, grid: WeeklyGrid, course: Course) -> UnplacedCourse | None:
        budget = self.constraints.theory_attempts
        days = self.constraints.teaching_days
        if not days:
            return self._unplaced(course, "theory", 0, "No teaching days configured")

        for _attempt in range(budget):
            sampled = self._sample(days, self.theory_slots)
            if sampled is None:
                continue
            day, slot = sampled
            span = (slot.start_minutes, slot.end_minutes)
            if not teacher_free(grid, day, span, course.faculty_id):
                continue
            if not daily_capacity_ok(grid, day, self.constraints):
                continue
            if not daily_hours_ok(grid, day, span, self.constraints):
                continue
            room = select_room(grid, day, span, course, self.classrooms, self.constraints.default_room_id, self.random)
            if room is None:
                continue
            grid.add(
                self._build_session(
                    course,
                    kind="theory",
                    day=day,
                    slot=slot,
                    room=room,
                    code=course.code,
                    name=course.name,
                    credits=course.credits,
                    duration_hours=self.constraints.theory_duration_hours,
                )
            )
            return None

        reason = "No theory timeslots configured" if not self.theory_slots else "Attempt budget exhausted"
        return self._unplaced(course, "theory", budget, reason)

    def _place_lab(self, grid: WeeklyGrid, course: Course) -> UnplacedCourse | None:
        budget = self.constraints.lab_attempts
        days = self.constraints.lab_days
        if not days:
            return self._unplaced(course, "lab", 0, "No lab days configured")

        for _attempt in range(budget):
            sampled = self._sample(days, self.lab_slots)
            if sampled is None:
                continue
            day, slot = sampled
            span = (slot.start_minutes, slot.end_minutes)
            if lab_already_scheduled(grid, course):
                continue
            if not faculty_day_free(grid, day, course.faculty_id):
                continue
            if not daily_capacity_ok(grid, day, self.constraints):
                continue
            if not daily_hours_ok(grid, day, span, self.constraints):
                continue
            room = select_room(grid, day, span, course, self.lab_rooms, self.constraints.default_lab_room_id, self.random)
            if room is None:
                continue
            grid.add(
                self._build_session(
                    course,
                    kind="lab",
                    day=day,
                    slot=slot,
                    room=room,
                    code=course.lab_code,
                    name=course.lab_name,
                    credits=course.lab_credits or 1,
                    duration_hours=self.constraints.lab_duration_hours,
                )
            )
            return None

        reason = "No lab timeslots configured" if not self.lab_slots else "Attempt budget exhausted"
        return self._unplaced(course, "lab", budget, reason)

    def _build_session(
        self,
        course: Course,
        *,
        kind: str,
        day: str,
        slot: Timeslot,
        room: RoomChoice,
        code: str,
        name: str,
        credits: int,
        duration_hours: int,
    ) -> ScheduledSession:
        if room.fallback:
            logger.warning(
                "Degraded room fallback for %s on %s %s-%s: room=%s enrollment=%s",
                code,
                day,
                slot.start,
                slot.end,
                room.room_id,
                course.enrollment,
            )
        return ScheduledSession(
            session_id=session_id_for(course, kind),
            kind=kind,
            course_id=course.id,
            course_code=code,
            course_name=name,
            day=day,
            timeslot_id=slot.id,
            start_time=slot.start,
            end_time=slot.end,
            room_id=room.room_id,
            faculty_id=course.faculty_id,
            credits=credits,
            duration_hours=duration_hours,
            student_count=course.enrollment,
            fallback_room=room.fallback,
        )

    @staticmethod
    def _unplaced(course: Course, kind: str, attempts: int, reason: str) -> UnplacedCourse:
        return UnplacedCourse(
            course_id=course.id,
            course_code=course.lab_code if kind == "lab" else course.code,
            course_name=course.lab_name if kind == "lab" else course.name,
            kind=kind,
            attempts=attempts,
            reason=reason,
        )
