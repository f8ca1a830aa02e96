from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, Field

from gridforge.schemas.catalogue import Catalogue, parse_time_to_minutes
from gridforge.schemas.conflict import CapacityShortfall, ConflictDetail
from gridforge.schemas.constraints import GenerationSettings, GenerationStrategy, SchedulingConstraints


class ScheduledSession(BaseModel):
    session_id: str
    kind: Literal["theory", "lab"]
    course_id: str
    course_code: str
    course_name: str
    day: str
    timeslot_id: str
    start_time: str
    end_time: str
    room_id: str
    faculty_id: str
    credits: int = 0
    duration_hours: int = 1
    student_count: int = 0
    fallback_room: bool = False

    @property
    def span(self) -> tuple[int, int]:
        return parse_time_to_minutes(self.start_time), parse_time_to_minutes(self.end_time)


class GridMarker(BaseModel):
    kind: Literal["break", "lunch"]
    day: str
    start_time: str
    end_time: str
    label: str

    @property
    def span(self) -> tuple[int, int]:
        return parse_time_to_minutes(self.start_time), parse_time_to_minutes(self.end_time)


GridEntry = Annotated[Union[ScheduledSession, GridMarker], Field(discriminator="kind")]


class WeeklyGrid(BaseModel):
    days: dict[str, list[GridEntry]] = Field(default_factory=dict)

    @classmethod
    def empty(cls, day_names: list[str]) -> "WeeklyGrid":
        return cls(days={day: [] for day in day_names})

    def sessions(self, day: str) -> list[ScheduledSession]:
        return [entry for entry in self.days.get(day, []) if isinstance(entry, ScheduledSession)]

    def all_sessions(self) -> Iterator[ScheduledSession]:
        for day in self.days:
            yield from self.sessions(day)

    def markers(self, day: str) -> list[GridMarker]:
        return [entry for entry in self.days.get(day, []) if isinstance(entry, GridMarker)]

    def session_counts(self) -> dict[str, int]:
        return {day: len(self.sessions(day)) for day in self.days}

    def add(self, session: ScheduledSession) -> None:
        self.days.setdefault(session.day, []).append(session)

    def remove(self, session: ScheduledSession) -> None:
        entries = self.days[session.day]
        for index, entry in enumerate(entries):
            if entry is session:
                del entries[index]
                return
        raise ValueError(f"Session {session.session_id} is not on {session.day}")

    def move(self, session: ScheduledSession, target_day: str) -> None:
        self.remove(session)
        session.day = target_day
        self.add(session)


class UnplacedCourse(BaseModel):
    course_id: str
    course_code: str
    course_name: str
    kind: Literal["theory", "lab"]
    attempts: int
    reason: str


class RepairStats(BaseModel):
    teacher_conflicts_found: int = 0
    teacher_relocations: int = 0
    room_conflicts_found: int = 0
    room_reassignments: int = 0
    balanced_moves: int = 0
    revalidated: bool = True


class GenerationReport(BaseModel):
    unplaced: list[UnplacedCourse] = Field(default_factory=list)
    score: float
    raw_score: float
    conflicts: list[ConflictDetail] = Field(default_factory=list)
    initial_conflicts: list[ConflictDetail] = Field(default_factory=list)
    capacity_shortfalls: list[CapacityShortfall] = Field(default_factory=list)
    repair: RepairStats = Field(default_factory=RepairStats)
    constraints: SchedulingConstraints
    strategy: GenerationStrategy
    random_seed: int | None = None
    runtime_ms: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def unplaced_course_ids(self) -> list[str]:
        return [item.course_id for item in self.unplaced]


class GenerateTimetableRequest(BaseModel):
    catalogue: Catalogue
    constraints: SchedulingConstraints | None = None
    strategy: GenerationStrategy | None = None
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    settings_override: GenerationSettings | None = None


class GenerateTimetableResponse(BaseModel):
    grid: WeeklyGrid
    report: GenerationReport
