from __future__ import annotations

import re
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

DAY_ORDER = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
DAY_VALUES = set(DAY_ORDER)

DAY_SHORT_MAP = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
    "Sat": "Saturday",
    "Sun": "Sunday",
}

TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")

DEFAULT_EXPECTED_ENROLLMENT = 60


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    hours = value // 60
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


def normalize_day(value: str) -> str:
    day = value.strip()
    return DAY_SHORT_MAP.get(day, day)


class CourseType(str, Enum):
    theory = "theory"
    lab = "lab"


class RoomType(str, Enum):
    classroom = "classroom"
    lab = "lab"


class SlotKind(str, Enum):
    theory = "theory"
    lab = "lab"
    break_ = "break"
    lunch = "lunch"


class Faculty(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=100)
    type: RoomType
    capacity: int = Field(ge=0, le=5000)


class Course(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    code: str = Field(min_length=1, max_length=50)
    type: CourseType
    credits: int = Field(default=0, ge=0, le=40)
    lab_credits: int | None = Field(
        default=None,
        ge=0,
        le=40,
        validation_alias=AliasChoices("lab_credits", "labCredits"),
    )
    faculty_id: str = Field(
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices("faculty_id", "facultyId", "teacherId"),
    )
    expected_enrollment: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("expected_enrollment", "expectedStudents"),
    )
    student_groups: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("student_groups", "studentGroups"),
    )

    @property
    def enrollment(self) -> int:
        # Zero and missing enrollment both mean "unknown": size for a standard section.
        return self.expected_enrollment or DEFAULT_EXPECTED_ENROLLMENT

    @property
    def is_lab(self) -> bool:
        return self.type == CourseType.lab

    @property
    def lab_code(self) -> str:
        return f"{self.code}L"

    @property
    def lab_name(self) -> str:
        return f"{self.name} Lab"


class Timeslot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, max_length=64)
    order: int = 0
    day: str | None = None
    start: str
    end: str
    kind: SlotKind = Field(validation_alias=AliasChoices("kind", "type"))

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str | None) -> str | None:
        if value is None:
            return None
        day = normalize_day(value)
        if day not in DAY_VALUES:
            raise ValueError("Invalid day value")
        return day

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, value: str) -> str:
        value = value.strip()
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return minutes_to_time(parse_time_to_minutes(value))

    @model_validator(mode="after")
    def validate_time_order(self) -> "Timeslot":
        if self.end_minutes <= self.start_minutes:
            raise ValueError("end must be after start")
        return self

    @property
    def start_minutes(self) -> int:
        return parse_time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_time_to_minutes(self.end)

    def usable_on(self, day: str) -> bool:
        return self.day is None or self.day == day


class Catalogue(BaseModel):
    courses: list[Course] = Field(default_factory=list)
    faculty: list[Faculty] = Field(
        default_factory=list,
        validation_alias=AliasChoices("faculty", "faculties"),
    )
    rooms: list[Room] = Field(default_factory=list)
    timeslots: list[Timeslot] = Field(default_factory=list)

    def faculty_by_id(self) -> dict[str, Faculty]:
        return {item.id: item for item in self.faculty}

    def slots_of_kind(self, kind: SlotKind) -> list[Timeslot]:
        return sorted(
            (slot for slot in self.timeslots if slot.kind == kind),
            key=lambda slot: (slot.order, slot.start_minutes),
        )

    def rooms_of_type(self, room_type: RoomType) -> list[Room]:
        return [room for room in self.rooms if room.type == room_type]
