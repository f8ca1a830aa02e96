from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from gridforge.schemas.catalogue import DAY_ORDER, DAY_VALUES, TIME_PATTERN, normalize_day

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

DEFAULT_ROOM_ID = "Room 201"
DEFAULT_LAB_ROOM_ID = "Lab 101"
LEGACY_ALTERNATIVE_ROOMS = ["Room 202", "Room 203", "Room 204", "Room 205"]

GenerationStrategy = Literal["constructive", "genetic"]


def _alias(name: str, camel: str) -> AliasChoices:
    return AliasChoices(name, camel)


class SchedulingConstraints(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    max_classes_per_day: int = Field(default=6, ge=1, le=24, validation_alias=_alias("max_classes_per_day", "maxClassesPerDay"))
    max_hours_per_day: int = Field(default=8, ge=1, le=24, validation_alias=_alias("max_hours_per_day", "maxHoursPerDay"))
    lab_duration_hours: int = Field(default=2, ge=1, le=8, validation_alias=_alias("lab_duration_hours", "labDurationHours"))
    min_break_minutes: int = Field(default=10, ge=0, le=240, validation_alias=_alias("min_break_minutes", "minBreakMinutes"))
    lunch_duration_minutes: int = Field(
        default=60, ge=0, le=240, validation_alias=_alias("lunch_duration_minutes", "lunchDurationMinutes")
    )
    theory_duration_hours: int = Field(
        default=1, ge=1, le=8, validation_alias=_alias("theory_duration_hours", "theoryDurationHours")
    )

    lunch_start: str = Field(default="12:00", validation_alias=_alias("lunch_start", "lunchStart"))
    teaching_days: list[str] = Field(default_factory=lambda: list(WEEKDAYS), validation_alias=_alias("teaching_days", "teachingDays"))
    lab_days: list[str] = Field(default_factory=lambda: list(WEEKDAYS), validation_alias=_alias("lab_days", "labDays"))
    theory_attempts: int = Field(default=100, ge=1, le=100_000, validation_alias=_alias("theory_attempts", "theoryAttempts"))
    lab_attempts: int = Field(default=50, ge=1, le=100_000, validation_alias=_alias("lab_attempts", "labAttempts"))

    default_room_id: str = Field(default=DEFAULT_ROOM_ID, min_length=1, validation_alias=_alias("default_room_id", "defaultRoomId"))
    default_lab_room_id: str = Field(
        default=DEFAULT_LAB_ROOM_ID, min_length=1, validation_alias=_alias("default_lab_room_id", "defaultLabRoomId")
    )
    alternative_rooms: list[str] = Field(
        default_factory=lambda: list(LEGACY_ALTERNATIVE_ROOMS),
        validation_alias=_alias("alternative_rooms", "alternativeRooms"),
    )
    # False keeps the legacy repair passes: relocations are not re-checked.
    revalidate_repairs: bool = Field(default=True, validation_alias=_alias("revalidate_repairs", "revalidateRepairs"))

    @field_validator("teaching_days", "lab_days")
    @classmethod
    def validate_days(cls, value: list[str]) -> list[str]:
        days = []
        for item in value:
            day = normalize_day(item)
            if day not in DAY_VALUES:
                raise ValueError(f"Invalid day value: {item}")
            if day not in days:
                days.append(day)
        return sorted(days, key=DAY_ORDER.index)

    @field_validator("lunch_start")
    @classmethod
    def validate_lunch_start(cls, value: str) -> str:
        if not TIME_PATTERN.match(value.strip()):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value.strip()

    @model_validator(mode="after")
    def validate_day_sets(self) -> "SchedulingConstraints":
        if not self.teaching_days and not self.lab_days:
            raise ValueError("At least one teaching or lab day is required")
        return self

    @property
    def grid_days(self) -> list[str]:
        days = set(self.teaching_days) | set(self.lab_days)
        return [day for day in DAY_ORDER if day in days]


class GenerationSettings(BaseModel):
    population_size: int = Field(default=50, ge=4, le=2000)
    generations: int = Field(default=30, ge=1, le=5000)
    mutation_rate: float = Field(default=0.12, ge=0.0, le=1.0)
    crossover_rate: float = Field(default=0.8, ge=0.0, le=1.0)
    elite_count: int = Field(default=4, ge=1, le=100)
    tournament_size: int = Field(default=4, ge=2, le=50)
    stagnation_limit: int = Field(default=10, ge=1, le=1000)
    seed_fraction: float = Field(default=0.25, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_relationships(self) -> "GenerationSettings":
        if self.elite_count >= self.population_size:
            raise ValueError("elite_count must be less than population_size")
        if self.tournament_size > self.population_size:
            raise ValueError("tournament_size cannot exceed population_size")
        return self
