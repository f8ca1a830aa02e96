from __future__ import annotations

from collections import Counter
import logging
from typing import Any, Mapping

from pydantic import ValidationError

from gridforge.core.exceptions import ConfigurationError
from gridforge.schemas.catalogue import Catalogue, SlotKind
from gridforge.schemas.constraints import SchedulingConstraints

logger = logging.getLogger(__name__)


def _duplicates(values: list[str]) -> list[str]:
    return sorted(value for value, count in Counter(values).items() if count > 1)


def load_catalogue(data: Catalogue | Mapping[str, Any]) -> Catalogue:
    if isinstance(data, Catalogue):
        return data
    try:
        return Catalogue.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            "Catalogue data is malformed",
            details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


def resolve_constraints(
    constraints: SchedulingConstraints | Mapping[str, Any] | None,
) -> SchedulingConstraints:
    """Merge caller overrides onto the default constraint set."""
    if constraints is None:
        return SchedulingConstraints()
    if isinstance(constraints, SchedulingConstraints):
        return constraints
    try:
        return SchedulingConstraints.model_validate(dict(constraints))
    except ValidationError as exc:
        raise ConfigurationError(
            "Scheduling constraints are invalid",
            details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


def validate_catalogue(catalogue: Catalogue) -> Catalogue:
    """Check referential integrity before generation starts.

    Rooms and timeslots must be present, ids must be unique per collection and
    every course must point at a known faculty member. All problems are
    collected into one ConfigurationError so the caller can fix them in one go.
    """
    problems: dict[str, list[str]] = {}

    if not catalogue.rooms:
        problems["rooms"] = ["No rooms configured"]
    if not catalogue.timeslots:
        problems["timeslots"] = ["No timeslots configured"]

    for label, ids in (
        ("courses", [item.id for item in catalogue.courses]),
        ("faculty", [item.id for item in catalogue.faculty]),
        ("rooms", [item.id for item in catalogue.rooms]),
        ("timeslots", [item.id for item in catalogue.timeslots]),
    ):
        duplicate_ids = _duplicates(ids)
        if duplicate_ids:
            problems.setdefault(label, []).append(f"Duplicate ids: {', '.join(duplicate_ids)}")

    faculty_ids = {item.id for item in catalogue.faculty}
    dangling = [course for course in catalogue.courses if course.faculty_id not in faculty_ids]
    if dangling:
        problems["faculty_references"] = [
            f"Course {course.code} references unknown faculty {course.faculty_id}" for course in dangling
        ]

    if problems:
        raise ConfigurationError("Catalogue failed validation", details=problems)

    logger.debug(
        "Catalogue validated | courses=%s faculty=%s rooms=%s theory_slots=%s lab_slots=%s",
        len(catalogue.courses),
        len(catalogue.faculty),
        len(catalogue.rooms),
        len(catalogue.slots_of_kind(SlotKind.theory)),
        len(catalogue.slots_of_kind(SlotKind.lab)),
    )
    return catalogue
