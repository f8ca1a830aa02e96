from __future__ import annotations

import logging

from gridforge.schemas.catalogue import minutes_to_time, parse_time_to_minutes
from gridforge.schemas.constraints import SchedulingConstraints
from gridforge.schemas.timetable import GridMarker, ScheduledSession, WeeklyGrid
from gridforge.services.conflict_checker import spans_overlap

logger = logging.getLogger(__name__)


def _break_marker(day: str, start: int, end: int) -> GridMarker:
    return GridMarker(
        kind="break",
        day=day,
        start_time=minutes_to_time(start),
        end_time=minutes_to_time(end),
        label="Break",
    )


def add_breaks_and_lunch(grid: WeeklyGrid, constraints: SchedulingConstraints) -> WeeklyGrid:
    """Rebuild every day as sorted sessions plus break and lunch markers.

    Existing markers are discarded first, so the pass can be re-run after the
    grid changes. Sessions themselves are never touched.
    """
    lunch_start = parse_time_to_minutes(constraints.lunch_start)
    lunch_window = (lunch_start, lunch_start + constraints.lunch_duration_minutes)

    for day in list(grid.days):
        sessions = sorted(grid.sessions(day), key=lambda item: item.span)
        entries: list[ScheduledSession | GridMarker] = []
        busy_until = 0
        for index, session in enumerate(sessions):
            entries.append(session)
            # Overlapping sessions: a gap starts only once the longest-running one ends.
            busy_until = max(busy_until, session.span[1])
            if index == len(sessions) - 1:
                continue
            next_start = sessions[index + 1].span[0]
            if next_start - busy_until > constraints.min_break_minutes:
                entries.append(_break_marker(day, busy_until, next_start))

        if constraints.lunch_duration_minutes > 0:
            _insert_lunch(entries, day, lunch_window)

        grid.days[day] = entries

    logger.debug(
        "Injected markers | breaks=%s lunches=%s",
        sum(1 for day in grid.days for marker in grid.markers(day) if marker.kind == "break"),
        sum(1 for day in grid.days for marker in grid.markers(day) if marker.kind == "lunch"),
    )
    return grid


def _insert_lunch(entries: list, day: str, window: tuple[int, int]) -> None:
    if any(isinstance(entry, ScheduledSession) and spans_overlap(entry.span, window) for entry in entries):
        return

    # A break covering the window gives way to lunch.
    for index, entry in enumerate(entries):
        if isinstance(entry, GridMarker) and spans_overlap(entry.span, window):
            del entries[index]
            start, end = entry.span
            pieces = []
            if start < window[0]:
                pieces.append(_break_marker(day, start, window[0]))
            if window[1] < end:
                pieces.append(_break_marker(day, window[1], end))
            entries[index:index] = pieces
            break

    position = 0
    for index, entry in enumerate(entries):
        if entry.span[1] <= window[0]:
            position = index + 1
    entries.insert(
        position,
        GridMarker(
            kind="lunch",
            day=day,
            start_time=minutes_to_time(window[0]),
            end_time=minutes_to_time(window[1]),
            label="Lunch",
        ),
    )
