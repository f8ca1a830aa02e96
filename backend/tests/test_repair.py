import pytest

from gridforge.schemas.constraints import SchedulingConstraints
from gridforge.services.repair import RepairOptimizer
from gridforge.services.scorer import detect_conflicts


@pytest.fixture()
def catalogue(build_catalogue):
    return build_catalogue(
        rooms=[
            {"id": "R1", "name": "Room 1", "type": "classroom", "capacity": 60},
            {"id": "R2", "name": "Room 2", "type": "classroom", "capacity": 60},
            {"id": "R3", "name": "Room 3", "type": "classroom", "capacity": 100},
            {"id": "LAB1", "name": "Lab 1", "type": "lab", "capacity": 60},
        ]
    )


def test_teacher_conflict_is_relocated_to_another_day(catalogue, empty_grid, make_session):
    grid = empty_grid()
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F1", room="R2"))

    repaired, stats = RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    assert stats.teacher_conflicts_found == 1
    assert stats.teacher_relocations == 1
    assert [session.session_id for session in repaired.sessions("Monday")] == ["a"]
    assert [session.session_id for session in repaired.sessions("Tuesday")] == ["b"]
    moved = repaired.sessions("Tuesday")[0]
    assert (moved.start_time, moved.end_time) == ("09:00", "10:00")
    assert detect_conflicts(repaired) == []


def test_optimize_works_on_a_copy(catalogue, empty_grid, make_session):
    grid = empty_grid()
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F1", room="R1"))
    before = grid.model_dump()

    RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    assert grid.model_dump() == before


def test_teacher_conflict_without_free_day_is_left_in_place(catalogue, empty_grid, make_session):
    grid = empty_grid(["Monday"])
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F1", room="R2"))

    repaired, stats = RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    assert stats.teacher_conflicts_found == 1
    assert stats.teacher_relocations == 0
    assert len(repaired.sessions("Monday")) == 2
    assert [conflict.conflict_type for conflict in detect_conflicts(repaired)] == ["faculty_conflict"]


def test_relocation_respects_daily_ceiling(catalogue, empty_grid, make_session):
    grid = empty_grid(["Monday", "Tuesday"])
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F1", room="R2"))
    grid.add(make_session("c", day="Tuesday", start="11:00", end="12:00", faculty="F2", room="R1"))
    constraints = SchedulingConstraints(max_classes_per_day=1)

    repaired, stats = RepairOptimizer(catalogue, constraints).optimize(grid)

    assert stats.teacher_relocations == 0
    assert len(repaired.sessions("Tuesday")) == 1


def test_legacy_room_reassignment_uses_alternative_ids(catalogue, empty_grid, make_session):
    grid = empty_grid(["Monday"])
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F2", room="R1"))
    grid.add(make_session("c", start="11:00", end="12:00", faculty="F3", room="Room 202"))
    grid.add(make_session("d", start="11:00", end="12:00", faculty="F4", room="Room 202"))
    constraints = SchedulingConstraints(revalidate_repairs=False)

    repaired, stats = RepairOptimizer(catalogue, constraints).optimize(grid)

    rooms = {session.session_id: session.room_id for session in repaired.sessions("Monday")}
    assert rooms == {"a": "R1", "b": "Room 202", "c": "Room 202", "d": "Room 203"}
    assert stats.room_conflicts_found == 2
    assert stats.room_reassignments == 2
    assert stats.revalidated is False


def test_revalidated_room_reassignment_picks_a_free_catalogue_room(catalogue, empty_grid, make_session):
    grid = empty_grid(["Monday"])
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F2", room="R1", student_count=40))

    repaired, stats = RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    moved = repaired.sessions("Monday")[1]
    assert moved.room_id == "R2"
    assert moved.fallback_room is False
    assert stats.room_reassignments == 1
    assert detect_conflicts(repaired) == []


def test_revalidated_room_reassignment_skips_busy_rooms(catalogue, empty_grid, make_session):
    grid = empty_grid(["Monday"])
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("x", faculty="F3", room="R2"))
    grid.add(make_session("b", faculty="F2", room="R1", student_count=40))

    repaired, _ = RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    assert {session.session_id: session.room_id for session in repaired.sessions("Monday")}["b"] == "R3"


def test_room_conflict_without_alternative_is_reported(build_catalogue, empty_grid, make_session):
    catalogue = build_catalogue(rooms=[{"id": "R1", "name": "Room 1", "type": "classroom", "capacity": 60}])
    grid = empty_grid(["Monday"])
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F2", room="R1"))

    repaired, stats = RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    assert stats.room_conflicts_found == 1
    assert stats.room_reassignments == 0
    assert [conflict.id for conflict in detect_conflicts(repaired)] == ["room-a-b"]


def test_balancing_moves_earliest_theory_sessions(catalogue, empty_grid, make_session):
    grid = empty_grid()
    for session_id, start, end in (("a", "09:00", "10:00"), ("b", "10:00", "11:00"), ("c", "11:00", "12:00"), ("d", "13:00", "14:00")):
        grid.add(make_session(session_id, start=start, end=end))

    repaired, stats = RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    assert stats.balanced_moves == 3
    assert repaired.session_counts() == {"Monday": 1, "Tuesday": 1, "Wednesday": 1, "Thursday": 1, "Friday": 0}
    assert [session.session_id for session in repaired.sessions("Monday")] == ["d"]
    assert [session.session_id for session in repaired.sessions("Tuesday")] == ["a"]


def test_balancing_never_moves_labs(catalogue, empty_grid, make_session):
    grid = empty_grid()
    grid.add(make_session("l1", start="09:00", end="11:00", faculty="F1", room="LAB1", kind="lab"))
    grid.add(make_session("l2", start="11:00", end="13:00", faculty="F2", room="LAB1", kind="lab"))
    grid.add(make_session("l3", start="14:00", end="16:00", faculty="F3", room="LAB1", kind="lab"))

    repaired, stats = RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    assert stats.balanced_moves == 0
    assert len(repaired.sessions("Monday")) == 3


def test_balancing_leaves_even_weeks_alone(catalogue, empty_grid, make_session):
    grid = empty_grid()
    for day in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday"):
        grid.add(make_session(f"s-{day}", day=day))

    repaired, stats = RepairOptimizer(catalogue, SchedulingConstraints()).optimize(grid)

    assert stats.balanced_moves == 0
    assert repaired.model_dump() == grid.model_dump()


def test_legacy_relocation_takes_first_day_the_teacher_is_free(catalogue, empty_grid, make_session):
    grid = empty_grid(["Monday", "Tuesday", "Wednesday"])
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F1", room="R2"))
    grid.add(make_session("c", day="Tuesday", faculty="F2", room="R2"))
    constraints = SchedulingConstraints(max_classes_per_day=1, revalidate_repairs=False)

    repaired, stats = RepairOptimizer(catalogue, constraints).optimize(grid)

    # Tuesday is already at the ceiling and R2 is taken there; neither is checked.
    moved = next(session for session in repaired.all_sessions() if session.session_id == "b")
    assert moved.day == "Tuesday"
    assert moved.room_id == "Room 202"
    assert stats.teacher_relocations == 1
    assert stats.room_conflicts_found == 1
    assert repaired.session_counts() == {"Monday": 1, "Tuesday": 2, "Wednesday": 0}


def test_revalidated_relocation_skips_full_days(catalogue, empty_grid, make_session):
    grid = empty_grid(["Monday", "Tuesday", "Wednesday"])
    grid.add(make_session("a", faculty="F1", room="R1"))
    grid.add(make_session("b", faculty="F1", room="R2"))
    grid.add(make_session("c", day="Tuesday", faculty="F2", room="R2"))
    constraints = SchedulingConstraints(max_classes_per_day=1)

    repaired, stats = RepairOptimizer(catalogue, constraints).optimize(grid)

    moved = next(session for session in repaired.all_sessions() if session.session_id == "b")
    assert moved.day == "Wednesday"
    assert moved.room_id == "R2"
    assert stats.room_conflicts_found == 0


def test_legacy_balancing_moves_without_rechecking(catalogue, empty_grid, make_session):
    grid = empty_grid()
    for session_id, start, end in (("a", "09:00", "10:00"), ("b", "10:00", "11:00"), ("c", "11:00", "12:00"), ("d", "13:00", "14:00")):
        grid.add(make_session(session_id, start=start, end=end))
    grid.add(make_session("lab", start="14:00", end="16:00", faculty="F2", room="LAB1", kind="lab"))
    constraints = SchedulingConstraints(teaching_days=["Monday"], lab_days=["Monday"], revalidate_repairs=False)

    repaired, stats = RepairOptimizer(catalogue, constraints).optimize(grid)

    # floor(5 - 1) = 4 moves, each to the emptiest day, even though only Monday is a teaching day.
    assert stats.balanced_moves == 4
    placement = {session.session_id: session.day for session in repaired.all_sessions()}
    assert placement == {"lab": "Monday", "a": "Tuesday", "b": "Wednesday", "c": "Thursday", "d": "Friday"}


def test_revalidated_balancing_respects_teaching_days(catalogue, empty_grid, make_session):
    grid = empty_grid()
    for session_id, start, end in (("a", "09:00", "10:00"), ("b", "10:00", "11:00"), ("c", "11:00", "12:00"), ("d", "13:00", "14:00")):
        grid.add(make_session(session_id, start=start, end=end))
    constraints = SchedulingConstraints(teaching_days=["Monday"], lab_days=["Monday"])

    repaired, stats = RepairOptimizer(catalogue, constraints).optimize(grid)

    assert stats.balanced_moves == 0
    assert len(repaired.sessions("Monday")) == 4
