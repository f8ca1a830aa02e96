from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
import logging
import random
from time import perf_counter

from gridforge.schemas.catalogue import Catalogue, Course, CourseType, Room, RoomType, SlotKind, Timeslot
from gridforge.schemas.constraints import GenerationSettings, SchedulingConstraints
from gridforge.schemas.timetable import ScheduledSession, UnplacedCourse, WeeklyGrid
from gridforge.services.constructive_scheduler import ConstructiveScheduler, session_id_for
from gridforge.services.scorer import score_grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlacementOption:
    day: str
    timeslot_id: str
    room_id: str
    fallback_room: bool


@dataclass(frozen=True)
class PlacementRequest:
    course: Course
    kind: str
    options: tuple[PlacementOption, ...]


@dataclass
class EvaluationResult:
    fitness: float
    hard_conflicts: int
    imbalance: int


class EvolutionaryScheduler:
    """Population-based alternative to the constructive scheduler.

    One gene per course, holding an index into that course's placement options
    (day, timeslot, room). Fitness is the scorer's unclamped score of the decoded
    grid, with lab-day reservations and per-day ceilings charged as conflicts.
    """

    def __init__(
        self,
        catalogue: Catalogue,
        constraints: SchedulingConstraints,
        settings: GenerationSettings,
        rng: random.Random,
    ) -> None:
        self.catalogue = catalogue
        self.constraints = constraints
        self.settings = settings
        self.random = rng
        self.timeslots = {slot.id: slot for slot in catalogue.timeslots}

        requests = [self._build_request(course) for course in catalogue.courses]
        self.requests = [req for req in requests if req.options]
        self.unplaced = [
            UnplacedCourse(
                course_id=req.course.id,
                course_code=req.course.lab_code if req.kind == "lab" else req.course.code,
                course_name=req.course.lab_name if req.kind == "lab" else req.course.name,
                kind=req.kind,
                attempts=0,
                reason="No placement options for the configured days, timeslots and rooms",
            )
            for req in requests
            if not req.options
        ]
        self.eval_cache: dict[tuple[int, ...], EvaluationResult] = {}
        self.generations_run = 0

    def _room_candidates(self, course: Course, rooms: list[Room], default_room_id: str) -> list[tuple[str, bool]]:
        if not rooms:
            return [(default_room_id, True)]
        qualifying = [room for room in rooms if room.capacity >= course.enrollment]
        if qualifying:
            return [(room.id, False) for room in qualifying]
        return [(room.id, True) for room in rooms]

    def _build_request(self, course: Course) -> PlacementRequest:
        if course.type == CourseType.lab:
            kind = "lab"
            days = self.constraints.lab_days
            slots = self.catalogue.slots_of_kind(SlotKind.lab)
            rooms = self._room_candidates(
                course, self.catalogue.rooms_of_type(RoomType.lab), self.constraints.default_lab_room_id
            )
        else:
            kind = "theory"
            days = self.constraints.teaching_days
            slots = self.catalogue.slots_of_kind(SlotKind.theory)
            rooms = self._room_candidates(
                course, self.catalogue.rooms_of_type(RoomType.classroom), self.constraints.default_room_id
            )
        options = tuple(
            PlacementOption(day=day, timeslot_id=slot.id, room_id=room_id, fallback_room=fallback)
            for day in days
            for slot in slots
            if slot.usable_on(day)
            for room_id, fallback in rooms
        )
        return PlacementRequest(course=course, kind=kind, options=options)

    # Decoding and evaluation

    def _decode(self, genes: list[int]) -> WeeklyGrid:
        grid = WeeklyGrid.empty(self.constraints.grid_days)
        for req, gene in zip(self.requests, genes):
            option = req.options[gene]
            grid.add(self._session(req, option))
        return grid

    def _session(self, req: PlacementRequest, option: PlacementOption) -> ScheduledSession:
        course = req.course
        slot: Timeslot = self.timeslots[option.timeslot_id]
        is_lab = req.kind == "lab"
        return ScheduledSession(
            session_id=session_id_for(course, req.kind),
            kind=req.kind,
            course_id=course.id,
            course_code=course.lab_code if is_lab else course.code,
            course_name=course.lab_name if is_lab else course.name,
            day=option.day,
            timeslot_id=slot.id,
            start_time=slot.start,
            end_time=slot.end,
            room_id=option.room_id,
            faculty_id=course.faculty_id,
            credits=(course.lab_credits or 1) if is_lab else course.credits,
            duration_hours=self.constraints.lab_duration_hours if is_lab else self.constraints.theory_duration_hours,
            student_count=course.enrollment,
            fallback_room=option.fallback_room,
        )

    def _rule_violations(self, grid: WeeklyGrid) -> int:
        violations = 0
        for day in grid.days:
            sessions = grid.sessions(day)
            violations += max(0, len(sessions) - self.constraints.max_classes_per_day)
            minutes = sum(item.span[1] - item.span[0] for item in sessions)
            if minutes > self.constraints.max_hours_per_day * 60:
                violations += 1
            per_faculty = Counter(item.faculty_id for item in sessions)
            for session in sessions:
                if session.kind == "lab" and per_faculty[session.faculty_id] > 1:
                    violations += 1
        return violations

    def _evaluate(self, genes: list[int]) -> EvaluationResult:
        key = tuple(genes)
        cached = self.eval_cache.get(key)
        if cached is not None:
            return cached
        grid = self._decode(genes)
        extra = self._rule_violations(grid)
        result = score_grid(grid, extra_conflicts=extra)
        evaluation = EvaluationResult(
            fitness=result.raw_score,
            hard_conflicts=len(result.conflicts) + extra,
            imbalance=result.imbalance,
        )
        self.eval_cache[key] = evaluation
        return evaluation

    # Operators

    def _random_individual(self) -> list[int]:
        return [self.random.randrange(len(req.options)) for req in self.requests]

    def _constructive_individual(self) -> list[int]:
        seed_rng = random.Random(self.random.getrandbits(32))
        grid, _unplaced = ConstructiveScheduler(self.catalogue, self.constraints, seed_rng).run()
        placed = {session.session_id: session for session in grid.all_sessions()}
        genes: list[int] = []
        for req in self.requests:
            session = placed.get(session_id_for(req.course, req.kind))
            index = None
            if session is not None:
                index = next(
                    (
                        idx
                        for idx, option in enumerate(req.options)
                        if option.day == session.day
                        and option.timeslot_id == session.timeslot_id
                        and option.room_id == session.room_id
                    ),
                    None,
                )
            genes.append(index if index is not None else self.random.randrange(len(req.options)))
        return genes

    def _crossover(self, parent_a: list[int], parent_b: list[int]) -> list[int]:
        return [a if self.random.random() < 0.5 else b for a, b in zip(parent_a, parent_b)]

    def _mutate(self, genes: list[int], *, mutation_rate: float) -> list[int]:
        mutated = list(genes)
        for index, req in enumerate(self.requests):
            if self.random.random() < mutation_rate:
                mutated[index] = self.random.randrange(len(req.options))
        return mutated

    def _select(self, population: list[list[int]], evaluations: list[EvaluationResult]) -> list[int]:
        contenders = self.random.sample(range(len(population)), self.settings.tournament_size)
        best_index = max(contenders, key=lambda idx: evaluations[idx].fitness)
        return population[best_index]

    def _adaptive_mutation_rate(self, stagnant_generations: int) -> float:
        if stagnant_generations <= 0:
            return self.settings.mutation_rate
        boost = min(2.0, 1.0 + stagnant_generations / max(1, self.settings.stagnation_limit))
        return min(1.0, self.settings.mutation_rate * boost)

    def _build_initial_population(self) -> list[list[int]]:
        population: list[list[int]] = []
        seed_count = max(1, int(self.settings.population_size * self.settings.seed_fraction))
        for _ in range(seed_count):
            population.append(self._constructive_individual())
        while len(population) < self.settings.population_size:
            population.append(self._random_individual())
        return population

    def _rank(self, population: list[list[int]]) -> tuple[list[list[int]], list[EvaluationResult]]:
        evaluations = [self._evaluate(item) for item in population]
        ranked_indices = sorted(range(len(population)), key=lambda idx: evaluations[idx].fitness, reverse=True)
        return [population[idx] for idx in ranked_indices], [evaluations[idx] for idx in ranked_indices]

    def run(self) -> tuple[WeeklyGrid, list[UnplacedCourse]]:
        start = perf_counter()
        if not self.requests:
            return WeeklyGrid.empty(self.constraints.grid_days), list(self.unplaced)

        population = self._build_initial_population()
        best_fitness = float("-inf")
        stagnant = 0

        for generation in range(self.settings.generations):
            self.generations_run = generation + 1
            ranked_population, ranked_evaluations = self._rank(population)
            generation_best = ranked_evaluations[0]
            if generation_best.fitness > best_fitness:
                best_fitness = generation_best.fitness
                stagnant = 0
            else:
                stagnant += 1

            if stagnant >= self.settings.stagnation_limit:
                break

            mutation_rate = self._adaptive_mutation_rate(stagnant)
            next_population = [list(item) for item in ranked_population[: self.settings.elite_count]]
            while len(next_population) < self.settings.population_size:
                parent_a = self._select(ranked_population, ranked_evaluations)
                parent_b = self._select(ranked_population, ranked_evaluations)
                if self.random.random() < self.settings.crossover_rate:
                    child = self._crossover(parent_a, parent_b)
                else:
                    child = list(parent_a)
                next_population.append(self._mutate(child, mutation_rate=mutation_rate))
            population = next_population

        ranked_population, ranked_evaluations = self._rank(population)
        best = ranked_population[0]
        logger.info(
            "Genetic search finished | generations=%s population=%s fitness=%s hard_conflicts=%s runtime_ms=%s",
            self.generations_run,
            self.settings.population_size,
            ranked_evaluations[0].fitness,
            ranked_evaluations[0].hard_conflicts,
            int((perf_counter() - start) * 1000),
        )
        return self._decode(best), list(self.unplaced)
