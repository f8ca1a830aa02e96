from __future__ import annotations

import logging
import random
from time import perf_counter
from typing import Any, Mapping

from gridforge.core.exceptions import SchedulerError
from gridforge.schemas.catalogue import Catalogue
from gridforge.schemas.constraints import GenerationSettings, SchedulingConstraints
from gridforge.schemas.timetable import GenerationReport, WeeklyGrid
from gridforge.services.breaks import add_breaks_and_lunch
from gridforge.services.catalogue import load_catalogue, resolve_constraints, validate_catalogue
from gridforge.services.constructive_scheduler import ConstructiveScheduler
from gridforge.services.evolution_scheduler import EvolutionaryScheduler
from gridforge.services.repair import RepairOptimizer
from gridforge.services.scorer import capacity_shortfalls, detect_conflicts, score_grid

logger = logging.getLogger(__name__)

STRATEGIES = ("constructive", "genetic")


def generate(
    catalogue: Catalogue | Mapping[str, Any],
    constraints: SchedulingConstraints | Mapping[str, Any] | None = None,
    *,
    strategy: str = "constructive",
    random_seed: int | None = None,
    rng: random.Random | None = None,
    settings: GenerationSettings | None = None,
) -> tuple[WeeklyGrid, GenerationReport]:
    """Build a weekly timetable from scratch.

    Only configuration problems raise (``ConfigurationError``); courses that
    cannot be placed and conflicts that survive repair come back in the report.
    Pass ``random_seed`` or an explicit ``rng`` for reproducible runs.
    """
    started = perf_counter()
    if strategy not in STRATEGIES:
        raise SchedulerError(
            f"Unknown generation strategy '{strategy}'",
            details={"allowed": list(STRATEGIES)},
        )

    catalogue = validate_catalogue(load_catalogue(catalogue))
    constraints = resolve_constraints(constraints)
    rng = rng if rng is not None else random.Random(random_seed)

    logger.info(
        "Generation start | strategy=%s seed=%s courses=%s rooms=%s timeslots=%s days=%s",
        strategy,
        random_seed,
        len(catalogue.courses),
        len(catalogue.rooms),
        len(catalogue.timeslots),
        ",".join(constraints.grid_days),
    )

    if strategy == "genetic":
        scheduler = EvolutionaryScheduler(catalogue, constraints, settings or GenerationSettings(), rng)
    else:
        scheduler = ConstructiveScheduler(catalogue, constraints, rng)
    constructed, unplaced = scheduler.run()
    initial_conflicts = detect_conflicts(constructed)

    grid, repair_stats = RepairOptimizer(catalogue, constraints).optimize(constructed)
    add_breaks_and_lunch(grid, constraints)
    result = score_grid(grid)

    report = GenerationReport(
        unplaced=unplaced,
        score=result.score,
        raw_score=result.raw_score,
        conflicts=result.conflicts,
        initial_conflicts=initial_conflicts,
        capacity_shortfalls=capacity_shortfalls(grid, catalogue.rooms),
        repair=repair_stats,
        constraints=constraints,
        strategy=strategy,
        random_seed=random_seed,
        runtime_ms=int((perf_counter() - started) * 1000),
    )
    logger.info(
        "Generation done | strategy=%s score=%s residual_conflicts=%s unplaced=%s runtime_ms=%s",
        strategy,
        report.score,
        len(report.conflicts),
        len(report.unplaced),
        report.runtime_ms,
    )
    return grid, report
