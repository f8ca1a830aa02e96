import logging
from time import perf_counter

from fastapi import APIRouter, Depends

from gridforge.core.config import Settings, get_settings
from gridforge.schemas.timetable import GenerateTimetableRequest, GenerateTimetableResponse
from gridforge.services.generator import generate

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/timetable/generate", response_model=GenerateTimetableResponse)
def generate_timetable(
    payload: GenerateTimetableRequest,
    settings: Settings = Depends(get_settings),
) -> GenerateTimetableResponse:
    started = perf_counter()
    strategy = payload.strategy or settings.default_strategy
    seed = payload.random_seed if payload.random_seed is not None else settings.random_seed
    logger.info(
        "TIMETABLE GENERATION START | strategy=%s | seed=%s | courses=%s",
        strategy,
        seed,
        len(payload.catalogue.courses),
    )
    grid, report = generate(
        payload.catalogue,
        payload.constraints,
        strategy=strategy,
        random_seed=seed,
        settings=payload.settings_override,
    )
    logger.info(
        "TIMETABLE GENERATION END | strategy=%s | score=%s | unplaced=%s | elapsed_ms=%s",
        strategy,
        report.score,
        len(report.unplaced),
        int((perf_counter() - started) * 1000),
    )
    return GenerateTimetableResponse(grid=grid, report=report)
