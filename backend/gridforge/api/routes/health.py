from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from gridforge.core.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live(settings: Settings = Depends(get_settings)) -> dict:
    return {
        "status": "ok",
        "service": settings.project_name,
        "default_strategy": settings.default_strategy,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
