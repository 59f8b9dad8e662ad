"""Progression endpoints: XP, level and counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dulp.actions.service import RewardsEngine
from dulp.auth.dependencies import get_current_user_id
from dulp.dependencies import get_engine
from dulp.progression.level_thresholds import LEVEL_THRESHOLDS
from dulp.progression.schemas import LevelEntry, LevelsResponse, StatsResponse

router = APIRouter(prefix="/api/v1", tags=["Progression"])


@router.get("/levels", response_model=LevelsResponse)
async def list_levels():
    """The level table."""
    return LevelsResponse(levels=[LevelEntry(**t) for t in LEVEL_THRESHOLDS])


@router.get("/users/me/stats", response_model=StatsResponse)
async def get_stats(
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    return await engine.get_stats(user_id)
