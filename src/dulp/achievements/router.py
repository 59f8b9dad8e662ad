"""Achievement endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dulp.achievements.schemas import AchievementClaimResponse, AchievementListResponse
from dulp.actions.service import RewardsEngine
from dulp.auth.dependencies import get_current_user_id
from dulp.dependencies import get_engine, get_idempotency_key

router = APIRouter(prefix="/api/v1", tags=["Achievements"])


@router.get("/achievements", response_model=AchievementListResponse)
async def list_achievements(
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    """All active achievements with the caller's unlock and claim state."""
    items = await engine.list_achievements(user_id)
    return {
        "achievements": items,
        "total_available": len(items),
        "total_unlocked": sum(1 for a in items if a["unlocked"]),
    }


@router.post("/achievements/{achievement_id}/claim", response_model=AchievementClaimResponse)
async def claim_achievement(
    achievement_id: str,
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    """Credit an unlocked achievement's reward, once."""
    return await engine.claim_achievement(user_id, achievement_id, key=key)
