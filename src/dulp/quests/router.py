"""Quest endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dulp.actions.service import RewardsEngine
from dulp.auth.dependencies import get_current_user_id
from dulp.dependencies import get_engine, get_idempotency_key
from dulp.quests.schemas import QuestClaimResponse, QuestsResponse

router = APIRouter(prefix="/api/v1", tags=["Quests"])


@router.get("/quests", response_model=QuestsResponse)
async def get_quests(
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    """Current daily and weekly quests with progress for this window."""
    return await engine.get_quests(user_id)


@router.post("/quests/{quest_id}/claim", response_model=QuestClaimResponse)
async def claim_quest(
    quest_id: str,
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    return await engine.claim_quest(user_id, quest_id, key=key)
