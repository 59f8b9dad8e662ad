"""Task, game and spin wheel endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dulp.actions.service import RewardsEngine
from dulp.auth.dependencies import get_current_user_id
from dulp.dependencies import get_engine, get_idempotency_key
from dulp.rewards.schemas import (
    GameCompleteRequest,
    GameCompletionResponse,
    GameLeaderboardResponse,
    GamePlayResponse,
    GameStatsResponse,
    SpinResponse,
    TaskCompletionResponse,
    TaskListResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Rewards"])


# ── Tasks ──


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(engine: RewardsEngine = Depends(get_engine)):
    """Active, unexpired tasks."""
    return {"tasks": engine.list_tasks()}


@router.post("/tasks/{task_id}/complete", response_model=TaskCompletionResponse)
async def complete_task(
    task_id: int,
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    return await engine.complete_task(user_id, task_id, key=key)


# ── Games ──


@router.post("/games/{game_id}/complete", response_model=GameCompletionResponse)
async def complete_game(
    game_id: str,
    body: GameCompleteRequest,
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    """Submit a finished game; the reward is computed from score and difficulty."""
    return await engine.complete_game(
        user_id,
        game_id,
        body.score,
        difficulty=body.difficulty,
        time_completed=body.time_completed,
        metadata=body.metadata,
        key=key,
    )


@router.post("/games/{game_id}/play", response_model=GamePlayResponse)
async def play_game(
    game_id: str,
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    """Fixed per-game payout, no score."""
    return await engine.play_game(user_id, game_id, key=key)


@router.get("/games/{game_id}/stats", response_model=GameStatsResponse)
async def get_game_stats(
    game_id: str,
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
):
    return await engine.get_game_stats(user_id, game_id)


@router.get("/games/{game_id}/leaderboard", response_model=GameLeaderboardResponse)
async def game_leaderboard(
    game_id: str,
    limit: int = Query(10, ge=1, le=100),
    engine: RewardsEngine = Depends(get_engine),
):
    """Best score per player, highest first."""
    return {"game_id": game_id, "entries": await engine.game_leaderboard(game_id, limit)}


# ── Spin wheel ──


@router.post("/spin", response_model=SpinResponse)
async def spin(
    user_id: int = Depends(get_current_user_id),
    engine: RewardsEngine = Depends(get_engine),
    key: str | None = Depends(get_idempotency_key),
):
    """Spin the daily wheel. 403 while the cooldown is active."""
    return await engine.spin(user_id, key=key)
