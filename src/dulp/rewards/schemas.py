"""Pydantic request/response models for tasks, games and the spin wheel."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from dulp.ledger.schemas import RewardSummary, TransactionResponse, UnlockedAchievement
from dulp.progression.schemas import StatsResponse
from dulp.rewards.catalog import Difficulty


# --- Tasks ---


class TaskResponse(BaseModel):
    id: int
    title: str
    description: str
    reward: int
    platform: str
    category: str
    difficulty: str
    icon: str
    action_url: str | None = None
    action_text: str
    estimated_time: str
    requirements: list[str] = []
    expires_at: datetime | None = None


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]


class TaskCompletionResponse(RewardSummary):
    task_id: int
    reward: int
    multiplier: float
    xp_awarded: int
    leveled_up: bool
    transaction: TransactionResponse
    unlocked_achievements: list[UnlockedAchievement] = []


# --- Games ---


class GameCompleteRequest(BaseModel):
    score: int = Field(ge=0)
    difficulty: Difficulty = Difficulty.MEDIUM
    time_completed: int | None = Field(default=None, ge=0)
    metadata: dict[str, Any] | None = None


class GameScoreResponse(BaseModel):
    id: int
    user_id: int
    game_id: str
    score: int
    difficulty: str
    time_completed: int | None = None
    created_at: datetime


class GameStatsResponse(BaseModel):
    user_id: int
    game_id: str
    total_plays: int
    best_score: int
    best_time: int | None = None
    total_score: int
    average_score: int
    completion_rate: int
    win_streak: int
    max_win_streak: int
    last_played_at: datetime | None = None


class GameCompletionResponse(RewardSummary):
    game_id: str
    score: GameScoreResponse
    reward: int
    multiplier: float
    xp_awarded: int
    leveled_up: bool
    game_stats: GameStatsResponse
    transaction: TransactionResponse
    unlocked_achievements: list[UnlockedAchievement] = []


class GamePlayResponse(RewardSummary):
    game_id: str
    reward: int
    xp_awarded: int
    leveled_up: bool
    transaction: TransactionResponse
    unlocked_achievements: list[UnlockedAchievement] = []


class GameLeaderboardEntry(GameStatsResponse):
    rank: int
    display_name: str | None = None


class GameLeaderboardResponse(BaseModel):
    game_id: str
    entries: list[GameLeaderboardEntry]


# --- Spin wheel ---


class SpinRewardResponse(BaseModel):
    type: str
    amount: int | float
    rarity: str
    duration_seconds: int | None = None


class SpinResponse(RewardSummary):
    reward: SpinRewardResponse
    transaction: TransactionResponse | None = None
    leveled_up: bool
    next_spin_at: datetime
    stats: StatsResponse
    unlocked_achievements: list[UnlockedAchievement] = []
