"""Pydantic response models for achievement endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from dulp.ledger.schemas import RewardSummary, TransactionResponse, UnlockedAchievement


class AchievementResponse(BaseModel):
    id: str
    game_id: str | None = None
    title: str
    description: str
    icon: str
    reward: int
    rarity: str
    unlocked: bool
    unlocked_at: datetime | None = None
    claimed: bool
    claimed_at: datetime | None = None


class AchievementListResponse(BaseModel):
    achievements: list[AchievementResponse]
    total_available: int
    total_unlocked: int


class AchievementClaimResponse(RewardSummary):
    achievement_id: str
    reward: int
    claimed_at: datetime
    transaction: TransactionResponse | None = None
    unlocked_achievements: list[UnlockedAchievement] = []
