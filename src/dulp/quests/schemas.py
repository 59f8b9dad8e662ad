"""Pydantic response models for quest endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from dulp.ledger.schemas import RewardSummary, TransactionResponse, UnlockedAchievement


class QuestResponse(BaseModel):
    id: str
    title: str
    description: str
    type: str
    period: str
    target: int
    reward: int
    xp_reward: int
    progress: int
    completed: bool
    claimed: bool
    expires_at: datetime


class QuestsResponse(BaseModel):
    daily: list[QuestResponse]
    weekly: list[QuestResponse]


class QuestClaimResponse(RewardSummary):
    quest_id: str
    reward: int
    xp_awarded: int
    leveled_up: bool
    transaction: TransactionResponse
    unlocked_achievements: list[UnlockedAchievement] = []
