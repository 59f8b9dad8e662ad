"""Pydantic request/response models for account and ledger endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from dulp.progression.schemas import StatsResponse


# --- Shared ---


class TransactionResponse(BaseModel):
    id: int
    type: str
    amount: int
    description: str
    status: str
    metadata: dict[str, Any] | None = None
    created_at: datetime


class UnlockedAchievement(BaseModel):
    id: str
    title: str
    reward: int
    rarity: str


class RewardSummary(BaseModel):
    """Balance and level after an earning action."""

    balance: int
    total_earned: int
    xp: int
    level: int


# --- Accounts ---


class AccountResponse(BaseModel):
    id: int
    display_name: str
    balance: int
    total_earned: int
    referral_code: str
    referred_by: str | None = None
    referral_count: int = 0
    referral_earnings: int = 0
    created_at: datetime
    last_active: datetime | None = None


class CreateAccountRequest(BaseModel):
    display_name: str = Field(min_length=1, max_length=64)


class CreateAccountResponse(BaseModel):
    account: AccountResponse
    stats: StatsResponse
    transaction: TransactionResponse | None = None
    unlocked_achievements: list[UnlockedAchievement] = []
    access_token: str
    token_type: str = "bearer"


class ProfileResponse(BaseModel):
    account: AccountResponse
    stats: StatsResponse
    effective_multiplier: float
    can_spin: bool


# --- Ledger ---


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    limit: int


class WithdrawRequest(BaseModel):
    amount: int


class WithdrawResponse(BaseModel):
    transaction: TransactionResponse
    balance: int


# --- Referrals ---


class ReferralRequest(BaseModel):
    code: str = Field(min_length=1, max_length=16)


class ReferralResponse(BaseModel):
    message: str
    referrer_id: int
    referral_code: str
    bonus: int


# --- Leaderboard ---


class EarningsLeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    display_name: str
    total_earned: int
    level: int


class EarningsLeaderboardResponse(BaseModel):
    entries: list[EarningsLeaderboardEntry]


# --- Daily login ---


class LoginResponse(BaseModel):
    login_streak: int
    max_login_streak: int
    streak_advanced: bool
    unlocked_achievements: list[UnlockedAchievement] = []
