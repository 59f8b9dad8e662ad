"""Plain records passed between the services and the store backends.

Backends hand out copies; a record only changes in storage when it is
saved through a store session and the session commits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionKind(str, Enum):
    EARN = "earn"
    WITHDRAW = "withdraw"
    REFERRAL_BONUS = "referral_bonus"
    SIGNUP_BONUS = "signup_bonus"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# Kinds that also raise lifetime-earned.
EARN_KINDS = frozenset({TransactionKind.EARN, TransactionKind.REFERRAL_BONUS, TransactionKind.SIGNUP_BONUS})


@dataclass
class Account:
    id: int | None
    display_name: str
    referral_code: str
    balance: int = 0
    total_earned: int = 0
    referred_by: str | None = None
    referral_count: int = 0
    referral_earnings: int = 0
    created_at: datetime = field(default_factory=utcnow)
    last_active: datetime = field(default_factory=utcnow)


@dataclass
class Transaction:
    id: int | None
    user_id: int
    kind: str
    amount: int
    description: str
    status: str = TransactionStatus.PENDING.value
    metadata: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class ActiveMultiplier:
    value: float
    expires_at: datetime


@dataclass
class ProgressionStats:
    user_id: int
    xp: int = 0
    level: int = 1
    tasks_completed: int = 0
    spins_completed: int = 0
    games_played: int = 0
    login_streak: int = 0
    max_login_streak: int = 0
    last_login_date: date | None = None
    last_spin_at: datetime | None = None
    active_multiplier: ActiveMultiplier | None = None
    loot_boxes: list[str] = field(default_factory=list)
    quest_progress: dict[str, int] = field(default_factory=dict)  # "<quest_id>@<window start>" -> counter
    claimed_quests: list[str] = field(default_factory=list)
    weekly_earnings: int = 0
    last_weekly_reset: datetime | None = None


@dataclass
class GameScore:
    id: int | None
    user_id: int
    game_id: str
    score: int
    difficulty: str = "medium"
    time_completed: int | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class GameStats:
    user_id: int
    game_id: str
    total_plays: int = 0
    best_score: int = 0
    best_time: int | None = None
    total_score: int = 0
    average_score: int = 0
    completion_rate: int = 0
    win_streak: int = 0
    max_win_streak: int = 0
    last_played_at: datetime | None = None


@dataclass
class AchievementUnlock:
    user_id: int
    achievement_id: str
    unlocked_at: datetime = field(default_factory=utcnow)
    claimed: bool = False
    claimed_at: datetime | None = None


@dataclass
class ActionReceipt:
    """Stored result of an action submitted with an idempotency key."""

    user_id: int
    key: str
    action: str
    response: dict[str, Any]
    request_hash: str = ""  # fingerprint of the action inputs
    created_at: datetime = field(default_factory=utcnow)
