"""ORM models for the durable store backend.

Column layout mirrors the 001_rewards_tables and 002_receipt_request_hash migrations.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from dulp.db.base import Base, BigId, JsonDoc

# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class AccountRow(Base):
    """One per user. Balance never negative, total_earned never decreases."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)
    referral_code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_earned: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    referred_by: Mapped[str | None] = mapped_column(String(8), nullable=True)
    referral_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    referral_earnings: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_active: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class TransactionRow(Base):
    """Append-only balance history; only status changes after insert."""

    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigId, ForeignKey("accounts.id"), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    description: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    tx_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JsonDoc, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ActionReceiptRow(Base):
    """Stored response of an action submitted with an idempotency key."""

    __tablename__ = "action_receipts"
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="action_receipts_user_id_key_key"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigId, ForeignKey("accounts.id"), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(128), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    request_hash: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    response: Mapped[dict[str, Any]] = mapped_column(JsonDoc, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------


class ProgressionStatsRow(Base):
    """Single row per user, created together with the account."""

    __tablename__ = "progression_stats"

    user_id: Mapped[int] = mapped_column(BigId, ForeignKey("accounts.id"), primary_key=True)
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spins_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    games_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    login_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_login_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_login_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_spin_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    multiplier_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    multiplier_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    loot_boxes: Mapped[list[str]] = mapped_column(JsonDoc, nullable=False, default=list)
    quest_progress: Mapped[dict[str, int]] = mapped_column(JsonDoc, nullable=False, default=dict)
    claimed_quests: Mapped[list[str]] = mapped_column(JsonDoc, nullable=False, default=list)
    weekly_earnings: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_weekly_reset: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class GameScoreRow(Base):
    __tablename__ = "game_scores"
    __table_args__ = (Index("ix_game_scores_user_game", "user_id", "game_id"),)

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigId, ForeignKey("accounts.id"), nullable=False)
    game_id: Mapped[str] = mapped_column(String(64), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    time_completed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    score_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JsonDoc, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class GameStatsRow(Base):
    """Fold of all game_scores of one (user, game) pair."""

    __tablename__ = "game_stats"
    __table_args__ = (UniqueConstraint("user_id", "game_id", name="game_stats_user_id_game_id_key"),)

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigId, ForeignKey("accounts.id"), nullable=False)
    game_id: Mapped[str] = mapped_column(String(64), nullable=False)
    total_plays: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    average_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_rate: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    win_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_win_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_played_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class UserAchievementRow(Base):
    """UNIQUE(user_id, achievement_id) makes unlocks insert-once."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_id_achievement_id_key"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigId, ForeignKey("accounts.id"), nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
