"""JSON-ready dict views of store records.

Action results are stored verbatim as idempotency receipts, so everything
here returns plain JSON types (datetimes as ISO strings).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from dulp.achievements.catalog import AchievementDefinition
from dulp.progression.level_thresholds import compute_level
from dulp.rewards.catalog import Task
from dulp.store.records import Account, AchievementUnlock, GameScore, GameStats, ProgressionStats, Transaction


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def account_view(account: Account) -> dict[str, Any]:
    return {
        "id": account.id,
        "display_name": account.display_name,
        "balance": account.balance,
        "total_earned": account.total_earned,
        "referral_code": account.referral_code,
        "referred_by": account.referred_by,
        "referral_count": account.referral_count,
        "referral_earnings": account.referral_earnings,
        "created_at": _iso(account.created_at),
        "last_active": _iso(account.last_active),
    }


def transaction_view(txn: Transaction) -> dict[str, Any]:
    return {
        "id": txn.id,
        "type": txn.kind,
        "amount": txn.amount,
        "description": txn.description,
        "status": txn.status,
        "metadata": txn.metadata,
        "created_at": _iso(txn.created_at),
    }


def stats_view(stats: ProgressionStats) -> dict[str, Any]:
    level = compute_level(stats.xp)
    multiplier = stats.active_multiplier
    return {
        "xp": stats.xp,
        "level": stats.level,
        "level_title": level["title"],
        "level_multiplier": level["multiplier"],
        "xp_into_level": level["xp_into_level"],
        "xp_for_level": level["xp_for_level"],
        "next_level": level["next_level"],
        "next_title": level["next_title"],
        "tasks_completed": stats.tasks_completed,
        "spins_completed": stats.spins_completed,
        "games_played": stats.games_played,
        "login_streak": stats.login_streak,
        "max_login_streak": stats.max_login_streak,
        "last_login_date": _iso(stats.last_login_date),
        "last_spin_at": _iso(stats.last_spin_at),
        "active_multiplier": (
            {"value": multiplier.value, "expires_at": _iso(multiplier.expires_at)} if multiplier else None
        ),
        "loot_boxes": list(stats.loot_boxes),
        "weekly_earnings": stats.weekly_earnings,
    }


def game_score_view(score: GameScore) -> dict[str, Any]:
    return {
        "id": score.id,
        "user_id": score.user_id,
        "game_id": score.game_id,
        "score": score.score,
        "difficulty": score.difficulty,
        "time_completed": score.time_completed,
        "created_at": _iso(score.created_at),
    }


def game_stats_view(stats: GameStats) -> dict[str, Any]:
    return {
        "user_id": stats.user_id,
        "game_id": stats.game_id,
        "total_plays": stats.total_plays,
        "best_score": stats.best_score,
        "best_time": stats.best_time,
        "total_score": stats.total_score,
        "average_score": stats.average_score,
        "completion_rate": stats.completion_rate,
        "win_streak": stats.win_streak,
        "max_win_streak": stats.max_win_streak,
        "last_played_at": _iso(stats.last_played_at),
    }


def achievement_view(definition: AchievementDefinition, unlock: AchievementUnlock | None = None) -> dict[str, Any]:
    return {
        "id": definition.id,
        "game_id": definition.game_id,
        "title": definition.title,
        "description": definition.description,
        "icon": definition.icon,
        "reward": definition.reward,
        "rarity": definition.rarity,
        "unlocked": unlock is not None,
        "unlocked_at": _iso(unlock.unlocked_at) if unlock else None,
        "claimed": bool(unlock and unlock.claimed),
        "claimed_at": _iso(unlock.claimed_at) if unlock else None,
    }


def task_view(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "reward": task.reward,
        "platform": task.platform,
        "category": task.category.value,
        "difficulty": task.difficulty.value,
        "icon": task.icon,
        "action_url": task.action_url,
        "action_text": task.action_text,
        "estimated_time": task.estimated_time,
        "requirements": list(task.requirements),
        "expires_at": _iso(task.expires_at),
    }
