"""Progression store operations: XP and levels, login streaks, game stats, quest counters.

The pure helpers (``apply_xp``, ``advance_login_streak``, ``fold_game_stats``,
``increment_quest_progress``, ``record_earnings``) mutate the records handed
to them; the async wrappers load and save through a store session and leave
committing to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo

from dulp.errors import InvalidAmount, NotFound
from dulp.progression.level_thresholds import compute_level
from dulp.quests.catalog import DAILY_QUESTS, WEEKLY_QUESTS, QuestPeriod, QuestType, get_quest
from dulp.quests.windows import daily_window, key_window_date, progress_key, weekly_window
from dulp.store.base import StoreSession
from dulp.store.records import GameScore, GameStats, ProgressionStats

logger = logging.getLogger(__name__)


@dataclass
class XpResult:
    stats: ProgressionStats
    leveled_up: bool
    old_level: int
    new_level: int | None = None
    title: str | None = None


async def get_stats(session: StoreSession, user_id: int) -> ProgressionStats:
    stats = await session.get_stats(user_id)
    if stats is None:
        raise NotFound(f"No progression stats for user {user_id}")
    return stats


# ---------------------------------------------------------------------------
# XP & levels
# ---------------------------------------------------------------------------


def apply_xp(stats: ProgressionStats, amount: int) -> XpResult:
    """Add XP and recompute the level from total XP only."""
    if amount < 0:
        msg = f"XP amount must not be negative, got {amount}"
        raise InvalidAmount(msg)

    old_level = stats.level
    stats.xp += amount
    info = compute_level(stats.xp)
    # Level derives from XP alone; XP never decreases so neither does level.
    stats.level = max(stats.level, info["level"])

    if stats.level > old_level:
        return XpResult(stats, True, old_level, stats.level, info["title"])
    return XpResult(stats, False, old_level)


async def add_xp(session: StoreSession, user_id: int, amount: int) -> XpResult:
    stats = await get_stats(session, user_id)
    result = apply_xp(stats, amount)
    await session.save_stats(stats)
    return result


# ---------------------------------------------------------------------------
# Login streak
# ---------------------------------------------------------------------------


def advance_login_streak(stats: ProgressionStats, now: datetime, tz: tzinfo = timezone.utc) -> bool:
    """Update the login streak for a login at ``now``. Returns False on a same-day repeat.

    Previous local day extends the streak; any longer gap restarts it at 1.
    """
    today = now.astimezone(tz).date()
    last = stats.last_login_date

    if last == today:
        return False
    if last is not None and last == today - timedelta(days=1):
        stats.login_streak += 1
    else:
        stats.login_streak = 1

    stats.last_login_date = today
    stats.max_login_streak = max(stats.max_login_streak, stats.login_streak)
    increment_quest_progress(stats, QuestType.LOGIN_STREAK, stats.login_streak, now, tz)
    return True


async def touch_login_streak(
    session: StoreSession,
    user_id: int,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> ProgressionStats:
    if now is None:
        now = datetime.now(timezone.utc)
    stats = await get_stats(session, user_id)
    if advance_login_streak(stats, now, tz):
        await session.save_stats(stats)
    return stats


# ---------------------------------------------------------------------------
# Game stats
# ---------------------------------------------------------------------------


def fold_game_stats(user_id: int, game_id: str, scores: Iterable[GameScore]) -> GameStats:
    """Recompute GameStats from every score of the pair, oldest first.

    A play counts as a win when its score is above zero; the current win
    streak is the run of wins ending at the latest play.
    """
    stats = GameStats(user_id=user_id, game_id=game_id)
    wins = 0
    run = 0

    for s in sorted(scores, key=lambda s: (s.created_at, s.id or 0)):
        stats.total_plays += 1
        stats.total_score += s.score
        stats.best_score = max(stats.best_score, s.score)
        if s.time_completed is not None:
            stats.best_time = s.time_completed if stats.best_time is None else min(stats.best_time, s.time_completed)
        if s.score > 0:
            wins += 1
            run += 1
            stats.max_win_streak = max(stats.max_win_streak, run)
        else:
            run = 0
        stats.last_played_at = s.created_at

    if stats.total_plays:
        # Round half up on integers
        stats.average_score = (2 * stats.total_score + stats.total_plays) // (2 * stats.total_plays)
        stats.completion_rate = wins * 100 // stats.total_plays
    stats.win_streak = run
    return stats


async def record_game_score(session: StoreSession, score: GameScore) -> tuple[GameScore, GameStats]:
    """Append a score and rebuild the pair's GameStats from all of its scores."""
    stored = await session.add_game_score(score)
    scores = await session.list_game_scores(score.user_id, score.game_id)
    game_stats = fold_game_stats(score.user_id, score.game_id, scores)
    await session.save_game_stats(game_stats)
    return stored, game_stats


# ---------------------------------------------------------------------------
# Quest counters & weekly earnings
# ---------------------------------------------------------------------------


def _current_window_dates(now: datetime, tz: tzinfo) -> dict[QuestPeriod, date]:
    return {
        QuestPeriod.DAILY: daily_window(now, tz)[0].date(),
        QuestPeriod.WEEKLY: weekly_window(now, tz)[0].date(),
    }


def prune_expired_quest_keys(stats: ProgressionStats, now: datetime, tz: tzinfo = timezone.utc) -> None:
    """Drop progress and claim keys that belong to windows other than the current ones."""
    current = _current_window_dates(now, tz)

    def live(key: str) -> bool:
        quest = get_quest(key.partition("@")[0])
        return quest is not None and key_window_date(key) == current[quest.period]

    stats.quest_progress = {k: v for k, v in stats.quest_progress.items() if live(k)}
    stats.claimed_quests = [k for k in stats.claimed_quests if live(k)]


def increment_quest_progress(
    stats: ProgressionStats,
    quest_type: QuestType,
    amount: int,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> None:
    """Bump every daily and weekly quest of ``quest_type`` in the current windows.

    Login-streak quests track the streak itself, so the value is set, not added.
    """
    prune_expired_quest_keys(stats, now, tz)
    day_start = daily_window(now, tz)[0]
    week_start = weekly_window(now, tz)[0]

    for quests, window_start in ((DAILY_QUESTS, day_start), (WEEKLY_QUESTS, week_start)):
        for quest in quests:
            if quest.type != quest_type:
                continue
            key = progress_key(quest.id, window_start)
            if quest_type == QuestType.LOGIN_STREAK:
                stats.quest_progress[key] = amount
            else:
                stats.quest_progress[key] = stats.quest_progress.get(key, 0) + amount


def record_earnings(stats: ProgressionStats, amount: int, now: datetime, tz: tzinfo = timezone.utc) -> None:
    """Count earned DULP toward the weekly counter and earn_dulp quests."""
    week_start = weekly_window(now, tz)[0]
    if stats.last_weekly_reset is None or stats.last_weekly_reset < week_start:
        stats.weekly_earnings = 0
        stats.last_weekly_reset = week_start
    stats.weekly_earnings += amount
    increment_quest_progress(stats, QuestType.EARN_DULP, amount, now, tz)
