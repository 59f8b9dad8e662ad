"""Achievement requirements as a closed set of variants.

Catalog entries describe requirements as ``{"type": ..., "value": ...,
"operator": ...}``; ``parse_requirement`` turns each one into exactly one
variant with its comparison fixed at parse time. Anything it does not
recognise raises ``ValueError``.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Union

from dulp.store.records import Account, GameScore, GameStats, ProgressionStats


class Comparison(str, Enum):
    GTE = "gte"
    GT = "gt"
    LTE = "lte"
    LT = "lt"
    EQ = "eq"

    def holds(self, actual: float, target: float) -> bool:
        return _OPS[self](actual, target)


_OPS = {
    Comparison.GTE: operator.ge,
    Comparison.GT: operator.gt,
    Comparison.LTE: operator.le,
    Comparison.LT: operator.lt,
    Comparison.EQ: operator.eq,
}


@dataclass
class EvaluationContext:
    """State an achievement is tested against, after the action's writes."""

    account: Account
    stats: ProgressionStats
    launch_date: date
    now: datetime
    game_id: str | None = None
    latest_score: GameScore | None = None
    game_stats: GameStats | None = None


# ---------------------------------------------------------------------------
# Game-scoped variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompletionCount:
    value: int

    def is_met(self, ctx: EvaluationContext) -> bool:
        return ctx.game_stats is not None and ctx.game_stats.total_plays >= self.value


@dataclass(frozen=True)
class ScoreRequirement:
    value: int
    comparison: Comparison = Comparison.GTE

    def is_met(self, ctx: EvaluationContext) -> bool:
        return ctx.latest_score is not None and self.comparison.holds(ctx.latest_score.score, self.value)


@dataclass(frozen=True)
class TimeRequirement:
    value: int
    comparison: Comparison = Comparison.LTE

    def is_met(self, ctx: EvaluationContext) -> bool:
        score = ctx.latest_score
        if score is None or score.time_completed is None:
            return False
        return self.comparison.holds(score.time_completed, self.value)


@dataclass(frozen=True)
class GameStreakRequirement:
    """In-game streak reported in the latest score's metadata."""

    value: int
    comparison: Comparison = Comparison.GTE

    def is_met(self, ctx: EvaluationContext) -> bool:
        if ctx.latest_score is None or not ctx.latest_score.metadata:
            return False
        streak = ctx.latest_score.metadata.get("streak")
        if not isinstance(streak, (int, float)) or isinstance(streak, bool):
            return False
        return self.comparison.holds(streak, self.value)


# ---------------------------------------------------------------------------
# Account / progression variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginStreakAtLeast:
    value: int

    def is_met(self, ctx: EvaluationContext) -> bool:
        return ctx.stats.login_streak >= self.value


@dataclass(frozen=True)
class TotalEarnedAtLeast:
    value: int

    def is_met(self, ctx: EvaluationContext) -> bool:
        return ctx.account.total_earned >= self.value


@dataclass(frozen=True)
class ReferralsAtLeast:
    value: int

    def is_met(self, ctx: EvaluationContext) -> bool:
        return ctx.account.referral_count >= self.value


@dataclass(frozen=True)
class TasksCompletedAtLeast:
    value: int

    def is_met(self, ctx: EvaluationContext) -> bool:
        return ctx.stats.tasks_completed >= self.value


@dataclass(frozen=True)
class SpinsCompletedAtLeast:
    value: int

    def is_met(self, ctx: EvaluationContext) -> bool:
        return ctx.stats.spins_completed >= self.value


@dataclass(frozen=True)
class SignupWithinDays:
    """Account created no later than ``value`` days after launch."""

    value: int

    def is_met(self, ctx: EvaluationContext) -> bool:
        return (ctx.account.created_at.date() - ctx.launch_date).days <= self.value


Requirement = Union[
    CompletionCount,
    ScoreRequirement,
    TimeRequirement,
    GameStreakRequirement,
    LoginStreakAtLeast,
    TotalEarnedAtLeast,
    ReferralsAtLeast,
    TasksCompletedAtLeast,
    SpinsCompletedAtLeast,
    SignupWithinDays,
]

_GAME_ONLY = {"completion", "score", "time"}
_THRESHOLDS = {
    "login_streak": LoginStreakAtLeast,
    "total_earned": TotalEarnedAtLeast,
    "referrals": ReferralsAtLeast,
    "tasks_completed": TasksCompletedAtLeast,
    "spins_completed": SpinsCompletedAtLeast,
    "signup_date": SignupWithinDays,
}


def _comparison(raw: Any, default: Comparison) -> Comparison:
    if raw is None:
        return default
    try:
        return Comparison(raw)
    except ValueError:
        msg = f"Unknown comparison operator {raw!r}"
        raise ValueError(msg) from None


def parse_requirement(data: dict[str, Any], game_id: str | None = None) -> Requirement:
    """Build the requirement variant for a catalog entry.

    ``streak`` reads the in-game streak for game achievements and the login
    streak for global ones.
    """
    kind = data.get("type")
    value = data.get("value")
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        msg = f"Requirement value must be a non-negative integer, got {value!r}"
        raise ValueError(msg)

    if kind in _GAME_ONLY and game_id is None:
        msg = f"Requirement type {kind!r} needs a game"
        raise ValueError(msg)

    op = data.get("operator")
    if kind == "completion":
        return CompletionCount(value)
    if kind == "score":
        return ScoreRequirement(value, _comparison(op, Comparison.GTE))
    if kind == "time":
        return TimeRequirement(value, _comparison(op, Comparison.LTE))
    if kind == "streak":
        if game_id is None:
            return LoginStreakAtLeast(value)
        return GameStreakRequirement(value, _comparison(op, Comparison.GTE))
    if kind in _THRESHOLDS:
        return _THRESHOLDS[kind](value)

    msg = f"Unknown requirement type {kind!r}"
    raise ValueError(msg)
