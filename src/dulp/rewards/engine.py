"""Reward computation: task, game, play, spin and referral payouts.

Everything here is synchronous and free of storage access. The spin wheel
is the only source of randomness and takes its ``random.Random`` from the
caller so tests can seed it.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import TypeVar

from dulp.config import Settings, get_settings
from dulp.errors import UnknownEntity
from dulp.progression.level_thresholds import level_multiplier
from dulp.rewards.catalog import Difficulty, GameDefinition, Task
from dulp.store.records import ProgressionStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

DIFFICULTY_MULTIPLIERS: dict[Difficulty, Decimal] = {
    Difficulty.EASY: Decimal("0.8"),
    Difficulty.MEDIUM: Decimal("1.0"),
    Difficulty.HARD: Decimal("1.5"),
}
MIN_GAME_REWARD = 25
PLAY_FALLBACK_REWARD = 25
TASK_XP = 25


def _floor_scaled(amount: int, multiplier: float | Decimal) -> int:
    # Decimal(str(...)) keeps 50 * 1.05 at 52.5 instead of 52.49999...
    return math.floor(Decimal(str(multiplier)) * amount)


# ---------------------------------------------------------------------------
# Multipliers
# ---------------------------------------------------------------------------


def active_multiplier(stats: ProgressionStats, now: datetime) -> float:
    """Spin multiplier in force at ``now``; 1.0 once expired."""
    m = stats.active_multiplier
    if m is None or m.expires_at <= now:
        return 1.0
    return m.value


def effective_multiplier(stats: ProgressionStats, now: datetime) -> float:
    """Active spin multiplier times the level tier multiplier."""
    return float(Decimal(str(active_multiplier(stats, now))) * Decimal(str(level_multiplier(stats.level))))


# ---------------------------------------------------------------------------
# Tasks & games
# ---------------------------------------------------------------------------


def apply_multiplier(amount: int, multiplier: float) -> int:
    return _floor_scaled(amount, multiplier)


def compute_task_reward(task: Task, multiplier: float = 1.0) -> int:
    return apply_multiplier(task.reward, multiplier)


def clamp_score(game: GameDefinition, score: int) -> int:
    """Clamp a reported score into [0, game.max_score]."""
    clamped = min(max(score, 0), game.max_score)
    if clamped != score:
        logger.info("Clamped %s score %d to %d", game.id, score, clamped)
    return clamped


def compute_game_reward(
    games: dict[str, GameDefinition],
    game_id: str,
    score: int,
    difficulty: Difficulty | str = Difficulty.MEDIUM,
    max_reward: int | None = None,
) -> int:
    """Score-driven completion payout.

    ``floor(max(floor(score * 0.5), 25) * difficulty)``, with the score
    clamped to the game's maximum and the result to ``max_reward``.
    """
    game = games.get(game_id)
    if game is None:
        raise UnknownEntity(f"Unknown game '{game_id}'")

    base = max(clamp_score(game, score) // 2, MIN_GAME_REWARD)
    reward = _floor_scaled(base, DIFFICULTY_MULTIPLIERS[Difficulty(difficulty)])
    if max_reward is not None:
        reward = min(reward, max_reward)
    return reward


def compute_play_reward(games: dict[str, GameDefinition], game_id: str) -> int:
    """Fixed payout for a simple play. Unknown games get PLAY_FALLBACK_REWARD."""
    game = games.get(game_id)
    if game is None:
        logger.info("Unknown game %r on simple play; paying fallback %d", game_id, PLAY_FALLBACK_REWARD)
        return PLAY_FALLBACK_REWARD
    return game.play_reward


def game_xp(reward: int) -> int:
    return reward // 5


def play_xp(reward: int) -> int:
    return reward // 2


# ---------------------------------------------------------------------------
# Spin wheel
# ---------------------------------------------------------------------------


class SpinKind(str, Enum):
    DULP = "dulp"
    XP = "xp"
    MULTIPLIER = "multiplier"
    LOOT_BOX = "loot_box"
    NOTHING = "nothing"


@dataclass(frozen=True)
class SpinReward:
    kind: SpinKind
    amount: float
    rarity: str
    duration: timedelta | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.kind.value,
            "amount": self.amount,
            "rarity": self.rarity,
            "duration_seconds": int(self.duration.total_seconds()) if self.duration else None,
        }


SPIN_TABLE: list[tuple[int, SpinReward]] = [
    (30, SpinReward(SpinKind.DULP, 50, "common")),
    (25, SpinReward(SpinKind.DULP, 100, "common")),
    (15, SpinReward(SpinKind.DULP, 150, "common")),
    (15, SpinReward(SpinKind.DULP, 250, "rare")),
    (8, SpinReward(SpinKind.DULP, 500, "epic")),
    (3, SpinReward(SpinKind.DULP, 1000, "epic")),
    (10, SpinReward(SpinKind.XP, 100, "common")),
    (5, SpinReward(SpinKind.XP, 250, "rare")),
    (7, SpinReward(SpinKind.MULTIPLIER, 2, "rare", timedelta(hours=1))),
    (3, SpinReward(SpinKind.MULTIPLIER, 3, "epic", timedelta(minutes=30))),
    (3, SpinReward(SpinKind.LOOT_BOX, 1, "rare")),
    (2, SpinReward(SpinKind.NOTHING, 0, "common")),
]


def pick_weighted(entries: Sequence[tuple[int, T]], rng: random.Random) -> T:
    """Cumulative-weight sampling with a uniform draw in [0, total_weight)."""
    total = sum(weight for weight, _ in entries)
    if total <= 0:
        msg = "Weighted table needs a positive total weight"
        raise ValueError(msg)

    draw = rng.randrange(total)
    cumulative = 0
    for weight, value in entries:
        cumulative += weight
        if draw < cumulative:
            return value
    # Unreachable while weights are non-negative
    return entries[-1][1]


def compute_spin_reward(
    rng: random.Random | None = None,
    table: Sequence[tuple[int, SpinReward]] = SPIN_TABLE,
) -> SpinReward:
    return pick_weighted(table, rng or random.Random())


def can_spin(last_spin: datetime | None, now: datetime, cooldown: timedelta = timedelta(hours=24)) -> bool:
    return last_spin is None or now - last_spin >= cooldown


def new_loot_box_id(rng: random.Random) -> str:
    return f"lootbox-{rng.randrange(16**8):08x}"


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------


def compute_referral_bonus(settings: Settings | None = None) -> int:
    """Bonus paid to the referrer, once per referee."""
    return (settings or get_settings()).referral_bonus
