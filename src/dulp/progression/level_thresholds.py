"""Level tiers and computation.

Tier table is shared with the web client's level badge; keep both in sync.
"""

from __future__ import annotations

LEVEL_THRESHOLDS: list[dict] = [
    {"level": 1, "title": "Bronze", "xp_required": 0, "multiplier": 1.00},
    {"level": 2, "title": "Silver", "xp_required": 500, "multiplier": 1.02},
    {"level": 3, "title": "Gold", "xp_required": 1500, "multiplier": 1.05},
    {"level": 4, "title": "Platinum", "xp_required": 3500, "multiplier": 1.10},
    {"level": 5, "title": "Diamond", "xp_required": 7500, "multiplier": 1.15},
    {"level": 6, "title": "Master", "xp_required": 15000, "multiplier": 1.20},
    {"level": 7, "title": "Grandmaster", "xp_required": 30000, "multiplier": 1.25},
    {"level": 8, "title": "Legend", "xp_required": 60000, "multiplier": 1.30},
]


def _check_table(table: list[dict]) -> None:
    if table[0]["xp_required"] != 0:
        msg = "First level tier must start at 0 XP"
        raise ValueError(msg)
    for prev, cur in zip(table, table[1:]):
        if cur["xp_required"] <= prev["xp_required"]:
            msg = f"Level thresholds must be strictly increasing ({prev['title']} -> {cur['title']})"
            raise ValueError(msg)
        if cur["multiplier"] < prev["multiplier"]:
            msg = f"Level multipliers must not decrease ({prev['title']} -> {cur['title']})"
            raise ValueError(msg)


_check_table(LEVEL_THRESHOLDS)


def tier_for(total_xp: int) -> dict:
    """Highest tier whose threshold is <= total_xp, scanning from the top."""
    for tier in reversed(LEVEL_THRESHOLDS):
        if total_xp >= tier["xp_required"]:
            return tier
    return LEVEL_THRESHOLDS[0]


def level_multiplier(level: int) -> float:
    for tier in LEVEL_THRESHOLDS:
        if tier["level"] == level:
            return tier["multiplier"]
    return 1.0


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP."""
    current = tier_for(total_xp)
    idx = current["level"] - 1
    next_tier = LEVEL_THRESHOLDS[min(idx + 1, len(LEVEL_THRESHOLDS) - 1)]

    xp_into_level = total_xp - current["xp_required"]
    xp_for_level = next_tier["xp_required"] - current["xp_required"]

    # At max level, avoid division by zero
    if xp_for_level == 0:
        xp_for_level = 1

    return {
        "level": current["level"],
        "title": current["title"],
        "multiplier": current["multiplier"],
        "xp_into_level": xp_into_level,
        "xp_for_level": xp_for_level,
        "next_level": next_tier["level"],
        "next_title": next_tier["title"],
    }
