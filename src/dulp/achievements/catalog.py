"""Achievement definitions: per-game and global.

Seed entries are parsed once at startup. An entry with a malformed
requirement is logged and left out of the catalog instead of failing boot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dulp.achievements.requirements import Requirement, parse_requirement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    title: str
    description: str
    icon: str
    requirement: Requirement
    reward: int
    rarity: str = "common"
    game_id: str | None = None
    is_active: bool = True

    def in_scope(self, game_id: str | None) -> bool:
        """Global achievements always apply; game ones only to their game."""
        return self.game_id is None or self.game_id == game_id


GAME_ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "id": "memory-match-first-win",
        "game_id": "memory-match",
        "title": "First Match",
        "description": "Complete your first Memory Match game",
        "icon": "🎯",
        "requirement": {"type": "completion", "value": 1},
        "reward": 25,
    },
    {
        "id": "memory-match-speed-demon",
        "game_id": "memory-match",
        "title": "Speed Demon",
        "description": "Complete Memory Match in under 60 seconds",
        "icon": "⚡",
        "requirement": {"type": "time", "value": 60, "operator": "lte"},
        "reward": 50,
    },
    {
        "id": "memory-match-perfect-score",
        "game_id": "memory-match",
        "title": "Perfect Memory",
        "description": "Score 100 points in Memory Match",
        "icon": "🏆",
        "requirement": {"type": "score", "value": 100, "operator": "gte"},
        "reward": 75,
    },
    {
        "id": "number-rush-first-win",
        "game_id": "number-rush",
        "title": "Math Master",
        "description": "Complete your first Number Rush game",
        "icon": "🧮",
        "requirement": {"type": "completion", "value": 1},
        "reward": 25,
    },
    {
        "id": "number-rush-streak",
        "game_id": "number-rush",
        "title": "Streak Master",
        "description": "Get a 10+ answer streak in Number Rush",
        "icon": "🔥",
        "requirement": {"type": "streak", "value": 10, "operator": "gte"},
        "reward": 60,
    },
    {
        "id": "color-match-first-win",
        "game_id": "color-match",
        "title": "Color Genius",
        "description": "Complete your first Color Match game",
        "icon": "🌈",
        "requirement": {"type": "completion", "value": 1},
        "reward": 25,
    },
    {
        "id": "coin-collector-first-win",
        "game_id": "coin-collector",
        "title": "Coin Hunter",
        "description": "Complete your first Coin Collector game",
        "icon": "💰",
        "requirement": {"type": "completion", "value": 1},
        "reward": 25,
    },
    {
        "id": "coin-collector-high-score",
        "game_id": "coin-collector",
        "title": "Coin Master",
        "description": "Score 150+ points in Coin Collector",
        "icon": "👑",
        "requirement": {"type": "score", "value": 150, "operator": "gte"},
        "reward": 100,
    },
]

GLOBAL_ACHIEVEMENT_SEED_DATA: list[dict] = [
    {"id": "early_adopter", "title": "Early Adopter", "description": "Joined Dulpton Point in the first 30 days",
     "icon": "🌟", "requirement": {"type": "signup_date", "value": 30}, "reward": 500, "rarity": "rare"},
    {"id": "first_hundred", "title": "Getting Started", "description": "Earned your first 100 DULP",
     "icon": "👶", "requirement": {"type": "total_earned", "value": 100}, "reward": 50, "rarity": "common"},
    {"id": "first_thousand", "title": "Rising Star", "description": "Earned your first 1,000 DULP",
     "icon": "⭐", "requirement": {"type": "total_earned", "value": 1000}, "reward": 100, "rarity": "common"},
    {"id": "five_thousand_club", "title": "High Roller", "description": "Earned 5,000 DULP total",
     "icon": "🎰", "requirement": {"type": "total_earned", "value": 5000}, "reward": 500, "rarity": "rare"},
    {"id": "grinder", "title": "The Grinder", "description": "Earned 10,000 DULP total",
     "icon": "⚡", "requirement": {"type": "total_earned", "value": 10000}, "reward": 1000, "rarity": "epic"},
    {"id": "big_earner", "title": "Big Earner", "description": "Earned 50,000 DULP total",
     "icon": "💰", "requirement": {"type": "total_earned", "value": 50000}, "reward": 5000, "rarity": "epic"},
    {"id": "dulp_millionaire", "title": "DULP Millionaire", "description": "Reached 100,000 total DULP earned",
     "icon": "💎", "requirement": {"type": "total_earned", "value": 100000}, "reward": 10000,
     "rarity": "legendary"},
    {"id": "first_referral", "title": "Recruiter", "description": "Successfully referred your first friend",
     "icon": "🤝", "requirement": {"type": "referrals", "value": 1}, "reward": 200, "rarity": "common"},
    {"id": "referral_master", "title": "Referral Master", "description": "Successfully referred 5 friends",
     "icon": "👑", "requirement": {"type": "referrals", "value": 5}, "reward": 1000, "rarity": "rare"},
    {"id": "social_master", "title": "Social Influencer", "description": "Successfully referred 10 friends",
     "icon": "👥", "requirement": {"type": "referrals", "value": 10}, "reward": 2000, "rarity": "epic"},
    {"id": "network_king", "title": "Network King", "description": "Successfully referred 25 friends",
     "icon": "🏆", "requirement": {"type": "referrals", "value": 25}, "reward": 5000, "rarity": "legendary"},
    {"id": "first_week", "title": "Week Warrior", "description": "Maintained a 7-day login streak",
     "icon": "📅", "requirement": {"type": "streak", "value": 7}, "reward": 300, "rarity": "common"},
    {"id": "two_week_streak", "title": "Dedication", "description": "Maintained a 14-day login streak",
     "icon": "🎯", "requirement": {"type": "streak", "value": 14}, "reward": 750, "rarity": "rare"},
    {"id": "streak_warrior", "title": "Streak Master", "description": "Maintained a 30-day login streak",
     "icon": "🔥", "requirement": {"type": "streak", "value": 30}, "reward": 3000, "rarity": "epic"},
    {"id": "streak_legend", "title": "Streak Legend", "description": "Maintained a 100-day login streak",
     "icon": "🌟", "requirement": {"type": "streak", "value": 100}, "reward": 10000, "rarity": "legendary"},
    {"id": "task_starter", "title": "Task Starter", "description": "Completed 10 tasks",
     "icon": "🎪", "requirement": {"type": "tasks_completed", "value": 10}, "reward": 200, "rarity": "common"},
    {"id": "task_enthusiast", "title": "Task Enthusiast", "description": "Completed 50 tasks",
     "icon": "🎨", "requirement": {"type": "tasks_completed", "value": 50}, "reward": 750, "rarity": "rare"},
    {"id": "task_master", "title": "Task Master", "description": "Completed 100 tasks",
     "icon": "🎯", "requirement": {"type": "tasks_completed", "value": 100}, "reward": 1500, "rarity": "rare"},
    {"id": "task_legend", "title": "Task Legend", "description": "Completed 500 tasks",
     "icon": "🏅", "requirement": {"type": "tasks_completed", "value": 500}, "reward": 7500, "rarity": "epic"},
    {"id": "spin_master", "title": "Lucky Spinner", "description": "Used the daily spin wheel 30 times",
     "icon": "🎡", "requirement": {"type": "spins_completed", "value": 30}, "reward": 1000, "rarity": "rare"},
]


def load_achievements(seed: list[dict] | None = None) -> dict[str, AchievementDefinition]:
    """Parse seed entries into definitions keyed by id."""
    if seed is None:
        seed = GAME_ACHIEVEMENT_SEED_DATA + GLOBAL_ACHIEVEMENT_SEED_DATA

    definitions: dict[str, AchievementDefinition] = {}
    for entry in seed:
        achievement_id = entry.get("id")
        try:
            requirement = parse_requirement(entry["requirement"], entry.get("game_id"))
            definition = AchievementDefinition(
                id=achievement_id,
                title=entry["title"],
                description=entry.get("description", ""),
                icon=entry.get("icon", ""),
                requirement=requirement,
                reward=int(entry["reward"]),
                rarity=entry.get("rarity", "common"),
                game_id=entry.get("game_id"),
                is_active=entry.get("is_active", True),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed achievement %r", achievement_id, exc_info=True)
            continue
        if definition.reward < 0:
            logger.warning("Skipping achievement %r with negative reward", achievement_id)
            continue
        definitions[definition.id] = definition
    return definitions
