"""Static daily and weekly quest definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class QuestType(str, Enum):
    EARN_DULP = "earn_dulp"
    COMPLETE_TASKS = "complete_tasks"
    REFER_FRIENDS = "refer_friends"
    LOGIN_STREAK = "login_streak"
    SPIN_WHEEL = "spin_wheel"


class QuestPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class QuestDefinition:
    id: str
    title: str
    description: str
    type: QuestType
    period: QuestPeriod
    target: int
    reward: int
    xp_reward: int


DAILY_QUESTS: list[QuestDefinition] = [
    QuestDefinition(
        "daily_earn_500", "Daily Earner", "Earn 500 DULP today",
        QuestType.EARN_DULP, QuestPeriod.DAILY, target=500, reward=100, xp_reward=50,
    ),
    QuestDefinition(
        "daily_complete_5_tasks", "Task Crusher", "Complete 5 tasks today",
        QuestType.COMPLETE_TASKS, QuestPeriod.DAILY, target=5, reward=200, xp_reward=75,
    ),
    QuestDefinition(
        "daily_spin_wheel", "Lucky Day", "Use the daily spin wheel",
        QuestType.SPIN_WHEEL, QuestPeriod.DAILY, target=1, reward=50, xp_reward=25,
    ),
]

WEEKLY_QUESTS: list[QuestDefinition] = [
    QuestDefinition(
        "weekly_earn_3000", "Weekly Grinder", "Earn 3,000 DULP this week",
        QuestType.EARN_DULP, QuestPeriod.WEEKLY, target=3000, reward=500, xp_reward=200,
    ),
    QuestDefinition(
        "weekly_complete_25_tasks", "Task Master", "Complete 25 tasks this week",
        QuestType.COMPLETE_TASKS, QuestPeriod.WEEKLY, target=25, reward=750, xp_reward=300,
    ),
    QuestDefinition(
        "weekly_refer_friend", "Social Butterfly", "Refer 1 friend this week",
        QuestType.REFER_FRIENDS, QuestPeriod.WEEKLY, target=1, reward=1000, xp_reward=400,
    ),
    QuestDefinition(
        "weekly_login_streak", "Consistency King", "Maintain a 7-day login streak",
        QuestType.LOGIN_STREAK, QuestPeriod.WEEKLY, target=7, reward=600, xp_reward=250,
    ),
]

_BY_ID = {q.id: q for q in DAILY_QUESTS + WEEKLY_QUESTS}


def get_quest(quest_id: str) -> QuestDefinition | None:
    return _BY_ID.get(quest_id)
