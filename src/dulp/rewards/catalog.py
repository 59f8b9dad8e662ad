"""Task and mini-game catalog, seeded at startup and immutable afterwards."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from dulp.errors import NotFound, UnknownEntity


class TaskCategory(str, Enum):
    SOCIAL = "social"
    WEB = "web"
    DAILY = "daily"
    FEATURED = "featured"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class Task:
    id: int
    title: str
    description: str
    reward: int
    platform: str
    category: TaskCategory
    difficulty: Difficulty
    icon: str
    action_text: str
    estimated_time: str
    action_url: str | None = None
    requirements: tuple[str, ...] = ()
    is_active: bool = True
    expires_at: datetime | None = None

    def available(self, now: datetime) -> bool:
        return self.is_active and (self.expires_at is None or self.expires_at > now)


@dataclass(frozen=True)
class GameDefinition:
    id: str
    title: str
    play_reward: int  # fixed payout of the simple play path
    max_score: int  # submitted scores are clamped to this


TASK_SEED_DATA: list[dict] = [
    {
        "title": "Complete Daily Survey",
        "description": "Answer a quick 5-minute survey about consumer preferences",
        "reward": 50,
        "platform": "Dulpton Point",
        "category": "daily",
        "icon": "📝",
        "action_text": "Start Survey",
        "difficulty": "easy",
        "estimated_time": "5 minutes",
    },
    {
        "title": "Watch Promotional Video",
        "description": "Watch a 2-minute promotional video and earn DULP tokens",
        "reward": 25,
        "platform": "YouTube",
        "category": "social",
        "icon": "🎥",
        "action_text": "Watch Video",
        "difficulty": "easy",
        "estimated_time": "2 minutes",
    },
    {
        "title": "Download Mobile App",
        "description": "Download and test a new mobile application",
        "reward": 100,
        "platform": "App Store",
        "category": "featured",
        "icon": "📱",
        "action_text": "Download App",
        "difficulty": "medium",
        "estimated_time": "10 minutes",
    },
    {
        "title": "Social Media Follow",
        "description": "Follow our official social media accounts",
        "reward": 30,
        "platform": "Twitter",
        "category": "social",
        "icon": "🐦",
        "action_text": "Follow Now",
        "difficulty": "easy",
        "estimated_time": "1 minute",
    },
    {
        "title": "Product Review",
        "description": "Write a detailed review of a featured product",
        "reward": 75,
        "platform": "Review Site",
        "category": "web",
        "icon": "⭐",
        "action_text": "Write Review",
        "difficulty": "medium",
        "estimated_time": "15 minutes",
    },
]

GAME_SEED_DATA: list[dict] = [
    {"id": "memory-match", "title": "Memory Match", "play_reward": 75, "max_score": 500},
    {"id": "number-rush", "title": "Number Rush", "play_reward": 100, "max_score": 1000},
    {"id": "color-match", "title": "Color Match", "play_reward": 80, "max_score": 800},
    {"id": "coin-collector", "title": "Coin Collector", "play_reward": 120, "max_score": 1500},
    {"id": "lucky-slots", "title": "Lucky Slots", "play_reward": 150, "max_score": 2000},
    {"id": "word-builder", "title": "Word Builder", "play_reward": 95, "max_score": 1000},
    {"id": "reflex-test", "title": "Reflex Test", "play_reward": 85, "max_score": 1000},
    {"id": "trivia-challenge", "title": "Trivia Challenge", "play_reward": 90, "max_score": 1000},
]


def build_tasks(seed: list[dict] | None = None) -> dict[int, Task]:
    """Number the seed tasks from 1 in seed order."""
    tasks = {}
    for i, data in enumerate(seed if seed is not None else TASK_SEED_DATA, start=1):
        data = dict(data)
        data["category"] = TaskCategory(data["category"])
        data["difficulty"] = Difficulty(data["difficulty"])
        data["requirements"] = tuple(data.get("requirements", ()))
        tasks[i] = Task(id=i, **data)
    return tasks


def build_games(seed: list[dict] | None = None) -> dict[str, GameDefinition]:
    return {g["id"]: GameDefinition(**g) for g in (seed if seed is not None else GAME_SEED_DATA)}


@dataclass
class RewardCatalog:
    tasks: dict[int, Task] = field(default_factory=build_tasks)
    games: dict[str, GameDefinition] = field(default_factory=build_games)

    def active_tasks(self, now: datetime | None = None) -> list[Task]:
        if now is None:
            now = datetime.now(timezone.utc)
        return [t for t in self.tasks.values() if t.available(now)]

    def get_task(self, task_id: int, now: datetime | None = None) -> Task:
        """Fails NotFound for missing, inactive or expired tasks."""
        if now is None:
            now = datetime.now(timezone.utc)
        task = self.tasks.get(task_id)
        if task is None or not task.available(now):
            raise NotFound(f"Task {task_id} not found")
        return task

    def get_game(self, game_id: str) -> GameDefinition:
        game = self.games.get(game_id)
        if game is None:
            raise UnknownEntity(f"Unknown game '{game_id}'")
        return game
