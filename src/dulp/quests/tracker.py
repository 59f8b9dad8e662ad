"""Read-only quest views built from the static definitions and stored counters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from dulp.quests.catalog import DAILY_QUESTS, WEEKLY_QUESTS, QuestDefinition
from dulp.quests.windows import daily_window, progress_key, weekly_window
from dulp.store.records import ProgressionStats


@dataclass
class QuestView:
    quest: QuestDefinition
    key: str
    progress: int
    completed: bool
    claimed: bool
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.quest.id,
            "title": self.quest.title,
            "description": self.quest.description,
            "type": self.quest.type.value,
            "period": self.quest.period.value,
            "target": self.quest.target,
            "reward": self.quest.reward,
            "xp_reward": self.quest.xp_reward,
            "progress": min(self.progress, self.quest.target),
            "completed": self.completed,
            "claimed": self.claimed,
            "expires_at": self.expires_at.isoformat(),
        }


def _views(
    quests: list[QuestDefinition],
    stats: ProgressionStats,
    window: tuple[datetime, datetime],
) -> list[QuestView]:
    start, expires_at = window
    views = []
    for quest in quests:
        key = progress_key(quest.id, start)
        progress = stats.quest_progress.get(key, 0)
        views.append(
            QuestView(
                quest=quest,
                key=key,
                progress=progress,
                completed=progress >= quest.target,
                claimed=key in stats.claimed_quests,
                expires_at=expires_at,
            )
        )
    return views


def daily_quests(stats: ProgressionStats, now: datetime | None = None, tz: tzinfo = timezone.utc) -> list[QuestView]:
    """Today's quests; they expire at the next local midnight."""
    if now is None:
        now = datetime.now(timezone.utc)
    return _views(DAILY_QUESTS, stats, daily_window(now, tz))


def weekly_quests(stats: ProgressionStats, now: datetime | None = None, tz: tzinfo = timezone.utc) -> list[QuestView]:
    """This week's quests; they expire at the next Sunday local midnight."""
    if now is None:
        now = datetime.now(timezone.utc)
    return _views(WEEKLY_QUESTS, stats, weekly_window(now, tz))


def find_quest(
    stats: ProgressionStats,
    quest_id: str,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> QuestView | None:
    for view in daily_quests(stats, now, tz) + weekly_quests(stats, now, tz):
        if view.quest.id == quest_id:
            return view
    return None
