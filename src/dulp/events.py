"""Push events over Redis pub/sub.

Per-user events go to ``ws:user:{user_id}`` for WebSocket fan-out; level-ups
and achievement unlocks are also broadcast on ``pubsub:*`` channels for
activity feeds. Publishing happens after commit and never fails an action.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class PendingEvent:
    user_id: int
    event: str
    data: dict[str, Any] = field(default_factory=dict)
    broadcast: str | None = None  # pubsub channel, if any


def balance_changed(user_id: int, balance: int, delta: int, reason: str) -> PendingEvent:
    return PendingEvent(user_id, "balance_changed", {"balance": balance, "delta": delta, "reason": reason})


def level_up(user_id: int, old_level: int, new_level: int, title: str) -> PendingEvent:
    return PendingEvent(
        user_id,
        "level_up",
        {"old_level": old_level, "new_level": new_level, "title": title},
        broadcast="pubsub:level_up",
    )


def achievement_unlocked(user_id: int, achievement_id: str, title: str, reward: int) -> PendingEvent:
    return PendingEvent(
        user_id,
        "achievement_unlocked",
        {"achievement_id": achievement_id, "title": title, "reward": reward},
        broadcast="pubsub:achievement_unlocked",
    )


async def publish_events(redis: object | None, events: list[PendingEvent]) -> None:
    """Publish committed events. No-op without Redis."""
    if redis is None or not events:
        return

    for ev in events:
        try:
            await redis.publish(  # type: ignore[union-attr]
                f"ws:user:{ev.user_id}",
                json.dumps({"event": ev.event, "data": ev.data}),
            )
            if ev.broadcast:
                await redis.publish(  # type: ignore[union-attr]
                    ev.broadcast,
                    json.dumps({"user_id": ev.user_id, **ev.data}),
                )
        except Exception:
            logger.warning("Failed to publish %s for user %s", ev.event, ev.user_id, exc_info=True)
