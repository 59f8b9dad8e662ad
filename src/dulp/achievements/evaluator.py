"""Achievement unlocking and claiming.

Unlocks are insert-once per (user, achievement). Claims flip the claimed
flag and credit the reward inside the caller's session, with the account
row locked first so two concurrent claims serialise and the second sees
the flag already set.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from dulp.achievements.catalog import AchievementDefinition
from dulp.achievements.requirements import EvaluationContext
from dulp.errors import AlreadyClaimed, NotEligible, NotFound
from dulp.ledger.service import apply_credit, get_account
from dulp.store.base import StoreSession
from dulp.store.records import AchievementUnlock, Transaction, TransactionKind

logger = logging.getLogger(__name__)


async def evaluate(
    session: StoreSession,
    definitions: dict[str, AchievementDefinition],
    ctx: EvaluationContext,
) -> list[AchievementDefinition]:
    """Unlock every in-scope achievement the context satisfies.

    Returns the definitions unlocked by this call (already-unlocked ones are
    skipped). A definition whose check raises is logged and skipped so the
    rest of the action still goes through.
    """
    user_id = ctx.account.id
    already = {u.achievement_id for u in await session.list_unlocks(user_id)}
    unlocked: list[AchievementDefinition] = []

    for definition in definitions.values():
        if not definition.is_active or definition.id in already or not definition.in_scope(ctx.game_id):
            continue
        try:
            met = definition.requirement.is_met(ctx)
        except Exception:
            logger.warning("Achievement %s evaluation failed for user %d", definition.id, user_id, exc_info=True)
            continue
        if not met:
            continue

        inserted = await session.insert_unlock_if_absent(
            AchievementUnlock(user_id=user_id, achievement_id=definition.id, unlocked_at=ctx.now)
        )
        if inserted:
            logger.info("User %d unlocked achievement %s", user_id, definition.id)
            unlocked.append(definition)

    return unlocked


async def claim(
    session: StoreSession,
    definitions: dict[str, AchievementDefinition],
    user_id: int,
    achievement_id: str,
    now: datetime | None = None,
) -> tuple[AchievementUnlock, Transaction | None]:
    """Mark an unlocked achievement claimed and credit its reward as ``earn``."""
    definition = definitions.get(achievement_id)
    if definition is None:
        raise NotFound(f"Achievement '{achievement_id}' not found")
    if now is None:
        now = datetime.now(timezone.utc)

    # Lock before reading the unlock so a concurrent claim waits here
    await get_account(session, user_id, for_update=True)

    unlock = await session.get_unlock(user_id, achievement_id)
    if unlock is None:
        raise NotEligible(f"Achievement '{achievement_id}' is not unlocked")
    if unlock.claimed:
        raise AlreadyClaimed(f"Achievement '{achievement_id}' already claimed")

    unlock.claimed = True
    unlock.claimed_at = now
    await session.save_unlock(unlock)

    txn = None
    if definition.reward > 0:
        txn = await apply_credit(
            session,
            user_id,
            definition.reward,
            TransactionKind.EARN,
            f'Achievement: "{definition.title}"',
            metadata={"achievement_id": achievement_id},
            now=now,
        )
    return unlock, txn
