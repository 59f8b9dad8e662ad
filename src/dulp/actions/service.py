"""Action surface: every user-facing operation as one unit of work.

Each mutating action opens one store session, locks the accounts it will
write in ascending id order, computes the reward, applies ledger and
progression changes, runs the achievement evaluator against the new state
and commits. Push events are published only after the commit.

Actions submitted with an idempotency key store their result as an action
receipt in the same commit, together with a fingerprint of the inputs. A
repeat of the key with the same inputs returns the stored result without
re-applying anything; the same key with other inputs is a Conflict.
"""

from __future__ import annotations

import hashlib
import json
import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from dulp.achievements import evaluator
from dulp.achievements.catalog import AchievementDefinition, load_achievements
from dulp.achievements.requirements import EvaluationContext
from dulp.actions.views import (
    account_view,
    achievement_view,
    game_score_view,
    game_stats_view,
    stats_view,
    task_view,
    transaction_view,
)
from dulp.config import Settings, get_settings
from dulp.errors import AlreadyClaimed, Conflict, NotEligible, NotFound
from dulp.events import PendingEvent, achievement_unlocked, balance_changed, level_up, publish_events
from dulp.ledger import service as ledger
from dulp.ledger.referral_codes import normalize_referral_code
from dulp.progression import service as progression
from dulp.quests import tracker
from dulp.quests.catalog import QuestType, get_quest
from dulp.quests.windows import quest_zone
from dulp.rewards import engine as rewards
from dulp.rewards.catalog import Difficulty, RewardCatalog
from dulp.store.base import Store, StoreSession
from dulp.store.records import (
    ActionReceipt,
    ActiveMultiplier,
    GameScore,
    GameStats,
    ProgressionStats,
    TransactionKind,
)

logger = logging.getLogger(__name__)

ActionFn = Callable[[StoreSession, list[PendingEvent], datetime], Awaitable[dict[str, Any]]]


def request_fingerprint(action: str, params: dict[str, Any] | None = None) -> str:
    """Stable hash of an action and its inputs, stored on idempotency receipts."""
    payload = json.dumps({"action": action, **(params or {})}, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode()).hexdigest()


class RewardsEngine:
    """Entry point for the action table; one instance per process."""

    def __init__(
        self,
        store: Store,
        settings: Settings | None = None,
        *,
        redis: object | None = None,
        catalog: RewardCatalog | None = None,
        achievements: dict[str, AchievementDefinition] | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.redis = redis
        self.catalog = catalog or RewardCatalog()
        self.achievements = achievements if achievements is not None else load_achievements()
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.tz = quest_zone(self.settings.quest_timezone)

    # ------------------------------------------------------------------
    # Unit-of-work plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        action: str,
        user_id: int,
        key: str | None,
        fn: ActionFn,
        lock_ids: Iterable[int] = (),
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        now = self.clock()
        request_hash = request_fingerprint(action, params)
        events: list[PendingEvent] = []

        async with self.store.session() as session:
            for uid in sorted({user_id, *lock_ids}):
                await ledger.get_account(session, uid, for_update=True)

            if key:
                receipt = await session.get_receipt(user_id, key)
                if receipt is not None:
                    if receipt.action != action:
                        raise Conflict(f"Idempotency key already used for {receipt.action}")
                    if receipt.request_hash != request_hash:
                        raise Conflict(f"Idempotency key already used for a different {action} request")
                    logger.info("Replaying %s for user %d (key %s)", action, user_id, key)
                    return dict(receipt.response)

            result = await fn(session, events, now)

            if key:
                await session.add_receipt(
                    ActionReceipt(
                        user_id=user_id,
                        key=key,
                        action=action,
                        response=result,
                        request_hash=request_hash,
                        created_at=now,
                    )
                )
            await session.commit()

        await publish_events(self.redis, events)
        return result

    async def _read(self, fn: Callable[[StoreSession], Awaitable[Any]]) -> Any:
        async with self.store.session() as session:
            return await fn(session)

    async def _evaluate(
        self,
        session: StoreSession,
        events: list[PendingEvent],
        user_id: int,
        stats: ProgressionStats,
        now: datetime,
        game_id: str | None = None,
        latest_score: GameScore | None = None,
        game_stats: GameStats | None = None,
    ) -> list[dict[str, Any]]:
        account = await ledger.get_account(session, user_id)
        ctx = EvaluationContext(
            account=account,
            stats=stats,
            launch_date=self.settings.launch_date,
            now=now,
            game_id=game_id,
            latest_score=latest_score,
            game_stats=game_stats,
        )
        unlocked = await evaluator.evaluate(session, self.achievements, ctx)
        for d in unlocked:
            events.append(achievement_unlocked(user_id, d.id, d.title, d.reward))
        return [{"id": d.id, "title": d.title, "reward": d.reward, "rarity": d.rarity} for d in unlocked]

    async def _earn(
        self,
        session: StoreSession,
        events: list[PendingEvent],
        stats: ProgressionStats,
        amount: int,
        description: str,
        now: datetime,
        metadata: dict[str, Any] | None = None,
        kind: TransactionKind = TransactionKind.EARN,
    ) -> dict[str, Any]:
        """Credit an earning to the stats owner and count it toward weekly totals and quests."""
        txn = await ledger.apply_credit(session, stats.user_id, amount, kind, description, metadata, now=now)
        progression.record_earnings(stats, amount, now, self.tz)
        account = await ledger.get_account(session, stats.user_id)
        events.append(balance_changed(stats.user_id, account.balance, amount, description))
        return transaction_view(txn)

    def _grant_xp(
        self,
        events: list[PendingEvent],
        stats: ProgressionStats,
        amount: int,
    ) -> progression.XpResult:
        result = progression.apply_xp(stats, amount)
        if result.leveled_up:
            events.append(level_up(stats.user_id, result.old_level, result.new_level, result.title))
        return result

    async def _summary(self, session: StoreSession, stats: ProgressionStats) -> dict[str, Any]:
        account = await ledger.get_account(session, stats.user_id)
        return {
            "balance": account.balance,
            "total_earned": account.total_earned,
            "xp": stats.xp,
            "level": stats.level,
        }

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def create_account(self, display_name: str) -> dict[str, Any]:
        """Sign up: account, stats and the signup bonus in one commit."""
        now = self.clock()
        events: list[PendingEvent] = []

        async with self.store.session() as session:
            account, txn = await ledger.create_account(session, display_name, self.settings.signup_bonus, now=now)
            stats = await progression.get_stats(session, account.id)
            if txn is not None:
                events.append(balance_changed(account.id, account.balance, txn.amount, txn.description))
            unlocked = await self._evaluate(session, events, account.id, stats, now)
            await session.commit()

        await publish_events(self.redis, events)
        return {
            "account": account_view(account),
            "stats": stats_view(stats),
            "transaction": transaction_view(txn) if txn else None,
            "unlocked_achievements": unlocked,
        }

    async def record_login(self, user_id: int, key: str | None = None) -> dict[str, Any]:
        """Daily login: advance the streak at most once per local day."""

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            account = await ledger.get_account(session, user_id)
            account.last_active = now
            await session.save_account(account)

            stats = await progression.get_stats(session, user_id)
            advanced = progression.advance_login_streak(stats, now, self.tz)
            await session.save_stats(stats)
            unlocked = await self._evaluate(session, events, user_id, stats, now)
            return {
                "login_streak": stats.login_streak,
                "max_login_streak": stats.max_login_streak,
                "streak_advanced": advanced,
                "unlocked_achievements": unlocked,
            }

        return await self._run("login", user_id, key, fn)

    # ------------------------------------------------------------------
    # Earning actions
    # ------------------------------------------------------------------

    async def complete_task(self, user_id: int, task_id: int, key: str | None = None) -> dict[str, Any]:
        task = self.catalog.get_task(task_id, self.clock())

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            stats = await progression.get_stats(session, user_id)
            multiplier = rewards.effective_multiplier(stats, now)
            reward = rewards.compute_task_reward(task, multiplier)

            txn = await self._earn(
                session, events, stats, reward, f"Completed task: {task.title}", now, {"task_id": task.id}
            )
            stats.tasks_completed += 1
            progression.increment_quest_progress(stats, QuestType.COMPLETE_TASKS, 1, now, self.tz)
            xp = self._grant_xp(events, stats, rewards.TASK_XP)
            await session.save_stats(stats)

            unlocked = await self._evaluate(session, events, user_id, stats, now)
            return {
                "task_id": task.id,
                "reward": reward,
                "multiplier": multiplier,
                "xp_awarded": rewards.TASK_XP,
                "leveled_up": xp.leveled_up,
                "transaction": txn,
                "unlocked_achievements": unlocked,
                **await self._summary(session, stats),
            }

        return await self._run("complete_task", user_id, key, fn, params={"task_id": task.id})

    async def complete_game(
        self,
        user_id: int,
        game_id: str,
        score: int,
        difficulty: Difficulty | str = Difficulty.MEDIUM,
        time_completed: int | None = None,
        metadata: dict[str, Any] | None = None,
        key: str | None = None,
    ) -> dict[str, Any]:
        """Score-driven game completion; records the score and rebuilds GameStats."""
        game = self.catalog.get_game(game_id)
        difficulty = Difficulty(difficulty)
        base = rewards.compute_game_reward(self.catalog.games, game_id, score, difficulty)

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            stats = await progression.get_stats(session, user_id)
            multiplier = rewards.effective_multiplier(stats, now)
            reward = min(rewards.apply_multiplier(base, multiplier), self.settings.max_game_reward)

            stored, game_stats = await progression.record_game_score(
                session,
                GameScore(
                    id=None,
                    user_id=user_id,
                    game_id=game.id,
                    score=rewards.clamp_score(game, score),
                    difficulty=difficulty.value,
                    time_completed=time_completed,
                    metadata=metadata,
                    created_at=now,
                ),
            )
            stats.games_played += 1
            txn = await self._earn(
                session, events, stats, reward, f"Completed {game.title}", now,
                {"game_id": game.id, "score": stored.score, "difficulty": difficulty.value},
            )
            xp_awarded = rewards.game_xp(reward)
            xp = self._grant_xp(events, stats, xp_awarded)
            await session.save_stats(stats)

            unlocked = await self._evaluate(
                session, events, user_id, stats, now,
                game_id=game.id, latest_score=stored, game_stats=game_stats,
            )
            return {
                "game_id": game.id,
                "score": game_score_view(stored),
                "reward": reward,
                "multiplier": multiplier,
                "xp_awarded": xp_awarded,
                "leveled_up": xp.leveled_up,
                "game_stats": game_stats_view(game_stats),
                "transaction": txn,
                "unlocked_achievements": unlocked,
                **await self._summary(session, stats),
            }

        return await self._run(
            "complete_game", user_id, key, fn,
            params={
                "game_id": game.id,
                "score": score,
                "difficulty": difficulty.value,
                "time_completed": time_completed,
                "metadata": metadata,
            },
        )

    async def play_game(self, user_id: int, game_id: str, key: str | None = None) -> dict[str, Any]:
        """Simple play with the fixed per-game payout (fallback for unknown games)."""
        reward = rewards.compute_play_reward(self.catalog.games, game_id)

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            stats = await progression.get_stats(session, user_id)
            txn = await self._earn(session, events, stats, reward, f"Played {game_id}", now, {"game_id": game_id})
            stats.games_played += 1
            xp_awarded = rewards.play_xp(reward)
            xp = self._grant_xp(events, stats, xp_awarded)
            await session.save_stats(stats)

            unlocked = await self._evaluate(session, events, user_id, stats, now)
            return {
                "game_id": game_id,
                "reward": reward,
                "xp_awarded": xp_awarded,
                "leveled_up": xp.leveled_up,
                "transaction": txn,
                "unlocked_achievements": unlocked,
                **await self._summary(session, stats),
            }

        return await self._run("play_game", user_id, key, fn, params={"game_id": game_id})

    async def spin(self, user_id: int, key: str | None = None) -> dict[str, Any]:
        """Daily spin wheel, at most once per rolling cooldown window."""
        cooldown = timedelta(hours=self.settings.spin_cooldown_hours)

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            stats = await progression.get_stats(session, user_id)
            if not rewards.can_spin(stats.last_spin_at, now, cooldown):
                next_at = stats.last_spin_at + cooldown
                raise NotEligible(f"Next spin available at {next_at.isoformat()}")

            reward = rewards.compute_spin_reward(self.rng)
            stats.last_spin_at = now
            stats.spins_completed += 1
            progression.increment_quest_progress(stats, QuestType.SPIN_WHEEL, 1, now, self.tz)

            txn = None
            leveled_up = False
            if reward.kind == rewards.SpinKind.DULP:
                txn = await self._earn(
                    session, events, stats, int(reward.amount), f"Spin wheel: {int(reward.amount)} DULP", now,
                    {"spin": reward.rarity},
                )
            elif reward.kind == rewards.SpinKind.XP:
                leveled_up = self._grant_xp(events, stats, int(reward.amount)).leveled_up
            elif reward.kind == rewards.SpinKind.MULTIPLIER:
                stats.active_multiplier = ActiveMultiplier(value=float(reward.amount), expires_at=now + reward.duration)
            elif reward.kind == rewards.SpinKind.LOOT_BOX:
                stats.loot_boxes.append(rewards.new_loot_box_id(self.rng))
            await session.save_stats(stats)

            unlocked = await self._evaluate(session, events, user_id, stats, now)
            return {
                "reward": reward.to_dict(),
                "transaction": txn,
                "leveled_up": leveled_up,
                "next_spin_at": (now + cooldown).isoformat(),
                "stats": stats_view(stats),
                "unlocked_achievements": unlocked,
                **await self._summary(session, stats),
            }

        return await self._run("spin", user_id, key, fn)

    async def apply_referral(self, user_id: int, code: str, key: str | None = None) -> dict[str, Any]:
        """Link the caller to a referrer and pay the referrer the referral bonus once."""
        code = normalize_referral_code(code)
        referrer = await self._read(lambda s: s.get_account_by_referral_code(code))
        if referrer is None:
            raise NotFound(f"Referral code {code} not found")
        if referrer.id == user_id:
            msg = "Cannot apply your own referral code"
            raise NotEligible(msg)
        bonus = rewards.compute_referral_bonus(self.settings)

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            referee = await ledger.get_account(session, user_id)
            if referee.referred_by is not None:
                msg = "Referral code already applied"
                raise NotEligible(msg)
            referee.referred_by = code
            referee.last_active = now
            await session.save_account(referee)

            referrer_stats = await progression.get_stats(session, referrer.id)
            await self._earn(
                session, events, referrer_stats, bonus, f"Referral bonus: {referee.display_name}", now,
                {"referee_id": user_id}, kind=TransactionKind.REFERRAL_BONUS,
            )
            account = await ledger.get_account(session, referrer.id)
            account.referral_count += 1
            account.referral_earnings += bonus
            await session.save_account(account)

            progression.increment_quest_progress(referrer_stats, QuestType.REFER_FRIENDS, 1, now, self.tz)
            await session.save_stats(referrer_stats)
            await self._evaluate(session, events, referrer.id, referrer_stats, now)
            return {
                "message": "Referral applied",
                "referrer_id": referrer.id,
                "referral_code": code,
                "bonus": bonus,
            }

        return await self._run("referral", user_id, key, fn, lock_ids=[referrer.id], params={"code": code})

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    async def claim_achievement(self, user_id: int, achievement_id: str, key: str | None = None) -> dict[str, Any]:

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            unlock, txn = await evaluator.claim(session, self.achievements, user_id, achievement_id, now)
            stats = await progression.get_stats(session, user_id)
            reward = txn.amount if txn else 0
            if txn is not None:
                progression.record_earnings(stats, txn.amount, now, self.tz)
                account = await ledger.get_account(session, user_id)
                events.append(balance_changed(user_id, account.balance, txn.amount, txn.description))
            await session.save_stats(stats)

            unlocked = await self._evaluate(session, events, user_id, stats, now)
            return {
                "achievement_id": achievement_id,
                "reward": reward,
                "claimed_at": unlock.claimed_at.isoformat(),
                "transaction": transaction_view(txn) if txn else None,
                "unlocked_achievements": unlocked,
                **await self._summary(session, stats),
            }

        return await self._run("claim_achievement", user_id, key, fn, params={"achievement_id": achievement_id})

    async def claim_quest(self, user_id: int, quest_id: str, key: str | None = None) -> dict[str, Any]:
        """Claim a completed quest once per window: token reward plus XP."""
        quest = get_quest(quest_id)
        if quest is None:
            raise NotFound(f"Quest '{quest_id}' not found")

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            stats = await progression.get_stats(session, user_id)
            progression.prune_expired_quest_keys(stats, now, self.tz)
            view = tracker.find_quest(stats, quest_id, now, self.tz)
            if view is None or not view.completed:
                raise NotEligible(f"Quest '{quest_id}' is not completed")
            if view.claimed:
                raise AlreadyClaimed(f"Quest '{quest_id}' already claimed")

            stats.claimed_quests.append(view.key)
            txn = await self._earn(
                session, events, stats, quest.reward, f"Quest reward: {quest.title}", now, {"quest_id": quest.id}
            )
            xp = self._grant_xp(events, stats, quest.xp_reward)
            await session.save_stats(stats)

            unlocked = await self._evaluate(session, events, user_id, stats, now)
            return {
                "quest_id": quest.id,
                "reward": quest.reward,
                "xp_awarded": quest.xp_reward,
                "leveled_up": xp.leveled_up,
                "transaction": txn,
                "unlocked_achievements": unlocked,
                **await self._summary(session, stats),
            }

        return await self._run("claim_quest", user_id, key, fn, params={"quest_id": quest.id})

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    async def withdraw(self, user_id: int, amount: int, key: str | None = None) -> dict[str, Any]:
        """Reserve a withdrawal; it stays pending until settled by the payout side."""

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            txn = await ledger.apply_debit(session, user_id, amount, now=now)
            account = await ledger.get_account(session, user_id)
            events.append(balance_changed(user_id, account.balance, txn.amount, txn.description))
            return {"transaction": transaction_view(txn), "balance": account.balance}

        return await self._run("withdraw", user_id, key, fn, params={"amount": amount})

    async def settle_withdrawal(self, user_id: int, txn_id: int, succeeded: bool) -> dict[str, Any]:

        async def fn(session: StoreSession, events: list[PendingEvent], now: datetime) -> dict[str, Any]:
            txn = await ledger.settle_withdrawal(session, user_id, txn_id, succeeded)
            account = await ledger.get_account(session, user_id)
            if not succeeded:
                events.append(balance_changed(user_id, account.balance, -txn.amount, "Withdrawal failed"))
            return {"transaction": transaction_view(txn), "balance": account.balance}

        return await self._run("settle_withdrawal", user_id, None, fn)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_tasks(self) -> list[dict[str, Any]]:
        return [task_view(t) for t in self.catalog.active_tasks(self.clock())]

    async def get_profile(self, user_id: int) -> dict[str, Any]:
        async def fn(session: StoreSession) -> dict[str, Any]:
            account = await ledger.get_account(session, user_id)
            stats = await progression.get_stats(session, user_id)
            now = self.clock()
            return {
                "account": account_view(account),
                "stats": stats_view(stats),
                "effective_multiplier": rewards.effective_multiplier(stats, now),
                "can_spin": rewards.can_spin(
                    stats.last_spin_at, now, timedelta(hours=self.settings.spin_cooldown_hours)
                ),
            }

        return await self._read(fn)

    async def get_stats(self, user_id: int) -> dict[str, Any]:
        async def fn(session: StoreSession) -> dict[str, Any]:
            return stats_view(await progression.get_stats(session, user_id))

        return await self._read(fn)

    async def list_transactions(self, user_id: int, limit: int | None = None) -> list[dict[str, Any]]:
        limit = limit or self.settings.transactions_page_limit

        async def fn(session: StoreSession) -> list[dict[str, Any]]:
            return [transaction_view(t) for t in await ledger.list_transactions(session, user_id, limit)]

        return await self._read(fn)

    async def get_quests(self, user_id: int) -> dict[str, Any]:
        async def fn(session: StoreSession) -> dict[str, Any]:
            stats = await progression.get_stats(session, user_id)
            now = self.clock()
            return {
                "daily": [v.to_dict() for v in tracker.daily_quests(stats, now, self.tz)],
                "weekly": [v.to_dict() for v in tracker.weekly_quests(stats, now, self.tz)],
            }

        return await self._read(fn)

    async def list_achievements(self, user_id: int) -> list[dict[str, Any]]:
        async def fn(session: StoreSession) -> list[dict[str, Any]]:
            await ledger.get_account(session, user_id)
            unlocks = {u.achievement_id: u for u in await session.list_unlocks(user_id)}
            return [
                achievement_view(d, unlocks.get(d.id))
                for d in self.achievements.values()
                if d.is_active
            ]

        return await self._read(fn)

    async def get_game_stats(self, user_id: int, game_id: str) -> dict[str, Any]:
        self.catalog.get_game(game_id)

        async def fn(session: StoreSession) -> dict[str, Any]:
            await ledger.get_account(session, user_id)
            stats = await session.get_game_stats(user_id, game_id)
            return game_stats_view(stats or GameStats(user_id=user_id, game_id=game_id))

        return await self._read(fn)

    async def game_leaderboard(self, game_id: str, limit: int = 10) -> list[dict[str, Any]]:
        self.catalog.get_game(game_id)

        async def fn(session: StoreSession) -> list[dict[str, Any]]:
            entries = []
            for rank, row in enumerate(await session.top_game_stats(game_id, limit), start=1):
                account = await session.get_account(row.user_id)
                entries.append({
                    "rank": rank,
                    "display_name": account.display_name if account else None,
                    **game_stats_view(row),
                })
            return entries

        return await self._read(fn)

    async def earnings_leaderboard(self, limit: int = 10) -> list[dict[str, Any]]:
        async def fn(session: StoreSession) -> list[dict[str, Any]]:
            entries = []
            for rank, account in enumerate(await session.top_accounts_by_earned(limit), start=1):
                stats = await session.get_stats(account.id)
                entries.append({
                    "rank": rank,
                    "user_id": account.id,
                    "display_name": account.display_name,
                    "total_earned": account.total_earned,
                    "level": stats.level if stats else 1,
                })
            return entries

        return await self._read(fn)
