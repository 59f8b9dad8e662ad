"""SQLAlchemy-backed store.

One ``SqlStoreSession`` wraps one ``AsyncSession`` and therefore one database
transaction. Account locks are ``SELECT ... FOR UPDATE``; unique constraints
on unlocks, receipts and referral codes back up the check-then-insert done
under that lock. Unlocks and receipts insert inside a SAVEPOINT so a lost
race undoes only that insert; any other ``IntegrityError`` rolls back the
session and surfaces as ``Conflict``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dulp.db.models import (
    AccountRow,
    ActionReceiptRow,
    GameScoreRow,
    GameStatsRow,
    ProgressionStatsRow,
    TransactionRow,
    UserAchievementRow,
)
from dulp.errors import Conflict
from dulp.store.base import Store, StoreSession
from dulp.store.records import (
    Account,
    AchievementUnlock,
    ActionReceipt,
    ActiveMultiplier,
    GameScore,
    GameStats,
    ProgressionStats,
    Transaction,
)

logger = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlStore(Store):
    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SqlStoreSession]:
        async with self._session_factory() as db:
            yield SqlStoreSession(db)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        await self.engine.dispose()


# ---------------------------------------------------------------------------
# Row <-> record mapping
# ---------------------------------------------------------------------------


def _account(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        display_name=row.display_name,
        referral_code=row.referral_code,
        balance=row.balance,
        total_earned=row.total_earned,
        referred_by=row.referred_by,
        referral_count=row.referral_count,
        referral_earnings=row.referral_earnings,
        created_at=_aware(row.created_at),
        last_active=_aware(row.last_active),
    )


def _transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        kind=row.kind,
        amount=row.amount,
        description=row.description,
        status=row.status,
        metadata=dict(row.tx_metadata) if row.tx_metadata is not None else None,
        created_at=_aware(row.created_at),
    )


def _stats(row: ProgressionStatsRow) -> ProgressionStats:
    multiplier = None
    if row.multiplier_value is not None and row.multiplier_expires_at is not None:
        multiplier = ActiveMultiplier(value=row.multiplier_value, expires_at=_aware(row.multiplier_expires_at))
    return ProgressionStats(
        user_id=row.user_id,
        xp=row.xp,
        level=row.level,
        tasks_completed=row.tasks_completed,
        spins_completed=row.spins_completed,
        games_played=row.games_played,
        login_streak=row.login_streak,
        max_login_streak=row.max_login_streak,
        last_login_date=row.last_login_date,
        last_spin_at=_aware(row.last_spin_at),
        active_multiplier=multiplier,
        loot_boxes=list(row.loot_boxes or []),
        quest_progress=dict(row.quest_progress or {}),
        claimed_quests=list(row.claimed_quests or []),
        weekly_earnings=row.weekly_earnings,
        last_weekly_reset=_aware(row.last_weekly_reset),
    )


def _fill_stats(row: ProgressionStatsRow, stats: ProgressionStats) -> None:
    row.xp = stats.xp
    row.level = stats.level
    row.tasks_completed = stats.tasks_completed
    row.spins_completed = stats.spins_completed
    row.games_played = stats.games_played
    row.login_streak = stats.login_streak
    row.max_login_streak = stats.max_login_streak
    row.last_login_date = stats.last_login_date
    row.last_spin_at = stats.last_spin_at
    row.multiplier_value = stats.active_multiplier.value if stats.active_multiplier else None
    row.multiplier_expires_at = stats.active_multiplier.expires_at if stats.active_multiplier else None
    row.loot_boxes = list(stats.loot_boxes)
    row.quest_progress = dict(stats.quest_progress)
    row.claimed_quests = list(stats.claimed_quests)
    row.weekly_earnings = stats.weekly_earnings
    row.last_weekly_reset = stats.last_weekly_reset


def _game_score(row: GameScoreRow) -> GameScore:
    return GameScore(
        id=row.id,
        user_id=row.user_id,
        game_id=row.game_id,
        score=row.score,
        difficulty=row.difficulty,
        time_completed=row.time_completed,
        metadata=dict(row.score_metadata) if row.score_metadata is not None else None,
        created_at=_aware(row.created_at),
    )


def _game_stats(row: GameStatsRow) -> GameStats:
    return GameStats(
        user_id=row.user_id,
        game_id=row.game_id,
        total_plays=row.total_plays,
        best_score=row.best_score,
        best_time=row.best_time,
        total_score=row.total_score,
        average_score=row.average_score,
        completion_rate=row.completion_rate,
        win_streak=row.win_streak,
        max_win_streak=row.max_win_streak,
        last_played_at=_aware(row.last_played_at),
    )


def _unlock(row: UserAchievementRow) -> AchievementUnlock:
    return AchievementUnlock(
        user_id=row.user_id,
        achievement_id=row.achievement_id,
        unlocked_at=_aware(row.unlocked_at),
        claimed=row.claimed,
        claimed_at=_aware(row.claimed_at),
    )


class SqlStoreSession(StoreSession):
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _flush(self, what: str) -> None:
        try:
            await self._db.flush()
        except IntegrityError as exc:
            await self._db.rollback()
            logger.info("Unique constraint hit on %s insert", what)
            raise Conflict(f"{what} already exists") from exc

    async def _insert_in_savepoint(self, row: object, what: str) -> bool:
        """Insert ``row`` under a SAVEPOINT; a unique violation undoes only this insert.

        Returns False when the row already exists.
        """
        try:
            async with self._db.begin_nested():
                self._db.add(row)
        except IntegrityError:
            logger.info("Unique constraint hit on %s insert", what)
            return False
        return True

    # --- Accounts ---

    async def get_account(self, user_id: int, *, for_update: bool = False) -> Account | None:
        stmt = select(AccountRow).where(AccountRow.id == user_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = (await self._db.execute(stmt)).scalar_one_or_none()
        return _account(row) if row else None

    async def get_account_by_referral_code(self, code: str) -> Account | None:
        result = await self._db.execute(select(AccountRow).where(AccountRow.referral_code == code))
        row = result.scalar_one_or_none()
        return _account(row) if row else None

    async def add_account(self, account: Account) -> Account:
        row = AccountRow(
            display_name=account.display_name,
            referral_code=account.referral_code,
            balance=account.balance,
            total_earned=account.total_earned,
            referred_by=account.referred_by,
            referral_count=account.referral_count,
            referral_earnings=account.referral_earnings,
            created_at=account.created_at,
            last_active=account.last_active,
        )
        self._db.add(row)
        await self._flush("account")
        return _account(row)

    async def save_account(self, account: Account) -> None:
        row = await self._db.get(AccountRow, account.id)
        if row is None:
            raise Conflict(f"account {account.id} vanished")
        row.display_name = account.display_name
        row.balance = account.balance
        row.total_earned = account.total_earned
        row.referred_by = account.referred_by
        row.referral_count = account.referral_count
        row.referral_earnings = account.referral_earnings
        row.last_active = account.last_active

    async def top_accounts_by_earned(self, limit: int) -> list[Account]:
        result = await self._db.execute(
            select(AccountRow).order_by(AccountRow.total_earned.desc(), AccountRow.id.asc()).limit(limit)
        )
        return [_account(row) for row in result.scalars().all()]

    # --- Transactions ---

    async def add_transaction(self, txn: Transaction) -> Transaction:
        row = TransactionRow(
            user_id=txn.user_id,
            kind=txn.kind,
            amount=txn.amount,
            description=txn.description,
            status=txn.status,
            tx_metadata=txn.metadata,
            created_at=txn.created_at,
        )
        self._db.add(row)
        await self._flush("transaction")
        return _transaction(row)

    async def get_transaction(self, txn_id: int) -> Transaction | None:
        row = await self._db.get(TransactionRow, txn_id)
        return _transaction(row) if row else None

    async def save_transaction(self, txn: Transaction) -> None:
        row = await self._db.get(TransactionRow, txn.id)
        if row is None:
            raise Conflict(f"transaction {txn.id} vanished")
        row.status = txn.status

    async def list_transactions(self, user_id: int, limit: int) -> list[Transaction]:
        result = await self._db.execute(
            select(TransactionRow)
            .where(TransactionRow.user_id == user_id)
            .order_by(TransactionRow.created_at.desc(), TransactionRow.id.desc())
            .limit(limit)
        )
        return [_transaction(row) for row in result.scalars().all()]

    # --- Progression ---

    async def get_stats(self, user_id: int) -> ProgressionStats | None:
        row = await self._db.get(ProgressionStatsRow, user_id)
        return _stats(row) if row else None

    async def add_stats(self, stats: ProgressionStats) -> None:
        row = ProgressionStatsRow(user_id=stats.user_id)
        _fill_stats(row, stats)
        self._db.add(row)
        await self._flush("progression_stats")

    async def save_stats(self, stats: ProgressionStats) -> None:
        row = await self._db.get(ProgressionStatsRow, stats.user_id)
        if row is None:
            raise Conflict(f"stats for {stats.user_id} vanished")
        _fill_stats(row, stats)

    # --- Games ---

    async def add_game_score(self, score: GameScore) -> GameScore:
        row = GameScoreRow(
            user_id=score.user_id,
            game_id=score.game_id,
            score=score.score,
            difficulty=score.difficulty,
            time_completed=score.time_completed,
            score_metadata=score.metadata,
            created_at=score.created_at,
        )
        self._db.add(row)
        await self._flush("game_score")
        return _game_score(row)

    async def list_game_scores(self, user_id: int, game_id: str) -> list[GameScore]:
        result = await self._db.execute(
            select(GameScoreRow)
            .where(GameScoreRow.user_id == user_id, GameScoreRow.game_id == game_id)
            .order_by(GameScoreRow.created_at.asc(), GameScoreRow.id.asc())
        )
        return [_game_score(row) for row in result.scalars().all()]

    async def _game_stats_row(self, user_id: int, game_id: str) -> GameStatsRow | None:
        result = await self._db.execute(
            select(GameStatsRow).where(GameStatsRow.user_id == user_id, GameStatsRow.game_id == game_id)
        )
        return result.scalar_one_or_none()

    async def get_game_stats(self, user_id: int, game_id: str) -> GameStats | None:
        row = await self._game_stats_row(user_id, game_id)
        return _game_stats(row) if row else None

    async def save_game_stats(self, stats: GameStats) -> None:
        row = await self._game_stats_row(stats.user_id, stats.game_id)
        if row is None:
            row = GameStatsRow(user_id=stats.user_id, game_id=stats.game_id)
            self._db.add(row)
        row.total_plays = stats.total_plays
        row.best_score = stats.best_score
        row.best_time = stats.best_time
        row.total_score = stats.total_score
        row.average_score = stats.average_score
        row.completion_rate = stats.completion_rate
        row.win_streak = stats.win_streak
        row.max_win_streak = stats.max_win_streak
        row.last_played_at = stats.last_played_at
        await self._flush("game_stats")

    async def top_game_stats(self, game_id: str, limit: int) -> list[GameStats]:
        result = await self._db.execute(
            select(GameStatsRow)
            .where(GameStatsRow.game_id == game_id)
            .order_by(GameStatsRow.best_score.desc(), GameStatsRow.user_id.asc())
            .limit(limit)
        )
        return [_game_stats(row) for row in result.scalars().all()]

    # --- Achievements ---

    async def _unlock_row(self, user_id: int, achievement_id: str) -> UserAchievementRow | None:
        result = await self._db.execute(
            select(UserAchievementRow).where(
                UserAchievementRow.user_id == user_id,
                UserAchievementRow.achievement_id == achievement_id,
            )
        )
        return result.scalar_one_or_none()

    async def insert_unlock_if_absent(self, unlock: AchievementUnlock) -> bool:
        if await self._unlock_row(unlock.user_id, unlock.achievement_id) is not None:
            return False
        row = UserAchievementRow(
            user_id=unlock.user_id,
            achievement_id=unlock.achievement_id,
            unlocked_at=unlock.unlocked_at,
            claimed=unlock.claimed,
            claimed_at=unlock.claimed_at,
        )
        return await self._insert_in_savepoint(row, "achievement unlock")

    async def get_unlock(self, user_id: int, achievement_id: str) -> AchievementUnlock | None:
        row = await self._unlock_row(user_id, achievement_id)
        return _unlock(row) if row else None

    async def save_unlock(self, unlock: AchievementUnlock) -> None:
        row = await self._unlock_row(unlock.user_id, unlock.achievement_id)
        if row is None:
            raise Conflict(f"unlock {unlock.achievement_id} vanished")
        row.claimed = unlock.claimed
        row.claimed_at = unlock.claimed_at

    async def list_unlocks(self, user_id: int) -> list[AchievementUnlock]:
        result = await self._db.execute(
            select(UserAchievementRow)
            .where(UserAchievementRow.user_id == user_id)
            .order_by(UserAchievementRow.unlocked_at.asc())
        )
        return [_unlock(row) for row in result.scalars().all()]

    # --- Idempotency ---

    async def get_receipt(self, user_id: int, key: str) -> ActionReceipt | None:
        result = await self._db.execute(
            select(ActionReceiptRow).where(
                ActionReceiptRow.user_id == user_id,
                ActionReceiptRow.idempotency_key == key,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return ActionReceipt(
            user_id=row.user_id,
            key=row.idempotency_key,
            action=row.action,
            request_hash=row.request_hash,
            response=dict(row.response),
            created_at=_aware(row.created_at),
        )

    async def add_receipt(self, receipt: ActionReceipt) -> None:
        row = ActionReceiptRow(
            user_id=receipt.user_id,
            idempotency_key=receipt.key,
            action=receipt.action,
            request_hash=receipt.request_hash,
            response=receipt.response,
            created_at=receipt.created_at,
        )
        if not await self._insert_in_savepoint(row, "action receipt"):
            raise Conflict(f"Idempotency key {receipt.key} already recorded")

    # --- Unit of work ---

    async def commit(self) -> None:
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            raise Conflict("concurrent write lost the race") from exc

    async def rollback(self) -> None:
        await self._db.rollback()
