"""In-memory store backend.

Committed state lives in plain dicts on ``MemoryStore``. Each session stages
deep copies of the records it writes and applies them in one synchronous
step on ``commit()``, so no other coroutine can observe a half-applied unit
of work. ``get_account(..., for_update=True)`` takes a per-account
``asyncio.Lock`` that is held until the session closes.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dulp.errors import Conflict
from dulp.store.base import Store, StoreSession
from dulp.store.records import (
    Account,
    AchievementUnlock,
    ActionReceipt,
    GameScore,
    GameStats,
    ProgressionStats,
    Transaction,
)

logger = logging.getLogger(__name__)

_TABLES = ("accounts", "transactions", "stats", "game_scores", "game_stats", "unlocks", "receipts")


class MemoryStore(Store):
    """Process-local store for development and tests."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[Any, Any]] = {name: {} for name in _TABLES}
        self._locks: dict[int, asyncio.Lock] = {}
        self._ids = {
            "accounts": itertools.count(1),
            "transactions": itertools.count(1),
            "game_scores": itertools.count(1),
        }

    def next_id(self, table: str) -> int:
        return next(self._ids[table])

    def lock_for(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def session(self) -> AsyncIterator[MemoryStoreSession]:
        session = MemoryStoreSession(self)
        try:
            yield session
        finally:
            session.close()


class MemoryStoreSession(StoreSession):
    def __init__(self, store: MemoryStore) -> None:
        self._store = store
        self._staged: dict[str, dict[Any, Any]] = {name: {} for name in _TABLES}
        # Keys this session created; re-checked for uniqueness at commit.
        self._inserted: dict[str, set[Any]] = {name: set() for name in _TABLES}
        self._held: list[asyncio.Lock] = []
        self._held_ids: set[int] = set()

    # --- helpers ---

    def _get(self, table: str, key: Any) -> Any:
        if key in self._staged[table]:
            return copy.deepcopy(self._staged[table][key])
        record = self._store.tables[table].get(key)
        return copy.deepcopy(record) if record is not None else None

    def _stage(self, table: str, key: Any, record: Any, *, insert: bool = False) -> None:
        self._staged[table][key] = copy.deepcopy(record)
        if insert:
            self._inserted[table].add(key)

    def _rows(self, table: str) -> list[Any]:
        merged = dict(self._store.tables[table])
        merged.update(self._staged[table])
        return [copy.deepcopy(r) for r in merged.values()]

    async def _lock(self, user_id: int) -> None:
        if user_id in self._held_ids:
            return
        lock = self._store.lock_for(user_id)
        await lock.acquire()
        self._held.append(lock)
        self._held_ids.add(user_id)

    def close(self) -> None:
        self._discard()
        while self._held:
            self._held.pop().release()
        self._held_ids.clear()

    def _discard(self) -> None:
        for name in _TABLES:
            self._staged[name].clear()
            self._inserted[name].clear()

    # --- Accounts ---

    async def get_account(self, user_id: int, *, for_update: bool = False) -> Account | None:
        if for_update:
            await self._lock(user_id)
        return self._get("accounts", user_id)

    async def get_account_by_referral_code(self, code: str) -> Account | None:
        for account in self._rows("accounts"):
            if account.referral_code == code:
                return account
        return None

    async def add_account(self, account: Account) -> Account:
        account = copy.deepcopy(account)
        account.id = self._store.next_id("accounts")
        await self._lock(account.id)
        self._stage("accounts", account.id, account, insert=True)
        return account

    async def save_account(self, account: Account) -> None:
        self._stage("accounts", account.id, account)

    async def top_accounts_by_earned(self, limit: int) -> list[Account]:
        rows = sorted(self._rows("accounts"), key=lambda a: (-a.total_earned, a.id))
        return rows[:limit]

    # --- Transactions ---

    async def add_transaction(self, txn: Transaction) -> Transaction:
        txn = copy.deepcopy(txn)
        txn.id = self._store.next_id("transactions")
        self._stage("transactions", txn.id, txn, insert=True)
        return txn

    async def get_transaction(self, txn_id: int) -> Transaction | None:
        return self._get("transactions", txn_id)

    async def save_transaction(self, txn: Transaction) -> None:
        self._stage("transactions", txn.id, txn)

    async def list_transactions(self, user_id: int, limit: int) -> list[Transaction]:
        rows = [t for t in self._rows("transactions") if t.user_id == user_id]
        rows.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return rows[:limit]

    # --- Progression ---

    async def get_stats(self, user_id: int) -> ProgressionStats | None:
        return self._get("stats", user_id)

    async def add_stats(self, stats: ProgressionStats) -> None:
        self._stage("stats", stats.user_id, stats, insert=True)

    async def save_stats(self, stats: ProgressionStats) -> None:
        self._stage("stats", stats.user_id, stats)

    # --- Games ---

    async def add_game_score(self, score: GameScore) -> GameScore:
        score = copy.deepcopy(score)
        score.id = self._store.next_id("game_scores")
        self._stage("game_scores", score.id, score, insert=True)
        return score

    async def list_game_scores(self, user_id: int, game_id: str) -> list[GameScore]:
        rows = [s for s in self._rows("game_scores") if s.user_id == user_id and s.game_id == game_id]
        rows.sort(key=lambda s: (s.created_at, s.id))
        return rows

    async def get_game_stats(self, user_id: int, game_id: str) -> GameStats | None:
        return self._get("game_stats", (user_id, game_id))

    async def save_game_stats(self, stats: GameStats) -> None:
        self._stage("game_stats", (stats.user_id, stats.game_id), stats)

    async def top_game_stats(self, game_id: str, limit: int) -> list[GameStats]:
        rows = [s for s in self._rows("game_stats") if s.game_id == game_id]
        rows.sort(key=lambda s: (-s.best_score, s.user_id))
        return rows[:limit]

    # --- Achievements ---

    async def insert_unlock_if_absent(self, unlock: AchievementUnlock) -> bool:
        key = (unlock.user_id, unlock.achievement_id)
        if self._get("unlocks", key) is not None:
            return False
        self._stage("unlocks", key, unlock, insert=True)
        return True

    async def get_unlock(self, user_id: int, achievement_id: str) -> AchievementUnlock | None:
        return self._get("unlocks", (user_id, achievement_id))

    async def save_unlock(self, unlock: AchievementUnlock) -> None:
        self._stage("unlocks", (unlock.user_id, unlock.achievement_id), unlock)

    async def list_unlocks(self, user_id: int) -> list[AchievementUnlock]:
        rows = [u for u in self._rows("unlocks") if u.user_id == user_id]
        rows.sort(key=lambda u: u.unlocked_at)
        return rows

    # --- Idempotency ---

    async def get_receipt(self, user_id: int, key: str) -> ActionReceipt | None:
        return self._get("receipts", (user_id, key))

    async def add_receipt(self, receipt: ActionReceipt) -> None:
        self._stage("receipts", (receipt.user_id, receipt.key), receipt, insert=True)

    # --- Unit of work ---

    async def commit(self) -> None:
        tables = self._store.tables
        for name in ("unlocks", "receipts", "stats"):
            clash = self._inserted[name] & tables[name].keys()
            if clash:
                self._discard()
                raise Conflict(f"{name} row already exists: {sorted(clash)[0]}")

        codes = {a.referral_code: a.id for a in tables["accounts"].values()}
        for key in self._inserted["accounts"]:
            code = self._staged["accounts"][key].referral_code
            if codes.get(code, key) != key:
                self._discard()
                raise Conflict(f"referral code {code} already taken")

        for name in _TABLES:
            tables[name].update(self._staged[name])
        self._discard()

    async def rollback(self) -> None:
        self._discard()
