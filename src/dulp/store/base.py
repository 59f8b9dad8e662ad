"""Store interface injected into the engine.

A ``StoreSession`` is one unit of work: reads see the session's own writes,
``get_account(..., for_update=True)`` serialises writers of that account
until the session ends, and nothing is visible to other sessions until
``commit()``. Leaving the ``session()`` context without committing rolls
everything back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager

from dulp.store.records import (
    Account,
    AchievementUnlock,
    ActionReceipt,
    GameScore,
    GameStats,
    ProgressionStats,
    Transaction,
)


class StoreSession(ABC):
    """Narrow persistence contract used by the ledger and progression services."""

    # --- Accounts ---

    @abstractmethod
    async def get_account(self, user_id: int, *, for_update: bool = False) -> Account | None: ...

    @abstractmethod
    async def get_account_by_referral_code(self, code: str) -> Account | None: ...

    @abstractmethod
    async def add_account(self, account: Account) -> Account:
        """Insert a new account and return it with its id assigned."""
        ...

    @abstractmethod
    async def save_account(self, account: Account) -> None: ...

    @abstractmethod
    async def top_accounts_by_earned(self, limit: int) -> list[Account]: ...

    # --- Transactions ---

    @abstractmethod
    async def add_transaction(self, txn: Transaction) -> Transaction: ...

    @abstractmethod
    async def get_transaction(self, txn_id: int) -> Transaction | None: ...

    @abstractmethod
    async def save_transaction(self, txn: Transaction) -> None: ...

    @abstractmethod
    async def list_transactions(self, user_id: int, limit: int) -> list[Transaction]:
        """Most recent first."""
        ...

    # --- Progression ---

    @abstractmethod
    async def get_stats(self, user_id: int) -> ProgressionStats | None: ...

    @abstractmethod
    async def add_stats(self, stats: ProgressionStats) -> None: ...

    @abstractmethod
    async def save_stats(self, stats: ProgressionStats) -> None: ...

    # --- Games ---

    @abstractmethod
    async def add_game_score(self, score: GameScore) -> GameScore: ...

    @abstractmethod
    async def list_game_scores(self, user_id: int, game_id: str) -> list[GameScore]:
        """All scores of the pair, oldest first."""
        ...

    @abstractmethod
    async def get_game_stats(self, user_id: int, game_id: str) -> GameStats | None: ...

    @abstractmethod
    async def save_game_stats(self, stats: GameStats) -> None:
        """Insert or replace the stats row of the pair."""
        ...

    @abstractmethod
    async def top_game_stats(self, game_id: str, limit: int) -> list[GameStats]: ...

    # --- Achievements ---

    @abstractmethod
    async def insert_unlock_if_absent(self, unlock: AchievementUnlock) -> bool:
        """Insert the unlock unless one exists for the pair. Returns True if inserted."""
        ...

    @abstractmethod
    async def get_unlock(self, user_id: int, achievement_id: str) -> AchievementUnlock | None: ...

    @abstractmethod
    async def save_unlock(self, unlock: AchievementUnlock) -> None: ...

    @abstractmethod
    async def list_unlocks(self, user_id: int) -> list[AchievementUnlock]: ...

    # --- Idempotency ---

    @abstractmethod
    async def get_receipt(self, user_id: int, key: str) -> ActionReceipt | None: ...

    @abstractmethod
    async def add_receipt(self, receipt: ActionReceipt) -> None: ...

    # --- Unit of work ---

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...


class Store(ABC):
    """Factory for store sessions."""

    @abstractmethod
    def session(self) -> AbstractAsyncContextManager[StoreSession]: ...

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""

    async def ping(self) -> None:  # noqa: B027
        """Raise if the backend is unreachable."""
