"""Ledger store operations: accounts, credits, debits and the transaction log.

Callers hold the account lock (``get_account(..., for_update=True)``) for
every mutation and commit the session themselves; a credit or debit and its
Transaction row therefore land together or not at all.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from dulp.errors import InsufficientBalance, InvalidAmount, NotEligible, NotFound
from dulp.ledger.referral_codes import generate_unique_referral_code
from dulp.store.base import StoreSession
from dulp.store.records import (
    EARN_KINDS,
    Account,
    ProgressionStats,
    Transaction,
    TransactionKind,
    TransactionStatus,
)

logger = logging.getLogger(__name__)


async def get_account(session: StoreSession, user_id: int, *, for_update: bool = False) -> Account:
    account = await session.get_account(user_id, for_update=for_update)
    if account is None:
        raise NotFound(f"Account {user_id} not found")
    return account


async def create_account(
    session: StoreSession,
    display_name: str,
    signup_bonus: int,
    now: datetime | None = None,
) -> tuple[Account, Transaction | None]:
    """Create an account, its progression stats and the signup-bonus credit.

    All three are staged in the same session so the caller's commit makes
    them visible together.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    code = await generate_unique_referral_code(session)
    account = await session.add_account(
        Account(id=None, display_name=display_name, referral_code=code, created_at=now, last_active=now)
    )
    await session.add_stats(ProgressionStats(user_id=account.id))

    txn = None
    if signup_bonus > 0:
        txn = await apply_credit(
            session,
            account.id,
            signup_bonus,
            TransactionKind.SIGNUP_BONUS,
            "Welcome bonus",
            now=now,
        )
    logger.info("Created account %d with referral code %s", account.id, code)
    return await get_account(session, account.id), txn


async def apply_credit(
    session: StoreSession,
    user_id: int,
    amount: int,
    kind: TransactionKind | str,
    description: str,
    metadata: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Transaction:
    """Add ``amount`` to the balance (and lifetime-earned for earn-class kinds)."""
    kind = TransactionKind(kind)
    if kind == TransactionKind.WITHDRAW:
        msg = "Withdrawals go through apply_debit"
        raise InvalidAmount(msg)
    if amount <= 0:
        raise InvalidAmount(f"Credit amount must be positive, got {amount}")
    if now is None:
        now = datetime.now(timezone.utc)

    account = await get_account(session, user_id, for_update=True)
    account.balance += amount
    if kind in EARN_KINDS:
        account.total_earned += amount
    account.last_active = now
    await session.save_account(account)

    return await session.add_transaction(
        Transaction(
            id=None,
            user_id=user_id,
            kind=kind.value,
            amount=amount,
            description=description,
            status=TransactionStatus.COMPLETED.value,
            metadata=metadata,
            created_at=now,
        )
    )


async def apply_debit(
    session: StoreSession,
    user_id: int,
    amount: int,
    description: str = "Withdrawal",
    metadata: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Transaction:
    """Reserve ``amount`` for a withdrawal.

    The balance drops immediately and a ``pending`` withdraw transaction with
    a negative amount is appended; ``settle_withdrawal`` finishes it.
    """
    if amount <= 0:
        raise InvalidAmount(f"Debit amount must be positive, got {amount}")
    if now is None:
        now = datetime.now(timezone.utc)

    account = await get_account(session, user_id, for_update=True)
    if account.balance - amount < 0:
        raise InsufficientBalance(f"Balance {account.balance} is less than {amount}")

    account.balance -= amount
    account.last_active = now
    await session.save_account(account)

    return await session.add_transaction(
        Transaction(
            id=None,
            user_id=user_id,
            kind=TransactionKind.WITHDRAW.value,
            amount=-amount,
            description=description,
            status=TransactionStatus.PENDING.value,
            metadata=metadata,
            created_at=now,
        )
    )


async def settle_withdrawal(
    session: StoreSession,
    user_id: int,
    txn_id: int,
    succeeded: bool,
) -> Transaction:
    """Move a pending withdrawal to completed, or to failed with the balance restored.

    Lifetime-earned is never touched by a refund.
    """
    account = await get_account(session, user_id, for_update=True)
    txn = await session.get_transaction(txn_id)
    if txn is None or txn.user_id != user_id or txn.kind != TransactionKind.WITHDRAW.value:
        raise NotFound(f"Withdrawal {txn_id} not found")
    if txn.status != TransactionStatus.PENDING.value:
        raise NotEligible(f"Withdrawal {txn_id} is already {txn.status}")

    if succeeded:
        txn.status = TransactionStatus.COMPLETED.value
    else:
        txn.status = TransactionStatus.FAILED.value
        account.balance += -txn.amount
        await session.save_account(account)
        logger.info("Withdrawal %d failed; restored %d to account %d", txn_id, -txn.amount, user_id)

    await session.save_transaction(txn)
    return txn


async def list_transactions(session: StoreSession, user_id: int, limit: int = 50) -> list[Transaction]:
    """Most recent first."""
    await get_account(session, user_id)
    return await session.list_transactions(user_id, max(1, limit))
