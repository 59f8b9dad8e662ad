"""Typed failures raised by the ledger, progression and reward services.

Every error carries the HTTP status and a short machine code so the API
layer can render it without knowing the individual classes.
"""

from __future__ import annotations


class RewardsError(Exception):
    """Base class for all domain failures."""

    status_code: int = 400
    code: str = "rewards_error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class NotFound(RewardsError):
    """Referenced account, task, game, achievement or quest is absent."""

    status_code = 404
    code = "not_found"


class UnknownEntity(NotFound):
    """A catalog identifier (game, task, quest) is not known to the engine."""

    code = "unknown_entity"


class InvalidAmount(RewardsError):
    """A non-positive amount where a positive one is required."""

    status_code = 422
    code = "invalid_amount"


class InsufficientBalance(RewardsError):
    """A debit would take the balance below zero."""

    status_code = 409
    code = "insufficient_balance"


class NotEligible(RewardsError):
    """Spin cooldown active, achievement not unlocked, referral already used, ..."""

    status_code = 403
    code = "not_eligible"


class AlreadyClaimed(NotEligible):
    """Duplicate claim of an achievement or quest reward."""

    status_code = 409
    code = "already_claimed"


class Conflict(RewardsError):
    """Concurrent mutation lost the race; the caller should retry."""

    status_code = 409
    code = "conflict"
