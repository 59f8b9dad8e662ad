"""Referral code generation.

Codes are 8-character alphanumeric (A-Z, 0-9), generated server-side with a
cryptographic random source and immutable once assigned to an account.
"""

from __future__ import annotations

import secrets
import string

from dulp.errors import Conflict
from dulp.store.base import StoreSession

REFERRAL_CHARSET = string.ascii_uppercase + string.digits  # A-Z, 0-9
REFERRAL_LENGTH = 8
MAX_ATTEMPTS = 10


def generate_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CHARSET) for _ in range(REFERRAL_LENGTH))


def normalize_referral_code(code: str) -> str:
    """Normalize a referral code for case-insensitive lookup."""
    return code.strip().upper()


async def generate_unique_referral_code(session: StoreSession) -> str:
    """Generate a code no existing account holds."""
    for _ in range(MAX_ATTEMPTS):
        code = generate_referral_code()
        if await session.get_account_by_referral_code(code) is None:
            return code
    raise Conflict(f"Failed to generate unique referral code after {MAX_ATTEMPTS} attempts")
