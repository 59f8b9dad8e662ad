"""Request fingerprint on action receipts.

A repeated idempotency key only replays when the action inputs match the
stored fingerprint; receipts written before this column carry ''.

Revision ID: 002_receipt_request_hash
Revises: 001_rewards_tables
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_receipt_request_hash"
down_revision: str | None = "001_rewards_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        ALTER TABLE action_receipts
        ADD COLUMN IF NOT EXISTS request_hash VARCHAR(64) NOT NULL DEFAULT ''
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE action_receipts DROP COLUMN IF EXISTS request_hash")
