"""Rewards ledger tables.

Creates accounts, transactions, action_receipts, progression_stats,
game_scores, game_stats and user_achievements.

Revision ID: 001_rewards_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_rewards_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Accounts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS accounts (
            id BIGSERIAL PRIMARY KEY,
            display_name VARCHAR(64) NOT NULL,
            referral_code VARCHAR(8) UNIQUE NOT NULL,
            balance BIGINT NOT NULL DEFAULT 0 CHECK (balance >= 0),
            total_earned BIGINT NOT NULL DEFAULT 0 CHECK (total_earned >= 0),
            referred_by VARCHAR(8),
            referral_count INTEGER NOT NULL DEFAULT 0,
            referral_earnings BIGINT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_active TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_accounts_total_earned
        ON accounts(total_earned DESC)
    """)

    # --- Transactions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            kind VARCHAR(20) NOT NULL,
            amount BIGINT NOT NULL,
            description VARCHAR(256) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            metadata JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_transactions_user_created
        ON transactions(user_id, created_at)
    """)

    # --- Action Receipts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS action_receipts (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            idempotency_key VARCHAR(128) NOT NULL,
            action VARCHAR(32) NOT NULL,
            response JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT action_receipts_user_id_key_key UNIQUE (user_id, idempotency_key)
        )
    """)

    # --- Progression Stats ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS progression_stats (
            user_id BIGINT PRIMARY KEY REFERENCES accounts(id) ON DELETE CASCADE,
            xp BIGINT NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            tasks_completed INTEGER NOT NULL DEFAULT 0,
            spins_completed INTEGER NOT NULL DEFAULT 0,
            games_played INTEGER NOT NULL DEFAULT 0,
            login_streak INTEGER NOT NULL DEFAULT 0,
            max_login_streak INTEGER NOT NULL DEFAULT 0,
            last_login_date DATE,
            last_spin_at TIMESTAMPTZ,
            multiplier_value DOUBLE PRECISION,
            multiplier_expires_at TIMESTAMPTZ,
            loot_boxes JSONB NOT NULL DEFAULT '[]',
            quest_progress JSONB NOT NULL DEFAULT '{}',
            claimed_quests JSONB NOT NULL DEFAULT '[]',
            weekly_earnings BIGINT NOT NULL DEFAULT 0,
            last_weekly_reset TIMESTAMPTZ
        )
    """)

    # --- Game Scores ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS game_scores (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            game_id VARCHAR(64) NOT NULL,
            score INTEGER NOT NULL,
            difficulty VARCHAR(16) NOT NULL DEFAULT 'medium',
            time_completed INTEGER,
            metadata JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_game_scores_user_game
        ON game_scores(user_id, game_id)
    """)

    # --- Game Stats ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS game_stats (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            game_id VARCHAR(64) NOT NULL,
            total_plays INTEGER NOT NULL DEFAULT 0,
            best_score INTEGER NOT NULL DEFAULT 0,
            best_time INTEGER,
            total_score BIGINT NOT NULL DEFAULT 0,
            average_score INTEGER NOT NULL DEFAULT 0,
            completion_rate INTEGER NOT NULL DEFAULT 0,
            win_streak INTEGER NOT NULL DEFAULT 0,
            max_win_streak INTEGER NOT NULL DEFAULT 0,
            last_played_at TIMESTAMPTZ,
            CONSTRAINT game_stats_user_id_game_id_key UNIQUE (user_id, game_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_game_stats_leaderboard
        ON game_stats(game_id, best_score DESC)
    """)

    # --- User Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            achievement_id VARCHAR(64) NOT NULL,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            claimed BOOLEAN NOT NULL DEFAULT false,
            claimed_at TIMESTAMPTZ,
            CONSTRAINT user_achievements_user_id_achievement_id_key UNIQUE (user_id, achievement_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS game_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS game_scores CASCADE")
    op.execute("DROP TABLE IF EXISTS progression_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS action_receipts CASCADE")
    op.execute("DROP TABLE IF EXISTS transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS accounts CASCADE")
