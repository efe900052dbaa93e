"""Initial progression & rewards schema

Revision ID: 0a1c5e7b9d21
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1c5e7b9d21"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=True,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create progression, quest, streak, wheel, ledger, shop and audit tables."""
    op.create_table(
        "user_progression",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("reputation", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("coin_balance", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index("ix_user_progression_xp", "user_progression", ["total_xp"])

    op.create_table(
        "quest_definitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("quest_type", sa.String(50), nullable=False, unique=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_progress", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("xp_reward", sa.Integer(), nullable=True),
        sa.Column("reputation_reward", sa.Integer(), nullable=True),
        sa.Column("coin_reward", sa.Integer(), nullable=True),
        sa.Column("roles", postgresql.JSONB(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "quest_progress",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "quest_id",
            sa.Integer(),
            sa.ForeignKey("quest_definitions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("current_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at("updated_at"),
        sa.UniqueConstraint("user_id", "quest_id", name="uq_quest_progress_user_quest"),
    )

    op.create_table(
        "daily_streak_claims",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("calendar_day", sa.Date(), nullable=False),
        sa.Column("streak_length", sa.Integer(), nullable=False),
        sa.Column("cycle_day", sa.Integer(), nullable=False),
        sa.Column("xp_awarded", sa.Integer(), nullable=True),
        sa.Column("coins_awarded", sa.Integer(), nullable=True),
        _created_at("claimed_at"),
        sa.UniqueConstraint("user_id", "calendar_day", name="uq_streak_claims_user_day"),
    )
    op.create_index(
        "ix_streak_claims_user_day_desc",
        "daily_streak_claims",
        ["user_id", sa.text("calendar_day DESC")],
    )

    op.create_table(
        "wheel_spins",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("calendar_day", sa.Date(), nullable=False),
        sa.Column("segment_id", sa.Integer(), nullable=False),
        sa.Column("coins_won", sa.Integer(), nullable=False),
        _created_at("spun_at"),
        sa.UniqueConstraint("user_id", "calendar_day", name="uq_wheel_spins_user_day"),
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("xp_delta", sa.Integer(), nullable=False),
        sa.Column("reputation_delta", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_ledger_entries_idempotency",
        "ledger_entries",
        ["idempotency_key"],
        unique=True,
        postgresql_where=sa.text("idempotency_key IS NOT NULL"),
    )
    op.create_index("ix_ledger_entries_user_time", "ledger_entries", ["user_id", "created_at"])
    op.create_index("ix_ledger_entries_type_time", "ledger_entries", ["type", "created_at"])

    op.create_table(
        "item_purchases",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("item_id", sa.String(64), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column(
            "ledger_entry_id",
            sa.BigInteger(),
            sa.ForeignKey("ledger_entries.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _created_at("purchased_at"),
        sa.UniqueConstraint("user_id", "item_id", name="uq_item_purchases_user_item"),
    )

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        _created_at("timestamp"),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"]
    )


def downgrade() -> None:
    """Drop every progression table."""
    op.drop_index("ix_admin_log_target", table_name="admin_log")
    op.drop_index("ix_admin_log_actor_time", table_name="admin_log")
    op.drop_table("admin_log")

    op.drop_table("item_purchases")

    op.drop_index("ix_ledger_entries_type_time", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_user_time", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_idempotency", table_name="ledger_entries")
    op.drop_table("ledger_entries")

    op.drop_table("wheel_spins")

    op.drop_index("ix_streak_claims_user_day_desc", table_name="daily_streak_claims")
    op.drop_table("daily_streak_claims")

    op.drop_table("quest_progress")
    op.drop_table("quest_definitions")

    op.drop_index("ix_user_progression_xp", table_name="user_progression")
    op.drop_table("user_progression")
