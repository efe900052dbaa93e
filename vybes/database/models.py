"""
vybes.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- user_progression    — Cached per-user aggregate (XP, level, reputation, coins)
- quest_definitions   — Quest configuration seeded from the reward catalog
- quest_progress      — Per-user, per-quest progress state machine
- daily_streak_claims — Append-only daily reward claims (one per calendar day)
- wheel_spins         — Append-only lottery wheel spins (one per calendar day)
- ledger_entries      — Append-only journal of every balance change
- item_purchases      — Append-only coin purchases (one per user+item)
- admin_log           — Append-only audit trail

``user_progression`` is a cache; ``ledger_entries`` is the source of truth.
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Vybes ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class LedgerEntryType(enum.StrEnum):
    """Every kind of balance-affecting event."""
    QUEST_REWARD = "quest_reward"
    STREAK_CLAIM = "streak_claim"
    WHEEL_SPIN = "wheel_spin"
    PURCHASE = "purchase"
    MANUAL_ADJUSTMENT = "manual_adjustment"


class AdminActionType(enum.StrEnum):
    """Categories of admin mutations recorded in admin_log."""
    MANUAL_AWARD = "MANUAL_AWARD"
    MANUAL_REVOKE = "MANUAL_REVOKE"
    QUEST_GRANT = "QUEST_GRANT"
    RECONCILE = "RECONCILE"


# ---------------------------------------------------------------------------
# UserProgression — cached aggregate, written only by the ledger
# ---------------------------------------------------------------------------
class UserProgression(Base):
    __tablename__ = "user_progression"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_xp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    reputation: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    coin_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_user_progression_xp", "total_xp"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserProgression user={self.user_id!r} lvl={self.level} "
            f"xp={self.total_xp} coins={self.coin_balance}>"
        )


# ---------------------------------------------------------------------------
# QuestDefinition — configuration, seeded from the reward catalog
# ---------------------------------------------------------------------------
class QuestDefinition(Base):
    __tablename__ = "quest_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quest_type: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    target_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    xp_reward: Mapped[int] = mapped_column(Integer, default=0)
    reputation_reward: Mapped[int] = mapped_column(Integer, default=0)
    coin_reward: Mapped[int] = mapped_column(Integer, default=0)
    # Empty list = visible to every role
    roles: Mapped[list | None] = mapped_column(JSONB, default=list)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    progress: Mapped[list[QuestProgress]] = relationship(back_populates="quest")

    def __repr__(self) -> str:
        return f"<QuestDefinition id={self.id} type={self.quest_type!r}>"


# ---------------------------------------------------------------------------
# QuestProgress — per-user state machine, terminal once completed
# ---------------------------------------------------------------------------
class QuestProgress(Base):
    __tablename__ = "quest_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quest_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quest_definitions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    current_progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    quest: Mapped[QuestDefinition] = relationship(back_populates="progress")

    __table_args__ = (
        UniqueConstraint("user_id", "quest_id", name="uq_quest_progress_user_quest"),
    )

    def __repr__(self) -> str:
        return (
            f"<QuestProgress user={self.user_id!r} quest={self.quest_id} "
            f"progress={self.current_progress} completed={self.completed}>"
        )


# ---------------------------------------------------------------------------
# DailyStreakClaim — append-only, the unique key is the once-per-day guard
# ---------------------------------------------------------------------------
class DailyStreakClaim(Base):
    __tablename__ = "daily_streak_claims"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    calendar_day: Mapped[date] = mapped_column(Date, nullable=False)
    streak_length: Mapped[int] = mapped_column(Integer, nullable=False)
    cycle_day: Mapped[int] = mapped_column(Integer, nullable=False)
    xp_awarded: Mapped[int] = mapped_column(Integer, default=0)
    coins_awarded: Mapped[int] = mapped_column(Integer, default=0)
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "calendar_day", name="uq_streak_claims_user_day"),
        Index("ix_streak_claims_user_day_desc", "user_id", calendar_day.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<DailyStreakClaim user={self.user_id!r} day={self.calendar_day} "
            f"streak={self.streak_length} cycle={self.cycle_day}>"
        )


# ---------------------------------------------------------------------------
# WheelSpin — append-only, keyed independently of streak claims
# ---------------------------------------------------------------------------
class WheelSpin(Base):
    __tablename__ = "wheel_spins"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    calendar_day: Mapped[date] = mapped_column(Date, nullable=False)
    segment_id: Mapped[int] = mapped_column(Integer, nullable=False)
    coins_won: Mapped[int] = mapped_column(Integer, nullable=False)
    spun_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "calendar_day", name="uq_wheel_spins_user_day"),
    )

    def __repr__(self) -> str:
        return (
            f"<WheelSpin user={self.user_id!r} day={self.calendar_day} "
            f"segment={self.segment_id} coins={self.coins_won}>"
        )


# ---------------------------------------------------------------------------
# LedgerEntry — append-only journal, never updated or deleted
# ---------------------------------------------------------------------------
class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reputation_delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index(
            "ix_ledger_entries_idempotency",
            "idempotency_key",
            unique=True,
            postgresql_where=idempotency_key.isnot(None),
        ),
        Index("ix_ledger_entries_user_time", "user_id", "created_at"),
        Index("ix_ledger_entries_type_time", "type", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} user={self.user_id!r} "
            f"type={self.type} amount={self.amount}>"
        )


# ---------------------------------------------------------------------------
# ItemPurchase — append-only, the unique key is the ownership guard
# ---------------------------------------------------------------------------
class ItemPurchase(Base):
    __tablename__ = "item_purchases"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    ledger_entry_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("ledger_entries.id", ondelete="SET NULL"), nullable=True
    )
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_item_purchases_user_item"),
    )

    def __repr__(self) -> str:
        return f"<ItemPurchase user={self.user_id!r} item={self.item_id!r} price={self.price}>"


# ---------------------------------------------------------------------------
# AdminLog — append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id!r} action={self.action_type}>"
