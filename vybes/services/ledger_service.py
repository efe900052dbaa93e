"""
vybes.services.ledger_service — The Coin/XP Ledger
===================================================

The only code path that changes ``coin_balance``, ``total_xp``,
``reputation`` or ``level``.  Every change:

  1. Appends one immutable ``ledger_entries`` row
  2. Applies the deltas to ``user_progression`` with a single SQL ``UPDATE``
     using column expressions (``coin_balance + :amount``) — never a Python
     read-modify-write
  3. Re-derives ``level`` from the new ``total_xp``

All three run inside the *caller's* session, so they commit or roll back
together with whatever reward transition triggered them.

Debits add the predicate ``coin_balance >= :amount`` to the same ``UPDATE``;
zero matched rows means the balance was too low and nothing is written.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vybes.constants import level_for_xp
from vybes.database.engine import get_session
from vybes.database.models import LedgerEntry, LedgerEntryType, UserProgression
from vybes.engine.transactions import TransactionMetadata, to_metadata
from vybes.errors import ConcurrencyConflict, InsufficientBalance, NotFound

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Aggregate access
# ---------------------------------------------------------------------------
def get_or_create_progression(session: Session, user_id: str) -> UserProgression:
    """Fetch or insert the UserProgression row for *user_id*.

    Two first-ever rewards for the same user can race on the insert; the
    loser's SAVEPOINT is rolled back and it re-reads the winner's row.
    """
    state = session.get(UserProgression, user_id)
    if state is not None:
        return state
    try:
        with session.begin_nested():
            state = UserProgression(
                user_id=user_id, total_xp=0, level=1, reputation=0, coin_balance=0,
            )
            session.add(state)
            session.flush()
    except IntegrityError:
        state = session.get(UserProgression, user_id)
        if state is None:
            raise
    return state


# ---------------------------------------------------------------------------
# Mutation primitives
# ---------------------------------------------------------------------------
def _append_entry(
    session: Session,
    *,
    user_id: str,
    amount: int,
    entry_type: LedgerEntryType,
    description: str,
    metadata: TransactionMetadata | None,
    xp: int,
    reputation: int,
    idempotency_key: str | None,
) -> LedgerEntry:
    if metadata is not None and metadata.kind != entry_type:
        raise ValueError(
            f"Metadata kind {metadata.kind!s} does not match entry type {entry_type!s}"
        )
    entry = LedgerEntry(
        user_id=user_id,
        type=LedgerEntryType(entry_type).value,
        amount=amount,
        xp_delta=xp,
        reputation_delta=reputation,
        description=description,
        metadata_=to_metadata(metadata) if metadata is not None else None,
        idempotency_key=idempotency_key,
    )
    try:
        with session.begin_nested():
            session.add(entry)
            session.flush()
    except IntegrityError:
        raise ConcurrencyConflict(
            f"Ledger entry with idempotency key {idempotency_key!r} already exists"
        ) from None
    return entry


def _apply_deltas(
    session: Session,
    state: UserProgression,
    *,
    amount: int,
    xp: int,
    reputation: int,
) -> None:
    stmt = (
        update(UserProgression)
        .where(UserProgression.user_id == state.user_id)
        .values(
            coin_balance=UserProgression.coin_balance + amount,
            total_xp=UserProgression.total_xp + xp,
            reputation=UserProgression.reputation + reputation,
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    if amount < 0:
        stmt = stmt.where(UserProgression.coin_balance >= -amount)

    result = session.execute(stmt)
    session.refresh(state)
    if result.rowcount == 0:
        raise InsufficientBalance(required=-amount, balance=state.coin_balance)

    new_level = level_for_xp(state.total_xp)
    if new_level != state.level:
        old_level = state.level
        state.level = new_level
        session.flush()
        logger.info(
            "Level change: user=%s %d → %d (xp=%d)",
            state.user_id, old_level, new_level, state.total_xp,
        )


def credit(
    session: Session,
    user_id: str,
    amount: int,
    entry_type: LedgerEntryType,
    description: str,
    metadata: TransactionMetadata | None = None,
    *,
    xp: int = 0,
    reputation: int = 0,
    idempotency_key: str | None = None,
) -> tuple[LedgerEntry, int]:
    """Record a balance change and apply it.  Returns ``(entry, new_balance)``.

    *amount* is signed coins.  A negative *amount* goes through the same
    non-negative-balance guard as :func:`debit`.  *xp* and *reputation* are
    carried on the same entry so the aggregate stays re-derivable from the
    ledger alone.

    Raises
    ------
    InsufficientBalance
        If a negative *amount* would take the balance below zero.
    ConcurrencyConflict
        If *idempotency_key* was already used.
    """
    state = get_or_create_progression(session, user_id)
    entry = _append_entry(
        session,
        user_id=user_id,
        amount=amount,
        entry_type=entry_type,
        description=description,
        metadata=metadata,
        xp=xp,
        reputation=reputation,
        idempotency_key=idempotency_key,
    )
    _apply_deltas(session, state, amount=amount, xp=xp, reputation=reputation)

    logger.info(
        "Ledger %s: user=%s coins=%+d xp=%+d rep=%+d balance=%d",
        entry.type, user_id, amount, xp, reputation, state.coin_balance,
    )
    return entry, state.coin_balance


def debit(
    session: Session,
    user_id: str,
    amount: int,
    entry_type: LedgerEntryType,
    description: str,
    metadata: TransactionMetadata | None = None,
    *,
    idempotency_key: str | None = None,
) -> tuple[LedgerEntry, int]:
    """Spend *amount* (> 0) coins.  Returns ``(entry, new_balance)``.

    Raises
    ------
    NotFound
        If the user has never received anything (no progression row).
    InsufficientBalance
        If the balance is lower than *amount*.
    """
    if amount <= 0:
        raise ValueError("Debit amount must be positive")
    state = session.get(UserProgression, user_id)
    if state is None:
        raise NotFound(f"No progression state for user {user_id!r}")
    if state.coin_balance < amount:
        raise InsufficientBalance(required=amount, balance=state.coin_balance)

    entry = _append_entry(
        session,
        user_id=user_id,
        amount=-amount,
        entry_type=entry_type,
        description=description,
        metadata=metadata,
        xp=0,
        reputation=0,
        idempotency_key=idempotency_key,
    )
    # The guarded UPDATE is authoritative; the check above only fails fast.
    _apply_deltas(session, state, amount=-amount, xp=0, reputation=0)

    logger.info(
        "Ledger %s: user=%s coins=%+d balance=%d",
        entry.type, user_id, -amount, state.coin_balance,
    )
    return entry, state.coin_balance


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def ledger_totals(session: Session, user_id: str) -> tuple[int, int, int]:
    """Sum of ``(amount, xp_delta, reputation_delta)`` over *user_id*'s entries."""
    row = session.execute(
        select(
            func.coalesce(func.sum(LedgerEntry.amount), 0),
            func.coalesce(func.sum(LedgerEntry.xp_delta), 0),
            func.coalesce(func.sum(LedgerEntry.reputation_delta), 0),
        ).where(LedgerEntry.user_id == user_id)
    ).one()
    return int(row[0]), int(row[1]), int(row[2])


def get_balance(engine: Engine, user_id: str) -> int:
    """Current coin balance.  Raises :class:`NotFound` for unknown users."""
    with get_session(engine) as session:
        state = session.get(UserProgression, user_id)
        if state is None:
            raise NotFound(f"No progression state for user {user_id!r}")
        return state.coin_balance


def list_entries(
    engine: Engine,
    user_id: str,
    *,
    entry_type: LedgerEntryType | None = None,
    page: int = 1,
    page_size: int = 50,
) -> tuple[int, list[LedgerEntry]]:
    """Newest-first page of *user_id*'s ledger.  Returns ``(total, entries)``."""
    with get_session(engine) as session:
        filters = [LedgerEntry.user_id == user_id]
        if entry_type is not None:
            filters.append(LedgerEntry.type == LedgerEntryType(entry_type).value)

        total = session.scalar(
            select(func.count()).select_from(LedgerEntry).where(*filters)
        ) or 0
        rows = session.scalars(
            select(LedgerEntry)
            .where(*filters)
            .order_by(LedgerEntry.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        for r in rows:
            session.expunge(r)
        return total, list(rows)
