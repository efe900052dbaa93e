"""
vybes.services.admin_service — Audited Admin Mutations
=======================================================

Manual corrections performed by staff.  Every write follows the pattern:
  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change through the normal ledger / quest paths
  4. Write admin_log with before/after JSON
  5. Commit

Admins never touch balances directly: an adjustment is a
``manual_adjustment`` ledger entry like any other.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import Engine, update
from sqlalchemy.orm import Session

from vybes.database.engine import get_session
from vybes.database.models import (
    AdminActionType,
    AdminLog,
    LedgerEntryType,
    QuestProgress,
)
from vybes.engine.transactions import ManualAdjustment
from vybes.errors import AlreadyCompleted, NotFound
from vybes.services import ledger_service, quest_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------

def row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key if col.key != "metadata" else "metadata_", None)
        if isinstance(val, (datetime, date)):
            val = val.isoformat()
        result[col.name] = val
    return result


def log_admin_action(
    session: Session,
    *,
    actor_id: str,
    action_type: AdminActionType,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type.value,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


# ---------------------------------------------------------------------------
# Balance adjustments
# ---------------------------------------------------------------------------

def adjust_balance(
    engine: Engine,
    user_id: str,
    coins: int,
    xp: int,
    reason: str,
    actor_id: str,
) -> dict:
    """Credit (or, with negative values, revoke) coins and XP.

    Returns the user's progression row after the change, as a dict.
    Raises :class:`InsufficientBalance` if a negative *coins* would take the
    balance below zero.
    """
    if coins == 0 and xp == 0:
        raise ValueError("Adjustment must change coins or XP")

    action = (
        AdminActionType.MANUAL_REVOKE if coins < 0 or xp < 0
        else AdminActionType.MANUAL_AWARD
    )

    with get_session(engine) as session:
        state = ledger_service.get_or_create_progression(session, user_id)
        before = row_to_dict(state)
        ledger_service.credit(
            session,
            user_id,
            coins,
            LedgerEntryType.MANUAL_ADJUSTMENT,
            f"Manual adjustment: {reason}",
            ManualAdjustment(reason=reason, actor_id=actor_id),
            xp=xp,
        )
        after = row_to_dict(state)
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type=action,
            target_table="user_progression",
            target_id=user_id,
            before=before,
            after=after,
            reason=reason,
        )

    logger.info(
        "Admin %s adjusted %s: coins=%+d xp=%+d (%s)", actor_id, user_id, coins, xp, reason
    )
    return after


# ---------------------------------------------------------------------------
# Quest grants
# ---------------------------------------------------------------------------

def grant_quest(
    engine: Engine,
    user_id: str,
    quest_type: str,
    actor_id: str,
) -> quest_service.QuestResult:
    """Force-complete *quest_type* for *user_id* and credit its reward.

    Uses the same conditional completion transition as organic progress,
    so a grant racing an organic completion still credits once.

    Raises
    ------
    NotFound
        Unknown or inactive quest type.
    AlreadyCompleted
        The user had already completed the quest.
    """
    with get_session(engine) as session:
        quest = quest_service.get_active_quest(session, quest_type)
        if quest is None:
            raise NotFound(f"Unknown quest type {quest_type!r}")

        row = quest_service.get_or_create_progress(session, user_id, quest.id)
        before = row_to_dict(row)
        session.execute(
            update(QuestProgress)
            .where(QuestProgress.id == row.id, QuestProgress.completed.is_(False))
            .values(current_progress=quest.target_progress)
            .execution_options(synchronize_session=False)
        )
        result = quest_service.complete_quest(session, user_id, quest, row)
        if result is None:
            raise AlreadyCompleted(f"Quest {quest_type!r} already completed by {user_id}")

        log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.QUEST_GRANT,
            target_table="quest_progress",
            target_id=str(row.id),
            before=before,
            after=row_to_dict(row),
        )

    logger.info("Admin %s granted quest %s to %s", actor_id, quest_type, user_id)
    return result
