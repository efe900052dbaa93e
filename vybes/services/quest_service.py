"""
vybes.services.quest_service — Quest Tracking & Completion
===========================================================

Per-user quest progress is a tiny state machine::

    (no row) ──event──▶ in progress ──progress ≥ target──▶ completed (terminal)

The completion transition is a conditional ``UPDATE``::

    UPDATE quest_progress SET completed = true
     WHERE id = :id AND completed = false AND current_progress >= :target

Exactly one caller can see ``rowcount == 1`` for a given row; only that
caller credits the reward, inside the same transaction.  The ledger entry
additionally carries the idempotency key ``quest:<user>:<quest_id>`` so a
second credit is rejected by the store even if the guard were bypassed.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vybes.constants import PROFILE_COMPLETE_QUEST
from vybes.database.engine import get_session
from vybes.database.models import LedgerEntryType, QuestDefinition, QuestProgress
from vybes.engine.quests import ProfileSnapshot, clamp_progress
from vybes.engine.streaks import utcnow
from vybes.engine.transactions import QuestReward
from vybes.errors import ConcurrencyConflict
from vybes.services import ledger_service

logger = logging.getLogger(__name__)


class QuestOutcome(enum.StrEnum):
    NO_QUEST = "no_quest"
    ADVANCED = "advanced"
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"


@dataclass(slots=True)
class QuestResult:
    """What a single quest event did."""

    outcome: QuestOutcome
    quest_type: str
    progress: int = 0
    target: int = 0
    xp_awarded: int = 0
    reputation_awarded: int = 0
    coins_awarded: int = 0
    new_balance: int | None = None
    new_level: int | None = None
    leveled_up: bool = False


@dataclass(slots=True)
class QuestView:
    """One row of a user's quest list."""

    quest_id: int
    quest_type: str
    title: str
    description: str | None
    target_progress: int
    current_progress: int
    completed: bool
    completed_at: datetime | None
    xp_reward: int
    reputation_reward: int
    coin_reward: int


def quest_idempotency_key(user_id: str, quest_id: int) -> str:
    return f"quest:{user_id}:{quest_id}"


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------
def get_active_quest(session: Session, quest_type: str) -> QuestDefinition | None:
    return session.scalar(
        select(QuestDefinition).where(
            QuestDefinition.quest_type == quest_type,
            QuestDefinition.active.is_(True),
        )
    )


def get_or_create_progress(
    session: Session, user_id: str, quest_id: int
) -> QuestProgress:
    """Fetch or insert the progress row.  Concurrent inserts collapse to one."""
    stmt = select(QuestProgress).where(
        QuestProgress.user_id == user_id, QuestProgress.quest_id == quest_id
    )
    row = session.scalar(stmt)
    if row is not None:
        return row
    try:
        with session.begin_nested():
            row = QuestProgress(
                user_id=user_id, quest_id=quest_id, current_progress=0, completed=False,
            )
            session.add(row)
            session.flush()
    except IntegrityError:
        row = session.scalar(stmt)
        if row is None:
            raise
    return row


def _write_progress(session: Session, row: QuestProgress, new_value) -> None:
    """Set progress on a not-yet-completed row.  No-op once completed."""
    session.execute(
        update(QuestProgress)
        .where(QuestProgress.id == row.id, QuestProgress.completed.is_(False))
        .values(current_progress=new_value)
        .execution_options(synchronize_session=False)
    )
    session.refresh(row)


def _increment_expr(delta: int, target: int):
    # Clamped into [0, target] in SQL so concurrent events can't overshoot.
    raw = QuestProgress.current_progress + delta
    return case((raw > target, target), (raw < 0, 0), else_=raw)


def complete_quest(
    session: Session,
    user_id: str,
    quest: QuestDefinition,
    row: QuestProgress,
    *,
    now: datetime | None = None,
) -> QuestResult | None:
    """Attempt the completion transition and credit the reward if we won it.

    Returns ``None`` when the guard matched no row (already completed, or
    progress still below target) or when the reward's idempotency key is
    already in the ledger.
    """
    result = session.execute(
        update(QuestProgress)
        .where(
            QuestProgress.id == row.id,
            QuestProgress.completed.is_(False),
            QuestProgress.current_progress >= quest.target_progress,
        )
        .values(completed=True, completed_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.refresh(row)
        return None

    state = ledger_service.get_or_create_progression(session, user_id)
    old_level = state.level
    try:
        _, balance = ledger_service.credit(
            session,
            user_id,
            quest.coin_reward,
            LedgerEntryType.QUEST_REWARD,
            f"Quest completed: {quest.title}",
            QuestReward(quest_id=quest.id, quest_type=quest.quest_type),
            xp=quest.xp_reward,
            reputation=quest.reputation_reward,
            idempotency_key=quest_idempotency_key(user_id, quest.id),
        )
    except ConcurrencyConflict:
        # The reward entry already exists; the quest stays completed, uncredited.
        logger.warning(
            "Quest %s reward for %s already in ledger; not credited again",
            quest.quest_type, user_id,
        )
        session.refresh(row)
        return None
    session.refresh(row)

    logger.info(
        "Quest %s completed by %s: +%d XP, +%d rep, +%d coins",
        quest.quest_type, user_id, quest.xp_reward,
        quest.reputation_reward, quest.coin_reward,
    )
    return QuestResult(
        outcome=QuestOutcome.COMPLETED,
        quest_type=quest.quest_type,
        progress=row.current_progress,
        target=quest.target_progress,
        xp_awarded=quest.xp_reward,
        reputation_awarded=quest.reputation_reward,
        coins_awarded=quest.coin_reward,
        new_balance=balance,
        new_level=state.level,
        leveled_up=state.level > old_level,
    )


def _settle(
    session: Session,
    user_id: str,
    quest: QuestDefinition,
    row: QuestProgress,
    now: datetime | None,
) -> QuestResult:
    completed = complete_quest(session, user_id, quest, row, now=now)
    if completed is not None:
        return completed
    outcome = QuestOutcome.ALREADY_COMPLETED if row.completed else QuestOutcome.ADVANCED
    return QuestResult(
        outcome=outcome,
        quest_type=quest.quest_type,
        progress=row.current_progress,
        target=quest.target_progress,
    )


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------
def record_quest_event(
    engine: Engine,
    user_id: str,
    quest_type: str,
    delta: int = 1,
    *,
    now: datetime | None = None,
) -> QuestResult:
    """Advance *user_id*'s *quest_type* quest by *delta* and complete it
    if the target is reached.

    A negative *delta* walks progress back (never below 0) until the quest
    completes; a completed quest is never reopened.

    Unknown or inactive quest types are not an error: the result's outcome
    is ``NO_QUEST`` and nothing is written.
    """
    if delta == 0:
        raise ValueError("Quest progress delta must be non-zero")

    with get_session(engine) as session:
        quest = get_active_quest(session, quest_type)
        if quest is None:
            logger.debug("No active quest %r; event from %s ignored", quest_type, user_id)
            return QuestResult(outcome=QuestOutcome.NO_QUEST, quest_type=quest_type)

        row = get_or_create_progress(session, user_id, quest.id)
        if row.completed:
            return QuestResult(
                outcome=QuestOutcome.ALREADY_COMPLETED,
                quest_type=quest_type,
                progress=row.current_progress,
                target=quest.target_progress,
            )

        _write_progress(session, row, _increment_expr(delta, quest.target_progress))
        return _settle(session, user_id, quest, row, now)


def evaluate_profile_completion(
    engine: Engine,
    user_id: str,
    profile: ProfileSnapshot,
    *,
    now: datetime | None = None,
) -> QuestResult:
    """Sync ``profile_complete`` progress with the number of filled fields.

    Progress is *set* to the filled count (so it can drop if a field is
    cleared) until the quest completes; after that it no longer changes.
    """
    with get_session(engine) as session:
        quest = get_active_quest(session, PROFILE_COMPLETE_QUEST)
        if quest is None:
            return QuestResult(outcome=QuestOutcome.NO_QUEST, quest_type=PROFILE_COMPLETE_QUEST)

        row = get_or_create_progress(session, user_id, quest.id)
        if row.completed:
            return QuestResult(
                outcome=QuestOutcome.ALREADY_COMPLETED,
                quest_type=quest.quest_type,
                progress=row.current_progress,
                target=quest.target_progress,
            )

        filled = clamp_progress(profile.filled_fields(), quest.target_progress)
        _write_progress(session, row, filled)
        return _settle(session, user_id, quest, row, now)


def list_quests(
    engine: Engine, user_id: str, role: str | None = None
) -> list[QuestView]:
    """Active quests visible to *role*, joined with *user_id*'s progress.

    A quest with an empty ``roles`` list is visible to everyone; with
    ``role=None`` every active quest is returned.
    """
    with get_session(engine) as session:
        return quest_views(session, user_id, role)


def quest_views(
    session: Session, user_id: str, role: str | None = None
) -> list[QuestView]:
    quests = session.scalars(
        select(QuestDefinition)
        .where(QuestDefinition.active.is_(True))
        .order_by(QuestDefinition.id)
    ).all()
    progress = {
        p.quest_id: p
        for p in session.scalars(
            select(QuestProgress).where(QuestProgress.user_id == user_id)
        ).all()
    }

    views: list[QuestView] = []
    for q in quests:
        if role is not None and q.roles and role not in q.roles:
            continue
        p = progress.get(q.id)
        views.append(QuestView(
            quest_id=q.id,
            quest_type=q.quest_type,
            title=q.title,
            description=q.description,
            target_progress=q.target_progress,
            current_progress=p.current_progress if p else 0,
            completed=p.completed if p else False,
            completed_at=p.completed_at if p else None,
            xp_reward=q.xp_reward,
            reputation_reward=q.reputation_reward,
            coin_reward=q.coin_reward,
        ))
    return views
