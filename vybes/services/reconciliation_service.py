"""
vybes.services.reconciliation_service — Balance Reconciliation
===============================================================

Validates the cached ``user_progression`` rows against the ledger, which
is the source of truth, and corrects drift if found.

How it works:
    1. Lock every ``user_progression`` row (``SELECT ... FOR UPDATE``) so
       no credit can commit between reading the cache and the ledger.
    2. Sum ``amount``, ``xp_delta`` and ``reputation_delta`` from
       ``ledger_entries`` grouped by user.
    3. Compare against the stored ``coin_balance``, ``total_xp`` and
       ``reputation``, and ``level`` against the level formula.
    4. If there is a mismatch, overwrite the cached values with the truth.
    5. Log all corrections for audit.

Drift should never happen while every write goes through the ledger; a
non-empty ``corrections`` list means something bypassed it.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, Select, func, select

from vybes.constants import level_for_xp
from vybes.database.engine import get_session
from vybes.database.models import AdminActionType, LedgerEntry, UserProgression
from vybes.services.admin_service import log_admin_action

logger = logging.getLogger(__name__)


def locked_progression_rows() -> Select:
    """Every progression row, row-locked in a stable order."""
    return (
        select(UserProgression)
        .order_by(UserProgression.user_id)
        .with_for_update()
    )


def reconcile_balances(
    engine: Engine,
    *,
    fix: bool = True,
    actor_id: str | None = None,
) -> dict:
    """Compare every progression row with its ledger sums.

    With ``fix=False`` drift is only reported.  When *actor_id* is given
    and corrections were applied, one ``RECONCILE`` row is written to
    ``admin_log``.

    Returns ``{"checked": N, "corrected": M, "corrections": [...], "timestamp": ...}``.
    """
    corrections: list[dict] = []

    with get_session(engine) as session:
        # Credits update the progression row after inserting their entry,
        # so holding the row locks keeps both reads below consistent.
        states = session.scalars(locked_progression_rows()).all()

        truth_rows = session.execute(
            select(
                LedgerEntry.user_id,
                func.sum(LedgerEntry.amount).label("coins"),
                func.sum(LedgerEntry.xp_delta).label("xp"),
                func.sum(LedgerEntry.reputation_delta).label("rep"),
            ).group_by(LedgerEntry.user_id)
        ).all()
        truth_map: dict[str, tuple[int, int, int]] = {
            row.user_id: (int(row.coins or 0), int(row.xp or 0), int(row.rep or 0))
            for row in truth_rows
        }

        checked = 0

        for state in states:
            checked += 1
            coins, xp, rep = truth_map.get(state.user_id, (0, 0, 0))
            level = level_for_xp(xp)
            stored = (state.coin_balance, state.total_xp, state.reputation, state.level)
            actual = (coins, xp, rep, level)
            if stored == actual:
                continue

            corrections.append({
                "user_id": state.user_id,
                "stored": dict(zip(("coins", "xp", "reputation", "level"), stored)),
                "actual": dict(zip(("coins", "xp", "reputation", "level"), actual)),
            })
            if fix:
                state.coin_balance = coins
                state.total_xp = xp
                state.reputation = rep
                state.level = level

        if fix and corrections and actor_id is not None:
            log_admin_action(
                session,
                actor_id=actor_id,
                action_type=AdminActionType.RECONCILE,
                target_table="user_progression",
                target_id=None,
                before=None,
                after={"corrections": corrections},
            )

    if corrections:
        logger.warning(
            "Balance reconciliation: %s %d/%d rows: %s",
            "corrected" if fix else "found drift in",
            len(corrections), checked, corrections,
        )
    else:
        logger.info("Balance reconciliation: all %d rows match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections) if fix else 0,
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }
