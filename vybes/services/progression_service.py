"""
vybes.services.progression_service — Read-only progression snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo

from sqlalchemy import Engine

from vybes.constants import level_progress, xp_for_level
from vybes.database.engine import get_session
from vybes.database.models import UserProgression
from vybes.engine.catalog import RewardCatalog
from vybes.engine.streaks import calendar_day, utcnow
from vybes.services import lottery_service, quest_service, streak_service


@dataclass(slots=True)
class ProgressionSummary:
    user_id: str
    level: int
    total_xp: int
    reputation: int
    coin_balance: int
    level_progress: float
    xp_to_next_level: int
    streak: streak_service.StreakStatus
    wheel: lottery_service.WheelStatus
    quests: list[quest_service.QuestView] = field(default_factory=list)


def get_progression_summary(
    engine: Engine,
    catalog: RewardCatalog,
    user_id: str,
    *,
    role: str | None = None,
    now: datetime | None = None,
    tz: tzinfo = UTC,
) -> ProgressionSummary:
    """Level, XP, reputation, balance, quests and streak state for *user_id*.

    A user who has never earned anything gets the zero state (level 1).
    Every part is read in one session, so the snapshot never mixes state
    from before and after a reward committed mid-read on databases that
    snapshot per transaction (SQLite, PostgreSQL ``REPEATABLE READ``).
    """
    now = now or utcnow()
    with get_session(engine) as session:
        state = session.get(UserProgression, user_id)
        total_xp = state.total_xp if state else 0
        level = state.level if state else 1
        reputation = state.reputation if state else 0
        balance = state.coin_balance if state else 0
        streak = streak_service.streak_status(
            session, catalog, user_id, calendar_day(now, tz)
        )
        wheel = lottery_service.wheel_status(session, user_id, now, tz)
        quests = quest_service.quest_views(session, user_id, role)

    return ProgressionSummary(
        user_id=user_id,
        level=level,
        total_xp=total_xp,
        reputation=reputation,
        coin_balance=balance,
        level_progress=level_progress(total_xp),
        xp_to_next_level=xp_for_level(level + 1) - total_xp,
        streak=streak,
        wheel=wheel,
        quests=quests,
    )
