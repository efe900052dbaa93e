"""
vybes.services.streak_service — Daily Login Streak
===================================================

A user may claim one reward per calendar day (in the reward timezone).
Claims are append-only ``daily_streak_claims`` rows; the most recent one is
the whole streak state.  The ``(user_id, calendar_day)`` unique key is the
once-per-day guard, so two concurrent claims can never both be credited.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, tzinfo

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vybes.database.engine import get_session
from vybes.database.models import DailyStreakClaim, LedgerEntryType
from vybes.engine.catalog import RewardCatalog
from vybes.engine.streaks import calendar_day, next_streak, pending_streak, utcnow
from vybes.engine.transactions import StreakClaim
from vybes.errors import AlreadyClaimed
from vybes.services import ledger_service

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ClaimResult:
    xp: int
    coins: int
    new_streak_length: int
    cycle_day: int
    new_balance: int
    calendar_day: date


@dataclass(slots=True)
class StreakDay:
    day: int
    xp: int
    coins: int
    is_current: bool
    is_claimed: bool


@dataclass(slots=True)
class StreakStatus:
    can_claim: bool
    current_streak: int
    next_reward_day: int
    rewards: list[StreakDay] = field(default_factory=list)


def latest_claim(session: Session, user_id: str) -> DailyStreakClaim | None:
    return session.scalar(
        select(DailyStreakClaim)
        .where(DailyStreakClaim.user_id == user_id)
        .order_by(DailyStreakClaim.calendar_day.desc())
        .limit(1)
    )


def _pending(session: Session, user_id: str, today: date) -> tuple[bool, int, int]:
    prev = latest_claim(session, user_id)
    if prev is None:
        return pending_streak(today, None)
    return pending_streak(today, prev.calendar_day, prev.streak_length, prev.cycle_day)


def can_claim(
    engine: Engine,
    user_id: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = UTC,
) -> bool:
    today = calendar_day(now or utcnow(), tz)
    with get_session(engine) as session:
        return _pending(session, user_id, today)[0]


def claim_daily_reward(
    engine: Engine,
    catalog: RewardCatalog,
    user_id: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = UTC,
) -> ClaimResult:
    """Claim today's streak reward.

    Raises
    ------
    AlreadyClaimed
        A claim for today's calendar day already exists.  Nothing changes.
    """
    today = calendar_day(now or utcnow(), tz)

    with get_session(engine) as session:
        prev = latest_claim(session, user_id)
        if prev is not None and prev.calendar_day == today:
            raise AlreadyClaimed(f"Daily reward already claimed for {today.isoformat()}")

        if prev is None:
            streak, cycle = next_streak(today, None)
        else:
            streak, cycle = next_streak(
                today, prev.calendar_day, prev.streak_length, prev.cycle_day
            )
        reward = catalog.streak_reward(cycle)

        try:
            with session.begin_nested():
                session.add(DailyStreakClaim(
                    user_id=user_id,
                    calendar_day=today,
                    streak_length=streak,
                    cycle_day=cycle,
                    xp_awarded=reward.xp,
                    coins_awarded=reward.coins,
                ))
                session.flush()
        except IntegrityError:
            logger.warning("Lost daily claim race: user=%s day=%s", user_id, today)
            raise AlreadyClaimed(
                f"Daily reward already claimed for {today.isoformat()}"
            ) from None

        _, balance = ledger_service.credit(
            session,
            user_id,
            reward.coins,
            LedgerEntryType.STREAK_CLAIM,
            f"Daily reward - day {cycle}",
            StreakClaim(day=today.isoformat(), cycle_day=cycle, streak_length=streak),
            xp=reward.xp,
        )

    logger.info(
        "Daily reward claimed: user=%s streak=%d cycle_day=%d +%d XP +%d coins",
        user_id, streak, cycle, reward.xp, reward.coins,
    )
    return ClaimResult(
        xp=reward.xp,
        coins=reward.coins,
        new_streak_length=streak,
        cycle_day=cycle,
        new_balance=balance,
        calendar_day=today,
    )


def get_streak_status(
    engine: Engine,
    catalog: RewardCatalog,
    user_id: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = UTC,
) -> StreakStatus:
    """Streak view for the daily-reward screen.

    ``next_reward_day`` is today's cycle day: the one about to be claimed,
    or the one already claimed today.  Only that day is marked
    ``is_current``; it is also ``is_claimed`` once today's claim exists.
    """
    today = calendar_day(now or utcnow(), tz)
    with get_session(engine) as session:
        return streak_status(session, catalog, user_id, today)


def streak_status(
    session: Session, catalog: RewardCatalog, user_id: str, today: date
) -> StreakStatus:
    claimable, streak, reward_day = _pending(session, user_id, today)
    return StreakStatus(
        can_claim=claimable,
        current_streak=streak,
        next_reward_day=reward_day,
        rewards=[
            StreakDay(
                day=r.day,
                xp=r.xp,
                coins=r.coins,
                is_current=r.day == reward_day,
                is_claimed=not claimable and r.day == reward_day,
            )
            for r in sorted(catalog.streak_rewards, key=lambda r: r.day)
        ],
    )
