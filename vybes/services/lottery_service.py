"""
vybes.services.lottery_service — Daily Lottery Wheel
=====================================================

One spin per user per calendar day, independent of the streak claim.
The segment is drawn from the catalog's probability table with an injected
random source; the ``(user_id, calendar_day)`` unique key on
``wheel_spins`` makes a second spin on the same day impossible.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vybes.database.engine import get_session
from vybes.database.models import LedgerEntryType, WheelSpin
from vybes.engine.catalog import RewardCatalog, WheelSegment
from vybes.engine.streaks import calendar_day, start_of_next_day, utcnow
from vybes.engine.transactions import WheelSpinReward
from vybes.engine.wheel import RandomSource, spin
from vybes.errors import AlreadySpun
from vybes.services import ledger_service

logger = logging.getLogger(__name__)

_default_rng = random.Random()


@dataclass(slots=True)
class SpinResult:
    segment: WheelSegment
    coins_won: int
    new_balance: int


@dataclass(slots=True)
class WheelStatus:
    can_spin: bool
    next_available_at: datetime | None


def _has_spun(session, user_id: str, day) -> bool:
    return session.scalar(
        select(WheelSpin.id).where(
            WheelSpin.user_id == user_id, WheelSpin.calendar_day == day
        )
    ) is not None


def spin_wheel(
    engine: Engine,
    catalog: RewardCatalog,
    user_id: str,
    rng: RandomSource | None = None,
    *,
    now: datetime | None = None,
    tz: tzinfo = UTC,
) -> SpinResult:
    """Spin the wheel once for today and credit the winnings.

    Raises
    ------
    AlreadySpun
        Today's spin already exists; ``next_available_at`` is the next
        midnight in *tz*.
    """
    now = now or utcnow()
    today = calendar_day(now, tz)
    next_at = start_of_next_day(now, tz)

    with get_session(engine) as session:
        if _has_spun(session, user_id, today):
            raise AlreadySpun(next_at)

        segment = spin(catalog.wheel_segments, rng or _default_rng)

        try:
            with session.begin_nested():
                session.add(WheelSpin(
                    user_id=user_id,
                    calendar_day=today,
                    segment_id=segment.id,
                    coins_won=segment.coins,
                ))
                session.flush()
        except IntegrityError:
            logger.warning("Lost wheel spin race: user=%s day=%s", user_id, today)
            raise AlreadySpun(next_at) from None

        _, balance = ledger_service.credit(
            session,
            user_id,
            segment.coins,
            LedgerEntryType.WHEEL_SPIN,
            f"Lucky wheel: {segment.label}",
            WheelSpinReward(segment_id=segment.id, label=segment.label),
        )

    logger.info(
        "Wheel spun: user=%s segment=%d +%d coins", user_id, segment.id, segment.coins
    )
    return SpinResult(segment=segment, coins_won=segment.coins, new_balance=balance)


def get_wheel_status(
    engine: Engine,
    user_id: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = UTC,
) -> WheelStatus:
    now = now or utcnow()
    with get_session(engine) as session:
        return wheel_status(session, user_id, now, tz)


def wheel_status(session: Session, user_id: str, now: datetime, tz: tzinfo) -> WheelStatus:
    spun = _has_spun(session, user_id, calendar_day(now, tz))
    return WheelStatus(
        can_spin=not spun,
        next_available_at=start_of_next_day(now, tz) if spun else None,
    )
