"""
vybes.engine.streaks — Calendar Days & Streak Arithmetic
=========================================================

Pure helpers shared by the streak tracker and the lottery wheel.  Both are
keyed by *calendar day* in the deployment's reward timezone, so midnight is
the same instant for both.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta, tzinfo

from vybes.constants import STREAK_CYCLE_DAYS


def utcnow() -> datetime:
    return datetime.now(UTC)


def calendar_day(now: datetime, tz: tzinfo = UTC) -> date:
    """The calendar day *now* falls on in *tz*.  Naive datetimes are UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(tz).date()


def start_of_next_day(now: datetime, tz: tzinfo = UTC) -> datetime:
    """Midnight (in *tz*) at the start of the day after *now*."""
    tomorrow = calendar_day(now, tz) + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=tz)


def next_streak(
    today: date,
    prev_day: date | None,
    prev_streak: int = 0,
    prev_cycle_day: int = 0,
) -> tuple[int, int]:
    """Return ``(streak_length, cycle_day)`` for a claim made on *today*.

    A claim on the day right after the previous one extends the streak and
    advances the 7-day cycle (7 wraps to 1).  No previous claim, or a gap of
    more than one day, starts over at ``(1, 1)`` regardless of how long the
    gap was.
    """
    if prev_day is not None and prev_day == today - timedelta(days=1):
        return prev_streak + 1, (prev_cycle_day % STREAK_CYCLE_DAYS) + 1
    return 1, 1


def pending_streak(
    today: date,
    prev_day: date | None,
    prev_streak: int = 0,
    prev_cycle_day: int = 0,
) -> tuple[bool, int, int]:
    """Status view of the streak as of *today*.

    Returns ``(can_claim, current_streak, reward_day)``.  When today's claim
    already exists the values describe that claim; otherwise they describe
    the claim that would be made now.
    """
    if prev_day == today:
        return False, prev_streak, prev_cycle_day
    streak, cycle = next_streak(today, prev_day, prev_streak, prev_cycle_day)
    return True, streak, cycle
