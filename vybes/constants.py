"""
vybes.constants — Shared Constants & Helpers
=============================================

Single source of truth for the leveling formula and the fixed shapes the
reward cycle depends on.  Import from here instead of duplicating in
services, routes, and tests.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Leveling formula — THE single canonical implementation
# ---------------------------------------------------------------------------
XP_PER_LEVEL = 100


def level_for_xp(xp: int) -> int:
    """Level reached with *xp* accumulated experience.

    ``level = floor(xp / 100) + 1``.  Negative input is treated as zero,
    so the result is always ``>= 1`` and non-decreasing in *xp*.
    """
    return max(xp, 0) // XP_PER_LEVEL + 1


def xp_for_level(level: int) -> int:
    """Total XP required to reach *level*."""
    return (max(level, 1) - 1) * XP_PER_LEVEL


def level_progress(xp: int) -> float:
    """Percent progress (0–100) from the current level toward the next."""
    level = level_for_xp(xp)
    floor_xp = xp_for_level(level)
    span = xp_for_level(level + 1) - floor_xp
    return (max(xp, 0) - floor_xp) / span * 100


# ---------------------------------------------------------------------------
# Reward cycle shapes
# ---------------------------------------------------------------------------
STREAK_CYCLE_DAYS = 7

PROFILE_COMPLETE_QUEST = "profile_complete"
PROFILE_FIELDS: tuple[str, ...] = ("name", "bio", "image")

# Tolerance for "wheel probabilities sum to 1.0"
PROBABILITY_EPSILON = 1e-9
