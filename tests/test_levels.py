"""
tests/test_levels.py — Leveling Formula
========================================
"""

from __future__ import annotations

import pytest

from vybes.constants import level_for_xp, level_progress, xp_for_level


class TestLevelForXp:
    @pytest.mark.parametrize(
        ("xp", "level"),
        [(0, 1), (1, 1), (99, 1), (100, 2), (150, 2), (199, 2), (200, 3), (1050, 11)],
    )
    def test_floor_division_plus_one(self, xp, level):
        assert level_for_xp(xp) == level

    def test_non_decreasing(self):
        levels = [level_for_xp(xp) for xp in range(0, 2_000)]
        assert levels == sorted(levels)

    def test_negative_xp_is_level_one(self):
        assert level_for_xp(-50) == 1


class TestXpForLevel:
    def test_inverse_of_level_for_xp(self):
        for level in range(1, 50):
            assert level_for_xp(xp_for_level(level)) == level
            assert level_for_xp(xp_for_level(level) - 1) == max(level - 1, 1)

    def test_level_one_needs_nothing(self):
        assert xp_for_level(1) == 0
        assert xp_for_level(0) == 0


class TestLevelProgress:
    def test_percent_within_level(self):
        assert level_progress(0) == 0
        assert level_progress(150) == 50
        assert level_progress(199) == 99
