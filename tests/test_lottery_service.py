"""
tests/test_lottery_service.py — Daily Lottery Wheel
====================================================
"""

from __future__ import annotations

import random
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from vybes.database.engine import get_session
from vybes.database.models import LedgerEntry, WheelSpin
from vybes.errors import AlreadySpun
from vybes.services import lottery_service, streak_service

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=UTC)


def _fixed_rng(value: float):
    rng = MagicMock()
    rng.random.return_value = value
    return rng


class TestSpinWheel:
    def test_spin_credits_segment(self, engine, catalog):
        res = lottery_service.spin_wheel(engine, catalog, "u1", _fixed_rng(0.99), now=NOW)
        assert res.segment.id == 6
        assert res.coins_won == 100
        assert res.new_balance == 100

        with get_session(engine) as session:
            entry = session.scalar(select(LedgerEntry))
            assert entry.type == "wheel_spin"
            assert entry.amount == 100
            assert entry.xp_delta == 0
            assert entry.metadata_ == {"kind": "wheel_spin", "segment_id": 6, "label": "100 Coins"}

    def test_second_spin_same_day_refused(self, engine, catalog):
        lottery_service.spin_wheel(engine, catalog, "u1", _fixed_rng(0.1), now=NOW)
        with pytest.raises(AlreadySpun) as exc_info:
            lottery_service.spin_wheel(
                engine, catalog, "u1", _fixed_rng(0.99), now=NOW + timedelta(hours=8)
            )
        assert exc_info.value.next_available_at == datetime(2026, 3, 11, tzinfo=UTC)

        with get_session(engine) as session:
            assert session.scalar(select(func.count()).select_from(WheelSpin)) == 1
            assert session.scalar(select(func.coalesce(func.sum(LedgerEntry.amount), 0))) == 5

    def test_next_day_spin_allowed(self, engine, catalog):
        lottery_service.spin_wheel(engine, catalog, "u1", _fixed_rng(0.1), now=NOW)
        res = lottery_service.spin_wheel(
            engine, catalog, "u1", _fixed_rng(0.1), now=NOW + timedelta(days=1)
        )
        assert res.new_balance == 10

    def test_independent_of_streak_claim(self, engine, catalog):
        streak_service.claim_daily_reward(engine, catalog, "u1", now=NOW)
        res = lottery_service.spin_wheel(engine, catalog, "u1", _fixed_rng(0.0), now=NOW)
        assert res.new_balance == 5 + 5

    def test_seeded_rng_is_reproducible(self, engine, catalog):
        a = lottery_service.spin_wheel(engine, catalog, "a", random.Random(3), now=NOW)
        b = lottery_service.spin_wheel(engine, catalog, "b", random.Random(3), now=NOW)
        assert a.segment == b.segment

    def test_default_rng(self, engine, catalog):
        res = lottery_service.spin_wheel(engine, catalog, "u1", now=NOW)
        assert res.segment in catalog.wheel_segments


class TestWheelStatus:
    def test_before_and_after_spin(self, engine, catalog):
        st = lottery_service.get_wheel_status(engine, "u1", now=NOW)
        assert st.can_spin is True and st.next_available_at is None

        lottery_service.spin_wheel(engine, catalog, "u1", _fixed_rng(0.5), now=NOW)
        st = lottery_service.get_wheel_status(engine, "u1", now=NOW)
        assert st.can_spin is False
        assert st.next_available_at == datetime(2026, 3, 11, tzinfo=UTC)


class TestSpinRace:
    def test_stale_reader_hits_unique_guard(self, engine, catalog, monkeypatch):
        """A spinner whose pre-read ran before another spin committed is
        stopped by the (user, day) key and credits nothing."""
        lottery_service.spin_wheel(engine, catalog, "u1", _fixed_rng(0.1), now=NOW)
        monkeypatch.setattr(lottery_service, "_has_spun", lambda session, user_id, day: False)

        with pytest.raises(AlreadySpun) as exc_info:
            lottery_service.spin_wheel(engine, catalog, "u1", _fixed_rng(0.99), now=NOW)
        assert exc_info.value.next_available_at == datetime(2026, 3, 11, tzinfo=UTC)

        with get_session(engine) as session:
            assert session.scalar(select(func.count()).select_from(WheelSpin)) == 1
            assert session.scalar(select(func.count()).select_from(LedgerEntry)) == 1
            assert session.scalar(select(func.sum(LedgerEntry.amount))) == 5

    def test_concurrent_spins_credit_once(self, tmp_path, catalog):
        from conftest import make_file_engine

        engine = make_file_engine(tmp_path / "wheel.db")
        n = 8

        def _attempt(_):
            try:
                return lottery_service.spin_wheel(
                    engine, catalog, "u1", _fixed_rng(0.1), now=NOW
                )
            except AlreadySpun:
                return None

        with ThreadPoolExecutor(max_workers=n) as pool:
            results = list(pool.map(_attempt, range(n)))

        assert sum(r is not None for r in results) == 1
        with get_session(engine) as session:
            assert session.scalar(select(func.count()).select_from(WheelSpin)) == 1
            assert session.scalar(select(func.count()).select_from(LedgerEntry)) == 1
        engine.dispose()
