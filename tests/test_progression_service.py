"""
tests/test_progression_service.py — Progression Summary & Quest Seeding
========================================================================
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

import pytest
from sqlalchemy import select

from vybes.database.engine import create_db_engine, get_session, init_db
from vybes.database.models import QuestDefinition
from vybes.database.seed import seed_quest_definitions
from vybes.engine.catalog import DEFAULT_CATALOG, QuestSpec
from vybes.services import lottery_service, progression_service, quest_service, streak_service

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class TestProgressionSummary:
    def test_unknown_user_gets_zero_state(self, engine, catalog):
        s = progression_service.get_progression_summary(engine, catalog, "nobody", now=NOW)
        assert (s.level, s.total_xp, s.reputation, s.coin_balance) == (1, 0, 0, 0)
        assert s.xp_to_next_level == 100
        assert s.streak.can_claim is True
        assert s.wheel.can_spin is True
        assert all(not q.completed for q in s.quests)

    def test_reflects_activity(self, engine, catalog):
        quest_service.record_quest_event(engine, "u1", "first_post", now=NOW)
        streak_service.claim_daily_reward(engine, catalog, "u1", now=NOW)
        spin = lottery_service.spin_wheel(engine, catalog, "u1", now=NOW)

        s = progression_service.get_progression_summary(engine, catalog, "u1", now=NOW)
        assert s.total_xp == 110
        assert s.level == 2
        assert s.level_progress == pytest.approx(10.0)
        assert s.xp_to_next_level == 90
        assert s.reputation == 10
        assert s.coin_balance == 10 + 5 + spin.coins_won
        assert s.streak.can_claim is False and s.streak.current_streak == 1
        assert s.wheel.can_spin is False
        assert [q.quest_type for q in s.quests if q.completed] == ["first_post"]

    def test_reads_everything_in_one_session(self, engine, catalog, monkeypatch):
        streak_service.claim_daily_reward(engine, catalog, "u1", now=NOW)

        def _no_session(engine):
            raise AssertionError("summary opened a second session")

        for module in (streak_service, lottery_service, quest_service):
            monkeypatch.setattr(module, "get_session", _no_session)

        s = progression_service.get_progression_summary(engine, catalog, "u1", now=NOW)
        assert s.coin_balance == 5
        assert s.streak.current_streak == 1
        assert s.wheel.can_spin is True
        assert len(s.quests) == 6

    def test_role_passed_to_quest_list(self, engine, catalog):
        s = progression_service.get_progression_summary(engine, catalog, "u1", role="ARTIST")
        assert "first_event" not in {q.quest_type for q in s.quests}


class TestSeedQuestDefinitions:
    def test_idempotent(self, db_engine):
        assert seed_quest_definitions(db_engine, DEFAULT_CATALOG) == 6
        assert seed_quest_definitions(db_engine, DEFAULT_CATALOG) == 0

    def test_updates_and_deactivates(self, db_engine):
        seed_quest_definitions(db_engine, DEFAULT_CATALOG)
        changed = replace(
            DEFAULT_CATALOG,
            quests=(
                replace(DEFAULT_CATALOG.quest("first_post"), coin_reward=99),
                QuestSpec(quest_type="new_one", title="New"),
            ),
        )
        seed_quest_definitions(db_engine, changed)

        with get_session(db_engine) as session:
            rows = {q.quest_type: q for q in session.scalars(select(QuestDefinition)).all()}
        assert rows["first_post"].coin_reward == 99
        assert rows["new_one"].active is True
        assert rows["collaboration"].active is False
        assert len(rows) == 7

    def test_init_db_creates_and_seeds(self, db_engine):
        init_db(db_engine)
        with get_session(db_engine) as session:
            assert len(session.scalars(select(QuestDefinition)).all()) == 6


class TestCreateDbEngine:
    def test_requires_database_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            create_db_engine()
