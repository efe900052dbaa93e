"""
vybes.database.seed — Quest Definition Seeder
==============================================

Copies the catalog's quest specs into ``quest_definitions`` so progress
rows can reference them by foreign key.

Idempotent: missing quest types are inserted, existing ones are brought in
line with the catalog.  Rows whose type is no longer in the catalog are
deactivated, never deleted, so historic progress keeps its definition.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from vybes.database.models import QuestDefinition
from vybes.engine.catalog import RewardCatalog

logger = logging.getLogger(__name__)


def seed_quest_definitions(engine: Engine, catalog: RewardCatalog) -> int:
    """Upsert every quest in *catalog*.  Returns the number of rows touched."""
    touched = 0
    session = Session(engine)
    try:
        existing = {
            q.quest_type: q for q in session.scalars(select(QuestDefinition)).all()
        }
        for spec in catalog.quests:
            row = existing.pop(spec.quest_type, None)
            values = {
                "title": spec.title,
                "description": spec.description,
                "target_progress": spec.target_progress,
                "xp_reward": spec.xp_reward,
                "reputation_reward": spec.reputation_reward,
                "coin_reward": spec.coin_reward,
                "roles": list(spec.roles),
                "active": True,
            }
            if row is None:
                session.add(QuestDefinition(quest_type=spec.quest_type, **values))
                touched += 1
                continue
            changed = False
            for key, value in values.items():
                if getattr(row, key) != value:
                    setattr(row, key, value)
                    changed = True
            if changed:
                touched += 1

        for stale in existing.values():
            if stale.active:
                stale.active = False
                touched += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if touched:
        logger.info("Seeded %d quest definitions.", touched)
    return touched
