"""
vybes.api.routes.progression — Caller's progression snapshot & ledger
======================================================================
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query

from vybes.api.deps import get_catalog, get_current_user, get_engine, get_reward_tz
from vybes.database.models import LedgerEntry, LedgerEntryType
from vybes.engine.catalog import RewardCatalog
from vybes.services import ledger_service, progression_service
from vybes.services.quest_service import QuestView

router = APIRouter(tags=["progression"])


def quest_dict(q: QuestView) -> dict:
    return {
        "quest_id": q.quest_id,
        "quest_type": q.quest_type,
        "title": q.title,
        "description": q.description,
        "target_progress": q.target_progress,
        "current_progress": q.current_progress,
        "completed": q.completed,
        "completed_at": q.completed_at.isoformat() if q.completed_at else None,
        "xp_reward": q.xp_reward,
        "reputation_reward": q.reputation_reward,
        "coin_reward": q.coin_reward,
    }


def _entry_dict(e: LedgerEntry) -> dict:
    return {
        "id": e.id,
        "type": e.type,
        "amount": e.amount,
        "xp_delta": e.xp_delta,
        "reputation_delta": e.reputation_delta,
        "description": e.description,
        "metadata": e.metadata_,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


@router.get("/progression")
def get_progression(
    role: str | None = Query(None),
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
    catalog: RewardCatalog = Depends(get_catalog),
    tz: ZoneInfo = Depends(get_reward_tz),
):
    s = progression_service.get_progression_summary(
        engine, catalog, user_id, role=role, tz=tz
    )
    return {
        "user_id": s.user_id,
        "level": s.level,
        "total_xp": s.total_xp,
        "reputation": s.reputation,
        "coin_balance": s.coin_balance,
        "level_progress": s.level_progress,
        "xp_to_next_level": s.xp_to_next_level,
        "streak": {
            "can_claim": s.streak.can_claim,
            "current_streak": s.streak.current_streak,
            "next_reward_day": s.streak.next_reward_day,
        },
        "wheel": {
            "can_spin": s.wheel.can_spin,
            "next_available_at": (
                s.wheel.next_available_at.isoformat() if s.wheel.next_available_at else None
            ),
        },
        "quests": [quest_dict(q) for q in s.quests],
    }


@router.get("/ledger")
def get_ledger(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    entry_type: LedgerEntryType | None = Query(None, alias="type"),
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
):
    total, entries = ledger_service.list_entries(
        engine, user_id, entry_type=entry_type, page=page, page_size=page_size
    )
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "entries": [_entry_dict(e) for e in entries],
    }
