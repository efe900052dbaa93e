"""
vybes.api.routes.quests — Quest list & profile-completion check
================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from vybes.api.deps import get_current_user, get_engine
from vybes.api.routes.progression import quest_dict
from vybes.engine.quests import ProfileSnapshot
from vybes.services import quest_service

router = APIRouter(prefix="/quests", tags=["quests"])


class ProfileCheck(BaseModel):
    name: str | None = None
    bio: str | None = None
    image: str | None = None


@router.get("")
def list_quests(
    role: str | None = Query(None),
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return [quest_dict(q) for q in quest_service.list_quests(engine, user_id, role=role)]


@router.post("/profile-check")
def profile_check(
    body: ProfileCheck,
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
):
    res = quest_service.evaluate_profile_completion(
        engine,
        user_id,
        ProfileSnapshot(name=body.name, bio=body.bio, image=body.image),
    )
    return {
        "outcome": res.outcome.value,
        "progress": res.progress,
        "target": res.target,
        "xp_awarded": res.xp_awarded,
        "reputation_awarded": res.reputation_awarded,
        "coins_awarded": res.coins_awarded,
        "new_balance": res.new_balance,
        "leveled_up": res.leveled_up,
    }
