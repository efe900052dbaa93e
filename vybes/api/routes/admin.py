"""
vybes.api.routes.admin — Admin endpoints (JWT‑protected)
=========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from vybes.api.deps import get_current_admin, get_engine
from vybes.services import admin_service, reconciliation_service

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class BalanceAdjustment(BaseModel):
    user_id: str
    coins: int = 0
    xp: int = 0
    reason: str


class QuestGrant(BaseModel):
    user_id: str
    quest_type: str


class ReconcileRequest(BaseModel):
    fix: bool = True


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/adjust-balance")
def adjust_balance(
    body: BalanceAdjustment,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    try:
        after = admin_service.adjust_balance(
            engine,
            body.user_id,
            coins=body.coins,
            xp=body.xp,
            reason=body.reason,
            actor_id=str(admin["sub"]),
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return {
        "user_id": after["user_id"],
        "coin_balance": after["coin_balance"],
        "total_xp": after["total_xp"],
        "level": after["level"],
    }


@router.post("/quests/grant")
def grant_quest(
    body: QuestGrant,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    res = admin_service.grant_quest(
        engine, body.user_id, body.quest_type, actor_id=str(admin["sub"])
    )
    return {
        "quest_type": res.quest_type,
        "xp_awarded": res.xp_awarded,
        "coins_awarded": res.coins_awarded,
        "new_balance": res.new_balance,
    }


@router.post("/reconcile")
def reconcile(
    body: ReconcileRequest | None = None,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    fix = body.fix if body is not None else True
    return reconciliation_service.reconcile_balances(
        engine, fix=fix, actor_id=str(admin["sub"])
    )
