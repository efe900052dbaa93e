"""
vybes.api.routes.rewards — Daily streak reward & lottery wheel
===============================================================
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends

from vybes.api.deps import get_catalog, get_current_user, get_engine, get_reward_tz
from vybes.engine.catalog import RewardCatalog, WheelSegment
from vybes.services import lottery_service, streak_service

router = APIRouter(tags=["rewards"])


def _segment_dict(s: WheelSegment) -> dict:
    return {
        "id": s.id,
        "coins": s.coins,
        "probability": s.probability,
        "label": s.label,
        "color": s.color,
    }


# ---------------------------------------------------------------------------
# Daily reward
# ---------------------------------------------------------------------------
@router.get("/daily-reward")
def daily_reward_status(
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
    catalog: RewardCatalog = Depends(get_catalog),
    tz: ZoneInfo = Depends(get_reward_tz),
):
    st = streak_service.get_streak_status(engine, catalog, user_id, tz=tz)
    rewards = [
        {
            "day": r.day,
            "xp": r.xp,
            "coins": r.coins,
            "is_current": r.is_current,
            "is_claimed": r.is_claimed,
        }
        for r in st.rewards
    ]
    return {
        "can_claim": st.can_claim,
        "current_streak": st.current_streak,
        "next_reward_day": st.next_reward_day,
        "rewards": rewards,
        "next_reward": next((r for r in rewards if r["is_current"]), None),
    }


@router.post("/daily-reward")
def claim_daily_reward(
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
    catalog: RewardCatalog = Depends(get_catalog),
    tz: ZoneInfo = Depends(get_reward_tz),
):
    res = streak_service.claim_daily_reward(engine, catalog, user_id, tz=tz)
    return {
        "xp": res.xp,
        "coins": res.coins,
        "streak": res.new_streak_length,
        "cycle_day": res.cycle_day,
        "new_balance": res.new_balance,
    }


# ---------------------------------------------------------------------------
# Lottery wheel
# ---------------------------------------------------------------------------
@router.get("/wheel")
def wheel_status(
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
    catalog: RewardCatalog = Depends(get_catalog),
    tz: ZoneInfo = Depends(get_reward_tz),
):
    st = lottery_service.get_wheel_status(engine, user_id, tz=tz)
    return {
        "can_spin": st.can_spin,
        "next_available_at": st.next_available_at.isoformat() if st.next_available_at else None,
        "segments": [_segment_dict(s) for s in catalog.wheel_segments],
    }


@router.post("/wheel")
def spin_wheel(
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
    catalog: RewardCatalog = Depends(get_catalog),
    tz: ZoneInfo = Depends(get_reward_tz),
):
    res = lottery_service.spin_wheel(engine, catalog, user_id, tz=tz)
    return {
        "segment": _segment_dict(res.segment),
        "coins_won": res.coins_won,
        "new_balance": res.new_balance,
    }
