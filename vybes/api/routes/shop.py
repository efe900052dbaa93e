"""
vybes.api.routes.shop — Coin purchases
=======================================

Posted by the content service, which owns the item catalogue and prices.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from vybes.api.deps import get_engine, get_trusted_caller
from vybes.services import shop_service

router = APIRouter(prefix="/shop", tags=["shop"])


class PurchaseRequest(BaseModel):
    user_id: str
    item_id: str
    item_name: str
    price: int = Field(ge=0)


@router.post("/purchases", status_code=201)
def purchase(
    body: PurchaseRequest,
    caller: dict = Depends(get_trusted_caller),
    engine=Depends(get_engine),
):
    res = shop_service.purchase_item(
        engine, body.user_id, body.item_id, body.item_name, body.price
    )
    return {
        "item_id": res.item_id,
        "price": res.price,
        "new_balance": res.new_balance,
    }
