"""
vybes.services.shop_service — Coin Purchases
=============================================

The item catalogue belongs to the content side of the platform; callers
pass the item's id, name and current price.  This module only guarantees
that an item is bought at most once per user and that the balance never
goes negative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.exc import IntegrityError

from vybes.database.engine import get_session
from vybes.database.models import ItemPurchase, LedgerEntryType
from vybes.engine.transactions import Purchase
from vybes.errors import AlreadyOwned
from vybes.services import ledger_service

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PurchaseResult:
    item_id: str
    price: int
    new_balance: int


def purchase_item(
    engine: Engine,
    user_id: str,
    item_id: str,
    item_name: str,
    price: int,
) -> PurchaseResult:
    """Buy *item_id* for *price* coins.

    Raises
    ------
    AlreadyOwned
        The user already bought this item.
    InsufficientBalance
        The balance is below *price*; the ownership row is rolled back too.
    NotFound
        The user has no progression state yet (and so no coins).
    """
    if price < 0:
        raise ValueError("Price must be non-negative")

    with get_session(engine) as session:
        purchase = ItemPurchase(user_id=user_id, item_id=item_id, price=price)
        try:
            with session.begin_nested():
                session.add(purchase)
                session.flush()
        except IntegrityError:
            raise AlreadyOwned(f"Item {item_id!r} already owned") from None

        if price == 0:
            state = ledger_service.get_or_create_progression(session, user_id)
            balance = state.coin_balance
        else:
            entry, balance = ledger_service.debit(
                session,
                user_id,
                price,
                LedgerEntryType.PURCHASE,
                f"Purchase: {item_name}",
                Purchase(item_id=item_id, item_name=item_name),
            )
            purchase.ledger_entry_id = entry.id

    logger.info("Purchase: user=%s item=%s price=%d", user_id, item_id, price)
    return PurchaseResult(item_id=item_id, price=price, new_balance=balance)
