"""
tests/test_shop_service.py — Coin Purchases
============================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select

from vybes.database.engine import get_session
from vybes.database.models import ItemPurchase, LedgerEntry
from vybes.errors import AlreadyOwned, InsufficientBalance, NotFound
from vybes.services import quest_service, shop_service


@pytest.fixture
def rich_user(engine):
    """u1 completes first_post (10 coins) and profile_complete (15 coins)."""
    quest_service.record_quest_event(engine, "u1", "first_post")
    quest_service.record_quest_event(engine, "u1", "profile_complete", delta=3)
    return "u1"


class TestPurchaseItem:
    def test_purchase_debits_and_records(self, engine, rich_user):
        res = shop_service.purchase_item(engine, rich_user, "avatar-7", "Neon Fox", 20)
        assert res.new_balance == 5

        with get_session(engine) as session:
            purchase = session.scalar(select(ItemPurchase))
            entry = session.get(LedgerEntry, purchase.ledger_entry_id)
            assert entry.type == "purchase"
            assert entry.amount == -20
            assert entry.metadata_["item_id"] == "avatar-7"

    def test_second_purchase_refused(self, engine, rich_user):
        shop_service.purchase_item(engine, rich_user, "avatar-7", "Neon Fox", 5)
        with pytest.raises(AlreadyOwned):
            shop_service.purchase_item(engine, rich_user, "avatar-7", "Neon Fox", 5)

        with get_session(engine) as session:
            assert len(session.scalars(select(ItemPurchase)).all()) == 1

    def test_insufficient_balance_rolls_back_ownership(self, engine, rich_user):
        with pytest.raises(InsufficientBalance):
            shop_service.purchase_item(engine, rich_user, "crown", "Crown", 1000)

        with get_session(engine) as session:
            assert session.scalars(select(ItemPurchase)).all() == []
        # Still purchasable once affordable
        res = shop_service.purchase_item(engine, rich_user, "crown", "Crown", 25)
        assert res.new_balance == 0

    def test_unknown_user(self, engine):
        with pytest.raises(NotFound):
            shop_service.purchase_item(engine, "ghost", "hat", "Hat", 1)

    def test_free_item(self, engine):
        res = shop_service.purchase_item(engine, "u2", "starter", "Starter", 0)
        assert res.new_balance == 0
        with pytest.raises(AlreadyOwned):
            shop_service.purchase_item(engine, "u2", "starter", "Starter", 0)
