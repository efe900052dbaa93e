"""
tests/test_api_routes.py — FastAPI Route Integration Tests
===========================================================

These tests verify:
- Auth guards on user, service and admin endpoints
- Response structure of the progression, reward and quest endpoints
- Domain errors mapped to HTTP status codes
- Health endpoint availability

The ``client`` fixture (conftest) binds the app to the seeded in-memory
database through dependency overrides.
"""

from __future__ import annotations

import pytest
from conftest import make_token


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def service_token() -> str:
    return make_token("content-service", is_service=True)


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAuthGuards:
    USER_GET_ENDPOINTS = [
        "/api/progression",
        "/api/ledger",
        "/api/daily-reward",
        "/api/wheel",
        "/api/quests",
    ]

    ADMIN_POST_ENDPOINTS = [
        "/api/admin/reconcile",
        "/api/admin/quests/grant",
        "/api/admin/adjust-balance",
    ]

    @pytest.mark.parametrize("endpoint", USER_GET_ENDPOINTS)
    def test_user_endpoints_reject_no_auth(self, client, endpoint):
        assert client.get(endpoint).status_code == 401

    @pytest.mark.parametrize("endpoint", USER_GET_ENDPOINTS)
    def test_user_endpoints_reject_invalid_token(self, client, endpoint):
        resp = client.get(endpoint, headers={"Authorization": "Bearer invalid"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_admin_rejects_no_auth(self, client, endpoint):
        assert client.post(endpoint, json={}).status_code in (401, 422)

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_admin_rejects_non_admin(self, client, user_token, endpoint):
        resp = client.post(
            endpoint,
            json={"user_id": "u1", "quest_type": "first_post", "coins": 1, "reason": "x"},
            headers=_auth(user_token),
        )
        assert resp.status_code == 403

    def test_purchase_rejects_end_user_token(self, client, user_token):
        resp = client.post(
            "/api/shop/purchases",
            json={"user_id": "user-1", "item_id": "hat", "item_name": "Hat", "price": 0},
            headers=_auth(user_token),
        )
        assert resp.status_code == 403


# ===========================================================================
# Progression & ledger
# ===========================================================================
class TestProgression:
    def test_fresh_user_zero_state(self, client, user_token):
        resp = client.get("/api/progression", headers=_auth(user_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["user_id"] == "user-1"
        assert (body["level"], body["total_xp"], body["coin_balance"]) == (1, 0, 0)
        assert body["xp_to_next_level"] == 100
        assert body["streak"]["can_claim"] is True
        assert body["wheel"]["can_spin"] is True
        assert len(body["quests"]) == 6

    def test_role_filters_quests(self, client, user_token):
        resp = client.get("/api/progression?role=RECRUITER", headers=_auth(user_token))
        types = {q["quest_type"] for q in resp.json()["quests"]}
        assert "first_event" in types and "first_portfolio" not in types

    def test_ledger_lists_entries(self, client, user_token):
        client.post("/api/daily-reward", headers=_auth(user_token))
        resp = client.get("/api/ledger", headers=_auth(user_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 1
        assert body["entries"][0]["type"] == "streak_claim"
        assert body["entries"][0]["metadata"]["kind"] == "streak_claim"

    def test_ledger_type_filter_validated(self, client, user_token):
        resp = client.get("/api/ledger?type=bogus", headers=_auth(user_token))
        assert resp.status_code == 422


# ===========================================================================
# Daily reward & wheel
# ===========================================================================
class TestDailyReward:
    def test_status_shape(self, client, user_token):
        body = client.get("/api/daily-reward", headers=_auth(user_token)).json()
        assert body["can_claim"] is True
        assert len(body["rewards"]) == 7
        assert body["next_reward"] == {
            "day": 1, "xp": 10, "coins": 5, "is_current": True, "is_claimed": False,
        }

    def test_claim_then_conflict(self, client, user_token):
        first = client.post("/api/daily-reward", headers=_auth(user_token))
        assert first.status_code == 200
        assert first.json() == {
            "xp": 10, "coins": 5, "streak": 1, "cycle_day": 1, "new_balance": 5,
        }

        again = client.post("/api/daily-reward", headers=_auth(user_token))
        assert again.status_code == 409
        assert again.json()["error"] == "AlreadyClaimed"


class TestWheel:
    def test_status_lists_segments(self, client, user_token):
        body = client.get("/api/wheel", headers=_auth(user_token)).json()
        assert body["can_spin"] is True
        assert len(body["segments"]) == 6

    def test_spin_then_conflict_with_next_time(self, client, user_token):
        first = client.post("/api/wheel", headers=_auth(user_token))
        assert first.status_code == 200
        body = first.json()
        assert body["coins_won"] == body["segment"]["coins"] == body["new_balance"]

        again = client.post("/api/wheel", headers=_auth(user_token))
        assert again.status_code == 409
        assert again.json()["next_available_at"]

        status = client.get("/api/wheel", headers=_auth(user_token)).json()
        assert status["can_spin"] is False


# ===========================================================================
# Quests
# ===========================================================================
class TestQuests:
    def test_profile_check_completes(self, client, user_token):
        resp = client.post(
            "/api/quests/profile-check",
            json={"name": "Ada", "bio": "Painter", "image": "ada.png"},
            headers=_auth(user_token),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["outcome"] == "completed"
        assert body["coins_awarded"] == 15

        quests = client.get("/api/quests", headers=_auth(user_token)).json()
        profile = next(q for q in quests if q["quest_type"] == "profile_complete")
        assert profile["completed"] is True


# ===========================================================================
# Shop
# ===========================================================================
class TestShop:
    def test_insufficient_balance_is_402(self, client, service_token):
        client.post(
            "/api/shop/purchases",
            json={"user_id": "u9", "item_id": "free", "item_name": "Free", "price": 0},
            headers=_auth(service_token),
        )
        resp = client.post(
            "/api/shop/purchases",
            json={"user_id": "u9", "item_id": "hat", "item_name": "Hat", "price": 50},
            headers=_auth(service_token),
        )
        assert resp.status_code == 402
        assert resp.json()["required"] == 50

    def test_unknown_user_is_404(self, client, service_token):
        resp = client.post(
            "/api/shop/purchases",
            json={"user_id": "ghost", "item_id": "hat", "item_name": "Hat", "price": 5},
            headers=_auth(service_token),
        )
        assert resp.status_code == 404

    def test_negative_price_rejected(self, client, service_token):
        resp = client.post(
            "/api/shop/purchases",
            json={"user_id": "u9", "item_id": "hat", "item_name": "Hat", "price": -5},
            headers=_auth(service_token),
        )
        assert resp.status_code == 422


# ===========================================================================
# Admin
# ===========================================================================
class TestAdmin:
    def test_adjust_then_purchase(self, client, admin_token, service_token):
        resp = client.post(
            "/api/admin/adjust-balance",
            json={"user_id": "u1", "coins": 30, "xp": 0, "reason": "contest"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["coin_balance"] == 30

        buy = client.post(
            "/api/shop/purchases",
            json={"user_id": "u1", "item_id": "hat", "item_name": "Hat", "price": 20},
            headers=_auth(service_token),
        )
        assert buy.status_code == 201
        assert buy.json()["new_balance"] == 10

        dup = client.post(
            "/api/shop/purchases",
            json={"user_id": "u1", "item_id": "hat", "item_name": "Hat", "price": 20},
            headers=_auth(service_token),
        )
        assert dup.status_code == 409

    def test_grant_quest(self, client, admin_token):
        body = {"user_id": "u1", "quest_type": "first_post"}
        first = client.post("/api/admin/quests/grant", json=body, headers=_auth(admin_token))
        assert first.status_code == 200
        assert first.json()["coins_awarded"] == 10

        again = client.post("/api/admin/quests/grant", json=body, headers=_auth(admin_token))
        assert again.status_code == 409

        unknown = client.post(
            "/api/admin/quests/grant",
            json={"user_id": "u1", "quest_type": "nope"},
            headers=_auth(admin_token),
        )
        assert unknown.status_code == 404

    def test_reconcile(self, client, admin_token):
        resp = client.post("/api/admin/reconcile", json={"fix": False}, headers=_auth(admin_token))
        assert resp.status_code == 200
        assert resp.json()["corrected"] == 0
