"""HTTP tests for the credit, quota and admin routes."""

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_credit_ledger, get_quota_workflow
from app.core.auth import get_current_user, verify_token
from app.core.config import get_settings
from app.core.security import limiter
from app.db.models import UserModel
from app.main import app

ADMIN = UserModel(id="admin-1", email="admin@example.com", is_admin=True)
LEARNER = UserModel(id="learner-1", email="learner@example.com", is_admin=False)


class CurrentUser:
    """Switchable stand-in for the authenticated user."""

    def __init__(self):
        self.user = LEARNER

    def __call__(self) -> UserModel:
        return self.user


@pytest.fixture
def current_user():
    return CurrentUser()


@pytest_asyncio.fixture
async def client(ledger, workflow, current_user, monkeypatch):
    monkeypatch.setattr(limiter, "enabled", False)
    app.dependency_overrides[get_current_user] = current_user
    app.dependency_overrides[get_credit_ledger] = lambda: ledger
    app.dependency_overrides[get_quota_workflow] = lambda: workflow

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestCreditRoutes:

    @pytest.mark.asyncio
    async def test_credit_info_creates_account(self, client):
        response = await client.get("/api/v1/credits")

        assert response.status_code == 200
        data = response.json()
        assert data["credits"] == 5
        assert data["daily_limit"] == 50
        assert data["is_premium"] is False

    @pytest.mark.asyncio
    async def test_consume_charges_by_mode(self, client):
        general = await client.post("/api/v1/credits/consume", json={"message": "hello"})
        coding = await client.post("/api/v1/credits/consume", json={"message": "fix", "mode": "coding"})

        assert general.json()["cost"] == 0.5
        assert coding.json()["cost"] == 1
        assert coding.json()["credits"] == 3.5

    @pytest.mark.asyncio
    async def test_consume_without_credits_is_payment_required(self, client, ledger):
        await ledger.admin_adjust(LEARNER.id, "set", 0)

        response = await client.post("/api/v1/credits/consume", json={"message": "hello"})

        assert response.status_code == 402
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "InsufficientCredits"

    @pytest.mark.asyncio
    async def test_empty_message_is_rejected(self, client):
        response = await client.post("/api/v1/credits/consume", json={"message": ""})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_history_is_newest_first(self, client):
        await client.post("/api/v1/credits/consume", json={"message": "a"})
        await client.post("/api/v1/credits/consume", json={"message": "b", "mode": "coding"})

        history = (await client.get("/api/v1/credits/history")).json()["history"]

        assert [e["amount"] for e in history] == [-1, -0.5]
        assert all("timestamp" in e for e in history)

    @pytest.mark.asyncio
    async def test_premium_shows_unlimited(self, client, ledger):
        await ledger.toggle_premium(LEARNER.id)

        response = await client.get("/api/v1/credits")

        assert response.json()["credits"] == -1


class TestQuotaRoutes:

    @pytest.mark.asyncio
    async def test_slot_then_forbidden(self, client):
        first = await client.post("/api/v1/quota/consume")
        second = await client.post("/api/v1/quota/consume")

        assert first.status_code == 200
        assert first.json()["remaining"] == 0
        assert second.status_code == 403
        assert second.json()["error"] == "QuotaExceeded"

    @pytest.mark.asyncio
    async def test_request_before_exhausted_conflicts(self, client):
        response = await client.post("/api/v1/quota/requests", json={})

        assert response.status_code == 409
        assert response.json()["error"] == "QuotaNotExhausted"

    @pytest.mark.asyncio
    async def test_request_and_approve_flow(self, client, current_user):
        await client.post("/api/v1/quota/consume")
        created = await client.post("/api/v1/quota/requests", json={"reason": "Second portfolio project"})

        assert created.status_code == 201
        payload = created.json()
        assert payload["payment_info"] == {
            "amount": 299.0,
            "currency": "INR",
            "status": "pending_admin_approval",
        }
        request_id = payload["request"]["request_id"]

        duplicate = await client.post("/api/v1/quota/requests", json={})
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "DuplicatePendingRequest"

        current_user.user = ADMIN
        pending = (await client.get("/api/v1/admin/quota-requests")).json()
        assert pending["count"] == 1
        assert pending["requests"][0]["request"]["request_id"] == request_id

        approved = await client.put(f"/api/v1/admin/quota-requests/{request_id}/approve")
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["resolved_by"] == ADMIN.id

        again = await client.put(f"/api/v1/admin/quota-requests/{request_id}/approve")
        assert again.status_code == 409

        current_user.user = LEARNER
        quota = (await client.get("/api/v1/quota")).json()
        assert quota["allowed"] == 2
        assert quota["can_create"] is True

    @pytest.mark.asyncio
    async def test_reject_needs_a_note(self, client, current_user):
        await client.post("/api/v1/quota/consume")
        request_id = (await client.post("/api/v1/quota/requests", json={})).json()["request"]["request_id"]

        current_user.user = ADMIN
        missing = await client.put(f"/api/v1/admin/quota-requests/{request_id}/reject", json={})
        rejected = await client.put(
            f"/api/v1/admin/quota-requests/{request_id}/reject",
            json={"admin_note": "Payment not received"},
        )

        assert missing.status_code == 400
        assert missing.json()["error"] == "ReasonRequired"
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"

        current_user.user = LEARNER
        requests = (await client.get("/api/v1/quota/requests")).json()["requests"]
        assert [r["status"] for r in requests] == ["rejected"]

    @pytest.mark.asyncio
    async def test_unknown_request_is_not_found(self, client, current_user):
        current_user.user = ADMIN
        response = await client.put("/api/v1/admin/quota-requests/missing/approve")
        assert response.status_code == 404


class TestAdminRoutes:

    @pytest.mark.asyncio
    async def test_learner_is_forbidden(self, client):
        for method, path in [
            ("get", "/api/v1/admin/credits"),
            ("post", "/api/v1/admin/credits/reset-all"),
            ("get", "/api/v1/admin/quota-requests"),
        ]:
            response = await getattr(client, method)(path)
            assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_adjust_credits(self, client, current_user):
        current_user.user = ADMIN

        added = await client.put(f"/api/v1/admin/credits/{LEARNER.id}", json={"action": "add", "amount": 10})
        deducted = await client.put(
            f"/api/v1/admin/credits/{LEARNER.id}", json={"action": "deduct", "amount": 1000}
        )

        assert added.json()["credits"] == 15
        assert deducted.json()["credits"] == 0

        history = (await client.get(f"/api/v1/admin/credits/{LEARNER.id}/history")).json()
        assert history["account"]["credits"] == 0
        assert [e["action"] for e in history["history"]] == ["admin_deduct", "admin_add"]
        assert history["history"][0]["amount"] == -15

    @pytest.mark.asyncio
    async def test_adjust_rejects_bad_input(self, client, current_user):
        current_user.user = ADMIN
        path = f"/api/v1/admin/credits/{LEARNER.id}"

        bad_amount = await client.put(path, json={"action": "add", "amount": "lots"})
        bad_action = await client.put(path, json={"action": "double", "amount": 2})
        empty = await client.put(path, json={})

        assert (bad_amount.status_code, bad_amount.json()["error"]) == (400, "InvalidAmount")
        assert (bad_action.status_code, bad_action.json()["error"]) == (400, "InvalidAction")
        assert empty.status_code == 400

    @pytest.mark.asyncio
    async def test_rejected_daily_limit_keeps_balance(self, client, current_user, ledger):
        await ledger.consume(LEARNER.id, 1)
        current_user.user = ADMIN

        response = await client.put(
            f"/api/v1/admin/credits/{LEARNER.id}",
            json={"action": "add", "amount": 10, "daily_limit": -1},
        )

        assert (response.status_code, response.json()["error"]) == (400, "InvalidAmount")
        account = await ledger.find_account(LEARNER.id)
        assert (account.credits, account.daily_limit) == (4, 50)
        assert [e.action for e in await ledger.get_history(LEARNER.id)] == ["use"]

    @pytest.mark.asyncio
    async def test_adjust_and_limit_in_one_call(self, client, current_user):
        current_user.user = ADMIN

        response = await client.put(
            f"/api/v1/admin/credits/{LEARNER.id}",
            json={"action": "set", "amount": 7, "daily_limit": 30},
        )

        assert response.status_code == 200
        assert (response.json()["credits"], response.json()["daily_limit"]) == (7, 30)

    @pytest.mark.asyncio
    async def test_set_daily_limit(self, client, current_user):
        current_user.user = ADMIN

        response = await client.put(f"/api/v1/admin/credits/{LEARNER.id}", json={"daily_limit": 100})

        assert response.status_code == 200
        assert response.json()["daily_limit"] == 100

    @pytest.mark.asyncio
    async def test_premium_toggle_and_reset_all(self, client, current_user, ledger):
        await ledger.consume("other", 2)
        current_user.user = ADMIN

        premium = await client.post(f"/api/v1/admin/credits/{LEARNER.id}/premium")
        reset = await client.post("/api/v1/admin/credits/reset-all")

        assert premium.json()["is_premium"] is True
        assert reset.json() == {"status": "success", "reset_count": 1}
        assert (await ledger.find_account("other")).credits == 50

    @pytest.mark.asyncio
    async def test_list_accounts(self, client, current_user, ledger):
        await ledger.consume("a", 1)
        await ledger.consume("b", 1)
        current_user.user = ADMIN

        data = (await client.get("/api/v1/admin/credits", params={"limit": 1})).json()

        assert data["total"] == 2
        assert len(data["accounts"]) == 1

    @pytest.mark.asyncio
    async def test_default_policy(self, client, current_user):
        current_user.user = ADMIN

        before = (await client.get("/api/v1/admin/credits/defaults")).json()
        updated = await client.put("/api/v1/admin/credits/defaults", json={"default_credits": 20})
        invalid = await client.put("/api/v1/admin/credits/defaults", json={"default_daily_limit": -3})

        assert before == {"default_credits": 5, "default_daily_limit": 50}
        assert updated.json() == {"default_credits": 20, "default_daily_limit": 50}
        assert invalid.status_code == 400

        current_user.user = LEARNER
        assert (await client.get("/api/v1/credits")).json()["credits"] == 20


@pytest.mark.asyncio
async def test_health():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/health")
    assert response.json() == {"status": "healthy"}


class TestTokenVerification:

    @pytest.fixture(autouse=True)
    def secret(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "test-secret")
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_valid_token(self):
        token = jwt.encode({"sub": "user-9", "email": "u9@example.com", "role": "admin"}, "test-secret")

        user = verify_token(token)

        assert user.id == "user-9"
        assert user.email == "u9@example.com"
        assert user.is_admin is True

    def test_token_without_email_gets_placeholder(self):
        user = verify_token(jwt.encode({"sub": "user-9"}, "test-secret"))

        assert user.email == "user-9@users.local"
        assert user.is_admin is False

    def test_wrong_signature(self):
        assert verify_token(jwt.encode({"sub": "user-9"}, "other-secret")) is None

    def test_missing_subject(self):
        assert verify_token(jwt.encode({"email": "x@example.com"}, "test-secret")) is None
