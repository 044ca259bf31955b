"""
RentalHub Backend — API Integration Tests
===========================================

What:  End-to-end request handling through the FastAPI app: routing,
       dependencies, middleware and the error envelope.
How:   HTTPX AsyncClient on ASGITransport (no server). The database
       dependency is replaced with the mocked session; authenticated calls
       override get_current_user.

What we test:
    ✅ /api/status ping and X-Request-ID propagation
    ✅ 401 envelope without a token
    ✅ 422 envelope with per-field validation errors
    ✅ Domain errors (404, 401 on bad webhook signature) use the envelope
    ✅ Authenticated cart read through the real route and service
"""

from uuid import uuid4

import pytest

from rentalhub.dependencies import get_current_user
from rentalhub.main import app


@pytest.fixture
def login_as():
    def _login(user):
        async def override():
            return user

        app.dependency_overrides[get_current_user] = override

    return _login


class TestStatus:

    @pytest.mark.asyncio
    async def test_status_ping(self, test_client):
        response = await test_client.get("/api/status")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "API is working"
        assert body["method"] == "GET"
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_client_request_id_is_echoed(self, test_client):
        response = await test_client.get("/api/status", headers={"X-Request-ID": "frontend-42"})
        assert response.headers["X-Request-ID"] == "frontend-42"


class TestErrorEnvelope:

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, test_client):
        response = await test_client.get("/api/bookings")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "UNAUTHORIZED"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_schema_errors_are_422(self, test_client):
        response = await test_client.post(
            "/api/auth/register",
            json={"email": "not-an-email", "password": "123", "full_name": "X"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        fields = {item["field"] for item in body["validation_errors"]}
        assert {"email", "password"} <= fields

    @pytest.mark.asyncio
    async def test_missing_booking_is_404(self, test_client, mock_db_session, make_result, regular_user, login_as):
        login_as(regular_user)
        mock_db_session.execute.return_value = make_result(scalar=None)

        response = await test_client.get(f"/api/bookings/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "RESOURCE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_bad_webhook_signature_is_401(self, test_client, mock_db_session):
        response = await test_client.post(
            "/api/webhooks/razorpay",
            content=b'{"event": "payment.captured", "payload": {}}',
            headers={"X-Razorpay-Signature": "0" * 64, "Content-Type": "application/json"},
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid webhook signature"
        mock_db_session.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_webhook_without_signature_is_400(self, test_client):
        response = await test_client.post("/api/webhooks/razorpay", content=b"{}")
        assert response.status_code == 400


class TestAuthenticatedRoutes:

    @pytest.mark.asyncio
    async def test_empty_cart(self, test_client, mock_db_session, make_result, regular_user, login_as):
        login_as(regular_user)
        mock_db_session.execute.return_value = make_result(scalars=[])

        response = await test_client.get("/api/cart")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["items"] == []
        assert body["data"]["summary"]["total"] == 0

    @pytest.mark.asyncio
    async def test_regular_user_cannot_create_facility(self, test_client, regular_user, login_as):
        login_as(regular_user)

        response = await test_client.post(
            "/api/facilities",
            json={"name": "My Arena", "address": "1 Main Street"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"
