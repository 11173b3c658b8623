"""
Tests for the dashboard endpoints.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from mint_harness.server import create_app

RECIPIENT_ID = "2d0d2f6a-6c4a-4b8b-9d2e-0c6f7b7f1a11"


@pytest.fixture
def app(settings, mint_client):
    return create_app(settings=settings, client=mint_client)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app, raise_server_exceptions=False)


class TestHealthCheck:
    def test_health_check_returns_status(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["environment"] == "sandbox"
        assert data["base_url"] == "https://api-sandbox.circle.com"
        assert data["api_key_configured"] is True
        assert data["listeners"] == 0


class TestWebhooks:
    def test_head_request_succeeds(self, client):
        assert client.head("/webhooks").status_code == 200

    def test_notification_is_broadcast(self, app, client):
        _, queue = app.state.events.connect()

        response = client.post("/webhooks", json={"notificationType": "payouts", "payout": {"id": "p1"}})

        assert response.status_code == 200
        frame = queue.get_nowait()
        assert frame.startswith("event: notification\n")
        assert '"payload": {"notificationType": "payouts", "payout": {"id": "p1"}}' in frame
        assert '"timestamp": ' in frame

    def test_non_json_notification_is_forwarded_as_text(self, app, client):
        _, queue = app.state.events.connect()

        response = client.post("/webhooks", content=b"plain text", headers={"Content-Type": "text/plain"})

        assert response.status_code == 200
        assert '"payload": "plain text"' in queue.get_nowait()


class TestOperations:
    def test_balance_returns_logs_and_data(self, client, fake_mint):
        fake_mint.add("GET", "/v1/balances", payload={"data": {"available": [{"amount": "1.00", "currency": "USD"}]}})

        response = client.get("/api/balance")

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == {"data": {"available": [{"amount": "1.00", "currency": "USD"}]}}
        assert body["error"] is None
        assert isinstance(body["logs"], list)

    def test_remote_error_becomes_400(self, client, fake_mint):
        fake_mint.add("GET", "/v1/wallets", 401, {"code": 401, "message": "Malformed key"})

        response = client.get("/api/account")

        assert response.status_code == 400
        body = response.json()
        assert body["data"] is None
        assert body["error"].startswith("Mint API Error (401)")
        assert any(line.startswith("[ERR] operation_failed") for line in body["logs"])

    def test_payout_to_raw_address_rejected_without_remote_call(self, client, fake_mint):
        response = client.post(
            "/api/payouts",
            json={"recipientId": "0x71C7656EC7ab88b098defB751B7401B5f6d8976F", "amount": "1"},
        )

        assert response.status_code == 400
        assert "address-book" in response.json()["error"]
        assert fake_mint.calls == []

    def test_payout_amount_is_formatted(self, client, fake_mint):
        fake_mint.add("POST", "/v1/payouts", 201, {"data": {"id": "p1"}})

        response = client.post("/api/payouts", json={"recipientId": RECIPIENT_ID, "amount": "1"})

        assert response.status_code == 200
        assert fake_mint.bodies("POST", "/v1/payouts")[0]["amount"] == {"amount": "1.00", "currency": "USD"}

    def test_link_bank_without_body(self, client, fake_mint):
        fake_mint.add("POST", "/v1/businessAccount/banks/wires", 201, {"data": {"id": "bank-1"}})

        response = client.post("/api/express-route/link-bank")

        assert response.status_code == 200
        assert response.json()["data"] == {"data": {"id": "bank-1"}}

    def test_missing_required_field_is_rejected(self, client):
        response = client.post("/api/payouts", json={"amount": "1"})
        assert response.status_code == 422

    def test_unknown_api_route_returns_json_404(self, client):
        response = client.get("/api/unknown")
        assert response.status_code == 404
        assert response.json() == {"error": "API route not found"}

    def test_unexpected_error_returns_500(self, client, mint_client):
        mint_client.get_balance = AsyncMock(side_effect=RuntimeError("boom"))

        response = client.get("/api/balance")

        assert response.status_code == 500
        assert response.json() == {"error": "boom"}

    def test_unreachable_api_becomes_400(self, client, fake_mint):
        fake_mint.disconnect()

        response = client.get("/api/balance")

        assert response.status_code == 400
        body = response.json()
        assert body["data"] is None
        assert body["error"].startswith("Request to /v1/balances failed")
        assert any(line.startswith("[WARN] mint_api_unreachable") for line in body["logs"])
