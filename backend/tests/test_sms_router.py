"""
API Tests for the SMS Router

Uses FastAPI's TestClient with the repository, engine and delivery service
dependencies overridden by in-memory doubles. The lifespan (database
connection) is not run.

Run with: pytest tests/test_sms_router.py -v
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from fastapi.testclient import TestClient

from conftest import ORG_ID, FakeProvider, configured_provider_config
from routers.sms import (
    get_delivery_service,
    get_delivery_tracker,
    get_sms_repository,
    get_template_engine,
)
from server import app
from sms_integration.delivery_tracker import SMSDeliveryTracker
from sms_integration.schema import ProviderName
from sms_integration.sms_sender import SMSDeliveryService


@pytest.fixture
def providers():
    return {
        ProviderName.TWILIO: FakeProvider(ProviderName.TWILIO),
        ProviderName.VONAGE: FakeProvider(ProviderName.VONAGE),
    }


@pytest.fixture
def client(store, engine, providers):
    service = SMSDeliveryService(store, engine, configured_provider_config(), providers=providers)

    app.dependency_overrides[get_sms_repository] = lambda: store
    app.dependency_overrides[get_template_engine] = lambda: engine
    app.dependency_overrides[get_delivery_service] = lambda: service
    app.dependency_overrides[get_delivery_tracker] = lambda: SMSDeliveryTracker(store)

    yield TestClient(app)

    app.dependency_overrides.clear()


class TestSendEndpoint:
    """Test POST /api/sms/send"""

    def test_individual_send(self, client, store):
        response = client.post("/api/sms/send", json={
            "type": "individual",
            "organizationId": ORG_ID,
            "message": "On our way",
            "phoneNumber": "+15551234567",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["totalSent"] == 1
        assert data["totalFailed"] == 0
        assert data["results"][0]["provider"] == "twilio"
        assert len(store.logs) == 1

    def test_template_send_with_fallback(self, client, store, providers):
        store.add_template("appointment_reminder", "en", "See you at {{time}}", ["time"])

        response = client.post("/api/sms/send", json={
            "type": "template",
            "organizationId": ORG_ID,
            "templateKey": "appointment_reminder",
            "templateData": {"time": "10:00"},
            "language": "es",
            "phoneNumber": "+15551234567",
        })

        assert response.status_code == 200
        assert providers[ProviderName.TWILIO].calls[0][1] == "See you at 10:00"

    def test_missing_recipient_is_400_envelope(self, client, providers):
        response = client.post("/api/sms/send", json={
            "type": "individual",
            "organizationId": ORG_ID,
            "message": "Hello",
        })

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "Phone number or customer ID is required" in response.json()["error"]
        assert providers[ProviderName.TWILIO].calls == []

    def test_unknown_customer_is_404(self, client):
        response = client.post("/api/sms/send", json={
            "type": "individual",
            "organizationId": ORG_ID,
            "message": "Hello",
            "customerId": "ghost",
        })

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Customer not found"}

    def test_malformed_body_is_400_envelope(self, client):
        response = client.post("/api/sms/send", json={
            "type": "individual",
            "organizationId": ORG_ID,
            "templateData": {"items": [1, 2]},
        })

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_all_providers_failing_is_still_200(self, client, providers):
        providers[ProviderName.TWILIO].results = [False]
        providers[ProviderName.VONAGE].results = [False]

        response = client.post("/api/sms/send", json={
            "type": "individual",
            "organizationId": ORG_ID,
            "message": "Hello",
            "phoneNumber": "+15551234567",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["totalFailed"] == 1
        assert data["results"][0]["status"] == "failed"
        assert data["results"][0]["error"].startswith("All SMS providers failed.")


class TestTemplateEndpoints:
    """Test template management endpoints."""

    def test_upsert_and_list(self, client):
        payload = {
            "key": "welcome_message",
            "language": "es",
            "content": "Bienvenido {{name}}",
            "variables": ["name"],
            "category": "confirmation",
        }

        created = client.post("/api/sms/templates", json=payload)
        updated = client.put("/api/sms/templates", json={**payload, "content": "Hola {{name}}"})
        listed = client.get("/api/sms/templates", params={"category": "confirmation", "language": "es"})

        assert created.status_code == 200
        assert updated.json()["template"]["content"] == "Hola {{name}}"
        assert listed.json()["keys"] == ["welcome_message"]
        assert [t["content"] for t in listed.json()["templates"]] == ["Hola {{name}}"]

    def test_upsert_rejects_unknown_language(self, client):
        response = client.post("/api/sms/templates", json={
            "key": "k", "language": "fr", "content": "Bonjour", "category": "reminder",
        })

        assert response.status_code == 400

    def test_validate(self, client, store):
        store.add_template("k", "en", "{{a}} {{b}}", ["a", "b"])

        response = client.post("/api/sms/templates/validate", json={
            "key": "k", "language": "es", "data": {"a": "1", "c": "3"},
        })

        assert response.json() == {
            "valid": False,
            "missing_variables": ["b"],
            "extra_variables": ["c"],
        }

    def test_validate_unknown_template(self, client):
        response = client.post("/api/sms/templates/validate", json={"key": "nope"})

        assert response.status_code == 404

    def test_render_sample(self, client, store):
        store.add_template("k", "en", "Hi {{name}}", ["name"])

        response = client.post("/api/sms/templates/test", json={"key": "k", "data": {"name": "Ana"}})

        assert response.json()["formatted_message"] == "Hi Ana"

    def test_seed(self, client):
        response = client.post("/api/sms/templates/seed")

        assert response.json()["success"] is True
        assert response.json()["created"] > 0

    def test_missing_translations(self, client, store):
        store.add_template("only_en", "en", "Hi", [])

        response = client.get("/api/sms/templates/missing-translations")

        assert response.json()["missing"] == {"only_en": ["es"]}


class TestDeliveryRecordEndpoints:
    """Test logs and statistics endpoints."""

    def test_logs_and_statistics(self, client, store):
        store.logs.append({
            "id": "log-1",
            "organization_id": ORG_ID,
            "status": "sent",
            "provider": "twilio",
            "language_code": "en",
            "template_key": None,
            "cost": Decimal("0.0075"),
            "created_at": datetime.now(timezone.utc),
        })

        logs = client.get("/api/sms/logs", params={"organization_id": ORG_ID})
        stats = client.get("/api/sms/statistics", params={"organization_id": ORG_ID, "time_range": "1h"})

        assert logs.status_code == 200
        assert logs.json()["logs"][0]["id"] == "log-1"
        assert stats.json()["total"] == 1
        assert stats.json()["by_provider"] == {"twilio": 1}

    def test_invalid_time_range(self, client):
        response = client.get("/api/sms/statistics", params={"organization_id": ORG_ID, "time_range": "1y"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_flush(self, client, store):
        store.fail_log_writes = True
        client.post("/api/sms/send", json={
            "type": "individual",
            "organizationId": ORG_ID,
            "message": "Hello",
            "phoneNumber": "+15551234567",
        })
        store.fail_log_writes = False

        response = client.post("/api/sms/logs/flush")

        assert response.json() == {"success": True, "written": 1, "pending": 0}
        assert len(store.logs) == 1
