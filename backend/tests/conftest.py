"""
Shared fixtures for the SMS core tests.

InMemorySMSStore implements the repository contract used by the template
engine, recipient resolver, delivery service and tracker, so those can be
tested without PostgreSQL.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from sms_integration.schema import ProviderName
from sms_integration.sms_client import ProviderCredentials, SMSProviderConfig, SMSResult
from sms_integration.template_engine import InMemoryTemplateCache, SMSTemplateEngine


ORG_ID = "org-11111111"


class InMemorySMSStore:
    """Dict-backed stand-in for SMSRepository."""

    def __init__(self):
        self.templates: Dict[tuple, Dict[str, Any]] = {}
        self.customers: Dict[tuple, Dict[str, Any]] = {}
        self.contacts: Dict[str, List[Dict[str, Any]]] = {}
        self.logs: List[Dict[str, Any]] = []
        self.fail_log_writes = False
        self.fetch_calls = 0

    # ---------- seeding helpers ----------

    def add_template(self, key, language, content, variables=None, category="appointment", is_active=True):
        row = {
            "id": str(uuid.uuid4()),
            "key": key,
            "language": language,
            "content": content,
            "variables": list(variables or []),
            "category": category,
            "is_active": is_active,
        }
        self.templates[(key, language)] = row
        return row

    def add_customer(self, organization_id, customer_id, name=None, phone_number=None):
        self.customers[(organization_id, customer_id)] = {
            "id": customer_id,
            "name": name,
            "phone_number": phone_number,
        }

    def add_contact(self, organization_id, name, phone):
        self.contacts.setdefault(organization_id, []).append({"name": name, "phone": phone})

    # ---------- repository contract ----------

    async def get_customer(self, organization_id: str, customer_id: str) -> Optional[Dict[str, Any]]:
        return self.customers.get((organization_id, customer_id))

    async def get_emergency_contacts(self, organization_id: str) -> List[Dict[str, Any]]:
        return list(self.contacts.get(organization_id, []))

    async def fetch_template(self, key: str, language: str) -> Optional[Dict[str, Any]]:
        self.fetch_calls += 1
        row = self.templates.get((key, language))
        if row and row["is_active"]:
            return dict(row)
        return None

    async def list_templates_by_category(self, category: str, language: str) -> List[Dict[str, Any]]:
        return [
            dict(row) for row in self.templates.values()
            if row["category"] == category and row["language"] == language and row["is_active"]
        ]

    async def list_template_keys(self) -> List[str]:
        return [row["key"] for row in self.templates.values() if row["is_active"]]

    async def upsert_template(self, values: Dict[str, Any]) -> Dict[str, Any]:
        category = values.get("category") or "appointment"
        return self.add_template(
            values["key"],
            values["language"],
            values["content"],
            values.get("variables"),
            getattr(category, "value", category),
            values.get("is_active", True),
        )

    async def insert_delivery_log(self, record: Dict[str, Any]) -> str:
        if self.fail_log_writes:
            raise RuntimeError("database unavailable")
        row = dict(record)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc))
        self.logs.append(row)
        return row["id"]

    async def list_delivery_logs(self, organization_id, since=None, until=None, limit=None):
        rows = [
            row for row in self.logs
            if row["organization_id"] == organization_id
            and (since is None or row["created_at"] >= since)
            and (until is None or row["created_at"] < until)
        ]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return rows[:limit] if limit else rows


class FakeProvider:
    """Provider double that records every call."""

    def __init__(self, name: ProviderName, results=None, configured=True):
        self.name = name
        self.results = list(results or [])
        self.configured = configured
        self.calls: List[tuple] = []

    def is_configured(self) -> bool:
        return self.configured

    async def send_sms(self, to: str, message: str) -> SMSResult:
        self.calls.append((to, message))
        outcome = self.results.pop(0) if self.results else True
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, SMSResult):
            return outcome
        if outcome:
            return SMSResult(
                success=True,
                provider=self.name.value,
                message_id=f"{self.name.value}-{len(self.calls)}",
                status="sent"
            )
        return SMSResult(success=False, provider=self.name.value, error="HTTP 500: server error", error_code=500)


def configured_provider_config(primary: ProviderName = ProviderName.TWILIO) -> SMSProviderConfig:
    return SMSProviderConfig(
        twilio=ProviderCredentials("AC123", "token", "+15550000001"),
        vonage=ProviderCredentials("key", "secret", "+15550000002"),
        primary=primary,
        timeout_seconds=5.0
    )


@pytest.fixture
def store():
    return InMemorySMSStore()


@pytest.fixture
def engine(store):
    return SMSTemplateEngine(store, cache=InMemoryTemplateCache())
