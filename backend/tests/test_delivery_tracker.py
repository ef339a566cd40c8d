"""
Unit Tests for SMS Delivery Statistics

Run with: pytest tests/test_delivery_tracker.py -v
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from conftest import ORG_ID
from sms_integration.delivery_tracker import SMSDeliveryTracker
from sms_integration.recipients import SMSRequestError


NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def add_log(store, status, created_at, provider=None, language="en", template_key=None, cost=None, org=ORG_ID):
    store.logs.append({
        "organization_id": org,
        "status": status,
        "provider": provider,
        "language_code": language,
        "template_key": template_key,
        "cost": cost,
        "created_at": created_at,
    })


class TestDeliveryStatistics:
    """Test aggregation over a time window."""

    @pytest.mark.asyncio
    async def test_aggregates_within_window(self, store):
        add_log(store, "sent", NOW - timedelta(minutes=5), "twilio", "en", "appointment_reminder", Decimal("0.0075"))
        add_log(store, "sent", NOW - timedelta(hours=2), "vonage", "es", "appointment_reminder", Decimal("0.005"))
        add_log(store, "failed", NOW - timedelta(hours=3), None, "es")
        add_log(store, "sent", NOW - timedelta(days=2), "twilio", "en", None, Decimal("0.0075"))
        add_log(store, "sent", NOW - timedelta(minutes=1), "twilio", org="other-org")

        stats = await SMSDeliveryTracker(store).get_delivery_statistics(ORG_ID, "24h", now=NOW)

        assert stats.organization_id == ORG_ID
        assert stats.time_range == "24h"
        assert stats.total == 3
        assert stats.sent == 2
        assert stats.failed == 1
        assert stats.delivery_rate == 66.67
        assert stats.total_cost == Decimal("0.0125")
        assert stats.by_provider == {"twilio": 1, "vonage": 1}
        assert stats.by_language == {"en": 1, "es": 2}
        assert stats.by_template == {"appointment_reminder": 2}

    @pytest.mark.asyncio
    async def test_one_hour_window(self, store):
        add_log(store, "sent", NOW - timedelta(minutes=30), "twilio")
        add_log(store, "sent", NOW - timedelta(hours=2), "twilio")

        stats = await SMSDeliveryTracker(store).get_delivery_statistics(ORG_ID, "1h", now=NOW)

        assert stats.total == 1

    @pytest.mark.asyncio
    async def test_empty_window(self, store):
        stats = await SMSDeliveryTracker(store).get_delivery_statistics(ORG_ID, "7d", now=NOW)

        assert stats.total == 0
        assert stats.delivery_rate == 0.0
        assert stats.total_cost == Decimal("0")

    @pytest.mark.asyncio
    async def test_invalid_time_range(self, store):
        with pytest.raises(SMSRequestError, match="Invalid time range"):
            await SMSDeliveryTracker(store).get_delivery_statistics(ORG_ID, "90d")


class TestDeliveryLogs:
    """Test log listing."""

    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, store):
        add_log(store, "sent", NOW - timedelta(hours=1))
        add_log(store, "failed", NOW)
        add_log(store, "sent", NOW - timedelta(hours=2))

        logs = await SMSDeliveryTracker(store).get_delivery_logs(ORG_ID, limit=2)

        assert [log["created_at"] for log in logs] == [NOW, NOW - timedelta(hours=1)]

    @pytest.mark.asyncio
    async def test_single_day(self, store):
        add_log(store, "sent", datetime(2025, 3, 1, 0, 0, tzinfo=timezone.utc))
        add_log(store, "sent", datetime(2025, 3, 1, 23, 59, tzinfo=timezone.utc))
        add_log(store, "sent", datetime(2025, 3, 2, 0, 0, tzinfo=timezone.utc))

        logs = await SMSDeliveryTracker(store).get_delivery_logs(ORG_ID, day=date(2025, 3, 1))

        assert len(logs) == 2

    @pytest.mark.asyncio
    async def test_requires_organization(self, store):
        with pytest.raises(SMSRequestError):
            await SMSDeliveryTracker(store).get_delivery_logs("")
