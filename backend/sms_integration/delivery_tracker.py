"""
SMS Delivery Tracker - Read side of delivery records

Aggregates sms_communications rows for dashboards:
- Statistics over a trailing window (1h, 24h, 7d, 30d)
- Log listing, optionally limited to one UTC day
"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .recipients import SMSRequestError
from .schema import SMSStatisticsResponse, SMSStatus

logger = logging.getLogger(__name__)


TIME_RANGES: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

DEFAULT_TIME_RANGE = "24h"
DEFAULT_LOG_LIMIT = 100


class SMSDeliveryTracker:
    """
    Delivery statistics over the store's list_delivery_logs().

    Usage:
        tracker = SMSDeliveryTracker(SMSRepository(db))
        stats = await tracker.get_delivery_statistics(org_id, '7d')
    """

    def __init__(self, store):
        self.store = store

    async def get_delivery_statistics(
        self,
        organization_id: str,
        time_range: str = DEFAULT_TIME_RANGE,
        now: Optional[datetime] = None
    ) -> SMSStatisticsResponse:
        if not organization_id:
            raise SMSRequestError("Organization ID is required")

        window = TIME_RANGES.get(time_range)
        if window is None:
            raise SMSRequestError(
                f"Invalid time range '{time_range}'. Use one of: {', '.join(TIME_RANGES)}"
            )

        since = (now or datetime.now(timezone.utc)) - window
        logs = await self.store.list_delivery_logs(organization_id, since=since)

        stats = self.calculate_statistics(logs)
        stats.organization_id = organization_id
        stats.time_range = time_range

        logger.info(
            f"SMS statistics for {organization_id} ({time_range}): "
            f"{stats.total} total, {stats.delivery_rate:.2f}% delivered"
        )
        return stats

    @staticmethod
    def calculate_statistics(logs: List[Dict[str, Any]]) -> SMSStatisticsResponse:
        """Aggregate rows; delivery_rate is a percentage of all rows."""
        total = len(logs)
        sent = sum(1 for log in logs if log.get("status") == SMSStatus.SENT.value)
        failed = sum(1 for log in logs if log.get("status") == SMSStatus.FAILED.value)

        total_cost = sum(
            (Decimal(str(log["cost"])) for log in logs if log.get("cost") is not None),
            Decimal("0")
        )

        by_provider = Counter(log["provider"] for log in logs if log.get("provider"))
        by_language = Counter(log.get("language_code") or "unknown" for log in logs)
        by_template = Counter(log["template_key"] for log in logs if log.get("template_key"))

        return SMSStatisticsResponse(
            organization_id="",
            time_range="",
            total=total,
            sent=sent,
            failed=failed,
            delivery_rate=round(sent / total * 100, 2) if total else 0.0,
            total_cost=total_cost,
            by_provider=dict(by_provider),
            by_language=dict(by_language),
            by_template=dict(by_template)
        )

    async def get_delivery_logs(
        self,
        organization_id: str,
        limit: int = DEFAULT_LOG_LIMIT,
        day: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """Newest-first delivery records, optionally for a single UTC day."""
        if not organization_id:
            raise SMSRequestError("Organization ID is required")
        if limit < 1:
            raise SMSRequestError("Limit must be positive")

        since = until = None
        if day is not None:
            since = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
            until = since + timedelta(days=1)

        return await self.store.list_delivery_logs(
            organization_id, since=since, until=until, limit=limit
        )
