"""
SMS Repository - PostgreSQL storage for templates, recipients and delivery records

All reads are tenant-scoped except templates, which are a platform-wide
catalogue. Methods return plain dicts so the engine and delivery service
stay independent of SQLAlchemy.

Not imported by the sms_integration package itself; routers and the
server wire it in.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from database.sms_models import (
    SMSTemplateDB, SMSCommunicationDB, CustomerDB, EmergencyContactDB
)

logger = logging.getLogger(__name__)


class SMSRepository:
    """
    Async repository over one AsyncSession.

    A session does not support concurrent operations, and the delivery
    service writes one record per recipient from concurrent tasks, so every
    call holds `_lock`.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._lock = asyncio.Lock()

    # ==================== RECIPIENTS ====================

    async def get_customer(self, organization_id: str, customer_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            result = await self.session.execute(
                select(CustomerDB).where(
                    and_(
                        CustomerDB.id == customer_id,
                        CustomerDB.organization_id == organization_id
                    )
                )
            )
            customer = result.scalar_one_or_none()

        if customer is None:
            return None
        return {
            "id": customer.id,
            "name": customer.name,
            "phone_number": customer.phone_number,
            "preferred_language": customer.preferred_language,
        }

    async def get_emergency_contacts(self, organization_id: str) -> List[Dict[str, Any]]:
        """Active, SMS-enabled emergency contacts of a tenant"""
        async with self._lock:
            result = await self.session.execute(
                select(EmergencyContactDB)
                .where(
                    and_(
                        EmergencyContactDB.organization_id == organization_id,
                        EmergencyContactDB.is_active.is_(True),
                        EmergencyContactDB.sms_enabled.is_(True)
                    )
                )
                .order_by(EmergencyContactDB.created_at)
            )
            contacts = result.scalars().all()

        return [{"id": c.id, "name": c.name, "phone": c.phone} for c in contacts]

    # ==================== TEMPLATES ====================

    async def fetch_template(self, key: str, language: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            result = await self.session.execute(
                select(SMSTemplateDB).where(
                    and_(
                        SMSTemplateDB.key == key,
                        SMSTemplateDB.language == language,
                        SMSTemplateDB.is_active.is_(True)
                    )
                )
            )
            template = result.scalar_one_or_none()

        return template.to_dict() if template else None

    async def list_templates_by_category(self, category: str, language: str) -> List[Dict[str, Any]]:
        async with self._lock:
            result = await self.session.execute(
                select(SMSTemplateDB)
                .where(
                    and_(
                        SMSTemplateDB.category == category,
                        SMSTemplateDB.language == language,
                        SMSTemplateDB.is_active.is_(True)
                    )
                )
                .order_by(SMSTemplateDB.key)
            )
            return [t.to_dict() for t in result.scalars().all()]

    async def list_template_keys(self) -> List[str]:
        async with self._lock:
            result = await self.session.execute(
                select(SMSTemplateDB.key)
                .where(SMSTemplateDB.is_active.is_(True))
                .distinct()
                .order_by(SMSTemplateDB.key)
            )
            return list(result.scalars().all())

    async def upsert_template(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or update on (key, language); returns the stored row."""
        row = {
            "key": values["key"],
            "language": values["language"],
            "content": values["content"],
            "variables": list(values.get("variables") or []),
            "category": values.get("category") or "appointment",
            "is_active": values.get("is_active", True),
        }
        if hasattr(row["category"], "value"):
            row["category"] = row["category"].value

        stmt = insert(SMSTemplateDB).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SMSTemplateDB.key, SMSTemplateDB.language],
            set_={
                "content": stmt.excluded.content,
                "variables": stmt.excluded.variables,
                "category": stmt.excluded.category,
                "is_active": stmt.excluded.is_active,
                "updated_at": stmt.excluded.updated_at,
            }
        ).returning(SMSTemplateDB).execution_options(populate_existing=True)

        async with self._lock:
            try:
                result = await self.session.execute(stmt)
                saved = result.scalar_one()
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        return saved.to_dict()

    # ==================== DELIVERY RECORDS ====================

    async def insert_delivery_log(self, record: Dict[str, Any]) -> str:
        """Append one delivery record; returns its id."""
        row = SMSCommunicationDB(**record)

        async with self._lock:
            try:
                self.session.add(row)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        return row.id

    async def list_delivery_logs(
        self,
        organization_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Delivery records of a tenant, newest first."""
        conditions = [SMSCommunicationDB.organization_id == organization_id]
        if since is not None:
            conditions.append(SMSCommunicationDB.created_at >= since)
        if until is not None:
            conditions.append(SMSCommunicationDB.created_at < until)

        query = (
            select(SMSCommunicationDB)
            .where(and_(*conditions))
            .order_by(SMSCommunicationDB.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)

        async with self._lock:
            result = await self.session.execute(query)
            return [log.to_dict() for log in result.scalars().all()]
