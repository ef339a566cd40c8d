"""
ServiceAI - SMS Database Models

Tables:
- sms_templates: Message templates, unique per (key, language)
- sms_communications: Append-only delivery records, one per recipient per send
- customers: Tenant customers (recipient lookup by id)
- emergency_contacts: Tenant on-call contacts (emergency broadcast)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, Index, JSON, Numeric, UniqueConstraint
)

from database.connection import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ==================== TEMPLATES ====================

class SMSTemplateDB(Base):
    """
    SMS template.

    Platform-wide catalogue shared by every tenant; `variables` lists the
    placeholder names the content is expected to use.
    """
    __tablename__ = "sms_templates"
    __table_args__ = (
        UniqueConstraint("key", "language", name="uq_sms_templates_key_language"),
        Index("ix_sms_templates_category_language", "category", "language"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    key = Column(String(100), nullable=False, index=True)
    language = Column(String(5), nullable=False, default="en")
    content = Column(Text, nullable=False)
    variables = Column(JSON, nullable=False, default=list)
    category = Column(String(30), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "language": self.language,
            "content": self.content,
            "variables": list(self.variables or []),
            "category": self.category,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# ==================== DELIVERY RECORDS ====================

class SMSCommunicationDB(Base):
    """
    Delivery record.

    Written once after a recipient's provider chain completes and never
    updated; a retry produces a new row.
    """
    __tablename__ = "sms_communications"
    __table_args__ = (
        Index("ix_sms_communications_org_created", "organization_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), nullable=False, index=True)

    phone_number = Column(String(32), nullable=False)
    message_content = Column(Text, nullable=False)
    message_type = Column(String(100), nullable=False, default="manual")
    template_key = Column(String(100), nullable=True)
    variables = Column(JSON, nullable=True)
    language_code = Column(String(5), nullable=False, default="en")
    direction = Column(String(10), nullable=False, default="outbound")

    status = Column(String(20), nullable=False, index=True)
    provider = Column(String(20), nullable=True)
    external_message_id = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)
    cost = Column(Numeric(10, 4), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "phone_number": self.phone_number,
            "message_content": self.message_content,
            "message_type": self.message_type,
            "template_key": self.template_key,
            "variables": self.variables,
            "language_code": self.language_code,
            "direction": self.direction,
            "status": self.status,
            "provider": self.provider,
            "external_message_id": self.external_message_id,
            "error_message": self.error_message,
            "cost": self.cost,
            "created_at": self.created_at,
        }


# ==================== RECIPIENT SOURCES ====================

class CustomerDB(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=True)
    phone_number = Column(String(32), nullable=True)
    preferred_language = Column(String(5), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class EmergencyContactDB(Base):
    __tablename__ = "emergency_contacts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=True)
    phone = Column(String(32), nullable=False)
    sms_enabled = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
