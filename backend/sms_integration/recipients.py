"""
Recipient Resolution

Turns a send request into the list of phones to deliver to. Resolution runs
before any provider call and either fully succeeds or raises SMSRequestError;
nothing is sent and nothing is logged for a request that fails here.

Modes (chosen by request type):
- individual / template with phone number: pass-through
- individual / template with customer id: tenant customer lookup
- emergency: every active, SMS-enabled emergency contact of the tenant,
  including contacts with no phone number (delivery records them as failed)
"""

import logging
from typing import List, Optional
from dataclasses import dataclass

from .schema import SendType

logger = logging.getLogger(__name__)


class SMSRequestError(Exception):
    """
    Request-level input error.

    Aborts the whole send; `status_code` follows HTTP semantics (400 bad
    input, 404 unknown customer or template).
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class Recipient:
    """Transient delivery target. Not persisted."""
    phone: str
    organization_id: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.phone


class RecipientResolver:
    """
    Resolves recipients through the tenant store.

    The store needs get_customer(organization_id, customer_id) and
    get_emergency_contacts(organization_id), both returning mappings.
    """

    def __init__(self, store):
        self.store = store

    async def resolve(
        self,
        send_type: SendType,
        organization_id: str,
        phone_number: Optional[str] = None,
        customer_id: Optional[str] = None
    ) -> List[Recipient]:
        if not organization_id:
            raise SMSRequestError("Organization ID is required")

        if send_type == SendType.EMERGENCY:
            recipients = await self.emergency_contacts(organization_id)
        else:
            recipients = [await self.individual(organization_id, phone_number, customer_id, send_type)]

        if not recipients:
            raise SMSRequestError("No recipients found")

        return recipients

    async def individual(
        self,
        organization_id: str,
        phone_number: Optional[str],
        customer_id: Optional[str],
        send_type: SendType = SendType.INDIVIDUAL
    ) -> Recipient:
        """Single recipient by explicit phone number, else by customer id."""
        if phone_number and phone_number.strip():
            return Recipient(phone=phone_number.strip(), organization_id=organization_id)

        if customer_id:
            return await self.customer(organization_id, customer_id)

        raise SMSRequestError(f"Phone number or customer ID is required for {send_type.value} SMS")

    async def customer(self, organization_id: str, customer_id: str) -> Recipient:
        customer = await self.store.get_customer(organization_id, customer_id)
        if not customer:
            raise SMSRequestError("Customer not found", status_code=404)

        phone = (customer.get("phone_number") or "").strip()
        if not phone:
            raise SMSRequestError("Customer has no phone number")

        return Recipient(phone=phone, name=customer.get("name"), organization_id=organization_id)

    async def emergency_contacts(self, organization_id: str) -> List[Recipient]:
        contacts = await self.store.get_emergency_contacts(organization_id)
        if not contacts:
            raise SMSRequestError("No emergency contacts found")

        # Contacts without a phone stay in the list and end as failed records
        recipients = [
            Recipient(
                phone=(contact.get("phone") or "").strip(),
                name=contact.get("name"),
                organization_id=organization_id
            )
            for contact in contacts
        ]
        missing = sum(1 for recipient in recipients if not recipient.phone)
        if missing:
            logger.warning(f"Emergency broadcast for {organization_id}: {missing} contact(s) have no phone number")
        logger.info(f"Emergency broadcast for {organization_id}: {len(recipients)} contacts")
        return recipients
