"""
SMS Sender - Multi-Provider Delivery Service

This module turns a send request into delivered messages and delivery
records.

Flow per request:
1. Validate the request and resolve the message body (caller text or
   rendered template, with default-language fallback)
2. Resolve recipients (phone, customer lookup or emergency broadcast)
3. Per recipient, concurrently: try the preferred provider, then the
   alternate; the first success wins
4. Write exactly one delivery record per recipient (sent or failed)

Steps 1-2 raise SMSRequestError and stop before any provider call. From
step 3 on, failures are captured in that recipient's result and never
raised.
"""

import asyncio
import logging
from collections import deque
from decimal import Decimal
from typing import Any, Deque, Dict, List, Optional, Tuple
from dataclasses import dataclass, asdict

from logging_config import mask_phone
from .recipients import Recipient, RecipientResolver, SMSRequestError
from .schema import (
    ProviderName,
    RecipientResult,
    SendSMSRequest,
    SendSMSResponse,
    SendType,
    SMSDirection,
    SMSStatus,
    TemplateData,
)
from .sms_client import BaseSMSProvider, SMSProviderConfig, SMSResult, build_providers, normalize_phone_number
from .template_engine import SMSTemplateEngine, stringify_template_value

logger = logging.getLogger(__name__)


# Flat per-message cost estimate, by the provider that sent it
PROVIDER_COSTS: Dict[ProviderName, Decimal] = {
    ProviderName.TWILIO: Decimal("0.0075"),
    ProviderName.VONAGE: Decimal("0.005"),
}

MAX_UNLOGGED_RECORDS = 1000

# Process-wide dead-letter buffer for delivery records that could not be written
unlogged_delivery_records: Deque["DeliveryRecord"] = deque(maxlen=MAX_UNLOGGED_RECORDS)


# ==================== DATA CLASSES ====================

@dataclass
class DeliveryRecord:
    """One recipient's final outcome, persisted to sms_communications."""
    organization_id: str
    phone_number: str
    message_content: str
    message_type: str
    language_code: str
    status: SMSStatus
    direction: SMSDirection = SMSDirection.OUTBOUND
    provider: Optional[str] = None
    external_message_id: Optional[str] = None
    error_message: Optional[str] = None
    template_key: Optional[str] = None
    variables: Optional[Dict[str, str]] = None
    cost: Optional[Decimal] = None

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["status"] = self.status.value
        row["direction"] = self.direction.value
        return row


@dataclass
class PreparedSend:
    """A validated request: body and recipients are final."""
    send_type: SendType
    organization_id: str
    message: str
    language: str
    recipients: List[Recipient]
    providers: List[ProviderName]
    template_key: Optional[str] = None
    template_data: Optional[TemplateData] = None


# ==================== DELIVERY SERVICE ====================

class SMSDeliveryService:
    """
    Delivers one message to one or more recipients with provider fallback.

    Usage:
        service = SMSDeliveryService(repository, SMSTemplateEngine(repository), config)
        response = await service.send(SendSMSRequest(type='individual', ...))
    """

    def __init__(
        self,
        store,
        template_engine: SMSTemplateEngine,
        config: SMSProviderConfig,
        providers: Optional[Dict[ProviderName, BaseSMSProvider]] = None,
        resolver: Optional[RecipientResolver] = None,
        unlogged_records: Optional[Deque[DeliveryRecord]] = None
    ):
        self.store = store
        self.template_engine = template_engine
        self.config = config
        self.providers = providers if providers is not None else build_providers(config)
        self.resolver = resolver or RecipientResolver(store)
        self.unlogged_records: Deque[DeliveryRecord] = (
            unlogged_records if unlogged_records is not None else deque(maxlen=MAX_UNLOGGED_RECORDS)
        )

    # ---------- request handling ----------

    async def send(self, request: SendSMSRequest) -> SendSMSResponse:
        """
        Send a request and aggregate per-recipient outcomes.

        Raises:
            SMSRequestError: the request is malformed or cannot be resolved
        """
        prepared = await self.prepare(request)

        logger.info(
            f"SMS {prepared.send_type.value} for organization {prepared.organization_id}: "
            f"{len(prepared.recipients)} recipient(s), providers={[p.value for p in prepared.providers]}"
        )

        results = await asyncio.gather(*[
            self.deliver_to_recipient(recipient, prepared)
            for recipient in prepared.recipients
        ])

        sent = sum(1 for result in results if result.status == SMSStatus.SENT)
        failed = len(results) - sent

        return SendSMSResponse(
            success=True,
            message=f"SMS {prepared.send_type.value} completed: {sent} sent, {failed} failed",
            results=list(results),
            total_sent=sent,
            total_failed=failed
        )

    async def prepare(self, request: SendSMSRequest) -> PreparedSend:
        """Validate the request, build the message body and resolve recipients."""
        if not request.organization_id:
            raise SMSRequestError("Organization ID is required")

        try:
            send_type = SendType(request.type)
        except ValueError:
            raise SMSRequestError("Valid type is required: individual, emergency, or template")

        providers = self.provider_chain(request.provider)
        message, language = await self._resolve_message(send_type, request)

        recipients = await self.resolver.resolve(
            send_type,
            request.organization_id,
            phone_number=request.phone_number,
            customer_id=request.customer_id
        )

        if not message or not message.strip():
            raise SMSRequestError("No message content")

        return PreparedSend(
            send_type=send_type,
            organization_id=request.organization_id,
            message=message,
            language=language,
            recipients=recipients,
            providers=providers,
            template_key=request.template_key,
            template_data=dict(request.template_data or {})
        )

    def provider_chain(self, preferred: Optional[str] = None) -> List[ProviderName]:
        """Preferred (or configured primary) provider first, then the alternate."""
        if preferred:
            try:
                first = ProviderName(preferred.strip().lower())
            except ValueError:
                raise SMSRequestError(f"Unknown SMS provider: {preferred}")
        else:
            first = self.config.primary

        return [first] + [provider for provider in ProviderName if provider != first]

    async def _resolve_message(self, send_type: SendType, request: SendSMSRequest) -> Tuple[str, str]:
        language = request.language or self.template_engine.default_language

        if send_type == SendType.TEMPLATE and not request.template_key:
            raise SMSRequestError("Template key is required for template SMS")

        if send_type != SendType.TEMPLATE and request.message:
            return request.message, language

        if not request.template_key:
            raise SMSRequestError("Message or template key is required")

        template = await self.template_engine.get_template_with_fallback(request.template_key, language)
        if template is None:
            raise SMSRequestError(f"Template {request.template_key} not found", status_code=404)

        data = request.template_data or {}
        validation = self.template_engine.validate_template_data(template, data)
        if validation.extra_variables:
            logger.debug(f"Template {template.key} ignores variables: {validation.extra_variables}")

        return self.template_engine.format_template(template, data), template.language

    # ---------- per-recipient delivery ----------

    async def deliver_to_recipient(self, recipient: Recipient, prepared: PreparedSend) -> RecipientResult:
        """
        Run the provider chain for one recipient and record the outcome.

        Never raises; any failure ends up in the returned result.
        """
        record = DeliveryRecord(
            organization_id=prepared.organization_id,
            phone_number=recipient.phone,
            message_content=prepared.message,
            message_type=prepared.template_key or "manual",
            language_code=prepared.language,
            status=SMSStatus.FAILED,
            template_key=prepared.template_key,
            variables={
                name: stringify_template_value(value)
                for name, value in (prepared.template_data or {}).items()
            } or None
        )

        if not recipient.phone:
            error = "Contact has no phone number"
            logger.warning(f"Skipping {recipient.display_name or 'unnamed contact'}: {error}")
            record.error_message = error
            await self._record_delivery(record)
            return RecipientResult(
                recipient=recipient.display_name,
                phone=recipient.phone,
                status=SMSStatus.FAILED,
                error=error
            )

        phone = normalize_phone_number(recipient.phone)
        result, sent_by, errors = await self._attempt_providers(phone, prepared.message, prepared.providers)

        if result is not None:
            record.status = SMSStatus.SENT
            record.provider = sent_by.value
            record.external_message_id = result.message_id
            record.cost = PROVIDER_COSTS.get(sent_by)
            await self._record_delivery(record)
            return RecipientResult(
                recipient=recipient.display_name,
                phone=recipient.phone,
                status=SMSStatus.SENT,
                message_id=result.message_id,
                provider=sent_by.value
            )

        error = "All SMS providers failed. " + " | ".join(errors)
        logger.error(f"SMS to {mask_phone(phone)} failed on every provider: {error}")
        record.error_message = error
        await self._record_delivery(record)
        return RecipientResult(
            recipient=recipient.display_name,
            phone=recipient.phone,
            status=SMSStatus.FAILED,
            error=error
        )

    async def _attempt_providers(
        self,
        phone: str,
        message: str,
        chain: List[ProviderName]
    ) -> Tuple[Optional[SMSResult], Optional[ProviderName], List[str]]:
        """
        Try providers in order; stop at the first success.

        Returns the successful result and the provider that produced it
        (both None when every provider failed), plus the error of every
        provider that was tried or skipped.
        """
        errors: List[str] = []

        for name in chain:
            provider = self.providers.get(name)
            if provider is None or not provider.is_configured():
                errors.append(f"{name.value}: configuration incomplete")
                logger.warning(f"Skipping {name.value}: credentials not configured")
                continue

            try:
                result = await provider.send_sms(phone, message)
            except Exception as e:
                logger.exception(f"{name.value} provider raised for {mask_phone(phone)}")
                result = SMSResult(success=False, provider=name.value, error=str(e))

            if result.success:
                if errors:
                    logger.info(f"SMS to {mask_phone(phone)} delivered by fallback provider {name.value}")
                return result, name, errors

            errors.append(f"{name.value}: {result.error or 'unknown error'}")
            logger.warning(f"{name.value} failed for {mask_phone(phone)}: {result.error}")

        return None, None, errors

    # ---------- delivery records ----------

    async def _record_delivery(self, record: DeliveryRecord) -> None:
        """
        Persist a delivery record.

        A write failure does not change the send outcome; the record is kept
        in `unlogged_records` for flush_unlogged_records().
        """
        try:
            await self.store.insert_delivery_log(record.to_row())
        except Exception as e:
            logger.error(
                f"Failed to write delivery record for {mask_phone(record.phone_number)} "
                f"(status={record.status.value}): {e}"
            )
            self.unlogged_records.append(record)

    async def flush_unlogged_records(self) -> int:
        """
        Retry writing parked records. Returns how many were written.

        The buffer is detached before the first write, so concurrent flushes
        never retry the same record. Records that still fail go back to the
        buffer.
        """
        pending: List[DeliveryRecord] = []
        while self.unlogged_records:
            pending.append(self.unlogged_records.popleft())

        written = 0
        for record in pending:
            try:
                await self.store.insert_delivery_log(record.to_row())
            except Exception as e:
                logger.warning(f"Delivery record still not writable: {e}")
                self.unlogged_records.append(record)
                continue
            written += 1

        if written:
            logger.info(f"Flushed {written} parked delivery record(s)")
        return written
