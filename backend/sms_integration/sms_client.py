"""
SMS Client - Provider Implementations

Two interchangeable SMS gateways behind one contract: submit a message and
get back a message id or an error.

- TwilioSMSProvider: official Twilio SDK with its async HTTP client
- VonageSMSProvider: Vonage (Nexmo) SMS REST API via httpx

Providers never raise for delivery problems; they return an SMSResult.
A provider whose credentials are incomplete is reported as unconfigured and
is never called with partial credentials.

Usage:
    provider = TwilioSMSProvider(config.twilio)
    if provider.is_configured():
        result = await provider.send_sms('+15551234567', 'Hello!')
"""

import re
import logging
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx
from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioRestException
from twilio.http.async_http_client import AsyncTwilioHttpClient

from logging_config import mask_phone
from .schema import ProviderName

logger = logging.getLogger(__name__)


VONAGE_SMS_URL = "https://rest.nexmo.com/sms/json"


# ==================== CONFIGURATION ====================

@dataclass(frozen=True)
class ProviderCredentials:
    """Credential set for one provider: account id, auth token, sender number."""
    account_id: str = ""
    auth_token: str = ""
    sender_number: str = ""

    def is_configured(self) -> bool:
        return all(
            value and value.strip()
            for value in (self.account_id, self.auth_token, self.sender_number)
        )


@dataclass(frozen=True)
class SMSProviderConfig:
    """Explicit provider configuration handed to the delivery service."""
    twilio: ProviderCredentials = field(default_factory=ProviderCredentials)
    vonage: ProviderCredentials = field(default_factory=ProviderCredentials)
    primary: ProviderName = ProviderName.TWILIO
    timeout_seconds: float = 10.0

    def credentials_for(self, provider: ProviderName) -> ProviderCredentials:
        return self.twilio if provider == ProviderName.TWILIO else self.vonage

    def configured_providers(self) -> List[ProviderName]:
        return [p for p in ProviderName if self.credentials_for(p).is_configured()]


@dataclass
class SMSResult:
    """Result of one provider attempt"""
    success: bool
    provider: Optional[str] = None
    message_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[int] = None
    sent_at: Optional[datetime] = None


# ==================== PHONE NUMBERS ====================

def normalize_phone_number(phone: str) -> str:
    """
    Normalize a phone number to dialable international format.

    - 10 digits: assumed North American, prefixed with +1
    - 11 digits starting with 1: prefixed with +
    - more than 10 digits: prefixed with +
    - anything else is returned unchanged
    """
    if not phone:
        return phone

    cleaned = re.sub(r'\D', '', phone)

    if len(cleaned) == 10:
        return f"+1{cleaned}"

    if len(cleaned) == 11 and cleaned.startswith('1'):
        return f"+{cleaned}"

    if len(cleaned) > 10:
        return f"+{cleaned}"

    return phone


# ==================== PROVIDERS ====================

class BaseSMSProvider:
    """Common contract for SMS gateways."""

    name: ProviderName

    def __init__(self, credentials: ProviderCredentials, timeout_seconds: float = 10.0):
        self.credentials = credentials
        self.timeout_seconds = timeout_seconds

    def is_configured(self) -> bool:
        return self.credentials.is_configured()

    async def send_sms(self, to: str, message: str) -> SMSResult:
        raise NotImplementedError

    def _not_configured(self) -> SMSResult:
        return SMSResult(
            success=False,
            provider=self.name.value,
            error=f"{self.name.value.title()} configuration incomplete",
            error_code=503
        )


class TwilioSMSProvider(BaseSMSProvider):
    """
    Twilio provider.

    Uses the SDK's async HTTP client so the event loop is never blocked. A
    pre-built client can be injected (tests, connection reuse); otherwise one
    is created and closed per send.
    """

    name = ProviderName.TWILIO

    def __init__(
        self,
        credentials: ProviderCredentials,
        timeout_seconds: float = 10.0,
        client: Optional[TwilioClient] = None
    ):
        super().__init__(credentials, timeout_seconds)
        self._client = client

    async def send_sms(self, to: str, message: str) -> SMSResult:
        if not self.is_configured():
            return self._not_configured()

        if self._client is not None:
            return await self._create_message(self._client, to, message)

        http_client = AsyncTwilioHttpClient(timeout=self.timeout_seconds)
        try:
            client = TwilioClient(
                self.credentials.account_id,
                self.credentials.auth_token,
                http_client=http_client
            )
            return await self._create_message(client, to, message)
        finally:
            await http_client.close()

    async def _create_message(self, client: TwilioClient, to: str, message: str) -> SMSResult:
        try:
            twilio_message = await client.messages.create_async(
                body=message,
                from_=self.credentials.sender_number,
                to=to
            )
        except TwilioRestException as e:
            logger.warning(f"Twilio API error for {mask_phone(to)}: HTTP {e.status} - {e.msg}")
            return SMSResult(
                success=False,
                provider=self.name.value,
                error=f"Twilio failed: HTTP {e.status}: {e.msg}",
                error_code=e.status
            )
        except Exception as e:
            logger.warning(f"Unexpected Twilio error for {mask_phone(to)}: {e}")
            return SMSResult(
                success=False,
                provider=self.name.value,
                error=f"Twilio error: {e}",
                error_code=500
            )

        logger.info(f"Twilio accepted SMS {twilio_message.sid} to {mask_phone(to)}")
        return SMSResult(
            success=True,
            provider=self.name.value,
            message_id=twilio_message.sid,
            status=twilio_message.status,
            sent_at=datetime.now(timezone.utc)
        )


class VonageSMSProvider(BaseSMSProvider):
    """
    Vonage (Nexmo) provider over the legacy SMS REST API.

    The API answers 200 for most rejections; the per-message `status` field
    must be "0" for the message to count as accepted.
    """

    name = ProviderName.VONAGE

    def __init__(
        self,
        credentials: ProviderCredentials,
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = VONAGE_SMS_URL
    ):
        super().__init__(credentials, timeout_seconds)
        self._http_client = http_client
        self.base_url = base_url

    async def send_sms(self, to: str, message: str) -> SMSResult:
        if not self.is_configured():
            return self._not_configured()

        form = {
            'api_key': self.credentials.account_id,
            'api_secret': self.credentials.auth_token,
            'to': to,
            'from': self.credentials.sender_number,
            'text': message
        }

        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.base_url, data=form)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(self.base_url, data=form)
        except httpx.TimeoutException:
            return SMSResult(
                success=False,
                provider=self.name.value,
                error="Vonage request timed out",
                error_code=504
            )
        except httpx.HTTPError as e:
            return SMSResult(
                success=False,
                provider=self.name.value,
                error=f"Vonage connection error: {str(e)[:100]}",
                error_code=502
            )

        if not response.is_success:
            logger.warning(f"Vonage HTTP {response.status_code} for {mask_phone(to)}")
            return SMSResult(
                success=False,
                provider=self.name.value,
                error=f"Vonage failed: HTTP {response.status_code}: {response.text[:200]}",
                error_code=response.status_code
            )

        return self._parse_response(response, to)

    def _parse_response(self, response: httpx.Response, to: str) -> SMSResult:
        try:
            data: Dict[str, Any] = response.json()
        except ValueError:
            return SMSResult(
                success=False,
                provider=self.name.value,
                error="Vonage error: malformed response body",
                error_code=502
            )

        messages = data.get('messages') or []
        if messages:
            first = messages[0]
            if str(first.get('status')) == '0':
                message_id = first.get('message-id')
                logger.info(f"Vonage accepted SMS {message_id} to {mask_phone(to)}")
                return SMSResult(
                    success=True,
                    provider=self.name.value,
                    message_id=message_id,
                    status='sent',
                    sent_at=datetime.now(timezone.utc)
                )
            return SMSResult(
                success=False,
                provider=self.name.value,
                error=f"Vonage error: {first.get('error-text') or 'Unknown error'}",
                error_code=response.status_code
            )

        if data.get('message_id'):
            return SMSResult(
                success=True,
                provider=self.name.value,
                message_id=str(data['message_id']),
                status='sent',
                sent_at=datetime.now(timezone.utc)
            )

        return SMSResult(
            success=False,
            provider=self.name.value,
            error="Vonage error: response contained no message",
            error_code=502
        )


def build_providers(config: SMSProviderConfig) -> Dict[ProviderName, BaseSMSProvider]:
    """Create one provider instance per supported gateway."""
    return {
        ProviderName.TWILIO: TwilioSMSProvider(config.twilio, config.timeout_seconds),
        ProviderName.VONAGE: VonageSMSProvider(config.vonage, config.timeout_seconds),
    }
