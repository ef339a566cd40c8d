"""
SMS Integration Module

Bilingual SMS templates and multi-provider delivery (Twilio, Vonage).

Usage:
    from sms_integration import SMSDeliveryService, SMSTemplateEngine, SendSMSRequest
    from sms_integration.repository import SMSRepository

    repository = SMSRepository(db)
    engine = SMSTemplateEngine(repository)
    service = SMSDeliveryService(repository, engine, load_sms_provider_config())

    response = await service.send(SendSMSRequest(
        type='template',
        organizationId=org_id,
        templateKey='appointment_reminder',
        templateData={'customer_name': 'Jane', 'time': '10:00'},
        phoneNumber='+15551234567',
        language='es',
    ))

Environment Variables:
    SMS_PRIMARY_PROVIDER: twilio or vonage (default: twilio)
    SMS_DEFAULT_LANGUAGE: Fallback template language (default: en)
    SMS_PROVIDER_TIMEOUT: Per-call provider timeout in seconds (default: 10)
    TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_PHONE_NUMBER
    VONAGE_API_KEY / VONAGE_API_SECRET / VONAGE_PHONE_NUMBER

The repository is not re-exported here: it imports the database package,
which imports config, which imports this package.
"""

from .schema import (
    ProviderName,
    RecipientResult,
    SendSMSRequest,
    SendSMSResponse,
    SendType,
    SMSLanguage,
    SMSStatus,
    TemplateCategory,
)
from .sms_client import (
    ProviderCredentials,
    SMSProviderConfig,
    SMSResult,
    TwilioSMSProvider,
    VonageSMSProvider,
    build_providers,
    normalize_phone_number,
)
from .template_engine import (
    SMSTemplate,
    SMSTemplateEngine,
    TemplateSaveError,
    default_template_cache,
)
from .recipients import Recipient, RecipientResolver, SMSRequestError
from .sms_sender import SMSDeliveryService, PROVIDER_COSTS
from .delivery_tracker import SMSDeliveryTracker
from .default_templates import DEFAULT_TEMPLATES

__all__ = [
    'ProviderName',
    'RecipientResult',
    'SendSMSRequest',
    'SendSMSResponse',
    'SendType',
    'SMSLanguage',
    'SMSStatus',
    'TemplateCategory',
    'ProviderCredentials',
    'SMSProviderConfig',
    'SMSResult',
    'TwilioSMSProvider',
    'VonageSMSProvider',
    'build_providers',
    'normalize_phone_number',
    'SMSTemplate',
    'SMSTemplateEngine',
    'TemplateSaveError',
    'default_template_cache',
    'Recipient',
    'RecipientResolver',
    'SMSRequestError',
    'SMSDeliveryService',
    'PROVIDER_COSTS',
    'SMSDeliveryTracker',
    'DEFAULT_TEMPLATES',
]
