"""
SMS Schema - Enums and API models

Tables (see database/sms_models.py):
- sms_templates: Message templates keyed by (key, language)
- sms_communications: One delivery record per recipient per send
- customers / emergency_contacts: Recipient sources
"""

from typing import Optional, Dict, Any, List, Union
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class SMSDirection(str, Enum):
    """Direction of SMS message"""
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class SMSStatus(str, Enum):
    """Final status of a delivery record"""
    SENT = "sent"
    FAILED = "failed"


class SMSLanguage(str, Enum):
    ENGLISH = "en"
    SPANISH = "es"


class TemplateCategory(str, Enum):
    APPOINTMENT = "appointment"
    EMERGENCY = "emergency"
    REMINDER = "reminder"
    CONFIRMATION = "confirmation"
    FOLLOW_UP = "follow_up"


class SendType(str, Enum):
    """Recipient resolution mode of a send request"""
    INDIVIDUAL = "individual"
    EMERGENCY = "emergency"
    TEMPLATE = "template"


class ProviderName(str, Enum):
    TWILIO = "twilio"
    VONAGE = "vonage"


DEFAULT_LANGUAGE = SMSLanguage.ENGLISH.value

TemplateValue = Union[str, int, float, Decimal, bool, date, datetime, time, None]
TemplateData = Dict[str, TemplateValue]


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class SendSMSRequest(BaseModel):
    """
    Send request as received from webhook handlers and the web layer.

    Field names follow the camelCase wire format; snake_case is accepted too.
    Required-ness is checked by the delivery service so that malformed
    requests produce the `success: false` envelope instead of a 422.
    """
    model_config = ConfigDict(populate_by_name=True)

    type: Optional[str] = Field(None, description="individual, emergency or template")
    organization_id: Optional[str] = Field(None, alias="organizationId")
    message: Optional[str] = None
    template_key: Optional[str] = Field(None, alias="templateKey")
    template_data: TemplateData = Field(default_factory=dict, alias="templateData")
    language: Optional[str] = Field(None, description="Requested template language; defaults to SMS_DEFAULT_LANGUAGE")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    customer_id: Optional[str] = Field(None, alias="customerId")
    provider: Optional[str] = Field(None, description="Preferred provider: twilio or vonage")


class RecipientResult(BaseModel):
    """Outcome of one recipient's fallback chain"""
    recipient: str
    phone: str
    status: SMSStatus
    message_id: Optional[str] = None
    provider: Optional[str] = None
    error: Optional[str] = None


class SendSMSResponse(BaseModel):
    """Envelope returned for a well-formed send request"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    results: List[RecipientResult] = Field(default_factory=list)
    total_sent: int = Field(0, alias="totalSent")
    total_failed: int = Field(0, alias="totalFailed")


class TemplateUpsertRequest(BaseModel):
    """Template upsert payload"""
    key: str = Field(..., min_length=1)
    language: SMSLanguage
    content: str = Field(..., min_length=1, max_length=1600)
    variables: List[str] = Field(default_factory=list)
    category: TemplateCategory
    is_active: bool = True


class TemplateValidateRequest(BaseModel):
    key: str
    language: SMSLanguage = SMSLanguage.ENGLISH
    data: TemplateData = Field(default_factory=dict)


class TemplateValidationResponse(BaseModel):
    valid: bool
    missing_variables: List[str]
    extra_variables: List[str]


class TemplateTestResponse(BaseModel):
    success: bool
    formatted_message: Optional[str] = None
    error: Optional[str] = None


class SMSStatisticsResponse(BaseModel):
    """Aggregated delivery statistics for a tenant"""
    organization_id: str
    time_range: str
    total: int = 0
    sent: int = 0
    failed: int = 0
    delivery_rate: float = 0.0
    total_cost: Decimal = Decimal("0")
    by_provider: Dict[str, int] = Field(default_factory=dict)
    by_language: Dict[str, int] = Field(default_factory=dict)
    by_template: Dict[str, int] = Field(default_factory=dict)


class DeliveryLogResponse(BaseModel):
    success: bool = True
    logs: List[Dict[str, Any]] = Field(default_factory=list)
