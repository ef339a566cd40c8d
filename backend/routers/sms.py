"""
SMS Integration - API Router

Provides REST API endpoints for SMS functionality:
- POST /api/sms/send - Send SMS (individual, emergency or template)
- GET /api/sms/templates - List templates by category, plus all template keys
- POST/PUT /api/sms/templates - Create or update a template
- POST /api/sms/templates/validate - Check data against a template's variables
- POST /api/sms/templates/test - Render a template with sample data
- POST /api/sms/templates/seed - Insert missing default templates
- GET /api/sms/templates/missing-translations - Keys without an en/es row
- GET /api/sms/logs - Delivery records of a tenant
- POST /api/sms/logs/flush - Retry delivery records that failed to write
- GET /api/sms/statistics - Delivery statistics of a tenant
- GET /api/sms/status - Provider configuration status

Request-level errors are returned as {"success": false, "error": "..."}
with the status code carried by SMSRequestError.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings, load_sms_provider_config
from database import get_db
from sms_integration.delivery_tracker import DEFAULT_TIME_RANGE, SMSDeliveryTracker
from sms_integration.recipients import SMSRequestError
from sms_integration.repository import SMSRepository
from sms_integration.schema import (
    DeliveryLogResponse,
    SendSMSRequest,
    SendSMSResponse,
    SMSLanguage,
    SMSStatisticsResponse,
    TemplateTestResponse,
    TemplateUpsertRequest,
    TemplateValidateRequest,
    TemplateValidationResponse,
)
from sms_integration.sms_sender import SMSDeliveryService, unlogged_delivery_records
from sms_integration.template_engine import SMSTemplateEngine, TemplateSaveError, default_template_cache

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/sms", tags=["SMS Integration"])


# ==================== DEPENDENCIES ====================

async def get_sms_repository(db: AsyncSession = Depends(get_db)) -> SMSRepository:
    return SMSRepository(db)


async def get_template_engine(
    repository: SMSRepository = Depends(get_sms_repository)
) -> SMSTemplateEngine:
    return SMSTemplateEngine(
        repository,
        cache=default_template_cache,
        default_language=get_settings().SMS_DEFAULT_LANGUAGE
    )


async def get_delivery_service(
    repository: SMSRepository = Depends(get_sms_repository),
    engine: SMSTemplateEngine = Depends(get_template_engine)
) -> SMSDeliveryService:
    # Credentials are re-read per request
    return SMSDeliveryService(
        repository,
        engine,
        load_sms_provider_config(),
        unlogged_records=unlogged_delivery_records
    )


async def get_delivery_tracker(
    repository: SMSRepository = Depends(get_sms_repository)
) -> SMSDeliveryTracker:
    return SMSDeliveryTracker(repository)


def error_response(error: SMSRequestError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.message}
    )


# ==================== SENDING ====================

@router.post("/send", response_model=SendSMSResponse)
async def send_sms(
    request: SendSMSRequest,
    service: SMSDeliveryService = Depends(get_delivery_service)
):
    """
    Send an SMS to one recipient or an emergency contact list.

    **Request Body (camelCase):**
    - `type`: individual, emergency or template
    - `organizationId`: Tenant id
    - `message`: Message text (individual/emergency)
    - `templateKey` / `templateData` / `language`: Template send
    - `phoneNumber` or `customerId`: Recipient (individual/template)
    - `provider`: Optional preferred provider (twilio, vonage)

    **Response:**
    - `results`: One entry per recipient with status, provider and message id
    - `totalSent` / `totalFailed`
    """
    try:
        return await service.send(request)
    except SMSRequestError as e:
        logger.warning(f"SMS send rejected: {e.message}")
        return error_response(e)


# ==================== TEMPLATES ====================

@router.get("/templates")
async def list_templates(
    category: Optional[str] = Query(None, description="Template category"),
    language: SMSLanguage = Query(SMSLanguage.ENGLISH),
    engine: SMSTemplateEngine = Depends(get_template_engine)
):
    """List templates of a category and the keys of every active template."""
    templates = []
    if category:
        templates = [
            template.to_dict()
            for template in await engine.get_templates_by_category(category, language.value)
        ]

    return {
        "success": True,
        "templates": templates,
        "keys": await engine.get_template_keys(),
    }


@router.post("/templates")
@router.put("/templates")
async def upsert_template(
    request: TemplateUpsertRequest,
    engine: SMSTemplateEngine = Depends(get_template_engine)
):
    """Create or update a template on its (key, language) pair."""
    try:
        template = await engine.save_template(request.model_dump())
    except TemplateSaveError as e:
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {"success": True, "template": template.to_dict()}


@router.post("/templates/validate", response_model=TemplateValidationResponse)
async def validate_template(
    request: TemplateValidateRequest,
    engine: SMSTemplateEngine = Depends(get_template_engine)
):
    template = await engine.get_template_with_fallback(request.key, request.language.value)
    if template is None:
        return error_response(SMSRequestError(f"Template {request.key} not found", status_code=404))

    return engine.validate_template_data(template, request.data).to_dict()


@router.post("/templates/test", response_model=TemplateTestResponse)
async def render_template_sample(
    request: TemplateValidateRequest,
    engine: SMSTemplateEngine = Depends(get_template_engine)
):
    result = await engine.test_template(request.key, request.language.value, request.data)
    return TemplateTestResponse(
        success=result.success,
        formatted_message=result.formatted_message,
        error=result.error
    )


@router.post("/templates/seed")
async def seed_templates(engine: SMSTemplateEngine = Depends(get_template_engine)):
    """Insert every default template that does not exist yet."""
    counts = await engine.seed_default_templates()
    logger.info(f"Default SMS templates seeded: {counts}")
    return {"success": counts["failed"] == 0, **counts}


@router.get("/templates/missing-translations")
async def missing_translations(engine: SMSTemplateEngine = Depends(get_template_engine)):
    return {"success": True, "missing": await engine.find_missing_translations()}


# ==================== DELIVERY RECORDS ====================

@router.get("/logs", response_model=DeliveryLogResponse)
async def get_logs(
    organization_id: str = Query(..., description="Tenant id"),
    limit: int = Query(100, ge=1, le=1000),
    day: Optional[date] = Query(None, alias="date", description="UTC day (YYYY-MM-DD)"),
    tracker: SMSDeliveryTracker = Depends(get_delivery_tracker)
):
    try:
        logs = await tracker.get_delivery_logs(organization_id, limit=limit, day=day)
    except SMSRequestError as e:
        return error_response(e)

    return DeliveryLogResponse(success=True, logs=logs)


@router.post("/logs/flush")
async def flush_logs(service: SMSDeliveryService = Depends(get_delivery_service)):
    """Retry writing delivery records that previously failed to persist."""
    written = await service.flush_unlogged_records()
    return {"success": True, "written": written, "pending": len(service.unlogged_records)}


@router.get("/statistics", response_model=SMSStatisticsResponse)
async def get_statistics(
    organization_id: str = Query(..., description="Tenant id"),
    time_range: str = Query(DEFAULT_TIME_RANGE, description="1h, 24h, 7d or 30d"),
    tracker: SMSDeliveryTracker = Depends(get_delivery_tracker)
):
    try:
        return await tracker.get_delivery_statistics(organization_id, time_range)
    except SMSRequestError as e:
        return error_response(e)


@router.get("/status")
async def get_sms_status():
    """Which providers have complete credentials (no secrets exposed)."""
    config = load_sms_provider_config()
    configured = [provider.value for provider in config.configured_providers()]

    return {
        "configured": bool(configured),
        "primary_provider": config.primary.value,
        "configured_providers": configured,
        "pending_delivery_records": len(unlogged_delivery_records),
    }
