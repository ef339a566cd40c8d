"""
Infrastructure Tests - Configuration and Logging

Tests:
- Settings defaults and production validation
- SMS provider configuration resolved from the environment at call time
- Environment validation warnings
- JSON log formatting, request context and phone masking

Run with: pytest tests/test_infrastructure.py -v
"""

import json
import logging
import pytest

from config import Settings, load_sms_provider_config, validate_environment
from logging_config import (
    JSONFormatter,
    RequestContextFilter,
    clear_request_context,
    mask_phone,
    set_request_context,
)
from sms_integration.schema import ProviderName


SMS_ENV_VARS = [
    "SMS_PRIMARY_PROVIDER", "SMS_DEFAULT_LANGUAGE", "SMS_PROVIDER_TIMEOUT",
    "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER",
    "VONAGE_API_KEY", "VONAGE_API_SECRET", "VONAGE_PHONE_NUMBER",
]


@pytest.fixture
def clean_sms_env(monkeypatch):
    for name in SMS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    """Test Settings class."""

    def test_defaults(self, clean_sms_env):
        settings = Settings(_env_file=None)

        assert settings.SMS_PRIMARY_PROVIDER == "twilio"
        assert settings.SMS_DEFAULT_LANGUAGE == "en"
        assert settings.SMS_PROVIDER_TIMEOUT == 10.0

    def test_production_rejects_localhost_database(self):
        settings = Settings(
            _env_file=None,
            ENVIRONMENT="production",
            DATABASE_URL="postgresql+asyncpg://u:p@localhost:5432/db"
        )

        errors = settings.validate_production_config()

        assert any("localhost" in error for error in errors)

    def test_database_url_requires_asyncpg(self):
        settings = Settings(_env_file=None, DATABASE_URL="postgresql://u:p@db:5432/app")

        assert any("asyncpg" in error for error in settings.validate_production_config())

    def test_cors_origins_parsed(self):
        settings = Settings(
            _env_file=None,
            ENVIRONMENT="production",
            CORS_ORIGINS="https://app.example.com, https://admin.example.com"
        )

        assert settings.cors_origins_list == ["https://admin.example.com", "https://app.example.com"]


class TestSMSProviderConfig:
    """Test provider configuration loading."""

    def test_credentials_read_at_call_time(self, clean_sms_env):
        assert load_sms_provider_config().configured_providers() == []

        clean_sms_env.setenv("VONAGE_API_KEY", "key")
        clean_sms_env.setenv("VONAGE_API_SECRET", "secret")
        clean_sms_env.setenv("VONAGE_PHONE_NUMBER", "+15550000002")

        config = load_sms_provider_config()

        assert config.configured_providers() == [ProviderName.VONAGE]
        assert config.vonage.account_id == "key"

    def test_primary_and_timeout(self, clean_sms_env):
        clean_sms_env.setenv("SMS_PRIMARY_PROVIDER", "Vonage")
        clean_sms_env.setenv("SMS_PROVIDER_TIMEOUT", "3.5")

        config = load_sms_provider_config()

        assert config.primary == ProviderName.VONAGE
        assert config.timeout_seconds == 3.5

    def test_unknown_primary_falls_back_to_twilio(self, clean_sms_env):
        clean_sms_env.setenv("SMS_PRIMARY_PROVIDER", "carrier-pigeon")

        assert load_sms_provider_config().primary == ProviderName.TWILIO

    def test_no_provider_warning(self, clean_sms_env):
        status = validate_environment()

        assert any("No SMS provider configured" in warning for warning in status["warnings"])


class TestLogging:
    """Test structured logging helpers."""

    def make_record(self, message="hello"):
        return logging.LogRecord(
            name="sms_integration.sms_sender",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg=message,
            args=(),
            exc_info=None
        )

    def test_json_formatter(self):
        output = json.loads(JSONFormatter(service_name="serviceai-sms").format(self.make_record()))

        assert output["message"] == "hello"
        assert output["level"] == "INFO"
        assert output["service"] == "serviceai-sms"

    def test_request_context_attached(self):
        set_request_context("req-1", "org-1")
        record = self.make_record()

        try:
            RequestContextFilter().filter(record)
        finally:
            clear_request_context()
        output = json.loads(JSONFormatter().format(record))

        assert output["request_id"] == "req-1"
        assert output["organization_id"] == "org-1"
        assert "extra" not in output

    def test_cleared_context(self):
        set_request_context("req-1", "org-1")
        clear_request_context()
        record = self.make_record()

        RequestContextFilter().filter(record)

        assert record.request_id is None
        assert record.organization_id is None

    def test_extra_fields_kept(self):
        record = self.make_record()
        record.provider = "twilio"

        output = json.loads(JSONFormatter().format(record))

        assert output["extra"] == {"provider": "twilio"}

    def test_mask_phone(self):
        assert mask_phone("+15551234567") == "+15551***"
        assert mask_phone(None) == "<none>"
