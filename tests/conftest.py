# ABOUTME: Pytest fixtures and configuration for Datadog Application Key MCP Server tests
# ABOUTME: Provides shared fixtures for unit and integration tests

import os
from typing import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from datadog_appkey_mcp.config import DatadogSite, HttpSettings, SecuritySettings, ServerSettings
from datadog_appkey_mcp.utils.client import ApplicationKey, DatadogClient
from datadog_appkey_mcp.utils.safety import SafetyGuard

APP_KEY_ID = "11111111-2222-3333-4444-555555555555"


@pytest.fixture
def mock_datadog_site() -> DatadogSite:
    """Create a Datadog site configuration."""
    return DatadogSite(
        url="https://api.datadoghq.com",
        api_key=SecretStr("test-api-key"),
        app_key=SecretStr("test-app-key"),
        name="test",
        validate_keys=False,
    )


@pytest.fixture
def fast_http_settings() -> HttpSettings:
    """HTTP settings with retries but no backoff delay."""
    return HttpSettings(
        timeout=5.0,
        retry_enabled=True,
        retry_max_attempts=3,
        retry_backoff_multiplier=0,
    )


@pytest.fixture
def mock_security_settings() -> SecuritySettings:
    """Create security settings for testing."""
    return SecuritySettings(
        read_only=False,
        disable_destructive=False,
        audit_log=None,
        mask_secrets=True,
        rate_limit_calls=100,
        rate_limit_window=60,
    )


@pytest.fixture
def read_only_security_settings() -> SecuritySettings:
    """Create read-only security settings for testing."""
    return SecuritySettings(
        read_only=True,
        disable_destructive=True,
        audit_log=None,
        mask_secrets=True,
        rate_limit_calls=100,
        rate_limit_window=60,
    )


@pytest.fixture
def mock_server_settings(
    mock_datadog_site: DatadogSite,
    mock_security_settings: SecuritySettings,
) -> ServerSettings:
    """Create mock server settings."""
    return ServerSettings(
        dd_api_key=mock_datadog_site.api_key,
        dd_app_key=mock_datadog_site.app_key,
        dd_host=mock_datadog_site.url,
        dd_validate=False,
        security=mock_security_settings,
    )


@pytest.fixture
def safety_guard(mock_security_settings: SecuritySettings) -> SafetyGuard:
    """Create a safety guard for testing."""
    return SafetyGuard(mock_security_settings)


@pytest.fixture
def read_only_safety_guard(read_only_security_settings: SecuritySettings) -> SafetyGuard:
    """Create a read-only safety guard for testing."""
    return SafetyGuard(read_only_security_settings)


@pytest.fixture
def sample_app_key() -> ApplicationKey:
    """Create a full application key (with its value) for testing."""
    return ApplicationKey(
        id=APP_KEY_ID,
        name="ci-deployer",
        key="0123456789abcdef0123456789abcdef01234567",
        last4="4567",
        created_at="2026-01-15T10:30:00.000000+00:00",
        scopes=None,
        owner_id="user-1",
    )


@pytest.fixture
def partial_app_key() -> ApplicationKey:
    """Create a partial application key, as returned by the list endpoint."""
    return ApplicationKey(
        id=APP_KEY_ID,
        name="ci-deployer",
        key=None,
        last4="4567",
        created_at="2026-01-15T10:30:00.000000+00:00",
    )


@pytest.fixture
def mock_datadog_client(
    mock_datadog_site: DatadogSite,
    sample_app_key: ApplicationKey,
    partial_app_key: ApplicationKey,
) -> AsyncMock:
    """Create a mock Datadog client."""
    client = AsyncMock(spec=DatadogClient)
    client._site = mock_datadog_site

    client.create_current_user_application_key.return_value = sample_app_key
    client.get_current_user_application_key.return_value = sample_app_key
    client.update_current_user_application_key.return_value = sample_app_key
    client.delete_current_user_application_key.return_value = None
    client.list_current_user_application_keys.return_value = [partial_app_key]
    client.validate_api_key.return_value = True

    return client


@pytest.fixture
def mock_context() -> MagicMock:
    """Create a mock MCP context."""
    ctx = MagicMock()
    ctx.request_id = "test-request-123"
    ctx.report_progress = AsyncMock()
    return ctx


# Integration test fixtures


@pytest.fixture
def dd_api_key() -> str | None:
    """Get Datadog API key from environment."""
    return os.environ.get("DD_API_KEY")


@pytest.fixture
def dd_app_key() -> str | None:
    """Get Datadog application key from environment."""
    return os.environ.get("DD_APP_KEY")


@pytest.fixture
def dd_host() -> str:
    """Get Datadog API URL from environment."""
    return os.environ.get("DD_HOST", "https://api.datadoghq.com")


@pytest.fixture
async def live_datadog_client(
    dd_api_key: str | None,
    dd_app_key: str | None,
    dd_host: str,
) -> AsyncIterator[DatadogClient | None]:
    """Create a live Datadog client for integration tests."""
    if not dd_api_key or not dd_app_key:
        yield None
        return

    site = DatadogSite(
        url=dd_host,
        api_key=SecretStr(dd_api_key),
        app_key=SecretStr(dd_app_key),
        name="integration-test",
    )
    client = DatadogClient(site)

    async with client:
        yield client
