# ABOUTME: Unit tests for configuration management
# ABOUTME: Tests settings loading, validation, and site management

import os
from unittest.mock import patch

import pytest
from pydantic import SecretStr, ValidationError

from datadog_appkey_mcp.config import (
    DEFAULT_API_URL,
    DatadogSite,
    HttpSettings,
    SecuritySettings,
    ServerSettings,
    load_settings,
)


def _site(**kwargs) -> DatadogSite:
    return DatadogSite(api_key=SecretStr("api"), app_key=SecretStr("app"), **kwargs)


@pytest.mark.unit
class TestDatadogSite:
    """Tests for DatadogSite configuration."""

    def test_default_url(self):
        """Test that the US1 API URL is the default."""
        assert _site().url == DEFAULT_API_URL

    def test_url_validation_adds_https(self):
        """Test that URL without scheme gets https added."""
        assert _site(url="api.datadoghq.eu").url == "https://api.datadoghq.eu"

    def test_url_validation_preserves_http(self):
        """Test that explicit http scheme is preserved."""
        assert _site(url="http://localhost:8126").url == "http://localhost:8126"

    def test_url_validation_removes_trailing_slash(self):
        """Test that trailing slash is removed from URL."""
        assert _site(url="https://api.us5.datadoghq.com/").url == "https://api.us5.datadoghq.com"

    def test_empty_url_falls_back_to_default(self):
        """Test that an empty URL means the default site."""
        assert _site(url="").url == DEFAULT_API_URL

    def test_defaults(self):
        """Test default name and validation flag."""
        site = _site()
        assert site.name == "default"
        assert site.validate_keys is True

    def test_keys_are_secret(self):
        """Test that keys do not leak through repr."""
        site = _site()
        assert "api" not in repr(site.api_key)
        assert site.app_key.get_secret_value() == "app"


@pytest.mark.unit
class TestHttpSettings:
    """Tests for HttpSettings configuration."""

    def test_defaults(self):
        """Test default HTTP settings."""
        settings = HttpSettings()

        assert settings.timeout == 60.0
        assert settings.retry_enabled is True
        assert settings.retry_max_attempts == 3
        assert settings.retry_backoff_multiplier == 2.0

    def test_env_prefix(self):
        """Test environment variable prefix."""
        with patch.dict(
            os.environ,
            {"DD_HTTP_CLIENT_RETRY_ENABLED": "false", "DD_HTTP_CLIENT_TIMEOUT": "5"},
        ):
            settings = HttpSettings()
            assert settings.retry_enabled is False
            assert settings.timeout == 5.0

    def test_rejects_zero_attempts(self):
        """Test that at least one attempt is required."""
        with pytest.raises(ValidationError):
            HttpSettings(retry_max_attempts=0)


@pytest.mark.unit
class TestSecuritySettings:
    """Tests for SecuritySettings configuration."""

    def test_defaults(self):
        """Test default security settings."""
        settings = SecuritySettings()

        assert settings.read_only is True
        assert settings.disable_destructive is True
        assert settings.audit_log is None
        assert settings.mask_secrets is True
        assert settings.rate_limit_calls == 100
        assert settings.rate_limit_window == 60

    def test_env_prefix(self):
        """Test environment variable prefix."""
        with patch.dict(os.environ, {"MCP_READ_ONLY": "false"}):
            settings = SecuritySettings()
            assert settings.read_only is False


@pytest.mark.unit
class TestServerSettings:
    """Tests for ServerSettings configuration."""

    def test_primary_site_from_fields(self):
        """Test primary site created from DD_* values."""
        settings = ServerSettings(
            dd_api_key=SecretStr("api"),
            dd_app_key=SecretStr("app"),
            dd_host="api.datadoghq.eu",
        )

        primary = settings.primary_site
        assert primary is not None
        assert primary.url == "https://api.datadoghq.eu"
        assert primary.name == "primary"
        assert primary.validate_keys is True

    def test_primary_site_from_env(self):
        """Test primary site read from environment aliases."""
        env = {"DD_API_KEY": "api", "DD_APP_KEY": "app", "DD_VALIDATE": "false"}
        with patch.dict(os.environ, env):
            settings = ServerSettings()

        primary = settings.primary_site
        assert primary is not None
        assert primary.api_key.get_secret_value() == "api"
        assert primary.validate_keys is False

    def test_primary_site_none_without_app_key(self):
        """Test that an API key alone is not a usable site."""
        settings = ServerSettings(dd_api_key=SecretStr("api"), dd_app_key=SecretStr(""))
        assert settings.primary_site is None

    def test_all_sites(self):
        """Test all_sites property."""
        eu = _site(url="https://api.datadoghq.eu", name="eu")
        settings = ServerSettings(
            dd_api_key=SecretStr("api"),
            dd_app_key=SecretStr("app"),
            additional_sites=[eu],
        )

        sites = settings.all_sites
        assert [s.name for s in sites] == ["primary", "eu"]

    def test_get_site_by_name(self):
        """Test getting site by name."""
        settings = ServerSettings(dd_api_key=SecretStr("api"), dd_app_key=SecretStr("app"))

        site = settings.get_site("primary")
        assert site is not None
        assert site.name == "primary"

    def test_get_site_not_found(self):
        """Test getting non-existent site."""
        settings = ServerSettings(dd_api_key=SecretStr(""), dd_app_key=SecretStr(""))
        assert settings.get_site("nonexistent") is None

    def test_defaults(self):
        """Test default log level and server name."""
        settings = ServerSettings()
        assert settings.log_level == "INFO"
        assert settings.log_json is False
        assert settings.server_name == "datadog-appkey-mcp"

    def test_invalid_log_level(self):
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            ServerSettings(log_level="VERBOSE")

    def test_load_settings_reads_env_file(self, tmp_path):
        """Test that load_settings honours the env file variable."""
        env_file = tmp_path / ".env"
        env_file.write_text("DD_API_KEY=file-api\nDD_APP_KEY=file-app\n")

        with patch.dict(os.environ, {"DATADOG_APPKEY_MCP_ENV_FILE": str(env_file)}):
            os.environ.pop("DD_API_KEY", None)
            os.environ.pop("DD_APP_KEY", None)
            settings = load_settings()

        assert settings.dd_api_key.get_secret_value() == "file-api"
        assert settings.primary_site is not None
