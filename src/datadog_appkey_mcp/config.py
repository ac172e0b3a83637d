# ABOUTME: Configuration management for the Datadog Application Key MCP Server
# ABOUTME: Handles environment variables, credentials, HTTP retry, and security modes

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module handles all configuration for the server. It:

1. READS environment variables (like DD_API_KEY, DD_HOST, MCP_READ_ONLY)
2. VALIDATES them (URLs get a scheme, booleans are booleans, etc.)
3. PROVIDES typed access to settings throughout the application

=============================================================================
ARCHITECTURE: FOUR CONFIGURATION CLASSES
=============================================================================

1. DatadogSite: Configuration for ONE Datadog organization/site
   - API URL, API key, application key, name, credential validation
   - Several sites can be configured (e.g. US1 and EU orgs)

2. HttpSettings: HTTP client behaviour (DD_HTTP_CLIENT_* prefix)
   - Timeout and retry policy for the Datadog API

3. SecuritySettings: Security-related settings (MCP_* prefix)
   - Read-only mode, destructive ops, secret masking, rate limiting

4. ServerSettings: Main configuration container
   - Primary site from DD_* environment variables
   - Additional sites for multi-org setups
   - Log level, server name
   - Contains HttpSettings and SecuritySettings as nested objects

=============================================================================
ENVIRONMENT VARIABLE MAPPING
=============================================================================

Primary Datadog site:
    DD_API_KEY          -> Datadog API key
    DD_APP_KEY          -> Datadog application key used to authenticate calls
    DD_HOST             -> API URL (default: https://api.datadoghq.com)
    DD_VALIDATE         -> Validate the API key at startup (default: true)

HTTP client (DD_HTTP_CLIENT_ prefix):
    DD_HTTP_CLIENT_TIMEOUT                  -> Request timeout in seconds (default: 60)
    DD_HTTP_CLIENT_RETRY_ENABLED            -> Retry on 429 and 5xx (default: true)
    DD_HTTP_CLIENT_RETRY_MAX_ATTEMPTS       -> Attempts before giving up (default: 3)
    DD_HTTP_CLIENT_RETRY_BACKOFF_MULTIPLIER -> Exponential backoff multiplier (default: 2)

Security settings (MCP_ prefix):
    MCP_READ_ONLY           -> Block create/update/delete (default: true)
    MCP_DISABLE_DESTRUCTIVE -> Block key deletion (default: true)
    MCP_AUDIT_LOG           -> Path to audit log file
    MCP_MASK_SECRETS        -> Hide application key values in output (default: true)
    MCP_RATE_LIMIT_CALLS    -> Max API calls per window (default: 100)
    MCP_RATE_LIMIT_WINDOW   -> Rate limit window in seconds (default: 60)
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://api.datadoghq.com"

# =============================================================================
# DATADOG SITE CONFIGURATION
# =============================================================================


class DatadogSite(BaseModel):
    """
    Configuration for a single Datadog site (one organization's credentials).

    Application keys are owned by the user behind the application key used to
    authenticate, so every site entry carries both keys. The "current user"
    endpoints of the Key Management API always act on behalf of that user.

    USAGE EXAMPLE:
    --------------
        site = DatadogSite(
            url="https://api.datadoghq.eu",
            api_key=SecretStr("..."),
            app_key=SecretStr("..."),
            name="eu",
        )
    """

    model_config = {"extra": "ignore"}

    url: str = Field(default=DEFAULT_API_URL, description="Datadog API URL")
    # The API host, e.g. "https://api.datadoghq.com" or "https://api.us5.datadoghq.com".
    # Paths like "/api/v2/current_user/application_keys" are appended to it.

    api_key: SecretStr = Field(description="Datadog API key")

    app_key: SecretStr = Field(description="Datadog application key")
    # SecretStr prints as "**********"; use get_secret_value() for the real value.

    name: str = Field(default="default", description="Site identifier")

    validate_keys: bool = Field(
        default=True,
        description="Validate the API key against /api/v1/validate at startup",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """
        Ensure URL has a scheme and no trailing slash.

        "api.datadoghq.eu" becomes "https://api.datadoghq.eu", and
        "https://api.datadoghq.com/" loses its trailing slash so that
        joining with "/api/v2/..." never produces a double slash.
        """
        if not v:
            return DEFAULT_API_URL
        if not v.startswith(("http://", "https://")):
            v = f"https://{v}"
        return v.rstrip("/")


# =============================================================================
# HTTP CLIENT SETTINGS
# =============================================================================


class HttpSettings(BaseSettings):
    """
    HTTP client behaviour for the Datadog API.

    Datadog answers 429 when an organization's rate limit is exhausted and
    occasionally 5xx during incidents. Both are worth retrying; 4xx errors
    such as 404 or 403 are not (retrying will not make a missing key appear).
    """

    model_config = SettingsConfigDict(env_prefix="DD_HTTP_CLIENT_")

    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")

    retry_enabled: bool = Field(
        default=True,
        description="Retry requests answered with 429 or 5xx",
    )
    # Timeouts are handled regardless of this switch. POST and DELETE are only
    # repeated when Datadog cannot have applied them (connect timeout, 429).

    retry_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum attempts per request, including the first one",
    )

    retry_backoff_multiplier: float = Field(
        default=2.0,
        ge=0,
        description="Multiplier for exponential backoff between attempts",
    )


# =============================================================================
# SECURITY SETTINGS
# =============================================================================


class SecuritySettings(BaseSettings):
    """
    Security-related configuration.

    Layer 1: MCP_READ_ONLY=true (default)
        - Blocks create, update and delete of application keys

    Layer 2: MCP_DISABLE_DESTRUCTIVE=true (default)
        - Even with writes enabled, blocks deleting keys
        - A deleted application key breaks every integration using it

    Layer 3: Rate limiting (MCP_RATE_LIMIT_*)
        - Keeps a runaway agent loop from burning the org's API rate limit

    Layer 4: Confirmation (in SafetyGuard)
        - Deletion requires confirm=true AND confirm_id matching the key id
    """

    model_config = SettingsConfigDict(env_prefix="MCP_")

    read_only: bool = Field(
        default=True,
        description="Block all write operations when true",
    )

    disable_destructive: bool = Field(
        default=True,
        description="Block application key deletion when true",
    )

    audit_log: Path | None = Field(
        default=None,
        description="Path to audit log file",
    )
    # When set, JSON audit lines are appended to this file; otherwise audit
    # events go through structlog.

    mask_secrets: bool = Field(
        default=True,
        description="Mask sensitive values in output",
    )
    # Application key values are sensitive attributes. With masking on they
    # are shown as "***MASKED***" in every tool response.

    rate_limit_calls: int = Field(
        default=100,
        description="Maximum API calls per window",
    )

    rate_limit_window: int = Field(
        default=60,
        description="Rate limit window in seconds",
    )


# =============================================================================
# MAIN SERVER SETTINGS
# =============================================================================


class ServerSettings(BaseSettings):
    """
    Main server configuration.

    USAGE:
    ------
        settings = load_settings()
        print(settings.dd_host)              # Primary API URL
        print(settings.security.read_only)   # Security setting
        print(settings.http.retry_enabled)   # HTTP setting
    """

    model_config = SettingsConfigDict(
        env_prefix="DATADOG_APPKEY_MCP_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # PRIMARY DATADOG SITE (from environment)
    # -------------------------------------------------------------------------

    dd_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias="DD_API_KEY",
        description="Primary Datadog API key",
    )

    dd_app_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias="DD_APP_KEY",
        description="Primary Datadog application key",
    )

    dd_host: str = Field(
        default=DEFAULT_API_URL,
        validation_alias="DD_HOST",
        description="Primary Datadog API URL",
    )

    dd_validate: bool = Field(
        default=True,
        validation_alias="DD_VALIDATE",
        description="Validate the primary API key at startup",
    )

    # -------------------------------------------------------------------------
    # MULTI-ORG SUPPORT
    # -------------------------------------------------------------------------

    additional_sites: list[DatadogSite] = Field(
        default_factory=list,
        description="Additional Datadog sites for multi-org support",
    )
    # Set DATADOG_APPKEY_MCP_ADDITIONAL_SITES to a JSON array of site objects.

    # -------------------------------------------------------------------------
    # SERVER METADATA
    # -------------------------------------------------------------------------

    server_name: str = Field(
        default="datadog-appkey-mcp",
        description="MCP server name",
    )

    server_version: str = Field(
        default="0.1.0",
        description="MCP server version",
    )

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Logging level",
    )

    log_json: bool = Field(
        default=False,
        description="Render logs as JSON lines instead of console text",
    )

    # -------------------------------------------------------------------------
    # NESTED SETTINGS
    # -------------------------------------------------------------------------

    http: HttpSettings = Field(default_factory=HttpSettings)

    security: SecuritySettings = Field(default_factory=SecuritySettings)

    # -------------------------------------------------------------------------
    # COMPUTED PROPERTIES
    # -------------------------------------------------------------------------

    @property
    def primary_site(self) -> DatadogSite | None:
        """
        Get the primary Datadog site from DD_* environment variables.

        Returns None unless both DD_API_KEY and DD_APP_KEY are set: the key
        management endpoints need both headers, so half a configuration is
        treated as no configuration.
        """
        if not self.dd_api_key.get_secret_value() or not self.dd_app_key.get_secret_value():
            return None
        return DatadogSite(
            url=self.dd_host,
            api_key=self.dd_api_key,
            app_key=self.dd_app_key,
            name="primary",
            validate_keys=self.dd_validate,
        )

    @property
    def all_sites(self) -> list[DatadogSite]:
        """Primary site (if configured) followed by all additional sites."""
        sites = []
        if self.primary_site:
            sites.append(self.primary_site)
        sites.extend(self.additional_sites)
        return sites

    def get_site(self, name: str = "primary") -> DatadogSite | None:
        """
        Get a Datadog site by name.

        Args:
            name: Site name to find. Defaults to "primary".

        Returns:
            DatadogSite if found, None otherwise.
        """
        for site in self.all_sites:
            if site.name == name:
                return site
        return None


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings() -> ServerSettings:
    """
    Load settings from environment with validation.

    If DATADOG_APPKEY_MCP_ENV_FILE is set, additional variables are read from
    that .env file. Useful for local development:

        DD_API_KEY=...
        DD_APP_KEY=...
        DD_HOST=https://api.datadoghq.eu
        MCP_READ_ONLY=false

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return ServerSettings(
        _env_file=os.environ.get("DATADOG_APPKEY_MCP_ENV_FILE"),
    )
