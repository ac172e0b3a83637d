# ABOUTME: FastMCP server initialization and main entry point
# ABOUTME: Exposes the application key resource and data source lifecycle as MCP tools

"""Datadog Application Key MCP Server."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
from mcp.server.fastmcp import Context, FastMCP
from pydantic import BaseModel, Field

from datadog_appkey_mcp.config import ServerSettings, load_settings
from datadog_appkey_mcp.resources import DATA_SOURCES, RESOURCES
from datadog_appkey_mcp.resources.app_key import import_state
from datadog_appkey_mcp.utils.client import CLIENT_ERRORS, DatadogClient
from datadog_appkey_mcp.utils.logging import AuditLogger, configure_logging, set_correlation_id
from datadog_appkey_mcp.utils.safety import ConfirmationRequired, SafetyGuard
from datadog_appkey_mcp.utils.state import ProviderError, ResourceData

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from datadog_appkey_mcp.utils.state import Schema

MCPContext = Context
logger = structlog.get_logger(__name__)

APP_KEY = RESOURCES["datadog_app_key"]
APP_KEY_LOOKUP = DATA_SOURCES["datadog_app_key"]

# Global state (initialized in lifespan)
_settings: ServerSettings | None = None
_clients: dict[str, DatadogClient] = {}
_safety_guard: SafetyGuard | None = None
_audit_logger: AuditLogger | None = None


async def _open_client(settings: ServerSettings, site_name: str) -> DatadogClient:
    site = settings.get_site(site_name)
    if site is None:
        raise ValueError(f"Unknown site '{site_name}'")

    client = DatadogClient(site=site, http=settings.http)
    await client.__aenter__()
    if site.validate_keys:
        try:
            valid = await client.validate_api_key()
        except CLIENT_ERRORS:
            await client.__aexit__(None, None, None)
            raise
        if not valid:
            await client.__aexit__(None, None, None)
            raise RuntimeError(f"Invalid or missing credentials for Datadog site '{site.name}'")
    return client


@asynccontextmanager
async def lifespan(_server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage server lifecycle: load config, connect clients, cleanup on shutdown."""
    global _settings, _clients, _safety_guard, _audit_logger

    logger.info("Starting Datadog Application Key MCP Server")

    _settings = load_settings()
    configure_logging(level=_settings.log_level, json_output=_settings.log_json)
    _safety_guard = SafetyGuard(_settings.security)
    _audit_logger = AuditLogger(_settings.security.audit_log)

    if not _settings.all_sites:
        logger.warning("No Datadog site configured; set DD_API_KEY and DD_APP_KEY")

    try:
        for site in _settings.all_sites:
            _clients[site.name] = await _open_client(_settings, site.name)
            logger.info("Connected to Datadog site", site=site.name, url=site.url)

        yield {"settings": _settings, "clients": _clients}
    finally:
        for name, client in _clients.items():
            await client.__aexit__(None, None, None)
            logger.info("Disconnected from Datadog site", site=name)

        _clients.clear()
        logger.info("Datadog Application Key MCP Server stopped")


mcp = FastMCP("datadog-appkey-mcp", lifespan=lifespan)


def get_client(site: str = "primary") -> DatadogClient:
    """Get Datadog client for specified site."""
    if site not in _clients:
        available = list(_clients.keys())
        raise ValueError(f"Unknown site '{site}'. Available: {available}")
    return _clients[site]


def get_settings() -> ServerSettings:
    """Get server settings."""
    if not _settings:
        raise RuntimeError("Server not initialized")
    return _settings


def get_safety_guard() -> SafetyGuard:
    """Get safety guard for permission checking."""
    if not _safety_guard:
        raise RuntimeError("Server not initialized")
    return _safety_guard


def get_audit_logger() -> AuditLogger:
    """Get audit logger for recording operations."""
    if not _audit_logger:
        raise RuntimeError("Server not initialized")
    return _audit_logger


def format_state(title: str, d: ResourceData) -> str:
    """Render state for agent consumption, masking sensitive attributes if configured."""
    state = d.redacted() if get_safety_guard().mask_secrets else d.to_state()
    lines = [title, ""]
    for name, value in state.items():
        lines.append(f"  {name}: {value}")
    return "\n".join(lines)


def _request_id(ctx: MCPContext) -> str:
    return str(ctx.request_id) if hasattr(ctx, "request_id") else ""


# =============================================================================
# RESOURCE LIFECYCLE: datadog_app_key
# =============================================================================


class CreateAppKeyParams(BaseModel):
    """Parameters for create_app_key tool."""

    name: str = Field(description="Name for the application key")
    site: str = Field(default="primary", description="Datadog site name")


@mcp.tool()
async def create_app_key(params: CreateAppKeyParams, ctx: MCPContext) -> str:
    """
    Create a Datadog application key owned by the authenticated user.

    Returns the new key's state. The key value is only shown when secret
    masking is disabled on the server.
    """
    set_correlation_id(_request_id(ctx))

    blocked = get_safety_guard().check_write_operation("create_app_key")
    if blocked:
        get_audit_logger().log_blocked("create_app_key", params.name, blocked.reason)
        return blocked.format_message()

    try:
        client = get_client(params.site)
        d = ResourceData.from_config(APP_KEY.schema, {"name": params.name})
        await APP_KEY.create(d, client)

        get_audit_logger().log_write("create_app_key", params.name, "created", {"id": d.id})
        return format_state(f"Created {APP_KEY.name} '{d.id}'", d)

    except ProviderError as e:
        get_audit_logger().log_error("create_app_key", params.name, str(e))
        return str(e)


class ReadAppKeyParams(BaseModel):
    """Parameters for read_app_key tool."""

    id: str = Field(description="Application key id")
    site: str = Field(default="primary", description="Datadog site name")


@mcp.tool()
async def read_app_key(params: ReadAppKeyParams, ctx: MCPContext) -> str:
    """
    Refresh the state of an application key from Datadog.

    If the key was deleted outside of this server, reports it as removed
    instead of failing.
    """
    set_correlation_id(_request_id(ctx))

    blocked = get_safety_guard().check_read_operation("read_app_key")
    if blocked:
        get_audit_logger().log_blocked("read_app_key", params.id, blocked.reason)
        return blocked.format_message()

    try:
        client = get_client(params.site)
        d = ResourceData(APP_KEY.schema, id=params.id)
        await APP_KEY.read(d, client)

        if not d.id:
            get_audit_logger().log("read_app_key", params.id, "removed")
            return (
                f"Application key '{params.id}' no longer exists in Datadog.\n"
                "Remove it from your state."
            )

        get_audit_logger().log_read("read_app_key", params.id)
        return format_state(f"{APP_KEY.name} '{d.id}'", d)

    except ProviderError as e:
        get_audit_logger().log_error("read_app_key", params.id, str(e))
        return str(e)


class UpdateAppKeyParams(BaseModel):
    """Parameters for update_app_key tool."""

    id: str = Field(description="Application key id")
    name: str = Field(description="New name for the application key")
    site: str = Field(default="primary", description="Datadog site name")


@mcp.tool()
async def update_app_key(params: UpdateAppKeyParams, ctx: MCPContext) -> str:
    """Rename an existing application key."""
    set_correlation_id(_request_id(ctx))

    blocked = get_safety_guard().check_write_operation("update_app_key")
    if blocked:
        get_audit_logger().log_blocked("update_app_key", params.id, blocked.reason)
        return blocked.format_message()

    try:
        client = get_client(params.site)
        d = ResourceData.from_config(APP_KEY.schema, {"name": params.name}, id=params.id)
        await APP_KEY.update(d, client)

        get_audit_logger().log_write(
            "update_app_key", params.id, "updated", {"name": params.name}
        )
        return format_state(f"Updated {APP_KEY.name} '{d.id}'", d)

    except ProviderError as e:
        get_audit_logger().log_error("update_app_key", params.id, str(e))
        return str(e)


class DeleteAppKeyParams(BaseModel):
    """Parameters for delete_app_key tool."""

    id: str = Field(description="Application key id to delete")
    confirm: bool = Field(default=False, description="Must be true to execute deletion")
    confirm_id: str | None = Field(
        default=None, description="Repeat the application key id to confirm deletion"
    )
    site: str = Field(default="primary", description="Datadog site name")


@mcp.tool()
async def delete_app_key(params: DeleteAppKeyParams, ctx: MCPContext) -> str:
    """
    Revoke an application key (DESTRUCTIVE).

    Requires explicit confirmation. Set confirm=true AND confirm_id matching
    the key id to proceed. Anything authenticating with this key stops working.
    """
    set_correlation_id(_request_id(ctx))

    blocked = get_safety_guard().check_destructive_operation(
        "delete_app_key",
        params.id,
        confirmed=params.confirm,
        confirm_id=params.confirm_id,
    )

    if blocked:
        if isinstance(blocked, ConfirmationRequired):
            try:
                app_key = await get_client(params.site).get_current_user_application_key(
                    params.id
                )
                blocked.details = {
                    "name": app_key.name,
                    "last4": app_key.last4,
                    "created_at": app_key.created_at,
                }
            except CLIENT_ERRORS as e:
                logger.debug("Could not fetch key details for confirmation", error=str(e))
            get_audit_logger().log_blocked("delete_app_key", params.id, "confirmation required")
            return blocked.format_message()
        get_audit_logger().log_blocked("delete_app_key", params.id, blocked.reason)
        return blocked.format_message()

    try:
        client = get_client(params.site)

        await ctx.report_progress(0, 1, f"Deleting application key {params.id}")

        d = ResourceData(APP_KEY.schema, id=params.id)
        await APP_KEY.delete(d, client)

        get_audit_logger().log_write("delete_app_key", params.id, "deleted")
        return f"Application key '{params.id}' deleted successfully."

    except ProviderError as e:
        get_audit_logger().log_error("delete_app_key", params.id, str(e))
        return str(e)


class ImportAppKeyParams(BaseModel):
    """Parameters for import_app_key tool."""

    id: str = Field(description="Id of an existing application key")
    site: str = Field(default="primary", description="Datadog site name")


@mcp.tool()
async def import_app_key(params: ImportAppKeyParams, ctx: MCPContext) -> str:
    """
    Import an existing application key into state by id.

    Fails if no application key with this id exists.
    """
    set_correlation_id(_request_id(ctx))

    blocked = get_safety_guard().check_read_operation("import_app_key")
    if blocked:
        get_audit_logger().log_blocked("import_app_key", params.id, blocked.reason)
        return blocked.format_message()

    try:
        client = get_client(params.site)
        d = await import_state(APP_KEY, params.id, client)

        get_audit_logger().log_read("import_app_key", params.id)
        return format_state(f"Imported {APP_KEY.name} '{d.id}'", d)

    except ProviderError as e:
        get_audit_logger().log_error("import_app_key", params.id, str(e))
        return str(e)


# =============================================================================
# DATA SOURCE: datadog_app_key
# =============================================================================


class GetAppKeyParams(BaseModel):
    """Parameters for get_app_key tool."""

    id: str | None = Field(default=None, description="Application key id")
    name: str | None = Field(
        default=None, description="Application key name; must match exactly one key"
    )
    site: str = Field(default="primary", description="Datadog site name")


@mcp.tool()
async def get_app_key(params: GetAppKeyParams, ctx: MCPContext) -> str:
    """
    Look up an existing application key by id or by name.

    The id wins when both are given. A name must match exactly one key;
    refine the name if the lookup is ambiguous.
    """
    set_correlation_id(_request_id(ctx))

    target = params.id or f"name={params.name}"
    blocked = get_safety_guard().check_read_operation("get_app_key")
    if blocked:
        get_audit_logger().log_blocked("get_app_key", target, blocked.reason)
        return blocked.format_message()

    try:
        client = get_client(params.site)
        config = {"id": params.id, "name": params.name}
        d = ResourceData.from_config(APP_KEY_LOOKUP.schema, config)
        await APP_KEY_LOOKUP.read(d, client)

        get_audit_logger().log_read("get_app_key", target)
        return format_state(f"data.{APP_KEY_LOOKUP.name} '{d.id}'", d)

    except ProviderError as e:
        get_audit_logger().log_error("get_app_key", target, str(e))
        return str(e)


class ListAppKeysParams(BaseModel):
    """Parameters for list_app_keys tool."""

    filter: str | None = Field(default=None, description="Only keys whose name contains this")
    page_size: int = Field(default=100, ge=1, le=100, description="Maximum keys to return")
    site: str = Field(default="primary", description="Datadog site name")


@mcp.tool()
async def list_app_keys(params: ListAppKeysParams, ctx: MCPContext) -> str:
    """
    List application keys owned by the authenticated user.

    Key values are never included; use get_app_key for a single key.
    """
    set_correlation_id(_request_id(ctx))

    target = f"filter={params.filter}" if params.filter else "all"
    blocked = get_safety_guard().check_read_operation("list_app_keys")
    if blocked:
        get_audit_logger().log_blocked("list_app_keys", target, blocked.reason)
        return blocked.format_message()

    try:
        client = get_client(params.site)
        keys = await client.list_current_user_application_keys(
            filter=params.filter, page_size=params.page_size
        )

        get_audit_logger().log_read("list_app_keys", target)

        if not keys:
            return "No application keys found matching the specified filter."

        lines = [f"Found {len(keys)} application key(s):", ""]
        for key in keys:
            lines.append(
                f"- {key.name} id={key.id} last4={key.last4 or '?'} "
                f"created={key.created_at or 'unknown'}"
            )
        return "\n".join(lines)

    except CLIENT_ERRORS as e:
        get_audit_logger().log_error("list_app_keys", target, str(e))
        return str(e)


# =============================================================================
# MCP RESOURCES
# =============================================================================


def _format_schema(kind: str, name: str, schema: Schema) -> list[str]:
    lines = [f"{kind} {name}: {schema.description}"]
    for attr_name, attr in schema.attributes.items():
        modes = [
            mode
            for mode, enabled in (
                ("required", attr.required),
                ("optional", attr.optional),
                ("computed", attr.computed),
                ("sensitive", attr.sensitive),
            )
            if enabled
        ]
        lines.append(f"  {attr_name} ({attr.type}, {', '.join(modes)}): {attr.description}")
    return lines


@mcp.resource("datadog://sites")
async def get_sites_resource() -> str:
    """Get information about configured Datadog sites."""
    settings = get_settings()
    sites = settings.all_sites

    if not sites:
        return "No Datadog sites configured"

    lines = ["Configured Datadog Sites:", ""]
    for site in sites:
        lines.append(f"- {site.name}: {site.url}")

    return "\n".join(lines)


@mcp.resource("datadog://security")
async def get_security_resource() -> str:
    """Get current security settings."""
    settings = get_settings()
    sec = settings.security

    return (
        "Security Settings:\n"
        f"  Read-only mode: {sec.read_only}\n"
        f"  Destructive operations disabled: {sec.disable_destructive}\n"
        f"  Secret masking: {sec.mask_secrets}\n"
        f"  Rate limit: {sec.rate_limit_calls} calls per {sec.rate_limit_window}s"
    )


@mcp.resource("datadog://schema/app_key")
async def get_app_key_schema_resource() -> str:
    """Describe the datadog_app_key resource and data source attributes."""
    lines = _format_schema("resource", APP_KEY.name, APP_KEY.schema)
    lines.append("")
    lines.extend(_format_schema("data source", APP_KEY_LOOKUP.name, APP_KEY_LOOKUP.schema))
    return "\n".join(lines)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main() -> None:
    """Run the Datadog Application Key MCP server."""
    configure_logging(level="INFO")
    logger.info("Datadog Application Key MCP Server starting")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
