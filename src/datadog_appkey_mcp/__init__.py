# ABOUTME: Datadog Application Key MCP Server package initialization
# ABOUTME: Exposes version information

"""
Datadog Application Key MCP Server - manage Datadog application keys through
a create/read/update/delete/import lifecycle exposed as MCP tools.

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

datadog_appkey_mcp/
├── __init__.py              <- YOU ARE HERE: Package entry point
├── config.py                <- Configuration management (env vars, settings)
├── server.py                <- MCP server with all tools defined
├── resources/
│   ├── __init__.py          <- Resource and data source registry
│   ├── app_key.py           <- datadog_app_key resource lifecycle
│   └── app_key_data_source.py <- datadog_app_key lookup by id or name
└── utils/
    ├── __init__.py          <- Utils subpackage marker
    ├── client.py            <- HTTP client for the Datadog Key Management API
    ├── logging.py           <- Structured logging with audit trails
    ├── safety.py            <- Security guards and rate limiting
    └── state.py             <- Attribute schemas and resource state
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
