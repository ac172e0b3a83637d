# ABOUTME: Resources package initialization for the Datadog Application Key MCP Server
# ABOUTME: Registers resources and data sources by their type name

"""
Datadog resources and data sources.

    - app_key.py: datadog_app_key resource (create, read, update, delete, import)
    - app_key_data_source.py: datadog_app_key data source (lookup by id or name)
"""

from datadog_appkey_mcp.resources.app_key import APP_KEY_RESOURCE, Resource
from datadog_appkey_mcp.resources.app_key_data_source import APP_KEY_DATA_SOURCE, DataSource

RESOURCES: dict[str, Resource] = {APP_KEY_RESOURCE.name: APP_KEY_RESOURCE}

DATA_SOURCES: dict[str, DataSource] = {APP_KEY_DATA_SOURCE.name: APP_KEY_DATA_SOURCE}

__all__ = ["DATA_SOURCES", "RESOURCES", "DataSource", "Resource"]
