# ABOUTME: datadog_app_key data source: look up an existing application key by id or name
# ABOUTME: Resolves a name filter to exactly one key, then fetches the full key by id

"""The datadog_app_key data source."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from datadog_appkey_mcp.resources.app_key import update_app_key_state
from datadog_appkey_mcp.utils.client import CLIENT_ERRORS
from datadog_appkey_mcp.utils.state import (
    Attribute,
    ProviderError,
    ResourceData,
    Schema,
    translate_client_error,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from datadog_appkey_mcp.utils.client import DatadogClient

logger = structlog.get_logger(__name__)

MORE_THAN_ONE_RESULT = (
    "your query returned more than one result, please try a more specific search criteria"
)
NO_RESULT = "your query returned no result, please try a less specific search criteria"
MISSING_PARAMETERS = "missing id or name parameter"

APP_KEY_DATA_SOURCE_SCHEMA = Schema(
    description="Use this data source to retrieve information about an existing app key.",
    attributes={
        "id": Attribute(
            description="Id for APP Key.",
            optional=True,
        ),
        "name": Attribute(
            description="Name for APP Key.",
            optional=True,
        ),
        "key": Attribute(
            description="The value of the APP Key.",
            computed=True,
            sensitive=True,
        ),
    },
)


@dataclass(frozen=True)
class DataSource:
    """A schema and the read function that resolves it."""

    name: str
    schema: Schema
    read: Callable[[ResourceData, DatadogClient], Awaitable[None]]


async def _read_by_id(d: ResourceData, client: DatadogClient, key_id: str) -> None:
    try:
        app_key = await client.get_current_user_application_key(key_id)
    except CLIENT_ERRORS as e:
        raise translate_client_error(e, "error getting app key") from e

    d.set_id(app_key.id)
    update_app_key_state(d, app_key)


async def read_app_key_data_source(d: ResourceData, client: DatadogClient) -> None:
    """
    Resolve the data source to exactly one application key.

    Lookup by id wins over lookup by name. A name lookup lists keys whose
    name contains the value; anything but one match is an error. The list
    endpoint does not return key values, so the match is fetched again by id.

    Raises:
        ProviderError: API failure, zero or several matches, or neither
                       id nor name given.
    """
    key_id = d.get("id")
    if key_id:
        await _read_by_id(d, client, key_id)
        return

    name = d.get("name")
    if name:
        try:
            matches = await client.list_current_user_application_keys(filter=name)
        except CLIENT_ERRORS as e:
            raise translate_client_error(e, "error getting app keys") from e

        if len(matches) > 1:
            logger.info("App key lookup is ambiguous", name=name, matches=len(matches))
            raise ProviderError(MORE_THAN_ONE_RESULT)
        if not matches:
            raise ProviderError(NO_RESULT)

        await _read_by_id(d, client, matches[0].id)
        return

    raise ProviderError(MISSING_PARAMETERS)


APP_KEY_DATA_SOURCE = DataSource(
    name="datadog_app_key",
    schema=APP_KEY_DATA_SOURCE_SCHEMA,
    read=read_app_key_data_source,
)
