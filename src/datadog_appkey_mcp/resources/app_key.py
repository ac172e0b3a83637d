# ABOUTME: datadog_app_key resource: create, read, update, delete and import of application keys
# ABOUTME: Maps the lifecycle onto the current-user Key Management API and copies results into state

"""The datadog_app_key resource."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from datadog_appkey_mcp.utils.client import APPLICATION_KEYS_TYPE, CLIENT_ERRORS, DatadogError
from datadog_appkey_mcp.utils.state import (
    Attribute,
    ProviderError,
    ResourceData,
    Schema,
    translate_client_error,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from datadog_appkey_mcp.utils.client import ApplicationKey, DatadogClient

logger = structlog.get_logger(__name__)

APP_KEY_SCHEMA = Schema(
    description=(
        "Provides a Datadog APP Key resource. "
        "This can be used to create and manage Datadog APP Keys."
    ),
    attributes={
        "name": Attribute(
            description="Name for APP Key.",
            required=True,
        ),
        "key": Attribute(
            description="The value of the APP Key.",
            computed=True,
            sensitive=True,
        ),
    },
)


@dataclass(frozen=True)
class Resource:
    """A schema and the lifecycle functions that manage objects of it."""

    name: str
    schema: Schema
    create: Callable[[ResourceData, DatadogClient], Awaitable[None]]
    read: Callable[[ResourceData, DatadogClient], Awaitable[None]]
    update: Callable[[ResourceData, DatadogClient], Awaitable[None]]
    delete: Callable[[ResourceData, DatadogClient], Awaitable[None]]
    importer: Callable[[ResourceData, DatadogClient], Awaitable[list[ResourceData]]]


# =============================================================================
# REQUEST BUILDERS
# =============================================================================


def build_app_key_create_request(d: ResourceData) -> dict[str, Any]:
    """ApplicationKeyCreateRequest for the configured name."""
    return {
        "data": {
            "type": APPLICATION_KEYS_TYPE,
            "attributes": {"name": d.get("name")},
        }
    }


def build_app_key_update_request(d: ResourceData) -> dict[str, Any]:
    """ApplicationKeyUpdateRequest renaming the key identified by d.id."""
    return {
        "data": {
            "type": APPLICATION_KEYS_TYPE,
            "id": d.id,
            "attributes": {"name": d.get("name")},
        }
    }


def update_app_key_state(d: ResourceData, app_key: ApplicationKey) -> None:
    """Copy name and key value from a full application key into state."""
    d.set("name", app_key.name)
    d.set("key", app_key.key or "")


# =============================================================================
# LIFECYCLE
# =============================================================================


async def create_app_key(d: ResourceData, client: DatadogClient) -> None:
    try:
        app_key = await client.create_current_user_application_key(
            build_app_key_create_request(d)
        )
    except CLIENT_ERRORS as e:
        raise translate_client_error(e, "error creating app key") from e

    d.set_id(app_key.id)
    update_app_key_state(d, app_key)
    logger.info("Created app key", id=app_key.id)


async def read_app_key(d: ResourceData, client: DatadogClient) -> None:
    """
    Refresh state from the API.

    A 404 means the key was revoked outside of this server: the id is
    cleared and no error is raised.
    """
    try:
        app_key = await client.get_current_user_application_key(d.id)
    except DatadogError as e:
        if e.code == 404:
            logger.info("App key no longer exists, removing from state", id=d.id)
            d.set_id("")
            return
        raise translate_client_error(e, "error getting app key") from e
    except CLIENT_ERRORS as e:
        raise translate_client_error(e, "error getting app key") from e

    update_app_key_state(d, app_key)


async def update_app_key(d: ResourceData, client: DatadogClient) -> None:
    try:
        app_key = await client.update_current_user_application_key(
            d.id, build_app_key_update_request(d)
        )
    except CLIENT_ERRORS as e:
        raise translate_client_error(e, "error updating app key") from e

    update_app_key_state(d, app_key)
    logger.info("Updated app key", id=d.id)


async def delete_app_key(d: ResourceData, client: DatadogClient) -> None:
    try:
        await client.delete_current_user_application_key(d.id)
    except CLIENT_ERRORS as e:
        raise translate_client_error(e, "error deleting app key") from e

    logger.info("Deleted app key", id=d.id)


async def import_app_key(
    d: ResourceData,
    client: DatadogClient,  # noqa: ARG001 - importer signature
) -> list[ResourceData]:
    """Passthrough import: the id is all that is needed, read fills in the rest."""
    return [d]


async def import_state(resource: Resource, key_id: str, client: DatadogClient) -> ResourceData:
    """
    Import an existing object by id: run the importer, then read each result.

    Raises:
        ProviderError: If the object does not exist remotely.
    """
    if not key_id:
        raise ProviderError("error importing app key", "an id is required")

    imported = await resource.importer(ResourceData(resource.schema, id=key_id), client)
    for d in imported:
        await resource.read(d, client)
        if not d.id:
            raise ProviderError(
                "cannot import non-existent remote object",
                f"{resource.name} with id {key_id!r} was not found",
            )
    return imported[0]


APP_KEY_RESOURCE = Resource(
    name="datadog_app_key",
    schema=APP_KEY_SCHEMA,
    create=create_app_key,
    read=read_app_key,
    update=update_app_key,
    delete=delete_app_key,
    importer=import_app_key,
)
