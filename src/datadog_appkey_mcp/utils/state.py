# ABOUTME: Typed resource state for application key lifecycle operations
# ABOUTME: Attribute schemas, ResourceData, and translation of API errors into diagnostics

"""
Typed resource state.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Lifecycle operations (create, read, update, delete, import) do not return
API payloads to their callers. They write into a ResourceData object that
is bound to a Schema, the same shape every time:

    schema = Schema(
        description="Application key",
        attributes={
            "name": Attribute(description="Name for APP Key.", required=True),
            "key": Attribute(description="The value of the APP Key.",
                             computed=True, sensitive=True),
        },
    )

    d = ResourceData.from_config(schema, {"name": "ci-deployer"})
    await create(d, client)
    d.id            # "6a2b..."
    d.get("key")    # secret value
    d.redacted()    # {"id": "6a2b...", "name": "ci-deployer", "key": "***MASKED***"}

ATTRIBUTE MODES:
----------------
required: caller must supply a non-empty value
optional: caller may supply a value
computed: the API supplies the value; callers may not set it unless the
          attribute is also optional

THE "id" ATTRIBUTE:
-------------------
Every object has an id, whether or not the schema declares one. An empty id
means "does not exist": a read that gets a 404 calls set_id("") and the
caller drops the object. A schema may declare "id" as optional (a data
source looked up by id); the configured value then seeds the id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from datadog_appkey_mcp.utils.client import MASK, DatadogError

if TYPE_CHECKING:
    from collections.abc import Mapping

# Python types accepted for each attribute type
ATTRIBUTE_TYPES: dict[str, type] = {
    "string": str,
}

ZERO_VALUES: dict[str, Any] = {
    "string": "",
}

# =============================================================================
# DIAGNOSTICS
# =============================================================================


class ProviderError(Exception):
    """
    A lifecycle diagnostic: a short summary plus optional detail.

    The summary names the operation that failed ("error getting app key"),
    the detail carries what the API said.
    """

    def __init__(
        self,
        summary: str,
        detail: str | None = None,
        status: int | None = None,
    ) -> None:
        self.summary = summary
        self.detail = detail
        self.status = status
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.detail:
            return f"{self.summary}: {self.detail}"
        return self.summary


def translate_client_error(err: Exception, summary: str) -> ProviderError:
    """
    Convert an API client failure into a ProviderError.

    Args:
        err: DatadogError, an httpx transport error, or anything else raised
             while talking to the API
        summary: Operation-level message, e.g. "error creating app key"
    """
    if isinstance(err, DatadogError):
        detail = f"{err.code} {err.message}"
        if err.details:
            detail += f" ({err.details})"
        return ProviderError(summary, detail, status=err.code)
    if isinstance(err, httpx.TimeoutException):
        return ProviderError(summary, "request to the Datadog API timed out")
    if isinstance(err, httpx.HTTPError):
        return ProviderError(summary, f"HTTP error: {err}")
    return ProviderError(summary, str(err))


# =============================================================================
# SCHEMA
# =============================================================================


@dataclass(frozen=True)
class Attribute:
    """Schema entry for one attribute."""

    type: str = "string"
    description: str = ""
    required: bool = False
    optional: bool = False
    computed: bool = False
    sensitive: bool = False

    def __post_init__(self) -> None:
        if self.type not in ATTRIBUTE_TYPES:
            raise ValueError(f"unsupported attribute type {self.type!r}")
        if not (self.required or self.optional or self.computed):
            raise ValueError("attribute must be required, optional, or computed")
        if self.required and (self.optional or self.computed):
            raise ValueError("required attribute cannot be optional or computed")

    @property
    def zero_value(self) -> Any:
        return ZERO_VALUES[self.type]

    @property
    def configurable(self) -> bool:
        return self.required or self.optional


@dataclass(frozen=True)
class Schema:
    """Attributes of one resource or data source."""

    description: str
    attributes: dict[str, Attribute] = field(default_factory=dict)

    def sensitive_attributes(self) -> set[str]:
        return {name for name, attr in self.attributes.items() if attr.sensitive}

    def validate_config(self, config: Mapping[str, Any]) -> None:
        """
        Check caller-supplied values against the schema.

        Raises:
            ProviderError: Unknown attribute, wrong type, computed-only
                           attribute set, or required attribute missing.
        """
        for name, value in config.items():
            attr = self.attributes.get(name)
            if attr is None:
                if name == "id":
                    raise ProviderError(
                        "invalid configuration", '"id" cannot be set for this resource'
                    )
                raise ProviderError("invalid configuration", f"unsupported argument {name!r}")
            if not attr.configurable:
                raise ProviderError(
                    "invalid configuration", f"{name!r} is computed and cannot be set"
                )
            if value is not None and type(value) is not ATTRIBUTE_TYPES[attr.type]:
                raise ProviderError(
                    "invalid configuration", f"{name!r} must be of type {attr.type}"
                )

        for name, attr in self.attributes.items():
            if attr.required and not config.get(name):
                raise ProviderError(
                    "invalid configuration", f"the argument {name!r} is required"
                )


# =============================================================================
# RESOURCE DATA
# =============================================================================


class ResourceData:
    """
    Id plus attribute values for one object of a given Schema.

    Lifecycle operations read configuration with get() and write API results
    with set() and set_id().
    """

    def __init__(
        self,
        schema: Schema,
        values: Mapping[str, Any] | None = None,
        id: str = "",  # noqa: A002 - matches the attribute name
    ) -> None:
        self._schema = schema
        self._id = id
        self._values: dict[str, Any] = {}
        for name, value in (values or {}).items():
            if name == "id":
                self._id = value or ""
                continue
            self.set(name, value)

    @classmethod
    def from_config(
        cls,
        schema: Schema,
        config: Mapping[str, Any],
        id: str = "",  # noqa: A002 - matches the attribute name
    ) -> ResourceData:
        """Validate caller configuration and bind it to a new ResourceData."""
        schema.validate_config(config)
        return cls(schema, {k: v for k, v in config.items() if v is not None}, id=id)

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: str) -> None:
        """Set the object id. An empty id marks the object as gone."""
        self._id = value or ""

    def get(self, name: str) -> Any:
        """Value of an attribute, or its zero value when unset."""
        if name == "id":
            return self._id
        attr = self._schema.attributes.get(name)
        if attr is None:
            raise KeyError(f"unknown attribute {name!r}")
        return self._values.get(name, attr.zero_value)

    def set(self, name: str, value: Any) -> None:
        """
        Store an attribute value.

        Raises:
            ProviderError: Unknown attribute or value of the wrong type.
        """
        attr = self._schema.attributes.get(name)
        if attr is None:
            raise ProviderError("invalid attribute", f"{name!r} is not in the schema")
        if value is None:
            self._values.pop(name, None)
            return
        if type(value) is not ATTRIBUTE_TYPES[attr.type]:
            raise ProviderError(
                "invalid attribute",
                f"{name!r} expects {attr.type}, got {type(value).__name__}",
            )
        self._values[name] = value

    def to_state(self) -> dict[str, Any]:
        """Plain dict of id and every attribute (zero values included)."""
        state: dict[str, Any] = {"id": self._id}
        for name in self._schema.attributes:
            if name != "id":
                state[name] = self.get(name)
        return state

    def redacted(self) -> dict[str, Any]:
        """Like to_state(), with non-empty sensitive attributes masked."""
        state = self.to_state()
        for name in self._schema.sensitive_attributes():
            if state.get(name):
                state[name] = MASK
        return state

    def __repr__(self) -> str:
        return f"ResourceData({self.redacted()!r})"
