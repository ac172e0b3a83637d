# ABOUTME: Datadog Key Management API client with retry logic and error handling
# ABOUTME: Provides async access to current-user application keys with structured responses

"""
Datadog Key Management API client with retry logic and structured error handling.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module provides the HTTP client for the parts of Datadog's REST API that
manage application keys. It handles:

1. HTTP COMMUNICATION: Making requests to Datadog endpoints
2. AUTHENTICATION: Attaching DD-API-KEY / DD-APPLICATION-KEY headers
3. ERROR HANDLING: Converting HTTP errors to DatadogError
4. RETRY LOGIC: Retrying timeouts, rate limits (429) and server errors (5xx)
   without repeating a create or delete that may have been applied
5. PARSING: Turning JSON:API payloads into ApplicationKey objects

=============================================================================
DATADOG KEY MANAGEMENT API OVERVIEW
=============================================================================

Application keys belong to a user. The "current_user" endpoints act on the
user who owns the application key used to authenticate:

    POST   /api/v2/current_user/application_keys        - Create a key
    GET    /api/v2/current_user/application_keys        - List keys (filterable)
    GET    /api/v2/current_user/application_keys/{id}   - Get one key (with value)
    PATCH  /api/v2/current_user/application_keys/{id}   - Rename a key
    DELETE /api/v2/current_user/application_keys/{id}   - Revoke a key

    GET    /api/v1/validate                             - Check the API key

Payloads follow JSON:API:

    {"data": {"id": "...", "type": "application_keys",
              "attributes": {"name": "...", "key": "...", "last4": "...", ...}}}

The list endpoint returns "partial" keys: no "key" attribute, only "last4".
Only GET-by-id, create and update return the full key value.

Errors look like:
    {"errors": ["Application key not found"]}
or, JSON:API style:
    {"errors": [{"status": "400", "title": "Bad Request", "detail": "..."}]}
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from datadog_appkey_mcp import __version__

if TYPE_CHECKING:
    from datadog_appkey_mcp.config import DatadogSite, HttpSettings

logger = structlog.get_logger(__name__)

APPLICATION_KEYS_TYPE = "application_keys"
CURRENT_USER_APP_KEYS_PATH = "/api/v2/current_user/application_keys"

# Status codes worth another attempt: rate limited, or the server had a bad moment
RETRYABLE_STATUS_CODES = frozenset([429, 500, 502, 503, 504])

# Methods that may be repeated after a response was lost; POST creates a new key
# every time and DELETE answers a repeat with 404
IDEMPOTENT_METHODS = frozenset(["GET", "PATCH"])

MASK = "***MASKED***"

# =============================================================================
# SECRET MASKING
# =============================================================================

SECRET_PATTERNS = [
    (re.compile(r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(app(?:lication)?[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(\"key\"\s*:\s*\")[^\"]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(token[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(bearer\s+)[^\s\"']+", re.I), rf"\1{MASK}"),
]

SENSITIVE_KEYS = frozenset(
    [
        "key",
        "api_key",
        "apikey",
        "app_key",
        "application_key",
        "dd-api-key",
        "dd-application-key",
        "token",
        "secret",
        "password",
        "authorization",
    ]
)


def mask_secrets(data: Any) -> Any:
    """
    Mask sensitive values in arbitrary data.

    Strings are scrubbed with SECRET_PATTERNS, dict values under SENSITIVE_KEYS
    are replaced, lists are processed item by item, anything else is returned
    unchanged.
    """
    if isinstance(data, str):
        masked = data
        for pattern, replacement in SECRET_PATTERNS:
            masked = pattern.sub(replacement, masked)
        return masked

    if isinstance(data, dict):
        return {
            k: MASK if str(k).lower() in SENSITIVE_KEYS else mask_secrets(v)
            for k, v in data.items()
        }

    if isinstance(data, list):
        return [mask_secrets(item) for item in data]

    return data


# =============================================================================
# DATADOG ERROR CLASS
# =============================================================================


class DatadogError(Exception):
    """
    Structured Datadog API error.

    Keeps the HTTP status so callers can branch on it; the resource read
    treats 404 as "the key was deleted outside of this server".

    USAGE:
    ------
    try:
        key = await client.get_current_user_application_key(key_id)
    except DatadogError as e:
        if e.code == 404:
            ...
    """

    def __init__(self, code: int, message: str, details: str | None = None) -> None:
        """
        Args:
            code: HTTP status code (e.g., 404, 429)
            message: Primary error message from Datadog
            details: Additional error details (optional)
        """
        self.code = code
        self.message = message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        base = f"Datadog API error ({self.code}): {self.message}"
        if self.details:
            base += f" - {self.details}"
        return base

    @property
    def retryable(self) -> bool:
        """True when the status code is worth another attempt."""
        return self.code in RETRYABLE_STATUS_CODES


# Everything a client call can raise for reasons outside this process
CLIENT_ERRORS = (DatadogError, httpx.HTTPError)


def _is_retryable(exc: BaseException, method: str, retry_status: bool) -> bool:
    """
    Decide whether a failed attempt may be sent again.

    Connect and pool timeouts never reached Datadog, so any method is safe.
    Other timeouts and 5xx responses may have been applied already; only
    idempotent methods are repeated. A 429 was rejected before processing.
    """
    if isinstance(exc, (httpx.ConnectTimeout, httpx.PoolTimeout)):
        return True
    if isinstance(exc, httpx.TimeoutException):
        return method in IDEMPOTENT_METHODS
    if retry_status and isinstance(exc, DatadogError) and exc.retryable:
        return exc.code == 429 or method in IDEMPOTENT_METHODS
    return False


def _app_key_path(key_id: str) -> str:
    """Path of one application key, with the id escaped as a single segment."""
    segment = quote(key_id, safe="")
    if segment in (".", ".."):
        segment = segment.replace(".", "%2E")
    return f"{CURRENT_USER_APP_KEYS_PATH}/{segment}"


def _parse_error_body(response: httpx.Response) -> tuple[str, str | None]:
    """
    Extract (message, details) from a Datadog error response.

    Plain string errors are joined with "; ". JSON:API error objects use
    their "title" as the message and "detail" as details.
    """
    message = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        text = response.text
        return message, mask_secrets(text[:200]) if text else None

    errors = body.get("errors") if isinstance(body, dict) else None
    if not errors:
        return message, None

    texts: list[str] = []
    details: list[str] = []
    for err in errors:
        if isinstance(err, dict):
            texts.append(str(err.get("title") or err.get("status") or message))
            if err.get("detail"):
                details.append(str(err["detail"]))
        else:
            texts.append(str(err))

    return "; ".join(texts), "; ".join(details) or None


# =============================================================================
# APPLICATION KEY DATA CLASS
# =============================================================================


@dataclass
class ApplicationKey:
    """
    Datadog application key representation.

    Flattens the JSON:API document into plain fields. `key` is None for
    partial keys (list results), which never carry the secret value.
    """

    id: str
    name: str
    key: str | None = None
    last4: str = ""
    created_at: str = ""
    scopes: list[str] | None = None
    owner_id: str | None = None

    @property
    def is_full(self) -> bool:
        """Whether the secret value is present."""
        return self.key is not None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> ApplicationKey:
        """
        Create ApplicationKey from one JSON:API resource object.

        Accepts either the resource object itself or a document wrapping it
        in "data".
        """
        if "data" in data and isinstance(data["data"], dict):
            data = data["data"]

        attributes = data.get("attributes") or {}
        owner = (data.get("relationships") or {}).get("owned_by") or {}
        owner_data = owner.get("data") or {}

        return cls(
            id=data.get("id", ""),
            name=attributes.get("name") or "",
            key=attributes.get("key"),
            last4=attributes.get("last4") or "",
            created_at=attributes.get("created_at") or "",
            scopes=attributes.get("scopes"),
            owner_id=owner_data.get("id"),
        )


# =============================================================================
# DATADOG CLIENT
# =============================================================================


class DatadogClient:
    """
    Async Datadog Key Management API client.

    LIFECYCLE:
    ----------
        async with DatadogClient(site) as client:
            key = await client.create_current_user_application_key("ci-deployer")

    RETRY LOGIC:
    ------------
    Connect and pool timeouts are always retried; read and write timeouts
    only for GET and PATCH. With HttpSettings.retry_enabled, 429 responses
    are retried for every method and 5xx responses for GET and PATCH. A
    create or delete that may have reached Datadog is never sent again.
    Waits grow exponentially
    (multiplier * 2^attempt, capped at 30 seconds) up to
    HttpSettings.retry_max_attempts attempts; the last error is re-raised.
    """

    def __init__(
        self,
        site: DatadogSite,
        http: HttpSettings | None = None,
    ) -> None:
        """
        Initialize Datadog client.

        The HTTP connection pool is created in __aenter__.

        Args:
            site: Datadog site configuration (URL and keys)
            http: Timeout and retry settings; defaults apply when omitted
        """
        if http is None:
            from datadog_appkey_mcp.config import HttpSettings

            http = HttpSettings()
        self._site = site
        self._http = http
        self._client: httpx.AsyncClient | None = None

    @property
    def site(self) -> DatadogSite:
        return self._site

    async def __aenter__(self) -> DatadogClient:
        self._client = httpx.AsyncClient(
            base_url=self._site.url,
            headers={
                "DD-API-KEY": self._site.api_key.get_secret_value(),
                "DD-APPLICATION-KEY": self._site.app_key.get_secret_value(),
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": f"datadog-appkey-mcp/{__version__}",
            },
            timeout=self._http.timeout,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _retrying(self, method: str) -> AsyncRetrying:
        """Build the retry controller for one request."""
        retry_status = self._http.retry_enabled
        return AsyncRetrying(
            retry=retry_if_exception(lambda exc: _is_retryable(exc, method, retry_status)),
            stop=stop_after_attempt(self._http.retry_max_attempts),
            wait=wait_exponential(multiplier=self._http.retry_backoff_multiplier, max=30),
            reraise=True,
        )

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Single HTTP exchange; raises DatadogError on 4xx/5xx."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        log = logger.bind(method=method, path=path, site=self._site.name)
        log.debug("Making Datadog API request")

        response = await self._client.request(
            method,
            path,
            params=params,
            json=json_data,
        )

        if response.status_code >= 400:
            message, details = _parse_error_body(response)
            log.warning("Datadog API error", status=response.status_code, error=message)
            raise DatadogError(code=response.status_code, message=message, details=details)

        if not response.content:
            return {}
        result = response.json()
        return result if isinstance(result, dict) else {}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make HTTP request to the Datadog API with retries.

        Raises:
            DatadogError: On API error (4xx, 5xx) after retries
            httpx.TimeoutException: On request timeout (after retries)
            RuntimeError: If client not initialized (forgot async with)
        """
        return await self._retrying(method)(self._send, method, path, params, json_data)

    # =========================================================================
    # CREDENTIAL VALIDATION
    # =========================================================================

    async def validate_api_key(self) -> bool:
        """
        Check the API key.

        Datadog API: GET /api/v1/validate

        Returns:
            True if Datadog reports the key as valid.

        Raises:
            DatadogError: 403 when the key is invalid.
        """
        data = await self._request("GET", "/api/v1/validate")
        return bool(data.get("valid", False))

    # =========================================================================
    # APPLICATION KEY OPERATIONS
    # =========================================================================

    async def create_current_user_application_key(
        self,
        body: dict[str, Any],
    ) -> ApplicationKey:
        """
        Create an application key for the current user.

        Datadog API: POST /api/v2/current_user/application_keys

        Args:
            body: ApplicationKeyCreateRequest document, e.g.
                  {"data": {"type": "application_keys", "attributes": {"name": "ci"}}}

        Returns:
            The full key, including its secret value.
        """
        data = await self._request("POST", CURRENT_USER_APP_KEYS_PATH, json_data=body)
        return ApplicationKey.from_api_response(data)

    async def get_current_user_application_key(self, key_id: str) -> ApplicationKey:
        """
        Get one application key owned by the current user.

        Datadog API: GET /api/v2/current_user/application_keys/{id}

        Raises:
            DatadogError: 404 if the key does not exist
        """
        data = await self._request("GET", _app_key_path(key_id))
        return ApplicationKey.from_api_response(data)

    async def list_current_user_application_keys(
        self,
        filter: str | None = None,  # noqa: A002 - mirrors the API parameter
        page_size: int | None = None,
        page_number: int | None = None,
        sort: str | None = None,
    ) -> list[ApplicationKey]:
        """
        List application keys owned by the current user.

        Datadog API: GET /api/v2/current_user/application_keys

        Args:
            filter: Matches key names containing this string
            page_size: Keys per page (Datadog default 10, max 100)
            page_number: Zero-based page index
            sort: e.g. "name", "-created_at"

        Returns:
            Partial keys (no secret value).
        """
        params: dict[str, Any] = {}
        if filter:
            params["filter"] = filter
        if page_size is not None:
            params["page[size]"] = page_size
        if page_number is not None:
            params["page[number]"] = page_number
        if sort:
            params["sort"] = sort

        data = await self._request("GET", CURRENT_USER_APP_KEYS_PATH, params=params or None)
        items = data.get("data") or []
        return [ApplicationKey.from_api_response(item) for item in items]

    async def update_current_user_application_key(
        self,
        key_id: str,
        body: dict[str, Any],
    ) -> ApplicationKey:
        """
        Rename an application key owned by the current user.

        Datadog API: PATCH /api/v2/current_user/application_keys/{id}

        Args:
            key_id: Application key id
            body: ApplicationKeyUpdateRequest document; its data.id must match key_id
        """
        data = await self._request(
            "PATCH", _app_key_path(key_id), json_data=body
        )
        return ApplicationKey.from_api_response(data)

    async def delete_current_user_application_key(self, key_id: str) -> None:
        """
        Revoke an application key owned by the current user.

        DESTRUCTIVE OPERATION - integrations using the key stop working.

        Datadog API: DELETE /api/v2/current_user/application_keys/{id}
        """
        await self._request("DELETE", _app_key_path(key_id))
