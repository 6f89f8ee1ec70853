"""
HTTP client for the log store's lifecycle and security APIs.

Each instance is meant to live for a single reconciliation pass. Requests
are sent with ``Connection: close`` so no socket (and no TLS material
referenced by it) outlives the pass.

Responses are classified into ``NotFoundError`` (HTTP 404) and
``RemoteAPIError`` (everything else that is not a success).
"""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING, Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlparse
from urllib.request import Request, urlopen

import structlog

from logstore_lifecycle.exceptions import NotFoundError, RemoteAPIError

if TYPE_CHECKING:
    import ssl

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class LogStoreClient(Protocol):
    """Wire operations the reconcilers depend on."""

    def get_lifecycle_policy(
        self, name: str, timeout: float | None = None
    ) -> dict[str, Any]: ...

    def put_lifecycle_policy(
        self, name: str, body: dict[str, Any], timeout: float | None = None
    ) -> None: ...

    def put_role(
        self, name: str, definition: dict[str, Any], timeout: float | None = None
    ) -> None: ...

    def put_user(
        self, name: str, body: dict[str, Any], timeout: float | None = None
    ) -> None: ...

    def get_users(self, timeout: float | None = None) -> dict[str, Any]: ...

    def delete_role(self, name: str, timeout: float | None = None) -> None: ...

    def delete_user(self, name: str, timeout: float | None = None) -> None: ...


class ElasticsearchClient:
    """
    Client for an Elasticsearch-compatible store.

    Construction validates the endpoint and, when ``healthcheck`` is set,
    pings the store; both failures surface as exceptions so the bootstrap
    loop can retry them.
    """

    def __init__(
        self,
        endpoint: str,
        username: str,
        password: str,
        ssl_context: ssl.SSLContext | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        healthcheck: bool = False,
    ) -> None:
        """
        Initialize the client.

        Args:
            endpoint: Base URL of the store (http or https).
            username: Basic auth user.
            password: Basic auth password.
            ssl_context: TLS context carrying root CAs and client certificate.
            timeout_seconds: Default per-request timeout.
            healthcheck: Ping the store before returning.

        Raises:
            ValueError: If the endpoint is not an absolute http(s) URL.
            RemoteAPIError: If the health check fails.
        """
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid store endpoint: {endpoint!r}")

        self._base_url = endpoint.rstrip("/")
        self._ssl_context = ssl_context
        self._timeout_seconds = timeout_seconds
        credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Basic {credentials}",
            "Connection": "close",
        }
        self._logger = logger.bind(endpoint=self._base_url)

        if healthcheck:
            self.ping()

    @property
    def endpoint(self) -> str:
        return self._base_url

    def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Send one request and decode the JSON response.

        Raises:
            NotFoundError: On HTTP 404.
            RemoteAPIError: On any other HTTP error, transport failure or
                undecodable body.
        """
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = Request(
            f"{self._base_url}{path}",
            data=data,
            headers=self._headers,
            method=method,
        )

        try:
            with urlopen(
                request,
                timeout=timeout if timeout is not None else self._timeout_seconds,
                context=self._ssl_context,
            ) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as e:
            if e.code == 404:
                raise NotFoundError.resource(path) from e
            reason = _error_reason(e)
            self._logger.error(
                "store_http_error",
                method=method,
                path=path,
                status_code=e.code,
                reason=reason,
            )
            raise RemoteAPIError.request_failed(
                method, path, reason, status=e.code, cause=e
            ) from e
        except URLError as e:
            self._logger.error(
                "store_connection_error",
                method=method,
                path=path,
                reason=str(e.reason),
            )
            raise RemoteAPIError.request_failed(method, path, str(e.reason), cause=e) from e
        except TimeoutError as e:
            self._logger.error("store_request_timeout", method=method, path=path)
            raise RemoteAPIError.request_failed(method, path, "timed out", cause=e) from e

        if not raw:
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise RemoteAPIError.invalid_response(path, str(e)) from e

    def ping(self, timeout: float | None = None) -> dict[str, Any]:
        """Fetch the store's root document."""
        return self._request("GET", "/", timeout=timeout)

    def get_lifecycle_policy(self, name: str, timeout: float | None = None) -> dict[str, Any]:
        """
        Fetch a lifecycle policy.

        Returns:
            The stored ``policy`` section (phases and actions).
        """
        path = f"/_ilm/policy/{quote(name, safe='')}"
        response = self._request("GET", path, timeout=timeout)
        if not isinstance(response, dict) or name not in response:
            raise NotFoundError.resource(path)
        entry = response[name]
        if not isinstance(entry, dict):
            raise RemoteAPIError.invalid_response(path, "policy entry is not an object")
        return entry.get("policy") or {}

    def put_lifecycle_policy(
        self, name: str, body: dict[str, Any], timeout: float | None = None
    ) -> None:
        """Create or replace a lifecycle policy."""
        self._request("PUT", f"/_ilm/policy/{quote(name, safe='')}", body, timeout)

    def put_role(
        self, name: str, definition: dict[str, Any], timeout: float | None = None
    ) -> None:
        """Create or replace a role."""
        self._request("PUT", f"/_security/role/{quote(name, safe='')}", definition, timeout)

    def put_user(self, name: str, body: dict[str, Any], timeout: float | None = None) -> None:
        """Create or replace a user."""
        self._request("PUT", f"/_security/user/{quote(name, safe='')}", body, timeout)

    def get_users(self, timeout: float | None = None) -> dict[str, Any]:
        """List all users keyed by username."""
        response = self._request("GET", "/_security/user", timeout=timeout)
        if not isinstance(response, dict):
            raise RemoteAPIError.invalid_response("/_security/user", "expected an object")
        return response

    def delete_role(self, name: str, timeout: float | None = None) -> None:
        """Delete a role."""
        self._request("DELETE", f"/_security/role/{quote(name, safe='')}", timeout=timeout)

    def delete_user(self, name: str, timeout: float | None = None) -> None:
        """Delete a user."""
        self._request("DELETE", f"/_security/user/{quote(name, safe='')}", timeout=timeout)


def _error_reason(error: HTTPError) -> str:
    """Best-effort extraction of the store's error reason from an HTTP error body."""
    try:
        payload = json.loads(error.read().decode("utf-8"))
    except (ValueError, OSError, AttributeError):
        return str(error.reason)

    if isinstance(payload, dict):
        detail = payload.get("error")
        if isinstance(detail, dict) and detail.get("reason"):
            return str(detail["reason"])
        if isinstance(detail, str):
            return detail
    return str(error.reason)
