"""
Internal portal transport for the Skynet SDK.

This module provides the low-level HTTP communication layer. Components
above it (registry, files) only use the PortalTransport protocol, so any
object with the same methods can be injected, e.g. an httpx client wired
to an in-process ASGI app.

Non-2xx responses are returned, not raised: each endpoint decides which
status codes mean success. Only network-level failures raise.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

import httpx

from .config import DEFAULT_PORTAL_URL
from .errors import PortalRequestError, ResponseError

logger = logging.getLogger(__name__)


@dataclass
class PortalResponse:
    """A portal response.

    Attributes:
        status: HTTP status code
        headers: Response headers, names lowercased
        content: Raw response body
        url: Final request URL
    """

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Parse the body as JSON.

        Raises:
            ResponseError: If the body is not valid JSON
        """
        try:
            return json.loads(self.content.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ResponseError(f"Could not parse response from {self.url} as JSON: {e}") from e

    def error_message(self) -> Optional[str]:
        """Best-effort error message from the body ({"message": ...} or text)."""
        try:
            body = json.loads(self.content.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            text = self.content.decode("utf-8", errors="replace").strip()
            return text or None
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return body["message"]
        return None


@runtime_checkable
class PortalTransport(Protocol):
    """Protocol for executing requests against a portal."""

    async def resolve_portal_url(self) -> str:
        """Return the base URL of the portal requests go to."""
        ...

    async def execute_request(
        self,
        method: str,
        endpoint_path: str,
        *,
        options: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
        files: Optional[Mapping[str, Any]] = None,
    ) -> PortalResponse:
        """Execute one request.

        Args:
            method: HTTP method
            endpoint_path: Path relative to the portal URL
            options: Resolved operation options (auth and header options are read)
            params: Query parameters
            headers: Extra request headers
            json: JSON body
            files: Multipart files

        Returns:
            The response, whatever its status

        Raises:
            PortalRequestError: If the request could not be completed
        """
        ...

    async def close(self) -> None:
        ...


def make_url(base_url: str, *paths: str) -> str:
    """Join a base URL and path segments with single slashes."""
    url = base_url.rstrip("/")
    for path in paths:
        path = path.strip("/")
        if path:
            url = f"{url}/{path}"
    return url


def build_request_headers(
    options: Optional[Mapping[str, Any]],
    headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Build request headers from the header-related options."""
    result: Dict[str, str] = dict(headers or {})
    if not options:
        return result
    if options.get("custom_user_agent"):
        result["User-Agent"] = options["custom_user_agent"]
    if options.get("skynet_api_key"):
        result["Skynet-Api-Key"] = options["skynet_api_key"]
    if options.get("custom_cookie"):
        result["Cookie"] = options["custom_cookie"]
    return result


class HttpxPortalTransport:
    """Portal transport backed by httpx.AsyncClient.

    The transport owns the client it creates and closes it on close().
    An injected client is left open for its owner to close.

    Example:
        >>> transport = HttpxPortalTransport("https://siasky.net")
        >>> response = await transport.execute_request("GET", "/skynet/registry", params=query)
        >>> await transport.close()
    """

    def __init__(
        self,
        portal_url: Optional[str] = None,
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the transport.

        Args:
            portal_url: Portal base URL (defaults to the public portal)
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self._portal_url = portal_url or DEFAULT_PORTAL_URL
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def resolve_portal_url(self) -> str:
        return self._portal_url

    async def execute_request(
        self,
        method: str,
        endpoint_path: str,
        *,
        options: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
        files: Optional[Mapping[str, Any]] = None,
    ) -> PortalResponse:
        url = make_url(await self.resolve_portal_url(), endpoint_path)
        auth = None
        if options and options.get("api_key"):
            auth = httpx.BasicAuth("", options["api_key"])

        logger.debug("%s %s", method.upper(), url)
        try:
            response = await self._client.request(
                method.upper(),
                url,
                params=dict(params) if params else None,
                headers=build_request_headers(options, headers),
                json=json,
                files=dict(files) if files else None,
                auth=auth,
            )
        except httpx.HTTPError as e:
            raise PortalRequestError(f"Request to {url} failed: {e}", url=url) from e

        logger.debug("%s %s -> %d", method.upper(), url, response.status_code)
        return PortalResponse(
            status=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            content=response.content,
            url=str(response.url),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
