"""
Skynet Client for Python SDK.

This module provides the main client interface:
- SkynetClient: Connection to a Skynet portal
- client.registry: Signed registry entries
- client.files: Single-file upload and download
- client.db: SkyDB key-value storage

Example:
    >>> async with SkynetClient("https://siasky.net") as client:
    ...     keys = gen_key_pair_from_seed("my seed")
    ...     await client.db.set_json(keys.private_key, "app.json", {"hello": "world"})
    ...     result = await client.db.get_json(keys.public_key, "app.json")

Invariants:
    - The client holds no keys and caches nothing
    - Options resolve as defaults -> client custom_options -> per-call options
    - Closing the client closes the transport it created
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ._transport import HttpxPortalTransport, PortalTransport
from .config import SkynetSettings
from .files import FileClient
from .options import validate_client_options
from .registry import RegistryClient
from .skydb import SkyDB

logger = logging.getLogger(__name__)


class SkynetClient:
    """Client for a Skynet portal.

    Args:
        portal_url: Portal base URL (defaults to settings.portal_url)
        settings: Configuration (defaults to SkynetSettings() from environment)
        transport: Injected transport; the client will not close it
        custom_options: Client-wide option overrides for every operation

    Raises:
        ValidationError: If custom_options has an unknown key
    """

    def __init__(
        self,
        portal_url: Optional[str] = None,
        *,
        settings: Optional[SkynetSettings] = None,
        transport: Optional[PortalTransport] = None,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._settings = settings or SkynetSettings()
        options = {
            **self._settings.request_options(),
            **validate_client_options(custom_options),
        }
        self._custom_options = options

        self._owns_transport = transport is None
        self._transport: PortalTransport = transport or HttpxPortalTransport(
            portal_url or self._settings.portal_url,
            timeout=self._settings.timeout,
        )

        self.registry = RegistryClient(self._transport, custom_options=options)
        self.files = FileClient(self._transport, custom_options=options)
        self.db = SkyDB(self.registry, self.files, custom_options=options)

    @property
    def custom_options(self) -> Mapping[str, Any]:
        return dict(self._custom_options)

    async def portal_url(self) -> str:
        """Return the portal URL requests are sent to."""
        return await self._transport.resolve_portal_url()

    async def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.close()
            logger.debug("Closed portal transport")

    async def __aenter__(self) -> SkynetClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
