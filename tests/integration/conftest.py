"""
Integration test fixtures for the Skynet SDK.

The SDK talks to the in-memory portal app through httpx's ASGI transport,
so every request goes through the real HTTP layer without a network.
"""

import httpx
import pytest
import pytest_asyncio

from skynet_sdk import SkynetClient, gen_key_pair_from_seed
from skynet_sdk._transport import HttpxPortalTransport
from skynet_sdk.memory_portal import InMemoryPortal, create_portal_app

PORTAL_URL = "http://portal.test"


@pytest.fixture
def portal():
    """Create fresh portal storage."""
    return InMemoryPortal(portal_url=PORTAL_URL)


@pytest.fixture
def keys():
    return gen_key_pair_from_seed("insecure test seed")


@pytest_asyncio.fixture
async def http_client(portal):
    app = create_portal_app(portal)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url=PORTAL_URL,
    ) as client:
        yield client


@pytest_asyncio.fixture
async def client(http_client):
    """SkynetClient wired to the in-memory portal."""
    transport = HttpxPortalTransport(PORTAL_URL, client=http_client)
    async with SkynetClient(transport=transport) as client:
        yield client
