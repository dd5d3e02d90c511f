"""
Configuration for the Skynet SDK.

Uses pydantic-settings for environment variable loading. Every setting can
be overridden with a SKYNET_-prefixed environment variable, e.g.
SKYNET_PORTAL_URL or SKYNET_TIMEOUT.

Invariants:
    - All settings have defaults that work against the public portal
    - API keys are never logged
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORTAL_URL = "https://siasky.net"


class SkynetSettings(BaseSettings):
    """Client configuration loaded from environment."""

    # Portal connection
    portal_url: str = Field(default=DEFAULT_PORTAL_URL, description="Portal base URL")
    timeout: float = Field(default=30.0, description="Request timeout seconds")

    # Authentication
    api_key: Optional[str] = Field(default=None, description="Portal API password (basic auth)")
    skynet_api_key: Optional[str] = Field(default=None, description="Value of Skynet-Api-Key header")

    # Request decoration
    custom_user_agent: Optional[str] = Field(default=None, description="User-Agent header override")
    custom_cookie: Optional[str] = Field(default=None, description="Cookie header")

    model_config = SettingsConfigDict(env_prefix="SKYNET_")

    def request_options(self) -> Dict[str, Any]:
        """Settings that act as client-wide request options."""
        options = {
            "api_key": self.api_key,
            "skynet_api_key": self.skynet_api_key,
            "custom_user_agent": self.custom_user_agent,
            "custom_cookie": self.custom_cookie,
        }
        return {key: value for key, value in options.items() if value is not None}
