"""
Layered per-operation options.

Each operation has a fixed set of recognized option keys with library
defaults. Options are resolved in three layers, later layers winning:

    library defaults -> client custom_options -> per-call custom_options

The per-call layer is checked against the operation's allow-list and any
unknown key is rejected before a request is made. The client layer is
checked once, against the union of all option sets, when the client is
created; keys that do not apply to an operation are ignored for it.

Example:
    >>> opts = merge_options(GET_JSON_OPTIONS, client_opts, {"cached_data_link": link})
    >>> get_entry_opts = extract_options(opts, GET_ENTRY_OPTIONS)
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .validate import validate_boolean, validate_optional_options

BASE_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        "api_key": None,
        "skynet_api_key": None,
        "custom_user_agent": None,
        "custom_cookie": None,
    }
)

GET_ENTRY_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        **BASE_OPTIONS,
        "endpoint_get_entry": "/skynet/registry",
        "hashed_data_key_hex": False,
    }
)

SET_ENTRY_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        **BASE_OPTIONS,
        "endpoint_set_entry": "/skynet/registry",
        "hashed_data_key_hex": False,
    }
)

UPLOAD_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        **BASE_OPTIONS,
        "endpoint_upload": "/skynet/skyfile",
        "custom_filename": "",
    }
)

DOWNLOAD_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        **BASE_OPTIONS,
        "endpoint_download": "/",
        "range": None,
    }
)

GET_JSON_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        **GET_ENTRY_OPTIONS,
        **DOWNLOAD_OPTIONS,
        "cached_data_link": None,
    }
)

SET_JSON_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        **GET_ENTRY_OPTIONS,
        **SET_ENTRY_OPTIONS,
        **UPLOAD_OPTIONS,
    }
)

SET_ENTRY_DATA_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        **GET_ENTRY_OPTIONS,
        **SET_ENTRY_OPTIONS,
        "allow_deletion_entry_data": False,
    }
)

ALL_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        **GET_JSON_OPTIONS,
        **SET_JSON_OPTIONS,
        **SET_ENTRY_DATA_OPTIONS,
    }
)

_BOOLEAN_OPTIONS = frozenset({"hashed_data_key_hex", "allow_deletion_entry_data"})


def validate_client_options(custom_options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Validate client-wide options against every known option key."""
    validate_optional_options("custom_options", custom_options, "parameter", ALL_OPTIONS)
    return dict(custom_options or {})


def merge_options(
    defaults: Mapping[str, Any],
    client_options: Optional[Mapping[str, Any]] = None,
    custom_options: Optional[Mapping[str, Any]] = None,
    *,
    name: str = "custom_options",
) -> Dict[str, Any]:
    """Resolve options for one operation.

    Args:
        defaults: The operation's option set (also its allow-list)
        client_options: Client-wide overrides, filtered to the allow-list
        custom_options: Per-call overrides, validated against the allow-list
        name: Parameter name used in error messages

    Returns:
        A new dict with exactly the keys of defaults

    Raises:
        ValidationError: If custom_options has an unknown key or a bad flag type
    """
    validate_optional_options(name, custom_options, "parameter", defaults)

    merged = dict(defaults)
    for layer in (client_options, custom_options):
        if not layer:
            continue
        merged.update({key: value for key, value in layer.items() if key in defaults})

    for key in _BOOLEAN_OPTIONS & merged.keys():
        validate_boolean(f"{name}.{key}", merged[key], "option")
    return merged


def extract_options(opts: Mapping[str, Any], model: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep only the keys of opts that model recognizes."""
    return {key: opts[key] for key in model if key in opts}
