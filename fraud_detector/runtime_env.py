"""
Runtime environment validation helpers.

Environment lookups and endpoint/address checks used while loading
configuration. Failures raise ConfigurationError at startup.
"""

from __future__ import annotations

import os
from typing import Optional
from urllib.parse import urlparse

from eth_utils import is_address, to_checksum_address

from .errors import ConfigurationError

__all__ = [
    "MissingEnvironmentVariable",
    "get_optional_env",
    "validate_web3_url",
    "validate_address",
]

_WEB3_SCHEMES = frozenset({"http", "https"})


class MissingEnvironmentVariable(ConfigurationError):
    """Raised when a required environment variable has not been provided."""


def get_optional_env(name: str) -> Optional[str]:
    """Return the stripped value of ``name`` or None when unset or blank."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def validate_web3_url(value: str, *, context: str = "web3 url") -> str:
    """
    Validate that ``value`` looks like an HTTP JSON-RPC endpoint.

    Raises:
        ConfigurationError: If the scheme is not http(s) or the host is missing
    """
    parsed = urlparse(value)
    if parsed.scheme not in _WEB3_SCHEMES or not parsed.netloc:
        raise ConfigurationError(
            f"{context} must be an http(s) URL (got {value!r})"
        )
    return value


def validate_address(value: str, *, context: str = "address") -> str:
    """
    Validate a 20-byte hex address and return its checksummed form.

    Raises:
        ConfigurationError: If the value is not a valid address
    """
    if not is_address(value):
        raise ConfigurationError(f"{context} is not a valid address: {value!r}")
    return to_checksum_address(value)
