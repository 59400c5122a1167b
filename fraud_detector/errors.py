"""
Error taxonomy for the fraud detector.

A detected mismatch is not an error: it is a terminal state of the
reconciliation engine.
"""

from __future__ import annotations

__all__ = [
    "FraudDetectorError",
    "ConfigurationError",
    "SourceUnavailable",
    "DecodeError",
]


class FraudDetectorError(Exception):
    """Base class for all fraud detector errors."""


class ConfigurationError(FraudDetectorError):
    """Raised when a required option is missing or invalid at startup."""


class SourceUnavailable(FraudDetectorError):
    """Raised when a base-chain or rollup-node query fails.

    Transient by nature; aborts the current reconciliation cycle without
    touching the checkpoint.
    """

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class DecodeError(FraudDetectorError):
    """Raised when a commitment transaction cannot be decoded into state roots."""
