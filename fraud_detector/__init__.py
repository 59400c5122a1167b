"""Rollup state-root fraud detector."""

from .engine import EngineState, ReconciliationEngine
from .errors import ConfigurationError, DecodeError, FraudDetectorError, SourceUnavailable
from .models import (
    BlockVerificationResult,
    CommitmentEvent,
    CommittedBatch,
    ReconciliationState,
    ScanWindow,
    VerificationOutcome,
    VerifiedBlockStatus,
)
from .status import StatusStore

__all__: list[str] = [
    "EngineState",
    "ReconciliationEngine",
    "ConfigurationError",
    "DecodeError",
    "FraudDetectorError",
    "SourceUnavailable",
    "BlockVerificationResult",
    "CommitmentEvent",
    "CommittedBatch",
    "ReconciliationState",
    "ScanWindow",
    "VerificationOutcome",
    "VerifiedBlockStatus",
    "StatusStore",
]

__version__ = "0.1.0"
