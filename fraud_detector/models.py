"""
Data model shared by the scanner, decoder, verifier and engine.

Roots are carried as ``0x``-prefixed lowercase hex strings so that values
from the base chain and from both rollup nodes compare by plain equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def normalize_root(value: str) -> str:
    """Return ``value`` as a lowercase, ``0x``-prefixed hex string."""
    text = value.strip().lower()
    if not text.startswith("0x"):
        text = "0x" + text
    return text


@dataclass(frozen=True)
class ScanWindow:
    """Inclusive base-chain block range scanned in one cycle."""

    from_block: int
    to_block: int
    # True when to_block was capped by the confirmation-safe head
    caught_up: bool = False


@dataclass(frozen=True)
class CommitmentEvent:
    """A ``StateBatchAppended`` log, ordered by ``(block_number, log_index)``."""

    tx_hash: str
    block_number: int
    log_index: int = 0
    batch_index: Optional[int] = None
    batch_root: Optional[str] = None
    batch_size: Optional[int] = None
    prev_total_elements: Optional[int] = None

    @property
    def position(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass(frozen=True)
class CommittedBatch:
    """Ordered state roots published by one commitment transaction."""

    state_roots: Tuple[str, ...]
    should_start_at_element: Optional[int] = None

    def __len__(self) -> int:
        return len(self.state_roots)


class VerificationOutcome(str, Enum):
    """Classification of a single-block triple comparison."""

    MATCH = "Match"
    COMMIT_VS_CANONICAL_MISMATCH = "CommitVsCanonicalMismatch"
    COMMIT_VS_VERIFIER_MISMATCH = "CommitVsVerifierMismatch"
    CANONICAL_VS_VERIFIER_MISMATCH = "CanonicalVsVerifierMismatch"

    @property
    def is_mismatch(self) -> bool:
        return self is not VerificationOutcome.MATCH


@dataclass(frozen=True)
class BlockVerificationResult:
    """Outcome of comparing one rollup block across all three sources."""

    rollup_block_number: int
    committed_root: str
    canonical_root: str
    verifier_root: str
    outcome: VerificationOutcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rollupBlockNumber": self.rollup_block_number,
            "committedRoot": self.committed_root,
            "canonicalRoot": self.canonical_root,
            "verifierRoot": self.verifier_root,
            "outcome": self.outcome.value,
        }


@dataclass
class ReconciliationState:
    """Mutable engine state. Owned and written by the engine stream only."""

    scan_cursor: int
    cumulative_root_count: int
    last_verified_block: int
    halted: bool = False
    mismatch: Optional[BlockVerificationResult] = None
    # (block_number, log_index) of the last consumed commitment event
    last_event: Optional[Tuple[int, int]] = None

    def copy(self) -> "ReconciliationState":
        return replace(self)


@dataclass(frozen=True)
class VerifiedBlockStatus:
    """Immutable snapshot of the checkpoint served by the status interface."""

    last_verified_block: int
    cumulative_root_count: int
    halted: bool = False
    mismatch: Optional[BlockVerificationResult] = field(default=None)

    @classmethod
    def from_state(cls, state: ReconciliationState) -> "VerifiedBlockStatus":
        return cls(
            last_verified_block=state.last_verified_block,
            cumulative_root_count=state.cumulative_root_count,
            halted=state.halted,
            mismatch=state.mismatch,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastVerifiedBlock": self.last_verified_block,
            "cumulativeRootCount": self.cumulative_root_count,
            "halted": self.halted,
            "mismatch": self.mismatch.to_dict() if self.mismatch else None,
        }
