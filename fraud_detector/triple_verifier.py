"""Per-block comparison of committed, canonical and verifier state roots."""

from __future__ import annotations

import logging

from .models import BlockVerificationResult, VerificationOutcome, normalize_root
from .sources import RollupNodeSource

logger = logging.getLogger(__name__)


def classify(committed: str, canonical: str, verifier: str) -> VerificationOutcome:
    """
    Classify a triple of roots.

    Priority: node divergence first, then canonical against the commitment,
    then verifier against the commitment.
    """
    canonical_vs_verifier = canonical != verifier
    canonical_vs_committed = canonical != committed
    verifier_vs_committed = verifier != committed

    if canonical_vs_verifier:
        return VerificationOutcome.CANONICAL_VS_VERIFIER_MISMATCH
    if canonical_vs_committed:
        return VerificationOutcome.COMMIT_VS_CANONICAL_MISMATCH
    if verifier_vs_committed:
        return VerificationOutcome.COMMIT_VS_VERIFIER_MISMATCH
    return VerificationOutcome.MATCH


class TripleVerifier:
    """Compares one rollup block across the commitment and both nodes."""

    def __init__(self, canonical: RollupNodeSource, verifier: RollupNodeSource) -> None:
        self._canonical = canonical
        self._verifier = verifier

    def verify(self, block_number: int, committed_root: str) -> BlockVerificationResult:
        """
        Raises:
            SourceUnavailable: If either node query fails
        """
        committed_root = normalize_root(committed_root)
        canonical_root = normalize_root(self._canonical.get_state_root(block_number))
        verifier_root = normalize_root(self._verifier.get_state_root(block_number))

        outcome = classify(committed_root, canonical_root, verifier_root)
        result = BlockVerificationResult(
            rollup_block_number=block_number,
            committed_root=committed_root,
            canonical_root=canonical_root,
            verifier_root=verifier_root,
            outcome=outcome,
        )

        log = logger.warning if outcome.is_mismatch else logger.info
        log(
            "L2 block %d committed=%s canonical=%s verifier=%s %s",
            block_number,
            result.committed_root,
            result.canonical_root,
            result.verifier_root,
            outcome.value,
        )
        return result
