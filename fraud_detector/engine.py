"""
Reconciliation Engine
=====================

Drives one cycle at a time:

1. scan the next confirmation-safe window of the commitment log
2. decode each commitment event's batch of state roots
3. verify every not-yet-checkpointed rollup block against both nodes
4. advance the scan cursor to the window's ``to_block``

Each commitment event is applied atomically: the cycle works on a copy of
the state, which replaces the live state once the event is fully processed.
A cycle aborted by ``SourceUnavailable`` or ``DecodeError`` keeps the
checkpoint of its last fully processed event; already consumed events are
skipped when the window is scanned again. The status store is updated after
every verified block and never moves backwards.

The first mismatch halts the engine for the lifetime of the process. The
mismatched block is included in the checkpoint and recorded as ``mismatch``.

Sequence positions are 1-based; the rollup block holding position ``p`` is
``p + block_number_offset``.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional

from .batch_decoder import BatchDecoder
from .errors import SourceUnavailable
from .journal import VerificationJournal
from .models import CommitmentEvent, CommittedBatch, ReconciliationState
from .status import StatusStore
from .triple_verifier import TripleVerifier
from .window_scanner import WindowScanner

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    RUNNING = "running"
    SLEEPING = "sleeping"
    HALTED = "halted"


class ReconciliationEngine:
    """Sequential, single-writer reconciliation of commitments and nodes."""

    def __init__(
        self,
        scanner: WindowScanner,
        decoder: BatchDecoder,
        verifier: TripleVerifier,
        status: StatusStore,
        *,
        deployment_block: int,
        start_block: int = 1,
        block_number_offset: int = 0,
        poll_interval: float = 60.0,
        source_retry_limit: int = 0,
        journal: Optional[VerificationJournal] = None,
    ) -> None:
        self._scanner = scanner
        self._decoder = decoder
        self._verifier = verifier
        self._status = status
        self._journal = journal
        self.block_number_offset = block_number_offset
        self.poll_interval = poll_interval
        self.source_retry_limit = source_retry_limit

        self._state = ReconciliationState(
            scan_cursor=deployment_block,
            cumulative_root_count=0,
            last_verified_block=start_block - 1,
        )
        self._status.publish(self._state)

    @property
    def state(self) -> ReconciliationState:
        """A copy of the committed state; mutating it has no effect."""
        return self._state.copy()

    @property
    def halted(self) -> bool:
        return self._state.halted

    # ------------------------------------------------------------------ #
    # One cycle
    # ------------------------------------------------------------------ #

    def run_cycle(self) -> EngineState:
        """
        Run a single reconciliation cycle.

        Returns the state the engine should move to: ``RUNNING`` when more
        confirmed blocks are waiting, ``SLEEPING`` when the cursor has caught
        up with the confirmation-safe head, ``HALTED`` after a mismatch.

        Raises:
            SourceUnavailable: If any chain or node query fails
            DecodeError: If a commitment cannot be decoded
        """
        if self._state.halted:
            return EngineState.HALTED

        scan = self._scanner.scan(self._state.scan_cursor)
        if scan is None:
            return EngineState.SLEEPING

        working = self._state.copy()
        for event in scan.events:
            if working.last_event is not None and event.position <= working.last_event:
                logger.debug("Commitment event %s already consumed; skipping", event.tx_hash)
                continue

            batch = self._decoder.decode(event)
            self._process_batch(working, event, batch)
            working.last_event = event.position
            self._commit(working)
            if working.halted:
                break

        working.scan_cursor = scan.window.to_block
        self._commit(working)

        if working.halted:
            return EngineState.HALTED
        return EngineState.SLEEPING if scan.window.caught_up else EngineState.RUNNING

    def _process_batch(
        self,
        working: ReconciliationState,
        event: CommitmentEvent,
        batch: CommittedBatch,
    ) -> None:
        start_count = working.cumulative_root_count
        self._check_sequence_position(event, batch, start_count)

        batch_end = start_count + len(batch)
        batch_end_block = batch_end + self.block_number_offset

        if batch_end_block <= working.last_verified_block:
            working.cumulative_root_count = batch_end
            logger.info(
                "Skipping L2 blocks %d-%d (already checkpointed)",
                start_count + self.block_number_offset + 1,
                batch_end_block,
            )
            return

        for block_number in range(working.last_verified_block + 1, batch_end_block + 1):
            position = block_number - self.block_number_offset
            committed_root = batch.state_roots[position - start_count - 1]
            result = self._verifier.verify(block_number, committed_root)
            if self._journal is not None:
                self._journal.record_block(result)

            working.cumulative_root_count = position
            working.last_verified_block = block_number

            if result.outcome.is_mismatch:
                working.halted = True
                working.mismatch = result
                logger.error(
                    "%s at L2 block %d (base-chain tx %s); halting",
                    result.outcome.value,
                    block_number,
                    event.tx_hash,
                )
                if self._journal is not None:
                    self._journal.record_halt(result)

            self._publish(working)
            if working.halted:
                return

    @staticmethod
    def _check_sequence_position(
        event: CommitmentEvent, batch: CommittedBatch, start_count: int
    ) -> None:
        # Diagnostic only: the root count stays the sole source of positions.
        reported = event.prev_total_elements
        if reported is None:
            reported = batch.should_start_at_element
        if reported is not None and reported != start_count:
            logger.warning(
                "Batch in tx %s starts at element %d but %d root(s) have been processed",
                event.tx_hash,
                reported,
                start_count,
            )

    def _publish(self, state: ReconciliationState) -> None:
        # A retried event re-verifies blocks already shown as verified.
        published = self._status.snapshot()
        if not state.halted and (
            state.last_verified_block < published.last_verified_block
            or state.cumulative_root_count < published.cumulative_root_count
        ):
            return
        self._status.publish(state)

    def _commit(self, working: ReconciliationState) -> None:
        self._state = working.copy()
        self._publish(working)
        logger.debug(
            "Checkpoint: cursor=%d last_verified_block=%d cumulative_root_count=%d",
            working.scan_cursor,
            working.last_verified_block,
            working.cumulative_root_count,
        )

    # ------------------------------------------------------------------ #
    # Run loop
    # ------------------------------------------------------------------ #

    def run(self, stop_event: threading.Event) -> None:
        """
        Run cycles until halted or ``stop_event`` is set.

        ``SourceUnavailable`` aborts the cycle and the cycle is retried after
        the poll interval; after ``source_retry_limit`` consecutive failures
        (if non-zero) the error is re-raised. ``DecodeError`` propagates.
        The stop event is checked between cycles and wakes the sleep wait.
        """
        failures = 0
        while not stop_event.is_set():
            try:
                outcome = self.run_cycle()
            except SourceUnavailable as exc:
                failures += 1
                if self.source_retry_limit and failures >= self.source_retry_limit:
                    logger.error("Giving up after %d consecutive source failure(s)", failures)
                    raise
                logger.warning(
                    "Cycle aborted (%s); retrying in %.1fs", exc, self.poll_interval
                )
                stop_event.wait(self.poll_interval)
                continue

            failures = 0
            if outcome is EngineState.HALTED:
                return
            if outcome is EngineState.SLEEPING:
                stop_event.wait(self.poll_interval)
