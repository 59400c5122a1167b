"""Confirmation-safe, size-bounded scanning of the commitment log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from .models import CommitmentEvent, ScanWindow
from .sources import BaseChainSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    window: ScanWindow
    events: List[CommitmentEvent]


def compute_window(
    head: int,
    cursor: int,
    confirmations: int,
    max_window_size: int,
) -> Optional[ScanWindow]:
    """
    Compute the next inclusive scan window starting at ``cursor``.

    Returns None when the confirmation-safe head is still behind the cursor,
    since no valid window exists yet.
    """
    safe_head = head - confirmations
    if safe_head < cursor:
        return None
    to_block = min(safe_head, cursor + max_window_size)
    return ScanWindow(from_block=cursor, to_block=to_block, caught_up=to_block == safe_head)


class WindowScanner:
    """Retrieves commitment events for the next window, in chain order."""

    def __init__(self, source: BaseChainSource, confirmations: int, max_window_size: int) -> None:
        self._source = source
        self.confirmations = confirmations
        self.max_window_size = max_window_size

    def scan(self, cursor: int) -> Optional[ScanResult]:
        """
        Fetch the events of the window starting at ``cursor``.

        Raises:
            SourceUnavailable: If the head or log query fails
        """
        head = self._source.get_head_block_number()
        window = compute_window(head, cursor, self.confirmations, self.max_window_size)
        if window is None:
            logger.debug(
                "Safe head %d is behind cursor %d; nothing to scan",
                head - self.confirmations,
                cursor,
            )
            return None

        events = self._source.get_commitment_events(window.from_block, window.to_block)
        events = sorted(events, key=lambda event: event.position)
        logger.info(
            "Scanned base-chain blocks [%d, %d]: %d commitment event(s)",
            window.from_block,
            window.to_block,
            len(events),
        )
        return ScanResult(window=window, events=events)
