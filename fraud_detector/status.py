"""
Status Store.

Single writer (the engine stream), any number of readers (the status HTTP
server). Writers swap in a new immutable snapshot under a lock, so readers
never observe a half-updated checkpoint.
"""

from __future__ import annotations

import threading

from .models import ReconciliationState, VerifiedBlockStatus


class StatusStore:
    def __init__(self, initial: VerifiedBlockStatus) -> None:
        self._lock = threading.Lock()
        self._snapshot = initial

    def publish(self, state: ReconciliationState) -> VerifiedBlockStatus:
        snapshot = VerifiedBlockStatus.from_state(state)
        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def snapshot(self) -> VerifiedBlockStatus:
        with self._lock:
            return self._snapshot
