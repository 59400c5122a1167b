# tests/conftest.py
from typing import Dict, List, Optional, Sequence

import pytest
from eth_abi import encode as abi_encode

from fraud_detector.batch_decoder import BatchDecoder
from fraud_detector.contracts import APPEND_STATE_BATCH_ARG_TYPES, APPEND_STATE_BATCH_SELECTOR
from fraud_detector.engine import ReconciliationEngine
from fraud_detector.errors import SourceUnavailable
from fraud_detector.models import CommitmentEvent, VerifiedBlockStatus
from fraud_detector.status import StatusStore
from fraud_detector.triple_verifier import TripleVerifier
from fraud_detector.window_scanner import WindowScanner

DEPLOYMENT_BLOCK = 10
CONFIRMATIONS = 2
MAX_WINDOW = 1000


def root(n: int, salt: int = 0) -> str:
    """Deterministic 32-byte state root for rollup block ``n``."""
    return "0x%064x" % (n * 1_000_003 + salt)


def encode_append_state_batch(roots: Sequence[str], should_start_at_element: int = 0) -> bytes:
    return APPEND_STATE_BATCH_SELECTOR + abi_encode(
        list(APPEND_STATE_BATCH_ARG_TYPES),
        [[bytes.fromhex(r[2:]) for r in roots], should_start_at_element],
    )


class FakeBaseChain:
    """In-memory base chain holding commitment events and their payloads."""

    name = "base-chain"

    def __init__(self, head: int = 100) -> None:
        self.head = head
        self.events: List[CommitmentEvent] = []
        self.payloads: Dict[str, bytes] = {}
        self.fail_head = False
        self.fail_logs = False
        self.fail_tx = False
        self.log_queries: List[tuple] = []
        self.tx_queries: List[str] = []

    def add_batch(
        self,
        block_number: int,
        roots: Sequence[str],
        *,
        log_index: int = 0,
        payload: Optional[bytes] = None,
    ) -> CommitmentEvent:
        prev_total = sum(e.batch_size or 0 for e in self.events)
        tx_hash = "0x%064x" % (len(self.events) + 1)
        event = CommitmentEvent(
            tx_hash=tx_hash,
            block_number=block_number,
            log_index=log_index,
            batch_index=len(self.events),
            batch_size=len(roots),
            prev_total_elements=prev_total,
        )
        self.events.append(event)
        self.payloads[tx_hash] = (
            payload if payload is not None else encode_append_state_batch(roots, prev_total)
        )
        return event

    def get_head_block_number(self) -> int:
        if self.fail_head:
            raise SourceUnavailable(self.name, "eth_blockNumber failed")
        return self.head

    def get_commitment_events(self, from_block: int, to_block: int) -> List[CommitmentEvent]:
        self.log_queries.append((from_block, to_block))
        if self.fail_logs:
            raise SourceUnavailable(self.name, "eth_getLogs failed")
        return [e for e in self.events if from_block <= e.block_number <= to_block]

    def get_transaction_input(self, tx_hash: str) -> bytes:
        self.tx_queries.append(tx_hash)
        if self.fail_tx:
            raise SourceUnavailable(self.name, "eth_getTransactionByHash failed")
        return self.payloads[tx_hash]


class FakeRollupNode:
    """Rollup node answering from a dict of block number -> state root."""

    def __init__(self, name: str, roots: Optional[Dict[int, str]] = None) -> None:
        self.name = name
        self.roots: Dict[int, str] = dict(roots or {})
        self.calls: List[int] = []
        self.fail = False

    def get_state_root(self, block_number: int) -> str:
        self.calls.append(block_number)
        if self.fail:
            raise SourceUnavailable(self.name, f"eth_getBlockByNumber({block_number}) failed")
        if block_number not in self.roots:
            raise SourceUnavailable(self.name, f"block {block_number} is not available yet")
        return self.roots[block_number]


def honest_nodes(last_block: int):
    roots = {n: root(n) for n in range(1, last_block + 1)}
    return FakeRollupNode("canonical-node", roots), FakeRollupNode("verifier-node", roots)


def build_engine(
    base_chain: FakeBaseChain,
    canonical: FakeRollupNode,
    verifier: FakeRollupNode,
    *,
    start_block: int = 1,
    block_number_offset: int = 0,
    journal=None,
    poll_interval: float = 0.0,
    source_retry_limit: int = 0,
):
    store = StatusStore(VerifiedBlockStatus(last_verified_block=start_block - 1, cumulative_root_count=0))
    engine = ReconciliationEngine(
        WindowScanner(base_chain, CONFIRMATIONS, MAX_WINDOW),
        BatchDecoder(base_chain),
        TripleVerifier(canonical, verifier),
        store,
        deployment_block=DEPLOYMENT_BLOCK,
        start_block=start_block,
        block_number_offset=block_number_offset,
        poll_interval=poll_interval,
        source_retry_limit=source_retry_limit,
        journal=journal,
    )
    return engine, store


@pytest.fixture
def base_chain() -> FakeBaseChain:
    return FakeBaseChain(head=100)
