"""
Chain data sources.

The engine only sees the two protocols below. The web3 implementations are
the single place where transport and JSON-RPC failures are translated into
:class:`SourceUnavailable`; retries and timeouts belong to the HTTP provider.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Protocol

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import encode_hex
from hexbytes import HexBytes
from web3 import Web3

from .contracts import (
    RPC_ERRORS,
    STATE_BATCH_APPENDED_DATA_TYPES,
    STATE_BATCH_APPENDED_TOPIC,
)
from .errors import DecodeError, SourceUnavailable
from .models import CommitmentEvent, normalize_root

logger = logging.getLogger(__name__)

__all__ = [
    "BaseChainSource",
    "RollupNodeSource",
    "Web3BaseChainSource",
    "Web3RollupNodeSource",
    "build_web3",
    "parse_commitment_log",
]


class BaseChainSource(Protocol):
    """Read access to the settlement chain."""

    def get_head_block_number(self) -> int:
        ...

    def get_commitment_events(self, from_block: int, to_block: int) -> List[CommitmentEvent]:
        ...

    def get_transaction_input(self, tx_hash: str) -> bytes:
        ...


class RollupNodeSource(Protocol):
    """Read access to one rollup node."""

    name: str

    def get_state_root(self, block_number: int) -> str:
        ...


def build_web3(url: str, timeout: float) -> Web3:
    return Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))


def parse_commitment_log(log: Mapping[str, Any]) -> CommitmentEvent:
    """
    Convert a raw ``StateBatchAppended`` log entry into a CommitmentEvent.

    Raises:
        DecodeError: If the log data does not match the event layout
    """
    topics = log.get("topics") or []
    batch_index = int.from_bytes(bytes(HexBytes(topics[1])), "big") if len(topics) > 1 else None
    try:
        batch_root, batch_size, prev_total_elements, _extra_data = abi_decode(
            list(STATE_BATCH_APPENDED_DATA_TYPES), bytes(HexBytes(log["data"]))
        )
    except DecodingError as exc:
        raise DecodeError(
            f"StateBatchAppended log in tx {encode_hex(HexBytes(log['transactionHash']))} "
            f"is malformed: {exc}"
        ) from exc

    return CommitmentEvent(
        tx_hash=encode_hex(HexBytes(log["transactionHash"])),
        block_number=int(log["blockNumber"]),
        log_index=int(log.get("logIndex") or 0),
        batch_index=batch_index,
        batch_root=encode_hex(batch_root),
        batch_size=int(batch_size),
        prev_total_elements=int(prev_total_elements),
    )


class Web3BaseChainSource:
    """Base-chain reader bound to one StateCommitmentChain deployment."""

    name = "base-chain"

    def __init__(self, w3: Web3, state_commitment_chain_address: str) -> None:
        self._w3 = w3
        self._address = Web3.to_checksum_address(state_commitment_chain_address)

    def get_head_block_number(self) -> int:
        try:
            return int(self._w3.eth.block_number)
        except RPC_ERRORS as exc:
            raise SourceUnavailable(self.name, f"eth_blockNumber failed: {exc}") from exc

    def get_commitment_events(self, from_block: int, to_block: int) -> List[CommitmentEvent]:
        filter_params = {
            "address": self._address,
            "topics": [STATE_BATCH_APPENDED_TOPIC],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        try:
            logs = self._w3.eth.get_logs(filter_params)
        except RPC_ERRORS as exc:
            raise SourceUnavailable(
                self.name, f"eth_getLogs [{from_block}, {to_block}] failed: {exc}"
            ) from exc
        return [parse_commitment_log(log) for log in logs]

    def get_transaction_input(self, tx_hash: str) -> bytes:
        try:
            tx = self._w3.eth.get_transaction(tx_hash)
        except RPC_ERRORS as exc:
            raise SourceUnavailable(self.name, f"eth_getTransactionByHash {tx_hash} failed: {exc}") from exc
        return bytes(HexBytes(tx["input"]))


class Web3RollupNodeSource:
    """Rollup node reader returning the state root of a block."""

    def __init__(self, w3: Web3, name: str) -> None:
        self._w3 = w3
        self.name = name

    def get_state_root(self, block_number: int) -> str:
        # Raw request: rollup node block payloads carry fields the web3
        # block formatter does not know about.
        try:
            response = self._w3.provider.make_request(
                "eth_getBlockByNumber", [hex(block_number), False]
            )
        except RPC_ERRORS as exc:
            raise SourceUnavailable(
                self.name, f"eth_getBlockByNumber({block_number}) failed: {exc}"
            ) from exc

        if response.get("error"):
            raise SourceUnavailable(
                self.name, f"eth_getBlockByNumber({block_number}) returned {response['error']}"
            )
        block = response.get("result")
        if not block or not block.get("stateRoot"):
            raise SourceUnavailable(self.name, f"block {block_number} is not available yet")
        return normalize_root(block["stateRoot"])
