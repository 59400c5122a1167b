"""Decoding of ``appendStateBatch`` call payloads into ordered state roots."""

from __future__ import annotations

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import encode_hex

from .contracts import APPEND_STATE_BATCH_ARG_TYPES, APPEND_STATE_BATCH_SELECTOR
from .errors import DecodeError
from .models import CommitmentEvent, CommittedBatch
from .sources import BaseChainSource


def decode_append_state_batch(call_data: bytes) -> CommittedBatch:
    """
    Decode raw ``appendStateBatch(bytes32[],uint256)`` call data.

    Raises:
        DecodeError: If the selector or the argument encoding does not match
    """
    selector = bytes(call_data[:4])
    if selector != APPEND_STATE_BATCH_SELECTOR:
        raise DecodeError(
            f"call selector {encode_hex(selector)} is not appendStateBatch "
            f"({encode_hex(APPEND_STATE_BATCH_SELECTOR)})"
        )
    try:
        batch, should_start_at_element = abi_decode(
            list(APPEND_STATE_BATCH_ARG_TYPES), bytes(call_data[4:])
        )
    except DecodingError as exc:
        raise DecodeError(f"appendStateBatch arguments are malformed: {exc}") from exc

    return CommittedBatch(
        state_roots=tuple(encode_hex(root) for root in batch),
        should_start_at_element=int(should_start_at_element),
    )


class BatchDecoder:
    def __init__(self, source: BaseChainSource) -> None:
        self._source = source

    def decode(self, event: CommitmentEvent) -> CommittedBatch:
        """
        Fetch the transaction behind ``event`` and decode its committed roots.

        Raises:
            SourceUnavailable: If the transaction cannot be fetched
            DecodeError: If the payload is not a well-formed commitment call, or
                its root count disagrees with the event's batch size
        """
        call_data = self._source.get_transaction_input(event.tx_hash)
        try:
            batch = decode_append_state_batch(call_data)
        except DecodeError as exc:
            raise DecodeError(f"tx {event.tx_hash}: {exc}") from exc

        if event.batch_size is not None and len(batch) != event.batch_size:
            raise DecodeError(
                f"tx {event.tx_hash}: decoded {len(batch)} state root(s) but "
                f"StateBatchAppended reports a batch size of {event.batch_size}"
            )
        return batch
