"""
StateCommitmentChain / Lib_AddressManager interface.

Only the fragments the detector reads are declared here: the
``StateBatchAppended`` event, the ``appendStateBatch`` call that emits it,
and ``Lib_AddressManager.getAddress``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from eth_utils import encode_hex, function_signature_to_4byte_selector, keccak
from requests.exceptions import RequestException
from web3 import Web3
from web3.exceptions import Web3Exception

from .errors import ConfigurationError, SourceUnavailable

logger = logging.getLogger(__name__)

STATE_COMMITMENT_CHAIN_NAME = "StateCommitmentChain"

# event StateBatchAppended(uint256 indexed _batchIndex, bytes32 _batchRoot,
#     uint256 _batchSize, uint256 _prevTotalElements, bytes _extraData)
STATE_BATCH_APPENDED_SIGNATURE = "StateBatchAppended(uint256,bytes32,uint256,uint256,bytes)"
STATE_BATCH_APPENDED_TOPIC = encode_hex(keccak(text=STATE_BATCH_APPENDED_SIGNATURE))
STATE_BATCH_APPENDED_DATA_TYPES = ("bytes32", "uint256", "uint256", "bytes")

# function appendStateBatch(bytes32[] _batch, uint256 _shouldStartAtElement)
APPEND_STATE_BATCH_SIGNATURE = "appendStateBatch(bytes32[],uint256)"
APPEND_STATE_BATCH_SELECTOR = function_signature_to_4byte_selector(APPEND_STATE_BATCH_SIGNATURE)
APPEND_STATE_BATCH_ARG_TYPES = ("bytes32[]", "uint256")

ADDRESS_MANAGER_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [{"internalType": "string", "name": "_name", "type": "string"}],
        "name": "getAddress",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    }
]

ZERO_ADDRESS = "0x" + "00" * 20

# Transport and JSON-RPC failures raised by web3 and its HTTP provider
RPC_ERRORS = (RequestException, Web3Exception, ValueError, ConnectionError, TimeoutError)


def resolve_state_commitment_chain(w3: Web3, address_manager_address: str) -> str:
    """
    Look up the StateCommitmentChain address registered in the AddressManager.

    Raises:
        SourceUnavailable: If the base chain cannot be queried
        ConfigurationError: If no StateCommitmentChain is registered
    """
    manager = w3.eth.contract(
        address=Web3.to_checksum_address(address_manager_address),
        abi=ADDRESS_MANAGER_ABI,
    )
    try:
        address = manager.functions.getAddress(STATE_COMMITMENT_CHAIN_NAME).call()
    except RPC_ERRORS as exc:
        raise SourceUnavailable("base-chain", f"address resolution failed: {exc}") from exc

    if not address or address.lower() == ZERO_ADDRESS:
        raise ConfigurationError(
            f"{STATE_COMMITMENT_CHAIN_NAME} is not registered in AddressManager "
            f"{address_manager_address}"
        )
    address = Web3.to_checksum_address(address)
    logger.info("Connected to %s at %s", STATE_COMMITMENT_CHAIN_NAME, address)
    return address
