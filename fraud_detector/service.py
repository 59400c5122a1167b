"""
Fraud detector service.

Wires the web3 sources, the reconciliation engine and the status API
together. The engine runs in the calling thread; the status API is served by
uvicorn from a daemon thread and only reads published snapshots.

Exit Codes:
- 0: Stopped cleanly, no mismatch detected
- 1: Base chain or rollup node unavailable beyond the retry limit
- 2: Configuration error
- 3: Commitment transaction could not be decoded
- 4: Mismatch detected (engine halted)
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from enum import IntEnum
from typing import Optional, Sequence

import uvicorn
from dotenv import load_dotenv

from .api import create_app
from .batch_decoder import BatchDecoder
from .config import DetectorConfig, load_config
from .contracts import resolve_state_commitment_chain
from .engine import ReconciliationEngine
from .errors import ConfigurationError, DecodeError, SourceUnavailable
from .journal import VerificationJournal
from .models import VerifiedBlockStatus
from .sources import (
    BaseChainSource,
    RollupNodeSource,
    Web3BaseChainSource,
    Web3RollupNodeSource,
    build_web3,
)
from .status import StatusStore
from .triple_verifier import TripleVerifier
from .window_scanner import WindowScanner

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    SUCCESS = 0
    SOURCE_UNAVAILABLE = 1
    CONFIGURATION_ERROR = 2
    DECODE_FAILURE = 3
    MISMATCH_DETECTED = 4


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


class FraudDetectorService:
    """Owns the engine stream, the status server and their shared stop signal."""

    def __init__(
        self,
        config: DetectorConfig,
        *,
        base_chain: Optional[BaseChainSource] = None,
        canonical_node: Optional[RollupNodeSource] = None,
        verifier_node: Optional[RollupNodeSource] = None,
    ) -> None:
        self.config = config
        self.stop_event = threading.Event()
        self.status = StatusStore(
            VerifiedBlockStatus(
                last_verified_block=config.l2_start_block - 1,
                cumulative_root_count=0,
            )
        )
        self._base_chain = base_chain
        self._canonical_node = canonical_node
        self._verifier_node = verifier_node
        self._journal: Optional[VerificationJournal] = None
        self._server: Optional[uvicorn.Server] = None
        self._server_thread: Optional[threading.Thread] = None
        self.engine: Optional[ReconciliationEngine] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _init(self) -> None:
        config = self.config
        logger.info(
            "Initializing fraud detector: L1 deployment block %d, L2 start block %d, "
            "%d confirmation(s), window %d",
            config.l1_deployment_block,
            config.l2_start_block,
            config.l1_confirmations,
            config.batch_size,
        )

        if self._base_chain is None:
            l1 = build_web3(config.l1_node_web3_url, config.rpc_timeout)
            address = config.state_commitment_chain_address
            if not address:
                logger.info("Connecting to StateCommitmentChain...")
                address = resolve_state_commitment_chain(l1, config.address_manager_address)
            self._base_chain = Web3BaseChainSource(l1, address)
        if self._canonical_node is None:
            self._canonical_node = Web3RollupNodeSource(
                build_web3(config.l2_node_web3_url, config.rpc_timeout), "canonical-node"
            )
        if self._verifier_node is None:
            self._verifier_node = Web3RollupNodeSource(
                build_web3(config.l2_verifier_node_web3_url, config.rpc_timeout), "verifier-node"
            )

        if config.verification_log_path:
            self._journal = VerificationJournal(config.verification_log_path)
            logger.info("Journaling verification results to %s", self._journal.path)

        self.engine = ReconciliationEngine(
            WindowScanner(self._base_chain, config.l1_confirmations, config.batch_size),
            BatchDecoder(self._base_chain),
            TripleVerifier(self._canonical_node, self._verifier_node),
            self.status,
            deployment_block=config.l1_deployment_block,
            start_block=config.l2_start_block,
            block_number_offset=config.l2_block_number_offset,
            poll_interval=config.poll_interval_seconds,
            source_retry_limit=config.source_retry_limit,
            journal=self._journal,
        )

    def _start_status_server(self) -> None:
        server_config = uvicorn.Config(
            create_app(self.status),
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
        self._server = uvicorn.Server(server_config)
        self._server_thread = threading.Thread(
            target=self._server.run, name="status-api", daemon=True
        )
        self._server_thread.start()
        logger.info("Status API listening on %s:%d", self.config.host, self.config.port)

    def run(self, *, serve_status: bool = True) -> ExitCode:
        """
        Run until stopped, halted-then-stopped, or a fatal error.

        After a halt the engine does no further work; the status API keeps
        serving the frozen snapshot until :meth:`stop` is called.
        """
        try:
            self._init()
            if serve_status:
                self._start_status_server()

            self.engine.run(self.stop_event)
            if self.engine.halted:
                logger.error("Engine halted; serving the final checkpoint until stopped")
                self.stop_event.wait()
                return ExitCode.MISMATCH_DETECTED
            return ExitCode.SUCCESS
        except ConfigurationError as exc:
            logger.error("Configuration error: %s", exc)
            return ExitCode.CONFIGURATION_ERROR
        except DecodeError:
            logger.exception("Undecodable commitment; stopping")
            return ExitCode.DECODE_FAILURE
        except SourceUnavailable:
            logger.exception("Source unavailable; stopping")
            return ExitCode.SOURCE_UNAVAILABLE
        finally:
            self._shutdown()

    def stop(self) -> None:
        self.stop_event.set()

    def _shutdown(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
            if self._server_thread is not None:
                self._server_thread.join(timeout=5)
        if self._journal is not None:
            self._journal.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    try:
        config = load_config(argv)
    except ConfigurationError as exc:
        print(f"[fatal] {exc}", file=sys.stderr)
        return int(ExitCode.CONFIGURATION_ERROR)

    configure_logging(config.log_level)
    service = FraudDetectorService(config)

    def _handle_signal(signum, _frame) -> None:
        logger.info("Received %s; stopping after the current cycle", signal.Signals(signum).name)
        service.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    return int(service.run())
