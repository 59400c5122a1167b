"""
Fraud Detector Configuration

Options are layered in increasing precedence:

1. YAML file passed with ``--config`` (keys in snake_case or kebab-case)
2. Process environment (a ``.env`` file is loaded by the entry point)
3. Command-line flags
"""

from __future__ import annotations

import argparse
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import yaml

from .errors import ConfigurationError
from .runtime_env import (
    MissingEnvironmentVariable,
    get_optional_env,
    validate_address,
    validate_web3_url,
)

__all__ = [
    "DetectorConfig",
    "build_arg_parser",
    "load_config",
]

# (field name, environment variable, type)
_OPTIONS: Tuple[Tuple[str, str, type], ...] = (
    ("l1_node_web3_url", "L1_NODE_WEB3_URL", str),
    ("l2_node_web3_url", "L2_NODE_WEB3_URL", str),
    ("l2_verifier_node_web3_url", "L2_VERIFIER_NODE_WEB3_URL", str),
    ("address_manager_address", "ADDRESS_MANAGER_ADDRESS", str),
    ("state_commitment_chain_address", "STATE_COMMITMENT_CHAIN_ADDRESS", str),
    ("l1_deployment_block", "L1_DEPLOYMENT_BLOCK", int),
    ("l2_start_block", "L2_START_BLOCK", int),
    ("l2_block_number_offset", "L2_BLOCK_NUMBER_OFFSET", int),
    ("l2_check_interval", "L2_CHECK_INTERVAL", int),
    ("l1_confirmations", "L1_CONFIRMATIONS", int),
    ("batch_size", "BATCH_SIZE", int),
    ("host", "HOST", str),
    ("port", "PORT", int),
    ("rpc_timeout", "RPC_TIMEOUT", float),
    ("source_retry_limit", "SOURCE_RETRY_LIMIT", int),
    ("verification_log_path", "VERIFICATION_LOG_PATH", str),
    ("log_level", "LOG_LEVEL", str),
)

_REQUIRED = (
    "l1_node_web3_url",
    "l2_node_web3_url",
    "l2_verifier_node_web3_url",
    "l1_deployment_block",
)

# Levels understood by both logging and uvicorn
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

_ENV_BY_FIELD = {name: env for name, env, _ in _OPTIONS}
_TYPE_BY_FIELD = {name: kind for name, _, kind in _OPTIONS}


@dataclass
class DetectorConfig:
    """Configuration for a single fraud detector process."""

    # Endpoints
    l1_node_web3_url: str
    l2_node_web3_url: str
    l2_verifier_node_web3_url: str

    # Base-chain block where the StateCommitmentChain was deployed
    l1_deployment_block: int

    # Contract addresses; an explicit SCC address skips AddressManager lookup
    address_manager_address: Optional[str] = None
    state_commitment_chain_address: Optional[str] = None

    # First rollup block to verify
    l2_start_block: int = 1
    # rollup block number = 1-based sequence position + offset
    l2_block_number_offset: int = 0

    # Milliseconds between cycles once the scanner has caught up
    l2_check_interval: int = 60000
    l1_confirmations: int = 8
    # Maximum scan window, in base-chain blocks
    batch_size: int = 1000

    # Status interface
    host: str = "0.0.0.0"
    port: int = 8555

    # Transport
    rpc_timeout: float = 30.0
    # Consecutive SourceUnavailable cycles tolerated; 0 retries forever
    source_retry_limit: int = 0

    # Optional JSONL journal of every verification result
    verification_log_path: Optional[str] = None

    log_level: str = "INFO"

    @property
    def poll_interval_seconds(self) -> float:
        return self.l2_check_interval / 1000.0

    # ---------------------------------------------------------------------#
    # Validation
    # ---------------------------------------------------------------------#

    def validate(self) -> None:
        """Validate the option set, normalising addresses to checksum form.

        Raises:
            ConfigurationError: On any missing or out-of-range option
        """
        validate_web3_url(self.l1_node_web3_url, context="L1_NODE_WEB3_URL")
        validate_web3_url(self.l2_node_web3_url, context="L2_NODE_WEB3_URL")
        validate_web3_url(
            self.l2_verifier_node_web3_url, context="L2_VERIFIER_NODE_WEB3_URL"
        )

        if not self.address_manager_address and not self.state_commitment_chain_address:
            raise MissingEnvironmentVariable(
                "Must pass ADDRESS_MANAGER_ADDRESS or STATE_COMMITMENT_CHAIN_ADDRESS"
            )
        if self.address_manager_address:
            self.address_manager_address = validate_address(
                self.address_manager_address, context="ADDRESS_MANAGER_ADDRESS"
            )
        if self.state_commitment_chain_address:
            self.state_commitment_chain_address = validate_address(
                self.state_commitment_chain_address,
                context="STATE_COMMITMENT_CHAIN_ADDRESS",
            )

        if self.l1_deployment_block <= 0:
            raise ConfigurationError(
                f"L1_DEPLOYMENT_BLOCK must be >0, got {self.l1_deployment_block}"
            )
        if self.l2_block_number_offset < 0:
            raise ConfigurationError(
                f"L2_BLOCK_NUMBER_OFFSET must be >=0, got {self.l2_block_number_offset}"
            )
        if self.l2_start_block <= self.l2_block_number_offset:
            raise ConfigurationError(
                f"L2_START_BLOCK must be greater than L2_BLOCK_NUMBER_OFFSET "
                f"({self.l2_block_number_offset}), got {self.l2_start_block}"
            )
        for attr_name in ("l2_check_interval", "batch_size", "rpc_timeout"):
            value = getattr(self, attr_name)
            if value <= 0:
                raise ConfigurationError(f"{_ENV_BY_FIELD[attr_name]} must be >0, got {value}")
        for attr_name in ("l1_confirmations", "source_retry_limit"):
            value = getattr(self, attr_name)
            if value < 0:
                raise ConfigurationError(f"{_ENV_BY_FIELD[attr_name]} must be >=0, got {value}")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"PORT must be in 1..65535, got {self.port}")

        level = self.log_level.upper()
        if level not in _LOG_LEVELS:
            raise ConfigurationError(
                f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}"
            )
        self.log_level = level

    # ---------------------------------------------------------------------#
    # Serialization helpers
    # ---------------------------------------------------------------------#

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and JSON serialization."""
        return asdict(self)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "DetectorConfig":
        """
        Build and validate a config from already-merged option values.

        Unknown keys are rejected so that typos in YAML files do not pass
        silently.
        """
        unknown = sorted(set(values) - set(_TYPE_BY_FIELD))
        if unknown:
            raise ConfigurationError(f"Unknown configuration option(s): {', '.join(unknown)}")

        for name in _REQUIRED:
            if values.get(name) in (None, ""):
                raise MissingEnvironmentVariable(f"Must pass {_ENV_BY_FIELD[name]}")

        coerced = {
            name: _coerce(name, value)
            for name, value in values.items()
            if value is not None
        }
        config = cls(**coerced)
        config.validate()
        return config

    @classmethod
    def from_env(cls) -> "DetectorConfig":
        """Load configuration from environment variables only."""
        return cls.from_mapping(_read_env())

    @classmethod
    def from_yaml(cls, filepath: str) -> "DetectorConfig":
        """Load configuration from a YAML file only."""
        return cls.from_mapping(_read_yaml(filepath))


def _coerce(name: str, value: Any) -> Any:
    kind = _TYPE_BY_FIELD[name]
    if isinstance(value, kind) and not isinstance(value, bool):
        return value
    try:
        if kind is int:
            if isinstance(value, str):
                return int(value.strip(), 10)
            if isinstance(value, bool) or int(value) != value:
                raise ValueError(value)
            return int(value)
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"{_ENV_BY_FIELD[name]} must be of type {kind.__name__} (got {value!r})"
        ) from exc


def _read_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, env_name, _ in _OPTIONS:
        raw = get_optional_env(env_name)
        if raw is not None:
            values[name] = raw
    return values


def _read_yaml(filepath: str) -> Dict[str, Any]:
    if not os.path.exists(filepath):
        raise ConfigurationError(f"Config file not found: {filepath}")
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Config file {filepath} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {filepath} must contain a mapping")
    return {str(key).replace("-", "_"): value for key, value in data.items()}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fraud-detector",
        description=(
            "Cross-check rollup state-root commitments against a canonical "
            "node and a verifier node."
        ),
    )
    parser.add_argument("--config", help="YAML file with configuration options")
    for name, env_name, kind in _OPTIONS:
        parser.add_argument(
            "--" + name.replace("_", "-"),
            dest=name,
            type=kind,
            default=None,
            help=f"overrides ${env_name}",
        )
    return parser


def load_config(argv: Optional[Sequence[str]] = None) -> DetectorConfig:
    """Parse ``argv`` and merge YAML, environment and flag values."""
    args = build_arg_parser().parse_args(argv)

    values: Dict[str, Any] = {}
    if args.config:
        values.update(_read_yaml(args.config))
    values.update(_read_env())
    for name, _, _ in _OPTIONS:
        flag_value = getattr(args, name)
        if flag_value is not None:
            values[name] = flag_value

    return DetectorConfig.from_mapping(values)
