"""Tests for configuration loading and validation."""

import pytest

from fraud_detector.config import _OPTIONS, DetectorConfig, load_config
from fraud_detector.errors import ConfigurationError
from fraud_detector.runtime_env import MissingEnvironmentVariable

MANAGER = "0x" + "ab" * 20
SCC = "0x" + "cd" * 20

BASE_ENV = {
    "L1_NODE_WEB3_URL": "http://l1:8545",
    "L2_NODE_WEB3_URL": "http://l2:8545",
    "L2_VERIFIER_NODE_WEB3_URL": "https://verifier:8545",
    "ADDRESS_MANAGER_ADDRESS": MANAGER,
    "L1_DEPLOYMENT_BLOCK": "1234",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for _, env_name, _ in _OPTIONS:
        monkeypatch.delenv(env_name, raising=False)


@pytest.fixture
def env(monkeypatch):
    for key, value in BASE_ENV.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


def test_from_env_defaults(env):
    config = DetectorConfig.from_env()

    assert config.l1_deployment_block == 1234
    assert config.l2_start_block == 1
    assert config.l2_block_number_offset == 0
    assert config.l2_check_interval == 60000
    assert config.poll_interval_seconds == 60.0
    assert config.l1_confirmations == 8
    assert config.batch_size == 1000
    assert config.port == 8555
    assert config.source_retry_limit == 0
    assert config.verification_log_path is None
    # addresses are normalised to checksum form
    assert config.address_manager_address.lower() == MANAGER
    assert config.address_manager_address != MANAGER


@pytest.mark.parametrize(
    "missing",
    ["L1_NODE_WEB3_URL", "L2_NODE_WEB3_URL", "L2_VERIFIER_NODE_WEB3_URL", "L1_DEPLOYMENT_BLOCK"],
)
def test_missing_required_option(env, missing):
    env.delenv(missing)
    with pytest.raises(MissingEnvironmentVariable, match=missing):
        DetectorConfig.from_env()


def test_contract_address_is_required(env):
    env.delenv("ADDRESS_MANAGER_ADDRESS")
    with pytest.raises(MissingEnvironmentVariable):
        DetectorConfig.from_env()


def test_explicit_commitment_chain_address_is_enough(env):
    env.delenv("ADDRESS_MANAGER_ADDRESS")
    env.setenv("STATE_COMMITMENT_CHAIN_ADDRESS", SCC)

    config = DetectorConfig.from_env()

    assert config.address_manager_address is None
    assert config.state_commitment_chain_address.lower() == SCC


@pytest.mark.parametrize(
    "name, value",
    [
        ("L1_NODE_WEB3_URL", "l1:8545"),
        ("L2_NODE_WEB3_URL", "ftp://l2"),
        ("ADDRESS_MANAGER_ADDRESS", "0x1234"),
        ("L1_DEPLOYMENT_BLOCK", "0"),
        ("L1_DEPLOYMENT_BLOCK", "soon"),
        ("L2_START_BLOCK", "0"),
        ("L2_CHECK_INTERVAL", "0"),
        ("BATCH_SIZE", "-1"),
        ("L1_CONFIRMATIONS", "-1"),
        ("PORT", "70000"),
        ("LOG_LEVEL", "CHATTY"),
        ("LOG_LEVEL", "WARN"),
        ("LOG_LEVEL", "FATAL"),
        ("LOG_LEVEL", "NOTSET"),
    ],
)
def test_invalid_values_are_configuration_errors(env, name, value):
    env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        DetectorConfig.from_env()


def test_start_block_must_exceed_offset(env):
    env.setenv("L2_BLOCK_NUMBER_OFFSET", "100")
    env.setenv("L2_START_BLOCK", "100")
    with pytest.raises(ConfigurationError, match="L2_START_BLOCK"):
        DetectorConfig.from_env()

    env.setenv("L2_START_BLOCK", "101")
    assert DetectorConfig.from_env().l2_start_block == 101


def test_yaml_file_with_kebab_case_keys(tmp_path):
    path = tmp_path / "detector.yaml"
    path.write_text(
        "l1-node-web3-url: http://l1:8545\n"
        "l2-node-web3-url: http://l2:8545\n"
        "l2-verifier-node-web3-url: http://verifier:8545\n"
        f"state-commitment-chain-address: '{SCC}'\n"
        "l1-deployment-block: 77\n"
        "l1-confirmations: 0\n"
        "log-level: debug\n",
        encoding="utf-8",
    )

    config = DetectorConfig.from_yaml(str(path))

    assert config.l1_deployment_block == 77
    assert config.l1_confirmations == 0
    assert config.log_level == "DEBUG"


def test_yaml_unknown_key_is_rejected(tmp_path):
    path = tmp_path / "detector.yaml"
    path.write_text("l1-node-url: http://l1:8545\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="l1_node_url"):
        DetectorConfig.from_yaml(str(path))


def test_missing_yaml_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        DetectorConfig.from_yaml(str(tmp_path / "absent.yaml"))


def test_precedence_yaml_then_env_then_flags(tmp_path, env):
    path = tmp_path / "detector.yaml"
    path.write_text("batch_size: 10\nl1_confirmations: 3\nport: 9000\n", encoding="utf-8")
    env.setenv("BATCH_SIZE", "20")
    env.setenv("PORT", "9100")

    config = load_config(["--config", str(path), "--port", "9200"])

    assert config.l1_confirmations == 3  # yaml only
    assert config.batch_size == 20  # env beats yaml
    assert config.port == 9200  # flag beats env


def test_to_dict_round_trips(env):
    config = DetectorConfig.from_env()
    assert DetectorConfig.from_mapping(config.to_dict()) == config


def test_log_level_is_normalised_for_uvicorn(env):
    env.setenv("LOG_LEVEL", "warning")

    config = DetectorConfig.from_env()

    assert config.log_level == "WARNING"


def test_range_errors_use_ascii_messages(env):
    env.setenv("L1_CONFIRMATIONS", "-1")

    with pytest.raises(ConfigurationError, match="L1_CONFIRMATIONS must be >=0") as excinfo:
        DetectorConfig.from_env()
    assert str(excinfo.value).isascii()
