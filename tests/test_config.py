"""Configuration loading: TOML file, env overrides and validation."""

from __future__ import annotations

import pytest

from marketplace_sync.config import load_config
from marketplace_sync.errors import ConfigError
from marketplace_sync.models.config import DEFAULT_MAX_WINDOW

CONFIG_TOML = """
[daemon]
poll_interval = 3
log_level = "warning"

[chain]
rpc_url = "https://rpc.testnet.example"
contract_address = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
abi_path = "/etc/marketplace/finder.abi.json"
start_block = 1200
max_window = 500

[storage]
db_path = "/var/lib/marketplace/state.db"
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "RPC_URL", "CONTRACT_ADDRESS", "ABI_PATH", "START_BLOCK",
        "MAX_WINDOW", "DB_PATH", "POLL_INTERVAL", "DEBUG",
    ):
        monkeypatch.delenv(f"MARKETPLACE_SYNC_{name}", raising=False)


def test_defaults_without_file():
    cfg = load_config(None)
    assert cfg.max_window == DEFAULT_MAX_WINDOW
    assert cfg.start_block == 0
    assert cfg.contract_address == ""
    assert cfg.debug is False


def test_toml_file(tmp_path):
    path = tmp_path / "sync.toml"
    path.write_text(CONFIG_TOML)

    cfg = load_config(path)

    assert cfg.poll_interval == 3
    assert cfg.log_level == "warning"
    assert cfg.rpc_url == "https://rpc.testnet.example"
    assert cfg.start_block == 1200
    assert cfg.max_window == 500
    assert cfg.db_path == "/var/lib/marketplace/state.db"


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "sync.toml"
    path.write_text(CONFIG_TOML)
    monkeypatch.setenv("MARKETPLACE_SYNC_RPC_URL", "http://localhost:8545")
    monkeypatch.setenv("MARKETPLACE_SYNC_START_BLOCK", "0")
    monkeypatch.setenv("MARKETPLACE_SYNC_MAX_WINDOW", "100")
    monkeypatch.setenv("MARKETPLACE_SYNC_DEBUG", "true")

    cfg = load_config(path)

    assert cfg.rpc_url == "http://localhost:8545"
    assert cfg.start_block == 0
    assert cfg.max_window == 100
    assert cfg.debug is True


def test_invalid_numeric_env(monkeypatch):
    monkeypatch.setenv("MARKETPLACE_SYNC_MAX_WINDOW", "lots")
    with pytest.raises(ConfigError):
        load_config(None)


def test_non_positive_window_rejected(tmp_path):
    path = tmp_path / "sync.toml"
    path.write_text("[chain]\nmax_window = -1\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_malformed_toml(tmp_path):
    path = tmp_path / "sync.toml"
    path.write_text("[chain\nrpc_url = ")
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize(
    "body",
    [
        "[chain]\nrpc_timeout = -1\n",
        "[chain]\nrpc_timeout = 0\n",
        "[storage]\nretry_delay = 0\n",
        "[daemon]\npoll_interval = 0\n",
    ],
)
def test_non_positive_delays_rejected(tmp_path, body):
    path = tmp_path / "sync.toml"
    path.write_text(body)
    with pytest.raises(ConfigError):
        load_config(path)


def test_section_must_be_table(tmp_path):
    path = tmp_path / "sync.toml"
    path.write_text("daemon = 5\n")
    with pytest.raises(ConfigError):
        load_config(path)
