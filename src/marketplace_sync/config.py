"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from marketplace_sync.errors import ConfigError
from marketplace_sync.models.config import SyncConfig

_TRUTHY = {"1", "true", "yes", "on"}


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "MARKETPLACE_SYNC_",
) -> SyncConfig:
    """Load daemon configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (MARKETPLACE_SYNC_RPC_URL, etc.)
        2. TOML config file
        3. Defaults from SyncConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            try:
                with open(p, "rb") as f:
                    raw = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"Invalid config file {p}: {exc}") from exc

    cfg = SyncConfig()
    try:
        _apply_file(cfg, raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in config file: {exc}") from exc

    # ── Environment variable overrides (highest priority) ──
    try:
        if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
            cfg.rpc_url = rpc
        if addr := os.environ.get(f"{env_prefix}CONTRACT_ADDRESS"):
            cfg.contract_address = addr
        if abi := os.environ.get(f"{env_prefix}ABI_PATH"):
            cfg.abi_path = abi
        if start := os.environ.get(f"{env_prefix}START_BLOCK"):
            cfg.start_block = int(start)
        if window := os.environ.get(f"{env_prefix}MAX_WINDOW"):
            cfg.max_window = int(window)
        if db := os.environ.get(f"{env_prefix}DB_PATH"):
            cfg.db_path = db
        if interval := os.environ.get(f"{env_prefix}POLL_INTERVAL"):
            cfg.poll_interval = float(interval)
    except ValueError as exc:
        raise ConfigError(f"Invalid numeric environment override: {exc}") from exc
    if debug := os.environ.get(f"{env_prefix}DEBUG"):
        cfg.debug = debug.strip().lower() in _TRUTHY

    if cfg.start_block < 0:
        raise ConfigError("start_block must be non-negative")
    if cfg.max_window <= 0:
        raise ConfigError("max_window must be positive")
    if cfg.poll_interval <= 0:
        raise ConfigError("poll_interval must be positive")
    if cfg.rpc_timeout <= 0:
        raise ConfigError("rpc_timeout must be positive")
    if cfg.retry_delay <= 0:
        raise ConfigError("retry_delay must be positive")

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())
    cfg.abi_path = str(Path(cfg.abi_path).expanduser())

    return cfg


def _apply_file(cfg: SyncConfig, raw: dict) -> None:
    # ── Daemon section ─────────────────────────────────────
    daemon = _section(raw, "daemon")
    if (v := daemon.get("poll_interval")) is not None:
        cfg.poll_interval = float(v)
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)
    if "debug" in daemon:
        cfg.debug = bool(daemon["debug"])

    # ── Chain section ──────────────────────────────────────
    chain = _section(raw, "chain")
    if v := chain.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := chain.get("contract_address"):
        cfg.contract_address = str(v)
    if v := chain.get("abi_path"):
        cfg.abi_path = str(v)
    if (v := chain.get("start_block")) is not None:
        cfg.start_block = int(v)
    if (v := chain.get("max_window")) is not None:
        cfg.max_window = int(v)
    if (v := chain.get("rpc_timeout")) is not None:
        cfg.rpc_timeout = float(v)

    # ── Storage section ────────────────────────────────────
    storage = _section(raw, "storage")
    if v := storage.get("db_path"):
        cfg.db_path = str(v)
    if (v := storage.get("retry_delay")) is not None:
        cfg.retry_delay = float(v)


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table, got {type(section).__name__}")
    return section
