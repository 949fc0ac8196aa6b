"""Configuration models for the sync daemon."""

from __future__ import annotations

from dataclasses import dataclass


DEFAULT_MAX_WINDOW = 2000


@dataclass
class SyncConfig:
    """Complete daemon configuration."""

    # Daemon
    poll_interval: float = 5  # seconds between ticks
    log_level: str = "info"
    debug: bool = False

    # Chain
    rpc_url: str = "http://127.0.0.1:8545"
    contract_address: str = ""
    abi_path: str = "finder.abi.json"
    start_block: int = 0  # seeds the cursor when none is stored
    max_window: int = DEFAULT_MAX_WINDOW  # blocks per tick
    rpc_timeout: float = 30  # seconds per RPC call

    # Storage
    db_path: str = "~/.marketplace_sync/state.db"
    retry_delay: float = 5  # seconds between store connection attempts
