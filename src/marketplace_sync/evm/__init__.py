"""EVM ledger access via web3."""

from marketplace_sync.evm.source import Web3EventSource, load_abi

__all__ = ["Web3EventSource", "load_abi"]
