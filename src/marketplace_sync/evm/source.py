"""web3 event source - eth_getLogs over a block range, decoded against the ABI."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable

import aiohttp
from eth_utils import event_abi_to_log_topic
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3._utils.events import get_event_data
from web3.exceptions import Web3Exception

from marketplace_sync.errors import ConfigError, DataIntegrityError, TransientSourceError
from marketplace_sync.models.events import LogEntry

log = logging.getLogger(__name__)

# Block timestamps never change once a block is final; keep a bounded cache.
_TIMESTAMP_CACHE_SIZE = 10_000

_RPC_ERRORS = (Web3Exception, aiohttp.ClientError, OSError, ValueError)


def load_abi(abi_path: str | Path) -> list[dict[str, Any]]:
    """Load a contract ABI from a JSON file.

    Accepts either a bare ABI list or a build artifact with an "abi" key.
    """
    p = Path(abi_path).expanduser()
    try:
        with open(p) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read contract ABI from {p}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("abi")
    if not isinstance(data, list):
        raise ConfigError(f"{p} does not contain a contract ABI list")
    return data


class Web3EventSource:
    """Reads marketplace contract events through an async JSON-RPC endpoint.

    Logs are requested per event type (address + topic0 filter), sorted into
    chain order and decoded against the event ABI. Every RPC call is bounded
    by ``rpc_timeout``; timeouts and node errors surface as
    TransientSourceError, decoding failures as DataIntegrityError.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        abi: list[dict[str, Any]],
        rpc_timeout: float = 30,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._w3 = w3 if w3 is not None else AsyncWeb3(AsyncHTTPProvider(rpc_url))
        try:
            self._address = Web3.to_checksum_address(contract_address)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid contract address {contract_address!r}") from exc
        self._timeout = rpc_timeout
        self._event_abis = {
            item["name"]: item for item in abi if item.get("type") == "event"
        }
        self._timestamps: dict[int, int] = {}

    @property
    def address(self) -> str:
        return self._address

    async def close(self) -> None:
        provider = self._w3.provider
        if hasattr(provider, "disconnect"):
            await provider.disconnect()

    async def _call(self, what: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise TransientSourceError(
                f"{what} timed out after {self._timeout}s"
            ) from exc
        except _RPC_ERRORS as exc:
            raise TransientSourceError(f"{what} failed: {exc}") from exc

    async def latest_block(self) -> int:
        return await self._call("eth_blockNumber", self._w3.eth.block_number)

    async def block_timestamp(self, block_number: int) -> int:
        """Timestamp of a block, looked up once per block number."""
        if block_number in self._timestamps:
            return self._timestamps[block_number]

        block = await self._call(
            f"eth_getBlockByNumber({block_number})",
            self._w3.eth.get_block(block_number),
        )
        timestamp = int(block["timestamp"])
        if len(self._timestamps) >= _TIMESTAMP_CACHE_SIZE:
            self._timestamps.clear()
        self._timestamps[block_number] = timestamp
        return timestamp

    async def fetch(
        self, event_name: str, from_block: int, to_block: int
    ) -> list[LogEntry]:
        if from_block < 0 or to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if from_block > to_block:
            raise ValueError("from_block must be <= to_block")

        event_abi = self._event_abis.get(event_name)
        if event_abi is None:
            raise DataIntegrityError(
                f"Event {event_name!r} is not in the contract ABI",
                event_name=event_name,
            )

        topic = Web3.to_hex(event_abi_to_log_topic(event_abi))
        raw_logs = await self._call(
            f"eth_getLogs({event_name}, {from_block}-{to_block})",
            self._w3.eth.get_logs({
                "address": self._address,
                "topics": [topic],
                "fromBlock": from_block,
                "toBlock": to_block,
            }),
        )
        raw_logs = sorted(raw_logs, key=lambda l: (l["blockNumber"], l["logIndex"]))

        entries: list[LogEntry] = []
        for raw in raw_logs:
            tx_hash = Web3.to_hex(raw["transactionHash"])
            try:
                decoded = get_event_data(self._w3.codec, event_abi, raw)
            except Exception as exc:
                raise DataIntegrityError(
                    f"Cannot decode {event_name} log in tx {tx_hash}: {exc}",
                    event_name=event_name,
                    transaction_hash=tx_hash,
                ) from exc

            block_number = int(decoded["blockNumber"])
            entries.append(LogEntry(
                address=decoded["address"],
                transaction_hash=tx_hash,
                event_name=decoded["event"],
                signature=topic,
                block_number=block_number,
                log_index=int(decoded["logIndex"]),
                args=dict(decoded["args"]),
                block_timestamp=await self.block_timestamp(block_number),
            ))

        if entries:
            log.debug(
                "Fetched %d %s logs in [%d, %d]",
                len(entries), event_name, from_block, to_block,
            )
        return entries
