"""Web3EventSource against a scripted in-process JSON-RPC stand-in."""

from __future__ import annotations

import asyncio
import json

import pytest
from eth_abi import encode
from eth_utils import event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3

from marketplace_sync.errors import ConfigError, DataIntegrityError, TransientSourceError
from marketplace_sync.evm.source import Web3EventSource, load_abi

from tests.factories import CONTRACT, tx_hash

OFFER_ACCEPTED_ABI = {
    "type": "event",
    "name": "OfferAccepted",
    "anonymous": False,
    "inputs": [
        {"name": "offerId", "type": "uint256", "indexed": False},
        {"name": "isAccepted", "type": "bool", "indexed": False},
    ],
}
REQUEST_ACCEPTED_ABI = {
    "type": "event",
    "name": "RequestAccepted",
    "anonymous": False,
    "inputs": [
        {"name": "requestId", "type": "uint256", "indexed": False},
        {"name": "sellerId", "type": "uint256", "indexed": False},
        {"name": "updatedAt", "type": "uint256", "indexed": False},
    ],
}
ABI = [
    OFFER_ACCEPTED_ABI,
    REQUEST_ACCEPTED_ABI,
    {"type": "function", "name": "acceptOffer", "inputs": [], "outputs": []},
]


def raw_offer_accepted(
    offer_id: int, block: int, log_index: int, is_accepted: bool = True, data=None,
) -> dict:
    return {
        "address": CONTRACT,
        "topics": [HexBytes(event_abi_to_log_topic(OFFER_ACCEPTED_ABI))],
        "data": HexBytes(
            data if data is not None else encode(["uint256", "bool"], [offer_id, is_accepted])
        ),
        "blockNumber": block,
        "logIndex": log_index,
        "transactionIndex": 0,
        "transactionHash": HexBytes(tx_hash(f"raw-{block}-{log_index}")),
        "blockHash": HexBytes(b"\x01" * 32),
    }


class FakeEth:
    """Just enough of ``AsyncWeb3.eth`` for the event source."""

    def __init__(self, head: int = 0) -> None:
        self.head = head
        self.logs: list[dict] = []
        self.filters: list[dict] = []
        self.block_requests: list[int] = []
        self.error: Exception | None = None
        self.hang = False

    @property
    def block_number(self):
        return self._block_number()

    async def _block_number(self) -> int:
        if self.hang:
            await asyncio.sleep(10)
        if self.error:
            raise self.error
        return self.head

    async def get_logs(self, params: dict) -> list[dict]:
        self.filters.append(params)
        if self.error:
            raise self.error
        return list(self.logs)

    async def get_block(self, block_number: int) -> dict:
        self.block_requests.append(block_number)
        return {"number": block_number, "timestamp": 1_700_000_000 + block_number}


class FakeWeb3:
    def __init__(self, head: int = 0) -> None:
        self.eth = FakeEth(head)
        self.codec = Web3().codec
        self.provider = object()


@pytest.fixture
def w3():
    return FakeWeb3(head=500)


@pytest.fixture
def evm_source(w3):
    return Web3EventSource(
        "http://127.0.0.1:8545", CONTRACT.lower(), ABI, rpc_timeout=0.1, w3=w3,
    )


# ── ABI loading ────────────────────────────────────────────────────


def test_load_abi_bare_list(tmp_path):
    path = tmp_path / "finder.abi.json"
    path.write_text(json.dumps(ABI))
    assert load_abi(path) == ABI


def test_load_abi_build_artifact(tmp_path):
    path = tmp_path / "Finder.json"
    path.write_text(json.dumps({"contractName": "Finder", "abi": ABI}))
    assert load_abi(path) == ABI


def test_load_abi_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_abi(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text('{"bytecode": "0x00"}')
    with pytest.raises(ConfigError):
        load_abi(bad)


# ── Reads ──────────────────────────────────────────────────────────


async def test_latest_block(evm_source):
    assert await evm_source.latest_block() == 500


async def test_address_is_checksummed(evm_source):
    assert evm_source.address == CONTRACT


async def test_fetch_filters_by_address_and_topic(evm_source, w3):
    await evm_source.fetch("OfferAccepted", 10, 20)

    (params,) = w3.eth.filters
    assert params["address"] == CONTRACT
    assert params["topics"] == [Web3.to_hex(event_abi_to_log_topic(OFFER_ACCEPTED_ABI))]
    assert params["fromBlock"] == 10
    assert params["toBlock"] == 20


async def test_fetch_decodes_in_chain_order(evm_source, w3):
    w3.eth.logs = [
        raw_offer_accepted(3, block=12, log_index=0),
        raw_offer_accepted(2, block=11, log_index=4, is_accepted=False),
        raw_offer_accepted(1, block=11, log_index=1),
    ]

    entries = await evm_source.fetch("OfferAccepted", 10, 20)

    assert [e.args["offerId"] for e in entries] == [1, 2, 3]
    first = entries[0]
    assert first.event_name == "OfferAccepted"
    assert first.address == CONTRACT
    assert first.transaction_hash == tx_hash("raw-11-1")
    assert first.args["isAccepted"] is True
    assert entries[1].args["isAccepted"] is False
    assert first.block_timestamp == 1_700_000_011


async def test_block_timestamps_cached(evm_source, w3):
    w3.eth.logs = [
        raw_offer_accepted(1, block=11, log_index=0),
        raw_offer_accepted(2, block=11, log_index=1),
    ]

    await evm_source.fetch("OfferAccepted", 10, 20)
    await evm_source.fetch("OfferAccepted", 10, 20)

    assert w3.eth.block_requests == [11]


async def test_fetch_unknown_event(evm_source):
    with pytest.raises(DataIntegrityError):
        await evm_source.fetch("acceptOffer", 10, 20)


async def test_fetch_rejects_inverted_range(evm_source):
    with pytest.raises(ValueError):
        await evm_source.fetch("OfferAccepted", 20, 10)


# ── Failures ───────────────────────────────────────────────────────


async def test_undecodable_log(evm_source, w3):
    w3.eth.logs = [raw_offer_accepted(1, block=11, log_index=0, data=b"\x00" * 7)]

    with pytest.raises(DataIntegrityError) as exc_info:
        await evm_source.fetch("OfferAccepted", 10, 20)

    assert exc_info.value.event_name == "OfferAccepted"
    assert exc_info.value.transaction_hash == tx_hash("raw-11-0")


async def test_node_error_is_transient(evm_source, w3):
    w3.eth.error = OSError("connection refused")

    with pytest.raises(TransientSourceError):
        await evm_source.fetch("OfferAccepted", 10, 20)
    with pytest.raises(TransientSourceError):
        await evm_source.latest_block()


async def test_timeout_is_transient(evm_source, w3):
    w3.eth.hang = True

    with pytest.raises(TransientSourceError):
        await evm_source.latest_block()


async def test_close_without_disconnect(evm_source):
    await evm_source.close()


def test_invalid_contract_address(w3):
    with pytest.raises(ConfigError):
        Web3EventSource("http://127.0.0.1:8545", "", ABI, w3=w3)
