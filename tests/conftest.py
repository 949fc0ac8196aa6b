"""Shared fixtures for marketplace_sync tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from marketplace_sync.daemon import SyncDaemon
from marketplace_sync.models.config import SyncConfig
from marketplace_sync.storage.sqlite import SQLiteStateStore
from marketplace_sync.sync.orchestrator import SyncOrchestrator

from tests.factories import CONTRACT
from tests.mocks import MockEventSource

START_BLOCK = 100
MAX_WINDOW = 2000


def pytest_configure(config):
    """Add sync settings to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Contract"] = CONTRACT
    meta["Start block"] = START_BLOCK
    meta["Max window"] = MAX_WINDOW


def make_test_config(**overrides) -> SyncConfig:
    """Build a SyncConfig suitable for testing."""
    defaults = dict(
        poll_interval=0.01,
        rpc_url="http://127.0.0.1:8545",
        contract_address=CONTRACT,
        abi_path="unused.abi.json",
        start_block=START_BLOCK,
        max_window=MAX_WINDOW,
        rpc_timeout=1,
        db_path=":memory:",
        retry_delay=0.01,
    )
    defaults.update(overrides)
    return SyncConfig(**defaults)


@pytest.fixture
def test_config():
    """Default SyncConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStateStore."""
    s = SQLiteStateStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def source():
    return MockEventSource(head=START_BLOCK)


@pytest.fixture
def orchestrator(source, store):
    """SyncOrchestrator over the mock chain and the in-memory store."""
    return SyncOrchestrator(
        source=source,
        cursor_store=store,
        entity_store=store,
        start_block=START_BLOCK,
        max_window=MAX_WINDOW,
    )


@pytest.fixture
def daemon(test_config, store, source):
    """SyncDaemon wired to the mock chain and the already-open store."""
    return SyncDaemon(test_config, store=store, source=source)
