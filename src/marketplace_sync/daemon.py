"""Main daemon loop - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal
import time

import aiosqlite

from marketplace_sync.errors import DataIntegrityError, TransientSourceError
from marketplace_sync.evm.source import Web3EventSource, load_abi
from marketplace_sync.interfaces.source import EventSource
from marketplace_sync.interfaces.store import StateStore
from marketplace_sync.models.config import SyncConfig
from marketplace_sync.models.records import TickReport
from marketplace_sync.storage.sqlite import SQLiteStateStore
from marketplace_sync.sync.orchestrator import SyncOrchestrator

log = logging.getLogger(__name__)


class SyncDaemon:
    """Background projector for the marketplace contract.

    Owns the ledger client and the state store: opens the store (retrying
    until it succeeds), runs one sync tick per poll interval, and closes
    both on shutdown. Ticks run back to back on a single task, so a slow
    tick delays the next one instead of overlapping it.
    """

    def __init__(
        self,
        cfg: SyncConfig,
        store: StateStore | None = None,
        source: EventSource | None = None,
    ) -> None:
        self._cfg = cfg
        self._running = False

        # Core components
        self.store = store if store is not None else SQLiteStateStore(cfg.db_path)
        self.source = source if source is not None else Web3EventSource(
            cfg.rpc_url,
            cfg.contract_address,
            load_abi(cfg.abi_path),
            rpc_timeout=cfg.rpc_timeout,
        )
        self.orchestrator = SyncOrchestrator(
            source=self.source,
            cursor_store=self.store,
            entity_store=self.store,
            start_block=cfg.start_block,
            max_window=cfg.max_window,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Open the store and run the tick loop until stopped."""
        log.info("Starting marketplace_sync daemon")
        log.info("  Contract: %s", self._cfg.contract_address)
        log.info("  RPC: %s", self._cfg.rpc_url)
        log.info("  DB: %s", self._cfg.db_path)
        log.info("  Window: %d blocks every %ss", self._cfg.max_window, self._cfg.poll_interval)

        self._running = True
        try:
            if await self.connect_store():
                await self._main_loop()
        finally:
            await self.shutdown()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._running = False

    async def connect_store(self) -> bool:
        """Open the state store, retrying with a fixed delay.

        Returns False if the daemon was stopped before a connection was made.
        """
        while self._running:
            try:
                await self.store.initialize()
                log.info("State store ready")
                return True
            except (aiosqlite.Error, OSError) as exc:
                log.error(
                    "Failed to open state store, retrying in %ss: %s",
                    self._cfg.retry_delay, exc,
                )
                await asyncio.sleep(self._cfg.retry_delay)
        return False

    async def run_once(self) -> TickReport | None:
        """Run one tick, logging failures instead of raising.

        A failed tick leaves the cursor where it was, so the next call
        retries the same window.
        """
        try:
            return await self.orchestrator.tick()
        except DataIntegrityError as exc:
            log.error(
                "Data integrity failure (event=%s tx=%s), window not committed: %s",
                exc.event_name, exc.transaction_hash, exc,
            )
        except TransientSourceError as exc:
            log.warning("Ledger unavailable, retrying next tick: %s", exc)
        except aiosqlite.Error as exc:
            log.error("State store error, retrying next tick: %s", exc)
        return None

    async def _main_loop(self) -> None:
        """The fixed-interval tick loop."""
        while self._running:
            started = time.monotonic()
            try:
                await self.run_once()
            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break
            except Exception as exc:
                log.error("Main loop error: %s", exc, exc_info=True)

            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self._cfg.poll_interval - elapsed))

    async def run_single(self) -> TickReport | None:
        """Open the store, run exactly one tick and shut down."""
        self._running = True
        try:
            if not await self.connect_store():
                return None
            return await self.run_once()
        finally:
            self._running = False
            await self.shutdown()

    async def shutdown(self) -> None:
        """Release the ledger client and the store connection."""
        close = getattr(self.source, "close", None)
        if close is not None:
            await close()
        await self.store.close()


async def run_daemon(cfg: SyncConfig) -> None:
    """Entry point for running the daemon."""
    daemon = SyncDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
