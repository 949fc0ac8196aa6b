"""Sync orchestrator - one catch-up tick from the cursor toward the chain head."""

from __future__ import annotations

import asyncio
import logging
import time

from marketplace_sync.interfaces.source import EventSource
from marketplace_sync.interfaces.store import CursorStore, EntityStore
from marketplace_sync.models.config import DEFAULT_MAX_WINDOW
from marketplace_sync.models.records import TickReport
from marketplace_sync.sync.planner import plan_window
from marketplace_sync.sync.projectors import PROJECTORS, Projector

log = logging.getLogger(__name__)


class SyncOrchestrator:
    """Scans one bounded window per tick and projects its events.

    Each tick:
    1. Reads the chain head and the cursor (seeding it on first run)
    2. Plans the next window; returns early when already caught up
    3. Fetches every event type in fixed order and applies its projector
       to each entry, sequentially and in source order
    4. Commits the cursor to the window's upper bound

    Any exception aborts the tick before step 4, so the same window is
    scanned again next time. Ticks never overlap: a call made while one is
    in flight returns a "skipped" report.
    """

    def __init__(
        self,
        source: EventSource,
        cursor_store: CursorStore,
        entity_store: EntityStore,
        start_block: int = 0,
        max_window: int = DEFAULT_MAX_WINDOW,
        projectors: dict[str, Projector] | None = None,
    ) -> None:
        if max_window <= 0:
            raise ValueError("max_window must be positive")
        if start_block < 0:
            raise ValueError("start_block must be non-negative")
        self._source = source
        self._cursor_store = cursor_store
        self._entity_store = entity_store
        self._start_block = start_block
        self._max_window = max_window
        self._projectors = projectors if projectors is not None else PROJECTORS
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def tick(self) -> TickReport:
        """Run one tick, or skip it if another is still in flight."""
        if self._lock.locked():
            log.debug("Tick still in flight, skipping")
            return TickReport(status="skipped")

        async with self._lock:
            return await self._run_tick()

    async def _load_cursor(self) -> int:
        cursor = await self._cursor_store.get_cursor()
        if cursor is None:
            cursor = self._start_block
            await self._cursor_store.set_cursor(cursor)
            log.info("No cursor stored, seeded at block %d", cursor)
        return cursor

    async def _run_tick(self) -> TickReport:
        start_time = time.monotonic()

        head = await self._source.latest_block()
        cursor = await self._load_cursor()

        window = plan_window(cursor, head, self._max_window)
        if window is None:
            log.debug("Caught up at block %d (head %d)", cursor, head)
            return TickReport(
                status="idle",
                cursor=cursor,
                head=head,
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )

        log.debug(
            "Scanning blocks [%d, %d] (%d behind head)",
            window.from_block, window.to_block, head - cursor,
        )

        counts: dict[str, int] = {}
        for event_name, projector in self._projectors.items():
            entries = await self._source.fetch(
                event_name, window.from_block, window.to_block,
            )
            for entry in entries:
                await projector(entry, self._entity_store)
            counts[event_name] = len(entries)

        await self._cursor_store.set_cursor(window.to_block)

        duration = int((time.monotonic() - start_time) * 1000)
        report = TickReport(
            status="synced",
            window=window,
            cursor=window.to_block,
            head=head,
            events=counts,
            duration_ms=duration,
        )
        log.info(
            "Synced blocks [%d, %d]: %d events in %dms (head %d)",
            window.from_block, window.to_block, report.total_events, duration, head,
        )
        return report
