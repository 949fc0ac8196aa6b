"""EventSource protocol - reads decoded contract logs from the ledger."""

from __future__ import annotations

from typing import Protocol

from marketplace_sync.models.events import LogEntry


class EventSource(Protocol):
    """Fetches contract events in bounded block ranges."""

    async def latest_block(self) -> int:
        """Current chain head height."""
        ...

    async def fetch(
        self, event_name: str, from_block: int, to_block: int
    ) -> list[LogEntry]:
        """Return matching logs in chain order. Both bounds inclusive.

        Raises TransientSourceError on RPC failure and DataIntegrityError
        when a log does not decode against the contract ABI.
        """
        ...
