"""Store protocols - the cursor checkpoint and the derived entities."""

from __future__ import annotations

from typing import Protocol

from marketplace_sync.models.records import Lifecycle, OfferRecord, RequestRecord


class CursorStore(Protocol):
    """Persists the single "last scanned block" checkpoint."""

    async def get_cursor(self) -> int | None:
        """Return the last scanned block, or None if never initialized."""
        ...

    async def set_cursor(self, block_number: int) -> None:
        ...


class EntityStore(Protocol):
    """Upsert/lookup surface for the Request and Offer aggregates."""

    # ── Requests ───────────────────────────────────────────

    async def upsert_request(self, request: RequestRecord) -> None:
        """Insert or refresh a request keyed by its creation transaction hash.

        An existing row keeps its lifecycle, locked seller and updated_at.
        """
        ...

    async def get_request(self, request_id: int) -> RequestRecord | None:
        ...

    async def update_request(
        self,
        request_id: int,
        lifecycle: Lifecycle | None = None,
        locked_seller_id: int | None = None,
        updated_at: int | None = None,
        expected_lifecycle: Lifecycle | None = None,
    ) -> bool:
        """Update a request by business id. Returns False if no row matched.

        With ``expected_lifecycle`` the update only applies while the stored
        lifecycle still equals it.
        """
        ...

    # ── Offers ─────────────────────────────────────────────

    async def upsert_offer(self, offer: OfferRecord) -> None:
        """Insert or refresh an offer keyed by its creation transaction hash.

        An existing row keeps its acceptance flag.
        """
        ...

    async def get_offer(self, offer_id: int) -> OfferRecord | None:
        ...

    async def set_offer_accepted(self, offer_id: int, is_accepted: bool) -> bool:
        """Set the acceptance flag. Returns False if no row matched."""
        ...


class StateStore(CursorStore, EntityStore, Protocol):
    """Cursor and entities behind one connection lifecycle."""

    async def initialize(self) -> None:
        """Open the connection and create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...
