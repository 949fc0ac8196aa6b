"""Event projectors - one idempotent entity-store mutation per log entry.

Every mutation is an upsert or an update keyed by a stable identity taken
from the event itself, so re-applying a window after a crash converges to
the same state.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from marketplace_sync.interfaces.store import EntityStore
from marketplace_sync.models.events import (
    EVENT_ORDER,
    OFFER_ACCEPTED,
    OFFER_CREATED,
    REQUEST_ACCEPTED,
    REQUEST_CREATED,
    LogEntry,
)
from marketplace_sync.models.records import Lifecycle, OfferRecord, RequestRecord

log = logging.getLogger(__name__)

Projector = Callable[[LogEntry, EntityStore], Awaitable[None]]


async def project_request_created(entry: LogEntry, store: EntityStore) -> None:
    """Record a new buyer request in the Created state."""
    request = RequestRecord(
        transaction_hash=entry.transaction_hash,
        request_id=entry.int_arg("requestId"),
        address=entry.address,
        event_name=entry.event_name,
        signature=entry.signature,
        buyer_address=str(entry.arg("buyerAddress")),
        images=[str(i) for i in entry.list_arg("images")],
        lifecycle=Lifecycle.CREATED,
        request_name=str(entry.arg("requestName")),
        description=str(entry.arg("description")),
        latitude=str(entry.arg("latitude")),
        longitude=str(entry.arg("longitude")),
        buyer_id=entry.int_arg("buyerId"),
        seller_ids=[int(s) for s in entry.list_arg("sellerIds")],
        sellers_price_quote=entry.int_arg("sellersPriceQuote"),
        locked_seller_id=entry.int_arg("lockedSellerId"),
        created_at=entry.int_arg("createdAt"),
        updated_at=entry.int_arg("updatedAt"),
        block_number=entry.block_number,
        block_timestamp=entry.block_timestamp,
    )
    await store.upsert_request(request)
    log.debug(
        "Request %d projected from %s (block %d)",
        request.request_id, entry.transaction_hash, entry.block_number,
    )


async def project_offer_created(entry: LogEntry, store: EntityStore) -> None:
    """Record an offer and move its request from Created to HasOffers."""
    offer = OfferRecord(
        transaction_hash=entry.transaction_hash,
        offer_id=entry.int_arg("offerId"),
        request_id=entry.int_arg("requestId"),
        address=entry.address,
        event_name=entry.event_name,
        signature=entry.signature,
        seller_address=str(entry.arg("sellerAddress")),
        store_name=str(entry.arg("storeName")),
        price=entry.int_arg("price"),
        images=[str(i) for i in entry.list_arg("images")],
        seller_id=entry.int_arg("sellerId"),
        is_accepted=False,
        block_number=entry.block_number,
        block_timestamp=entry.block_timestamp,
    )
    await store.upsert_offer(offer)

    request = await store.get_request(offer.request_id)
    if request is None:
        # Not fatal: the ledger orders events, it does not guarantee the
        # parent request was projected first.
        log.warning(
            "Offer %d references unknown request %d, lifecycle not advanced",
            offer.offer_id, offer.request_id,
        )
        return

    if request.lifecycle == Lifecycle.CREATED:
        await store.update_request(
            offer.request_id,
            lifecycle=Lifecycle.HAS_OFFERS,
            expected_lifecycle=Lifecycle.CREATED,
        )
        log.debug("Request %d now has offers", offer.request_id)


async def project_request_accepted(entry: LogEntry, store: EntityStore) -> None:
    """Lock a request to the accepted seller.

    Applied regardless of the current lifecycle: acceptance is authoritative.
    """
    request_id = entry.int_arg("requestId")
    seller_id = entry.int_arg("sellerId")
    updated_at = entry.int_arg("updatedAt")

    matched = await store.update_request(
        request_id,
        lifecycle=Lifecycle.ACCEPTED,
        locked_seller_id=seller_id,
        updated_at=updated_at,
    )
    if not matched:
        log.warning(
            "RequestAccepted for unknown request %d (tx %s), skipped",
            request_id, entry.transaction_hash,
        )
        return
    log.debug("Request %d accepted, locked to seller %d", request_id, seller_id)


async def project_offer_accepted(entry: LogEntry, store: EntityStore) -> None:
    offer_id = entry.int_arg("offerId")
    is_accepted = bool(entry.arg("isAccepted"))

    matched = await store.set_offer_accepted(offer_id, is_accepted)
    if not matched:
        log.warning(
            "OfferAccepted for unknown offer %d (tx %s), skipped",
            offer_id, entry.transaction_hash,
        )


_HANDLERS: dict[str, Projector] = {
    REQUEST_CREATED: project_request_created,
    OFFER_CREATED: project_offer_created,
    REQUEST_ACCEPTED: project_request_accepted,
    OFFER_ACCEPTED: project_offer_accepted,
}

# Iteration order is the order events are applied within a window.
PROJECTORS: dict[str, Projector] = {name: _HANDLERS[name] for name in EVENT_ORDER}
