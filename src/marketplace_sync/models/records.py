"""Derived entity records and sync results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


class Lifecycle(IntEnum):
    """Request lifecycle. Only ever moves forward: 0 -> 1 -> 2."""

    CREATED = 0
    HAS_OFFERS = 1
    ACCEPTED = 2


@dataclass
class RequestRecord:
    """A buyer request as persisted in the entity store."""

    transaction_hash: str
    request_id: int
    address: str = ""
    event_name: str = ""
    signature: str = ""
    buyer_address: str = ""
    images: list[str] = field(default_factory=list)
    lifecycle: Lifecycle = Lifecycle.CREATED
    request_name: str = ""
    description: str = ""
    latitude: str = ""
    longitude: str = ""
    buyer_id: int = 0
    seller_ids: list[int] = field(default_factory=list)
    sellers_price_quote: int = 0
    locked_seller_id: int = 0
    created_at: int = 0  # contract timestamp
    updated_at: int = 0  # contract timestamp
    block_number: int = 0
    block_timestamp: int | None = None


@dataclass
class OfferRecord:
    """A seller offer as persisted in the entity store."""

    transaction_hash: str
    offer_id: int
    request_id: int
    address: str = ""
    event_name: str = ""
    signature: str = ""
    seller_address: str = ""
    store_name: str = ""
    price: int = 0
    images: list[str] = field(default_factory=list)
    seller_id: int = 0
    is_accepted: bool = False
    block_number: int = 0
    block_timestamp: int | None = None


@dataclass(frozen=True)
class BlockWindow:
    """Inclusive block range scanned in one tick."""

    from_block: int
    to_block: int

    def __len__(self) -> int:
        return self.to_block - self.from_block + 1


@dataclass
class TickReport:
    """Outcome of one sync tick."""

    status: str  # "synced", "idle" or "skipped"
    window: BlockWindow | None = None
    cursor: int | None = None  # committed cursor after the tick
    head: int | None = None  # chain head observed during the tick
    events: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def total_events(self) -> int:
        return sum(self.events.values())
