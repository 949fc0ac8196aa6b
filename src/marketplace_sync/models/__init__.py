"""Data models for the marketplace_sync daemon."""

from marketplace_sync.models.config import DEFAULT_MAX_WINDOW, SyncConfig
from marketplace_sync.models.events import (
    EVENT_ORDER,
    OFFER_ACCEPTED,
    OFFER_CREATED,
    REQUEST_ACCEPTED,
    REQUEST_CREATED,
    LogEntry,
)
from marketplace_sync.models.records import (
    BlockWindow,
    Lifecycle,
    OfferRecord,
    RequestRecord,
    TickReport,
)

__all__ = [
    "DEFAULT_MAX_WINDOW", "SyncConfig",
    "EVENT_ORDER", "REQUEST_CREATED", "OFFER_CREATED", "REQUEST_ACCEPTED",
    "OFFER_ACCEPTED", "LogEntry",
    "BlockWindow", "Lifecycle", "OfferRecord", "RequestRecord", "TickReport",
]
