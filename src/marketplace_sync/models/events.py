"""Decoded contract log entries as delivered by the event source."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from marketplace_sync.errors import DataIntegrityError

REQUEST_CREATED = "RequestCreated"
OFFER_CREATED = "OfferCreated"
REQUEST_ACCEPTED = "RequestAccepted"
OFFER_ACCEPTED = "OfferAccepted"

# Creation before acceptance, requests before offer-dependent effects.
EVENT_ORDER: tuple[str, ...] = (
    REQUEST_CREATED,
    OFFER_CREATED,
    REQUEST_ACCEPTED,
    OFFER_ACCEPTED,
)


@dataclass(frozen=True)
class LogEntry:
    """One decoded contract event.

    ``args`` holds the decoded event fields keyed by their ABI names.
    ``block_timestamp`` is resolved by the source from the hosting block.
    """

    address: str
    transaction_hash: str
    event_name: str
    signature: str  # topic0, 0x-prefixed hex
    block_number: int
    log_index: int
    args: dict[str, Any] = field(default_factory=dict)
    block_timestamp: int | None = None

    def arg(self, name: str) -> Any:
        """Return a decoded field, raising DataIntegrityError if it is absent."""
        try:
            return self.args[name]
        except KeyError:
            raise DataIntegrityError(
                f"{self.event_name} log {self.transaction_hash} has no field {name!r}",
                event_name=self.event_name,
                transaction_hash=self.transaction_hash,
            ) from None

    def int_arg(self, name: str) -> int:
        value = self.arg(name)
        if isinstance(value, bool):
            raise DataIntegrityError(
                f"{self.event_name} field {name!r} is a bool, expected an integer",
                event_name=self.event_name,
                transaction_hash=self.transaction_hash,
            )
        if not isinstance(value, int):
            try:
                return int(value)
            except (TypeError, ValueError):
                raise DataIntegrityError(
                    f"{self.event_name} field {name!r} is not an integer: {value!r}",
                    event_name=self.event_name,
                    transaction_hash=self.transaction_hash,
                ) from None
        return value

    def list_arg(self, name: str) -> list:
        value = self.arg(name)
        if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
            raise DataIntegrityError(
                f"{self.event_name} field {name!r} is not a list: {value!r}",
                event_name=self.event_name,
                transaction_hash=self.transaction_hash,
            )
        return list(value)
