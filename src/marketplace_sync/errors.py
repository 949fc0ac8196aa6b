"""Exception types raised by the sync engine."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all marketplace_sync errors."""


class TransientSourceError(SyncError):
    """RPC timeout, connection loss or node-side error. The tick is retried."""


class DataIntegrityError(SyncError):
    """A log entry could not be decoded against the contract ABI.

    Fatal for the current tick: nothing from the offending entry is applied
    and the cursor is not advanced.
    """

    def __init__(
        self,
        message: str,
        event_name: str | None = None,
        transaction_hash: str | None = None,
    ) -> None:
        super().__init__(message)
        self.event_name = event_name
        self.transaction_hash = transaction_hash


class ConfigError(SyncError):
    """Missing or invalid configuration."""
