"""Persistence backends."""

from marketplace_sync.storage.sqlite import SQLiteStateStore

__all__ = ["SQLiteStateStore"]
