"""Protocol interfaces for all marketplace_sync components."""

from marketplace_sync.interfaces.source import EventSource
from marketplace_sync.interfaces.store import CursorStore, EntityStore, StateStore

__all__ = ["EventSource", "CursorStore", "EntityStore", "StateStore"]
