"""marketplace_sync - projects marketplace contract events into a queryable store."""

__version__ = "0.1.0"
