"""Block-range scanning and event projection."""

from marketplace_sync.sync.orchestrator import SyncOrchestrator
from marketplace_sync.sync.planner import plan_window
from marketplace_sync.sync.projectors import PROJECTORS

__all__ = ["SyncOrchestrator", "plan_window", "PROJECTORS"]
