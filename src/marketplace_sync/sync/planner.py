"""Window planner - bounds how many blocks one tick scans."""

from __future__ import annotations

from marketplace_sync.models.records import BlockWindow


def plan_window(
    last_scanned: int,
    latest_on_chain: int,
    max_window: int,
) -> BlockWindow | None:
    """Compute the next inclusive range to scan.

    Returns None when the cursor has already reached the chain head.
    ``max_window`` caps the range so a cursor that fell far behind catches
    up in bounded steps instead of one huge eth_getLogs call.
    """
    if max_window <= 0:
        raise ValueError("max_window must be positive")
    if last_scanned < 0:
        raise ValueError("Block numbers must be non-negative")

    from_block = last_scanned + 1
    to_block = min(last_scanned + max_window, latest_on_chain)
    if from_block > to_block:
        return None
    return BlockWindow(from_block=from_block, to_block=to_block)
