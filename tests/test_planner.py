"""Window planning bounds."""

from __future__ import annotations

import pytest

from marketplace_sync.models.records import BlockWindow
from marketplace_sync.sync.planner import plan_window


def test_window_capped_by_max_window():
    """Far behind the head → window is max_window blocks wide."""
    window = plan_window(100, 5000, 2000)
    assert window == BlockWindow(from_block=101, to_block=2100)
    assert len(window) == 2000


def test_window_capped_by_head():
    """One block behind → single-block window ending at the head."""
    assert plan_window(4999, 5000, 2000) == BlockWindow(5000, 5000)


def test_caught_up_is_noop():
    assert plan_window(5000, 5000, 2000) is None


def test_cursor_ahead_of_head_is_noop():
    """A start block configured past the head waits for the chain."""
    assert plan_window(6000, 5000, 2000) is None


def test_window_of_one():
    assert plan_window(0, 10, 1) == BlockWindow(1, 1)


@pytest.mark.parametrize("max_window", [0, -5])
def test_non_positive_window_rejected(max_window):
    with pytest.raises(ValueError):
        plan_window(100, 5000, max_window)


def test_negative_cursor_rejected():
    with pytest.raises(ValueError):
        plan_window(-1, 5000, 2000)
