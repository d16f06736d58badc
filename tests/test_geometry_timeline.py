from datetime import date

import pytest

from planboard.core.models import Task
from planboard.layout.geometry import LANE_GAP, MIN_BLOCK_HEIGHT, block_geometry, row_height_for
from planboard.layout.stacking import layout
from planboard.layout.timeline import displayed_units, task_in_window, unit_index


def test_block_geometry_by_lane():
    result = layout(
        [
            Task(task_id="A", start_index=2, end_index=4),
            Task(task_id="B", start_index=3, end_index=3),
        ],
        10,
    ).by_id()

    a = block_geometry(result["A"], unit_width=30, row_height=28)
    assert (a.left, a.width, a.height, a.top) == (60, 90, 28, 4)

    b = block_geometry(result["B"], unit_width=30, row_height=28)
    assert b.height == 26
    assert b.top == 4 + 1 * (26 + LANE_GAP)


def test_block_height_never_drops_below_minimum():
    stacked = layout([Task(task_id=f"T{i}", start_index=0, end_index=0) for i in range(8)], 1).stacked
    deepest = block_geometry(stacked[-1], unit_width=10, row_height=14)
    assert deepest.height == MIN_BLOCK_HEIGHT


def test_clamped_block_is_drawn_to_window_edge():
    (t,) = layout([Task(task_id="F", start_index=12, end_index=20)], 15).stacked
    g = block_geometry(t, unit_width=10, row_height=20)
    assert g.left == 120
    assert g.width == 30


def test_row_height_grows_with_lanes():
    one = row_height_for(1, row_height=28)
    three = row_height_for(3, row_height=28)
    assert one == 36
    assert three > one


def test_displayed_units():
    days = displayed_units(date(2026, 3, 30), 3)
    assert days == [date(2026, 3, 30), date(2026, 3, 31), date(2026, 4, 1)]
    with pytest.raises(ValueError):
        displayed_units(date(2026, 3, 30), 0)


def test_unit_index_is_signed():
    start = date(2026, 5, 10)
    assert unit_index(date(2026, 5, 10), start) == 0
    assert unit_index(date(2026, 5, 13), start) == 3
    assert unit_index(date(2026, 5, 8), start) == -2


def test_task_in_window_clamps_start_and_keeps_end():
    start = date(2026, 5, 10)
    t = task_in_window("O1", date(2026, 5, 7), date(2026, 6, 30), window_start=start, resource_id="L1")
    assert t is not None
    assert t.start_index == 0
    assert t.end_index == 51
    assert t.resource_id == "L1"


def test_task_in_window_drops_finished_blocks():
    start = date(2026, 5, 10)
    assert task_in_window("O1", date(2026, 5, 1), date(2026, 5, 9), window_start=start) is None


def test_task_in_window_rejects_inverted_dates():
    with pytest.raises(ValueError):
        task_in_window("O1", date(2026, 5, 12), date(2026, 5, 11), window_start=date(2026, 5, 10))


def test_task_in_window_flags_clipped_start():
    start = date(2026, 1, 5)
    early = task_in_window("O1", date(2026, 1, 1), date(2026, 1, 10), window_start=start)
    inside = task_in_window("O2", date(2026, 1, 5), date(2026, 1, 10), window_start=start)

    assert (early.start_index, early.start_clamped) == (0, True)
    assert inside.start_clamped is False

    (stacked,) = layout([early], 15).stacked
    assert stacked.start_clamped is True
    assert stacked.clamped is False
