"""Tests for lane stacking of order-blocks on the timeline."""

import pytest

from planboard.core.errors import LaneOverflowError, PlanningError, TaskValidationError
from planboard.core.models import Task
from planboard.layout.stacking import MAX_STACK_LEVELS, by_resource, find_collisions, layout


def _tasks(*rows, resource=None):
    return [Task(task_id=tid, start_index=s, end_index=e, resource_id=resource) for tid, s, e in rows]


def test_board_scenario_lanes():
    tasks = _tasks(("A", 0, 3), ("B", 2, 5), ("C", 4, 7), ("D", 6, 9), ("E", 10, 12))
    result = layout(tasks, 15)

    lanes = {t.task_id: t.stack_level for t in result.stacked}
    assert lanes == {"A": 0, "B": 1, "C": 0, "D": 1, "E": 0}
    assert result.max_stack_level == 1
    assert result.lane_count() == 2
    assert not result.excluded
    assert not result.clamped


def test_block_running_past_window_is_clamped():
    result = layout(_tasks(("F", 12, 20)), 15)

    (f,) = result.stacked
    assert f.effective_start_index == 12
    assert f.effective_end_index == 14
    assert f.end_index == 20
    assert f.clamped is True
    assert result.clamped == [f]


def test_block_ending_on_last_unit_is_not_clamped():
    (t,) = layout(_tasks(("X", 10, 14)), 15).stacked
    assert t.effective_end_index == 14
    assert t.clamped is False


def test_block_starting_after_window_is_excluded():
    result = layout(_tasks(("A", 0, 2), ("LATE", 15, 18)), 15)

    assert [t.task_id for t in result.stacked] == ["A"]
    assert len(result.excluded) == 1
    assert result.excluded[0].task.task_id == "LATE"
    assert result.excluded[0].reason == "outside-window"


def test_touching_blocks_share_a_lane_only_when_disjoint():
    # [0,3] and [3,5] share unit 3, [0,3] and [4,5] do not
    shared = layout(_tasks(("A", 0, 3), ("B", 3, 5)), 10).by_id()
    assert shared["B"].stack_level == 1

    disjoint = layout(_tasks(("A", 0, 3), ("B", 4, 5)), 10).by_id()
    assert disjoint["B"].stack_level == 0


def test_single_unit_block_occupies_its_unit():
    result = layout(_tasks(("A", 5, 5), ("B", 5, 5), ("C", 6, 6)), 10)
    lanes = {t.task_id: t.stack_level for t in result.stacked}
    assert lanes == {"A": 0, "B": 1, "C": 0}
    assert result.by_id()["A"].width_units == 1


def test_input_order_decides_who_gets_the_lower_lane():
    forward = layout(_tasks(("LONG", 0, 9), ("SHORT", 2, 3)), 10).by_id()
    backward = layout(_tasks(("SHORT", 2, 3), ("LONG", 0, 9)), 10).by_id()

    assert forward["LONG"].stack_level == 0
    assert forward["SHORT"].stack_level == 1
    assert backward["SHORT"].stack_level == 0
    assert backward["LONG"].stack_level == 1


def test_output_keeps_input_order():
    tasks = _tasks(("Z", 6, 8), ("A", 0, 1), ("M", 3, 4))
    assert [t.task_id for t in layout(tasks, 10).stacked] == ["Z", "A", "M"]


def test_layout_is_deterministic():
    tasks = _tasks(("A", 0, 5), ("B", 1, 2), ("C", 2, 8), ("D", 3, 3), ("E", 7, 9))
    first = layout(tasks, 10)
    second = layout(list(tasks), 10)
    assert first == second


def test_no_two_blocks_on_a_lane_overlap():
    tasks = [Task(task_id=f"T{i}", start_index=i % 7, end_index=(i % 7) + (i % 4)) for i in range(30)]
    result = layout(tasks, 12, max_lanes=len(tasks))
    assert find_collisions(result.stacked) == []


def test_adding_a_block_at_the_end_never_moves_existing_ones():
    base = _tasks(("A", 0, 3), ("B", 2, 5), ("C", 4, 7))
    before = layout(base, 10).by_id()
    after = layout(base + _tasks(("NEW", 1, 6)), 10).by_id()

    for tid in ("A", "B", "C"):
        assert after[tid].stack_level == before[tid].stack_level
    assert after["NEW"].stack_level == 2


def test_lanes_are_scoped_per_line():
    tasks = [
        Task(task_id="A1", start_index=0, end_index=4, resource_id="L1"),
        Task(task_id="B1", start_index=0, end_index=4, resource_id="L2"),
        Task(task_id="A2", start_index=2, end_index=3, resource_id="L1"),
    ]
    shared = layout(tasks, 10).by_id()
    assert shared["B1"].stack_level == 1
    assert shared["A2"].stack_level == 2

    scoped = layout(tasks, 10, group_key=by_resource)
    ids = scoped.by_id()
    assert ids["A1"].stack_level == 0
    assert ids["B1"].stack_level == 0
    assert ids["A2"].stack_level == 1
    assert ids["A1"].scope == "L1"
    assert [t.task_id for t in scoped.for_scope("L2")] == ["B1"]
    assert scoped.lane_count("L1") == 2
    assert scoped.lane_count("L2") == 1


def test_lane_overflow_raises():
    tasks = _tasks(*[(f"T{i}", 0, 3) for i in range(4)])
    with pytest.raises(LaneOverflowError) as exc:
        layout(tasks, 10, max_lanes=3)
    assert exc.value.task_id == "T3"
    assert exc.value.max_lanes == 3
    assert isinstance(exc.value, PlanningError)


def test_default_lane_bound_allows_exactly_max_levels():
    tasks = _tasks(*[(f"T{i}", 0, 0) for i in range(MAX_STACK_LEVELS)])
    assert layout(tasks, 1).max_stack_level == MAX_STACK_LEVELS - 1

    with pytest.raises(LaneOverflowError):
        layout(tasks + _tasks(("ONE_MORE", 0, 0)), 1)


@pytest.mark.parametrize(
    "task",
    [
        Task(task_id="NEG", start_index=-1, end_index=2),
        Task(task_id="INV", start_index=5, end_index=3),
    ],
)
def test_invalid_ranges_are_rejected(task):
    with pytest.raises(TaskValidationError):
        layout([task], 10)


def test_duplicated_ids_are_rejected():
    with pytest.raises(TaskValidationError, match="duplicated"):
        layout(_tasks(("A", 0, 1), ("A", 3, 4)), 10)


def test_window_must_have_at_least_one_unit():
    with pytest.raises(TaskValidationError):
        layout([], 0)


def test_empty_input():
    result = layout([], 5)
    assert result.stacked == ()
    assert result.max_stack_level == -1
    assert result.lane_count() == 0


def test_input_tasks_are_not_modified():
    tasks = _tasks(("A", 0, 20), ("B", 1, 2))
    snapshot = list(tasks)
    layout(tasks, 5)
    assert tasks == snapshot


def test_lane_count_of_tasks_without_a_line():
    tasks = [
        Task(task_id="A", start_index=0, end_index=3, resource_id="L1"),
        Task(task_id="B", start_index=0, end_index=3, resource_id="L1"),
        Task(task_id="C", start_index=0, end_index=3),
    ]
    result = layout(tasks, 10, group_key=by_resource)

    assert result.lane_count(None) == 1
    assert result.lane_count("L1") == 2
    assert result.lane_count() == 2
