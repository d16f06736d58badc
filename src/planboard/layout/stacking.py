from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable

from planboard.core.errors import LaneOverflowError, TaskValidationError
from planboard.core.models import ExcludedTask, LayoutResult, StackedTask, Task


# Lanes 0..MAX_STACK_LEVELS-1 may be used on any one scope.
MAX_STACK_LEVELS = 12


def by_resource(task: Task) -> Hashable:
    """Grouping key that stacks each production line on its own sub-timeline."""
    return task.resource_id


def validate_tasks(tasks: Iterable[Task], displayed_units_length: int) -> None:
    if displayed_units_length is None or int(displayed_units_length) < 1:
        raise TaskValidationError(f"displayed_units_length must be >= 1 (got {displayed_units_length!r})")

    seen: set[str] = set()
    for t in tasks:
        if t.task_id in seen:
            raise TaskValidationError(f"duplicated task id {t.task_id!r}")
        seen.add(t.task_id)
        if t.start_index < 0 or t.end_index < 0:
            raise TaskValidationError(
                f"task {t.task_id!r}: negative range [{t.start_index}, {t.end_index}]"
            )
        if t.start_index > t.end_index:
            raise TaskValidationError(
                f"task {t.task_id!r}: start_index {t.start_index} > end_index {t.end_index}"
            )


def _first_free_lane(
    occupied: dict[int, set[int]],
    start: int,
    end: int,
    *,
    task_id: str,
    max_lanes: int,
) -> int:
    lane = 0
    while lane < max_lanes:
        if all(lane not in occupied.get(unit, ()) for unit in range(start, end + 1)):
            return lane
        lane += 1
    raise LaneOverflowError(task_id, max_lanes)


def layout(
    tasks: list[Task],
    displayed_units_length: int,
    *,
    group_key: Callable[[Task], Hashable] | None = None,
    max_lanes: int = MAX_STACK_LEVELS,
) -> LayoutResult:
    """Assign a stack level to every task so that blocks sharing a lane never overlap.

    Args:
        tasks: Order-blocks in priority order. The order is kept as given: earlier
            tasks claim the lowest free lane first.
        displayed_units_length: Number of units in the visible window; valid unit
            indices are 0..displayed_units_length-1.
        group_key: Lane scope. None stacks every task on one shared surface;
            `by_resource` stacks each line independently.
        max_lanes: Safety bound on lanes per scope.

    Returns:
        LayoutResult with the stacked tasks (input order) and the tasks excluded
        because they start after the window.

    Raises:
        TaskValidationError: negative, inverted or duplicated task ranges.
        LaneOverflowError: a task would need lane >= max_lanes. No partial
            layout is returned in that case.
    """
    tasks = list(tasks)
    validate_tasks(tasks, displayed_units_length)
    if max_lanes < 1:
        raise TaskValidationError(f"max_lanes must be >= 1 (got {max_lanes!r})")

    last_unit = int(displayed_units_length) - 1

    # scope -> unit index -> occupied lanes
    occupancy: dict[Hashable, dict[int, set[int]]] = {}
    stacked: list[StackedTask] = []
    excluded: list[ExcludedTask] = []

    for task in tasks:
        if task.start_index > last_unit:
            excluded.append(ExcludedTask(task=task))
            continue

        effective_end = min(task.end_index, last_unit)
        scope = group_key(task) if group_key is not None else None
        occupied = occupancy.setdefault(scope, {})

        lane = _first_free_lane(
            occupied,
            task.start_index,
            effective_end,
            task_id=task.task_id,
            max_lanes=max_lanes,
        )
        for unit in range(task.start_index, effective_end + 1):
            occupied.setdefault(unit, set()).add(lane)

        stacked.append(
            StackedTask(
                task_id=task.task_id,
                resource_id=task.resource_id,
                start_index=task.start_index,
                end_index=task.end_index,
                effective_start_index=task.start_index,
                effective_end_index=effective_end,
                stack_level=lane,
                clamped=effective_end != task.end_index,
                scope=scope,
                label=task.label,
                quantity=task.quantity,
                start_clamped=task.start_clamped,
            )
        )

    return LayoutResult(
        stacked=tuple(stacked),
        excluded=tuple(excluded),
        displayed_units_length=int(displayed_units_length),
    )


def find_collisions(stacked: Iterable[StackedTask]) -> list[tuple[str, str]]:
    """Return pairs of task ids that share scope and lane and overlap in time.

    An empty list means the layout is drawable without blocks covering each other.
    """
    items = list(stacked)
    out: list[tuple[str, str]] = []
    for i, a in enumerate(items):
        for b in items[i + 1:]:
            if a.scope == b.scope and a.stack_level == b.stack_level and a.overlaps(b):
                out.append((a.task_id, b.task_id))
    return out
