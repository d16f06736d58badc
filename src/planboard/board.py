from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta

from planboard.allocation.buckets import LearningCurve, plan_quantity
from planboard.allocation.capacity import evaluate_bulk, filter_by_group
from planboard.core.models import (
    ALL_LINES,
    AllocationReason,
    AllocationRequest,
    AllocationResult,
    CapacityStatus,
    ExcludedTask,
    LineCapacitySnapshot,
    PlanningGroup,
    StackedTask,
    Task,
)
from planboard.layout.stacking import MAX_STACK_LEVELS, by_resource, layout


@dataclass(frozen=True)
class LineView:
    line: LineCapacitySnapshot
    tasks: tuple[StackedTask, ...]

    @property
    def lanes(self) -> int:
        return max((t.stack_level for t in self.tasks), default=-1) + 1

    @property
    def utilization(self) -> float:
        return self.line.utilization

    @property
    def status(self) -> CapacityStatus:
        return self.line.status


@dataclass(frozen=True)
class BoardView:
    lines: tuple[LineView, ...]
    excluded: tuple[ExcludedTask, ...]
    unassigned: tuple[Task, ...]
    displayed_units_length: int

    @property
    def clamped(self) -> list[StackedTask]:
        return [t for lv in self.lines for t in lv.tasks if t.clamped]

    @property
    def start_clamped(self) -> list[StackedTask]:
        """Blocks that began before the window and are drawn from its first unit."""
        return [t for lv in self.lines for t in lv.tasks if t.start_clamped]

    def line(self, line_id: str) -> LineView | None:
        for lv in self.lines:
            if lv.line.line_id == line_id:
                return lv
        return None


@dataclass(frozen=True)
class AssignmentPreview:
    result: AllocationResult
    placement: StackedTask | None
    line_view: LineView | None
    outside_window: bool = False


def plan_board(
    tasks: list[Task],
    lines: list[LineCapacitySnapshot],
    *,
    displayed_units_length: int,
    group: PlanningGroup | str | None = ALL_LINES,
    max_lanes: int = MAX_STACK_LEVELS,
) -> BoardView:
    """Lay out the scheduled blocks of every line visible under `group`.

    Each line is stacked on its own sub-timeline. Tasks without a line come back
    as `unassigned`; tasks on lines hidden by the group are left out.
    """
    visible = filter_by_group(lines, group)
    visible_ids = {ln.line_id for ln in visible}

    on_board = [t for t in tasks if t.resource_id is not None and t.resource_id in visible_ids]
    unassigned = tuple(t for t in tasks if t.resource_id is None)

    result = layout(on_board, displayed_units_length, group_key=by_resource, max_lanes=max_lanes)

    views = tuple(
        LineView(line=ln, tasks=tuple(result.for_scope(ln.line_id)))
        for ln in visible
    )
    return BoardView(
        lines=views,
        excluded=result.excluded,
        unassigned=unassigned,
        displayed_units_length=result.displayed_units_length,
    )


_UNPLACEABLE = {
    AllocationReason.LINE_NOT_FOUND,
    AllocationReason.LINE_NOT_SELECTED,
    AllocationReason.LINE_NOT_IN_GROUP,
}


def preview_assignment(
    tasks: list[Task],
    lines: list[LineCapacitySnapshot],
    request: AllocationRequest,
    *,
    start_index: int,
    duration_units: int,
    displayed_units_length: int,
    group: PlanningGroup | str | None = ALL_LINES,
    allow_overload: bool = False,
    max_lanes: int = MAX_STACK_LEVELS,
) -> AssignmentPreview:
    """Capacity verdict plus the lane the order would take on its candidate line.

    The hypothetical block is stacked after the blocks already on the line, so it
    never displaces them. A block already on the line for the same order is
    replaced by the hypothetical one: its quantity is released from the line's
    load before the check, so moving an order along its own line is not counted
    twice.
    """
    if duration_units < 1:
        raise ValueError(f"duration_units must be >= 1 (got {duration_units!r})")

    previous = next(
        (
            t
            for t in tasks
            if t.task_id == request.order_id
            and t.resource_id is not None
            and t.resource_id == request.candidate_line_id
        ),
        None,
    )
    checked = list(lines)
    as_given = {ln.line_id: ln for ln in checked}
    if previous is not None:
        released = float(previous.quantity or 0.0)
        checked = [
            ln.with_allocated(max(0.0, ln.allocated - released)) if ln.line_id == previous.resource_id else ln
            for ln in checked
        ]

    evaluation = evaluate_bulk([request], checked, group=group, allow_overload=allow_overload)
    result = evaluation.results[0]
    if result.reason in _UNPLACEABLE:
        return AssignmentPreview(result=result, placement=None, line_view=None)

    line = next(ln for ln in checked if ln.line_id == result.line_id)
    candidate = Task(
        task_id=request.order_id,
        start_index=start_index,
        end_index=start_index + duration_units - 1,
        resource_id=line.line_id,
        quantity=request.requested_quantity,
    )
    existing = [t for t in tasks if t.resource_id == line.line_id and t.task_id != request.order_id]
    laid = layout(existing + [candidate], displayed_units_length, max_lanes=max_lanes)

    # a rejected move leaves the line as it was, old block included
    shown_line = as_given[line.line_id]
    if result.accepted:
        shown_line = line.with_allocated(line.allocated + float(request.requested_quantity))

    placement = laid.by_id().get(candidate.task_id)
    view = LineView(line=shown_line, tasks=laid.stacked)
    return AssignmentPreview(
        result=result,
        placement=placement,
        line_view=view,
        outside_window=placement is None,
    )


def block_duration(
    quantity: float,
    capacity: float,
    *,
    period_days: int,
    curve: LearningCurve | None = None,
) -> int:
    """Timeline units an order of `quantity` occupies on a line.

    `capacity` is the line's output per planning period of `period_days` days.
    With a learning curve the ramp-up days produce less; the block never grows
    past four periods.
    """
    if period_days < 1:
        raise ValueError(f"period_days must be >= 1 (got {period_days!r})")
    if capacity is None or capacity <= 0:
        raise ValueError(f"capacity must be > 0 (got {capacity!r})")
    daily = float(capacity) / period_days
    if curve is None:
        return min(period_days * 4, max(1, math.ceil(float(quantity) / daily)))
    plan = plan_quantity(float(quantity), max_days=period_days * 4, curve=curve, daily_capacity=daily)
    if not plan.is_complete:
        return period_days * 4
    return plan.duration_days


def planned_dates(
    accepted: Iterable[AllocationResult],
    orders: Mapping[str, Mapping],
    lines: Iterable[LineCapacitySnapshot],
    *,
    period_days: int,
    default_start: date,
) -> dict[str, tuple[str, str]]:
    """ISO start/end dates for accepted orders that have no dates yet.

    An order keeps its own start date when it has one; otherwise it starts on
    `default_start`. The end follows from `block_duration` on the chosen line.
    """
    capacity_of = {ln.line_id: ln.capacity for ln in lines}
    out: dict[str, tuple[str, str]] = {}
    for r in accepted:
        order = orders[str(r.order_id)]
        if order.get("start_date") and order.get("end_date"):
            continue
        start = date.fromisoformat(str(order["start_date"])) if order.get("start_date") else default_start
        units = block_duration(float(r.requested_quantity), capacity_of[str(r.line_id)], period_days=period_days)
        out[str(r.order_id)] = (start.isoformat(), (start + timedelta(days=units - 1)).isoformat())
    return out
