from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from planboard.core.errors import CapacityValidationError, PlanningError
from planboard.core.models import (
    ALL_LINES,
    AllocationReason,
    AllocationRequest,
    AllocationResult,
    BulkEvaluation,
    CapacityStatus,
    LineCapacitySnapshot,
    LineLoadSummary,
    PlanningGroup,
)


# Utilization tiers (percent). These match the legend drawn on the board.
TIGHT_THRESHOLD = 75.0
OVERLOAD_THRESHOLD = 100.0

# New assignments are refused when they would reach this utilization.
REJECTION_THRESHOLD = OVERLOAD_THRESHOLD


def utilization(allocated: float, capacity: float) -> float:
    if capacity is None or capacity <= 0:
        raise CapacityValidationError(f"capacity must be > 0 (got {capacity!r})")
    return float(allocated) / float(capacity) * 100.0


def classify(value: LineCapacitySnapshot | float) -> CapacityStatus:
    """Capacity tier of a line (or of a raw utilization percentage)."""
    pct = value.utilization if isinstance(value, LineCapacitySnapshot) else float(value)
    if pct >= OVERLOAD_THRESHOLD:
        return CapacityStatus.OVERLOADED
    if pct >= TIGHT_THRESHOLD:
        return CapacityStatus.TIGHT
    return CapacityStatus.AVAILABLE


def filter_by_group(
    lines: Iterable[LineCapacitySnapshot],
    group: PlanningGroup | str | None,
) -> list[LineCapacitySnapshot]:
    """Lines visible under a planning group, in catalog order.

    `"all"` (or None) keeps every line. Ids listed by the group that are not in the
    catalog are ignored: a group is a filter, not a checked relation.
    """
    lines = list(lines)
    if group is None or group == ALL_LINES:
        return lines
    if not isinstance(group, PlanningGroup):
        raise PlanningError(f"unsupported planning group: {group!r}")
    wanted = set(group.line_ids)
    return [ln for ln in lines if ln.line_id in wanted]


def _is_valid_quantity(qty: object) -> bool:
    try:
        q = float(qty)
    except (TypeError, ValueError):
        return False
    return not math.isnan(q) and q > 0


def evaluate_assignment(
    line: LineCapacitySnapshot | None,
    requested_quantity: float,
    *,
    allow_overload: bool = False,
    order_id: str | None = None,
) -> AllocationResult:
    """Decide whether `requested_quantity` can be added to `line`.

    Accepted while the projected utilization stays strictly below 100 %. With
    `allow_overload` the assignment is still accepted past that point but carries
    the `accepted-over-capacity` warning.
    """
    if line is None:
        return AllocationResult(
            order_id=order_id,
            line_id=None,
            requested_quantity=requested_quantity,
            accepted=False,
            reason=AllocationReason.LINE_NOT_FOUND,
        )

    line.validate()
    current = line.utilization

    if not _is_valid_quantity(requested_quantity):
        return AllocationResult(
            order_id=order_id,
            line_id=line.line_id,
            requested_quantity=requested_quantity,
            accepted=False,
            resulting_utilization=current,
            status=classify(current),
            reason=AllocationReason.INVALID_QUANTITY,
        )

    projected = utilization(line.allocated + float(requested_quantity), line.capacity)

    if projected < REJECTION_THRESHOLD:
        accepted, reason = True, None
    elif allow_overload:
        accepted, reason = True, AllocationReason.ACCEPTED_OVER_CAPACITY
    else:
        accepted, reason = False, AllocationReason.EXCEEDS_CAPACITY

    resulting = projected if accepted else current
    return AllocationResult(
        order_id=order_id,
        line_id=line.line_id,
        requested_quantity=requested_quantity,
        accepted=accepted,
        projected_utilization=projected,
        resulting_utilization=resulting,
        status=classify(resulting),
        reason=reason,
    )


def evaluate_bulk(
    requests: Iterable[AllocationRequest],
    lines: Iterable[LineCapacitySnapshot],
    *,
    group: PlanningGroup | str | None = ALL_LINES,
    allow_overload: bool = False,
) -> BulkEvaluation:
    """Evaluate several assignments as one batch, in submission order.

    Every request sees the consumption of the requests accepted before it on the
    same line. Rejections do not stop the batch. The running allocations live in a
    private dict; neither `lines` nor the snapshots in it are modified.

    Raises:
        CapacityValidationError: a snapshot in `lines` is malformed.
        PlanningError: the same order id appears twice in the batch.
    """
    requests = list(requests)
    catalog: dict[str, LineCapacitySnapshot] = {}
    for ln in lines:
        ln.validate()
        catalog[ln.line_id] = ln
    in_scope = {ln.line_id for ln in filter_by_group(catalog.values(), group)}

    seen: set[str] = set()
    for req in requests:
        if req.order_id in seen:
            raise PlanningError(f"order {req.order_id!r} appears more than once in the batch")
        seen.add(req.order_id)

    running: dict[str, float] = {}
    accepted_count: dict[str, int] = {}
    rejected_count: dict[str, int] = {}
    results: list[AllocationResult] = []

    for req in requests:
        line_id = req.candidate_line_id
        if line_id is None or str(line_id).strip() == "":
            results.append(_unplaced(req, None, AllocationReason.LINE_NOT_SELECTED))
            continue
        line = catalog.get(line_id)
        if line is None:
            results.append(_unplaced(req, line_id, AllocationReason.LINE_NOT_FOUND))
            continue
        if line_id not in in_scope:
            results.append(_unplaced(req, line_id, AllocationReason.LINE_NOT_IN_GROUP))
            continue

        allocated = running.setdefault(line_id, float(line.allocated))
        result = evaluate_assignment(
            line.with_allocated(allocated),
            req.requested_quantity,
            allow_overload=allow_overload or req.allow_overload,
            order_id=req.order_id,
        )
        if result.accepted:
            running[line_id] = allocated + float(req.requested_quantity)
            accepted_count[line_id] = accepted_count.get(line_id, 0) + 1
        else:
            rejected_count[line_id] = rejected_count.get(line_id, 0) + 1
        results.append(result)

    summaries = tuple(
        LineLoadSummary(
            line_id=line_id,
            capacity=float(catalog[line_id].capacity),
            allocated_before=float(catalog[line_id].allocated),
            allocated_after=allocated,
            accepted_count=accepted_count.get(line_id, 0),
            rejected_count=rejected_count.get(line_id, 0),
        )
        for line_id, allocated in running.items()
    )
    return BulkEvaluation(results=tuple(results), lines=summaries)


def _unplaced(req: AllocationRequest, line_id: str | None, reason: AllocationReason) -> AllocationResult:
    return AllocationResult(
        order_id=req.order_id,
        line_id=line_id,
        requested_quantity=req.requested_quantity,
        accepted=False,
        reason=reason,
    )


def pending_line_selection(requests: Iterable[AllocationRequest]) -> list[str]:
    """Order ids of requests that still have no candidate line."""
    return [
        r.order_id
        for r in requests
        if r.candidate_line_id is None or str(r.candidate_line_id).strip() == ""
    ]


def suggest_lines(
    lines: Iterable[LineCapacitySnapshot],
    requested_quantity: float,
    *,
    group: PlanningGroup | str | None = ALL_LINES,
    allow_overload: bool = False,
) -> list[AllocationResult]:
    """Lines that would accept the quantity, least loaded (after assignment) first.

    Ties keep catalog order.
    """
    candidates = filter_by_group(lines, group)
    scored: list[tuple[float, int, AllocationResult]] = []
    for pos, ln in enumerate(candidates):
        res = evaluate_assignment(ln, requested_quantity, allow_overload=allow_overload)
        if res.accepted:
            scored.append((float(res.resulting_utilization or 0.0), pos, res))
    scored.sort(key=lambda x: (x[0], x[1]))
    return [res for _, _, res in scored]


@dataclass(frozen=True)
class CapacityOverview:
    line_count: int
    total_capacity: float
    total_allocated: float
    average_utilization: float
    by_status: dict[CapacityStatus, int] = field(default_factory=dict)

    @property
    def remaining(self) -> float:
        return max(0.0, self.total_capacity - self.total_allocated)


def summarize_lines(lines: Iterable[LineCapacitySnapshot]) -> CapacityOverview:
    """Overview figures of a set of lines (typically one planning group)."""
    lines = list(lines)
    by_status = {s: 0 for s in CapacityStatus}
    utils: list[float] = []
    for ln in lines:
        u = ln.utilization
        utils.append(u)
        by_status[classify(u)] += 1
    return CapacityOverview(
        line_count=len(lines),
        total_capacity=sum(float(ln.capacity) for ln in lines),
        total_allocated=sum(float(ln.allocated) for ln in lines),
        average_utilization=(sum(utils) / len(utils)) if utils else 0.0,
        by_status=by_status,
    )


UNKNOWN_FACTORY = "(no factory)"


def summary_by_factory(
    evaluation: BulkEvaluation,
    lines: Iterable[LineCapacitySnapshot],
) -> dict[str, list[AllocationResult]]:
    """Accepted allocations grouped by the factory of their line.

    Factories appear in the order their first accepted allocation was made.
    """
    factory_of = {ln.line_id: (ln.factory or UNKNOWN_FACTORY) for ln in lines}
    out: dict[str, list[AllocationResult]] = {}
    for res in evaluation.accepted:
        factory = factory_of.get(str(res.line_id), UNKNOWN_FACTORY)
        out.setdefault(factory, []).append(res)
    return out
