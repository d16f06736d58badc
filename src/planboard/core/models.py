from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass, replace
from enum import Enum

from planboard.core.errors import CapacityValidationError


ALL_LINES = "all"

# lane_count() default: count lanes over every scope, None included
ALL_SCOPES: Hashable = object()


class CapacityStatus(str, Enum):
    AVAILABLE = "available"
    TIGHT = "tight"
    OVERLOADED = "overloaded"


class AllocationReason(str, Enum):
    EXCEEDS_CAPACITY = "exceeds-capacity"
    LINE_NOT_FOUND = "line-not-found"
    INVALID_QUANTITY = "invalid-quantity"
    ACCEPTED_OVER_CAPACITY = "accepted-over-capacity"
    LINE_NOT_SELECTED = "line-not-selected"
    LINE_NOT_IN_GROUP = "line-not-in-group"


@dataclass(frozen=True)
class Task:
    """An order-block occupying the unit range [start_index, end_index] of the timeline."""

    task_id: str
    start_index: int
    end_index: int
    resource_id: str | None = None
    label: str | None = None
    quantity: float | None = None
    start_clamped: bool = False  # began before the window; start_index was moved to 0


@dataclass(frozen=True)
class StackedTask:
    task_id: str
    resource_id: str | None
    start_index: int
    end_index: int  # as supplied by the caller, never clamped
    effective_start_index: int
    effective_end_index: int
    stack_level: int
    clamped: bool = False
    scope: Hashable | None = None
    label: str | None = None
    quantity: float | None = None
    start_clamped: bool = False

    @property
    def width_units(self) -> int:
        return self.effective_end_index - self.effective_start_index + 1

    def overlaps(self, other: StackedTask) -> bool:
        return not (
            self.effective_end_index < other.effective_start_index
            or other.effective_end_index < self.effective_start_index
        )


@dataclass(frozen=True)
class ExcludedTask:
    task: Task
    reason: str = "outside-window"


@dataclass(frozen=True)
class LayoutResult:
    stacked: tuple[StackedTask, ...]
    excluded: tuple[ExcludedTask, ...]
    displayed_units_length: int

    @property
    def clamped(self) -> list[StackedTask]:
        return [t for t in self.stacked if t.clamped]

    @property
    def max_stack_level(self) -> int:
        """Highest lane used, -1 when nothing was placed."""
        return max((t.stack_level for t in self.stacked), default=-1)

    def lane_count(self, scope: Hashable | None = ALL_SCOPES) -> int:
        """Lanes used on one scope; across every scope when none is given.

        `None` is a scope of its own (tasks without a line under `by_resource`).
        """
        levels = [t.stack_level for t in self.stacked if scope is ALL_SCOPES or t.scope == scope]
        return max(levels, default=-1) + 1

    def for_scope(self, scope: Hashable | None) -> list[StackedTask]:
        return [t for t in self.stacked if t.scope == scope]

    def by_id(self) -> dict[str, StackedTask]:
        return {t.task_id: t for t in self.stacked}


@dataclass(frozen=True)
class LineCapacitySnapshot:
    """Capacity figures of one production line at the moment the engine is called.

    `utilization` and `status` are derived on access and never stored.
    """

    line_id: str
    capacity: float
    allocated: float = 0.0
    line_name: str | None = None
    factory: str | None = None
    unit: str | None = None
    line_type: str | None = None

    def validate(self) -> None:
        if self.capacity is None or self.capacity <= 0:
            raise CapacityValidationError(f"line {self.line_id!r}: capacity must be > 0 (got {self.capacity!r})")
        if self.allocated is None or self.allocated < 0:
            raise CapacityValidationError(f"line {self.line_id!r}: allocated must be >= 0 (got {self.allocated!r})")

    @property
    def utilization(self) -> float:
        self.validate()
        return self.allocated / self.capacity * 100.0

    @property
    def status(self) -> CapacityStatus:
        from planboard.allocation.capacity import classify

        return classify(self.utilization)

    @property
    def remaining(self) -> float:
        return max(0.0, self.capacity - self.allocated)

    @property
    def display_name(self) -> str:
        return self.line_name or self.line_id

    def with_allocated(self, allocated: float) -> LineCapacitySnapshot:
        return replace(self, allocated=allocated)


@dataclass(frozen=True)
class PlanningGroup:
    group_id: str
    name: str
    line_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class AllocationRequest:
    order_id: str
    requested_quantity: float
    candidate_line_id: str | None = None
    allow_overload: bool = False


@dataclass(frozen=True)
class AllocationResult:
    order_id: str | None
    line_id: str | None
    requested_quantity: float
    accepted: bool
    projected_utilization: float | None = None
    resulting_utilization: float | None = None
    status: CapacityStatus | None = None
    reason: AllocationReason | None = None

    @property
    def warning(self) -> AllocationReason | None:
        return self.reason if self.accepted else None


@dataclass(frozen=True)
class LineLoadSummary:
    line_id: str
    capacity: float
    allocated_before: float
    allocated_after: float
    accepted_count: int = 0
    rejected_count: int = 0

    @property
    def utilization_before(self) -> float:
        return self.allocated_before / self.capacity * 100.0

    @property
    def utilization(self) -> float:
        return self.allocated_after / self.capacity * 100.0

    @property
    def status(self) -> CapacityStatus:
        from planboard.allocation.capacity import classify

        return classify(self.utilization)


@dataclass(frozen=True)
class BulkEvaluation:
    """Outcome of one bulk evaluation; the summaries are reporting figures only."""

    results: tuple[AllocationResult, ...]
    lines: tuple[LineLoadSummary, ...]

    @property
    def accepted(self) -> list[AllocationResult]:
        return [r for r in self.results if r.accepted]

    @property
    def rejected(self) -> list[AllocationResult]:
        return [r for r in self.results if not r.accepted]

    @property
    def total_capacity(self) -> float:
        return sum(s.capacity for s in self.lines)

    @property
    def total_allocated(self) -> float:
        return sum(s.allocated_after for s in self.lines)

    @property
    def average_utilization(self) -> float:
        if not self.lines:
            return 0.0
        return sum(s.utilization for s in self.lines) / len(self.lines)

    def line(self, line_id: str) -> LineLoadSummary | None:
        for s in self.lines:
            if s.line_id == line_id:
                return s
        return None


@dataclass
class AuditEntry:
    id: int
    timestamp: str
    category: str
    message: str
    details: str | None = None
