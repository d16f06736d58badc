from __future__ import annotations


class PlanningError(ValueError):
    """Base class for input errors raised by the layout and allocation engines."""


class TaskValidationError(PlanningError):
    """A task carries indices the layout engine cannot place (negative, inverted, duplicated)."""


class LaneOverflowError(PlanningError):
    """Stacking needed more lanes than the safety bound allows."""

    def __init__(self, task_id: str, max_lanes: int):
        self.task_id = task_id
        self.max_lanes = max_lanes
        super().__init__(f"task {task_id!r} needs more than {max_lanes} stack levels")


class CapacityValidationError(PlanningError):
    """A line capacity snapshot is malformed (capacity <= 0, negative allocation)."""
