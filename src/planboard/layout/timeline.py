from __future__ import annotations

from datetime import date, timedelta

from planboard.core.models import Task


def displayed_units(window_start: date, days: int) -> list[date]:
    if days < 1:
        raise ValueError(f"days must be >= 1 (got {days!r})")
    return [window_start + timedelta(days=i) for i in range(days)]


def unit_index(day: date, window_start: date) -> int:
    """Signed day offset of `day` from the first displayed unit."""
    return (day - window_start).days


def task_in_window(
    task_id: str,
    start_date: date,
    end_date: date,
    *,
    window_start: date,
    resource_id: str | None = None,
    label: str | None = None,
    quantity: float | None = None,
) -> Task | None:
    """Map a dated order-block onto unit indices of the window.

    Blocks that began before the window start at unit 0 and are flagged
    `start_clamped`; blocks that ended before it return None. The end index is
    left as is, so over-running blocks are clamped (and flagged) by the layout
    engine.
    """
    if end_date < start_date:
        raise ValueError(f"task {task_id!r}: end {end_date.isoformat()} before start {start_date.isoformat()}")

    end_idx = unit_index(end_date, window_start)
    if end_idx < 0:
        return None
    raw_start = unit_index(start_date, window_start)
    start_idx = max(0, raw_start)
    return Task(
        task_id=task_id,
        start_index=start_idx,
        end_index=end_idx,
        resource_id=resource_id,
        label=label,
        quantity=quantity,
        start_clamped=raw_start < 0,
    )
