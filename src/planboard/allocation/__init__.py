"""Capacity-aware allocation package.

Line capacity classification, single and bulk assignment checks, and the daily
production buckets used to size order-blocks.
"""

from planboard.allocation.capacity import (
    OVERLOAD_THRESHOLD,
    TIGHT_THRESHOLD,
    classify,
    evaluate_assignment,
    evaluate_bulk,
    filter_by_group,
    pending_line_selection,
    suggest_lines,
    summarize_lines,
    summary_by_factory,
    utilization,
)

__all__ = [
    "OVERLOAD_THRESHOLD",
    "TIGHT_THRESHOLD",
    "classify",
    "evaluate_assignment",
    "evaluate_bulk",
    "filter_by_group",
    "pending_line_selection",
    "suggest_lines",
    "summarize_lines",
    "summary_by_factory",
    "utilization",
]
