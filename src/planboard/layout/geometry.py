from __future__ import annotations

from dataclasses import dataclass

from planboard.core.models import StackedTask


MIN_BLOCK_HEIGHT = 12
MAX_HEIGHT_REDUCTION = 8
LANE_GAP = 2


@dataclass(frozen=True)
class BlockGeometry:
    task_id: str
    left: float
    width: float
    height: float
    top: float


def block_geometry(
    stacked: StackedTask,
    *,
    unit_width: float,
    row_height: float,
    task_top: float = 4,
) -> BlockGeometry:
    """Pixel box of a stacked block, clipped to its effective range.

    Deeper lanes get slightly shorter blocks (never below MIN_BLOCK_HEIGHT).
    """
    height = max(MIN_BLOCK_HEIGHT, row_height - min(stacked.stack_level * 2, MAX_HEIGHT_REDUCTION))
    return BlockGeometry(
        task_id=stacked.task_id,
        left=stacked.effective_start_index * unit_width,
        width=stacked.width_units * unit_width,
        height=height,
        top=task_top + stacked.stack_level * (height + LANE_GAP),
    )


def row_height_for(lanes: int, *, row_height: float, task_top: float = 4) -> float:
    """Height a resource row needs to show `lanes` stacked lanes."""
    if lanes <= 1:
        return row_height + 2 * task_top
    last = lanes - 1
    last_height = max(MIN_BLOCK_HEIGHT, row_height - min(last * 2, MAX_HEIGHT_REDUCTION))
    return task_top + last * (last_height + LANE_GAP) + last_height + task_top
