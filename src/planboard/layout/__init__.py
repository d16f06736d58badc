"""Timeline layout package.

Stacking of overlapping order-blocks into lanes, the date window mapping that
turns dated orders into unit indices, and block geometry for the board.
"""

from planboard.layout.geometry import BlockGeometry, block_geometry, row_height_for
from planboard.layout.stacking import MAX_STACK_LEVELS, by_resource, find_collisions, layout
from planboard.layout.timeline import displayed_units, task_in_window, unit_index

__all__ = [
    "BlockGeometry",
    "MAX_STACK_LEVELS",
    "block_geometry",
    "by_resource",
    "displayed_units",
    "find_collisions",
    "layout",
    "row_height_for",
    "task_in_window",
    "unit_index",
]
