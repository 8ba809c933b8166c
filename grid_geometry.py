"""Pure layout geometry for the 24-hour grid; no UI dependencies."""

from __future__ import annotations

import math
from enum import Enum
from typing import NamedTuple, Sequence

HOURS = 24
VERTICAL_BREAKPOINT = 768
CELL_SIZE_HORIZONTAL = 44
CELL_SIZE_VERTICAL = 32


class Orientation(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class CellPosition(NamedTuple):
    hour_index: int
    minute_bucket: int


def orientation_for(viewport_width: float, viewport_height: float,
                    breakpoint: int = VERTICAL_BREAKPOINT) -> Orientation:
    """Vertical only for a narrow *and* portrait viewport.

    A landscape phone is narrow too, but still gets the horizontal grid.
    """
    if viewport_width < breakpoint and viewport_height > viewport_width:
        return Orientation.VERTICAL
    return Orientation.HORIZONTAL


def cell_size_for(orientation: Orientation) -> int:
    if orientation is Orientation.VERTICAL:
        return CELL_SIZE_VERTICAL
    return CELL_SIZE_HORIZONTAL


def grid_pixel_width(cell_pixel_size: float) -> float:
    """Length of the hour axis; fixed, so wide windows never stretch the grid."""
    return HOURS * cell_pixel_size


def long_axis(orientation: Orientation, point: tuple[float, float]) -> float:
    return point[0] if orientation is Orientation.HORIZONTAL else point[1]


def cross_axis(orientation: Orientation, point: tuple[float, float]) -> float:
    return point[1] if orientation is Orientation.HORIZONTAL else point[0]


def cell_for_position(orientation: Orientation,
                      container_origin: tuple[float, float],
                      pointer_position: tuple[float, float],
                      cell_pixel_size: float) -> CellPosition:
    """Map a pointer to ``(hour, minute bucket)`` along the hour axis.

    Each cell is split into quarters: [0, .25) -> :00, [.25, .5) -> :15,
    [.5, .75) -> :30, [.75, 1] -> :45. Positions off either end clamp to
    the first or last hour.
    """
    offset = long_axis(orientation, pointer_position) - long_axis(orientation, container_origin)
    if offset < 0:
        return CellPosition(0, 0)
    if offset >= grid_pixel_width(cell_pixel_size):
        return CellPosition(HOURS - 1, 45)
    hour = int(offset // cell_pixel_size)
    fraction = (offset - hour * cell_pixel_size) / cell_pixel_size
    quarter = min(3, int(math.floor(fraction * 4 + 1e-9)))
    return CellPosition(hour, quarter * 15)


def pixels_for_slot(orientation: Orientation, hour_index: int, minute: int,
                    cell_pixel_size: float) -> float:
    """Offset along the hour axis for ``hour:minute`` (inverse of ``cell_for_position``).

    *orientation* only selects which screen axis the offset applies to.
    """
    return (hour_index + minute / 60) * cell_pixel_size


def row_for_position(orientation: Orientation,
                     container_origin: tuple[float, float],
                     pointer_position: tuple[float, float],
                     row_pixel_size: float, row_count: int) -> int | None:
    """Timezone index under the pointer on the cross axis, or None outside."""
    offset = cross_axis(orientation, pointer_position) - cross_axis(orientation, container_origin)
    if row_count <= 0 or offset < 0:
        return None
    index = int(offset // row_pixel_size)
    return index if index < row_count else None


def sticky_header_top(scroll_top: float, header_top: float, header_height: float,
                      grid_bottom: float) -> float | None:
    """Top of the pinned header clone, or None while the real header is visible.

    The clone follows the viewport top but never extends past *grid_bottom*.
    """
    if scroll_top <= header_top:
        return None
    top = min(scroll_top, grid_bottom - header_height)
    if top <= header_top:
        return None
    return top


def insertion_index(pointer: float, handle_centers: Sequence[float],
                    source_index: int) -> int:
    """Final index for a dragged handle among its siblings.

    Counts the other handles whose centre lies before the pointer, which is
    the position the entry takes after "remove, then insert".
    """
    return sum(1 for i, centre in enumerate(handle_centers)
               if i != source_index and centre < pointer)
