"""Geometry models for the 2x2 sheet grid."""

from dataclasses import dataclass
from typing import Tuple

GRID_ROWS = 2
GRID_COLS = 2


@dataclass
class ImageDimensions:
    """Pixel size of a decoded image."""

    width: int
    height: int

    def as_tuple(self) -> Tuple[int, int]:
        return (self.width, self.height)


@dataclass(frozen=True)
class SheetPosition:
    """Cell of the 2x2 grid a sheet belongs to."""

    row: int
    col: int

    @property
    def page_number(self) -> int:
        return self.row * GRID_COLS + self.col + 1

    @property
    def is_last_col(self) -> bool:
        return self.col == GRID_COLS - 1

    @property
    def is_last_row(self) -> bool:
        return self.row == GRID_ROWS - 1


GRID_POSITIONS: Tuple[SheetPosition, ...] = tuple(
    SheetPosition(row, col) for row in range(GRID_ROWS) for col in range(GRID_COLS)
)


@dataclass(frozen=True)
class SheetPlan:
    """Resize target and per-quadrant extraction geometry at print resolution."""

    final_width_px: int
    final_height_px: int
    quadrant_width_px: int
    quadrant_height_px: int

    @property
    def quadrant_size(self) -> Tuple[int, int]:
        return (self.quadrant_width_px, self.quadrant_height_px)

    def extract_box(self, position: SheetPosition) -> Tuple[int, int, int, int]:
        """(left, top, right, bottom) of the resized image covered by a cell.

        The last column/row is clamped to the pixels that actually exist when
        the final size is odd.
        """
        left = position.col * self.quadrant_width_px
        top = position.row * self.quadrant_height_px
        width = min(self.quadrant_width_px, self.final_width_px - left)
        height = min(self.quadrant_height_px, self.final_height_px - top)
        return (left, top, left + width, top + height)

    def needs_padding(self, position: SheetPosition) -> bool:
        left, top, right, bottom = self.extract_box(position)
        return (
            right - left < self.quadrant_width_px
            or bottom - top < self.quadrant_height_px
        )
