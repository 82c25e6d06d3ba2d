from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np

from .errors import GridIndexError


# Grayscale levels of the display view
FREE_LEVEL = 255
OBSTACLE_LEVEL = 0
GRID_LINE_LEVEL = 200

# Luminance above this is free space
LUMINANCE_CUT = 127.0
# Grayscale below this is an obstacle in the boolean map
OCCUPANCY_CUT = 60


class OccupancyGrid:
    """Dense boolean occupancy map of the environment (True = occupied).

    Cells are stored row-major as a ``(height, width)`` array, so cell
    ``(x, y)`` lives at ``cells[y, x]`` and at flat index ``x + y * width``.
    The grid never changes after construction; both arrays are marked
    read-only and may be shared between threads without locking.

    Parameters
    ----------
    cells : np.ndarray
        Boolean array of shape (height, width).
    gray : np.ndarray, optional
        uint8 grayscale view of the same shape used for display. Derived
        from ``cells`` when omitted.
    """

    def __init__(self, cells: np.ndarray, gray: Optional[np.ndarray] = None) -> None:
        cells = np.array(cells, dtype=bool)
        if cells.ndim != 2:
            raise ValueError(f"cells must be 2D, got shape {cells.shape}")
        if gray is None:
            gray = np.where(cells, OBSTACLE_LEVEL, FREE_LEVEL).astype(np.uint8)
        else:
            gray = np.array(gray, dtype=np.uint8)
            if gray.shape != cells.shape:
                raise ValueError("gray view and cells must have the same shape")
        cells.flags.writeable = False
        gray.flags.writeable = False
        self._cells = cells
        self._gray = gray
        self.height, self.width = cells.shape

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def empty(cls, width: int, height: int) -> "OccupancyGrid":
        """Create an obstacle-free grid of the given size."""
        if width < 0 or height < 0:
            raise ValueError(f"grid size must be non-negative, got {width}x{height}")
        return cls(np.zeros((int(height), int(width)), dtype=bool))

    @classmethod
    def from_pixels(
        cls,
        pixels: np.ndarray,
        scale_factor: float,
        grid_lines_occupied: bool = False,
    ) -> "OccupancyGrid":
        """Build the grid from decoded image data.

        Pixels with luminance ``0.30r + 0.59g + 0.11b`` above 127 are free,
        the rest are obstacles. Every row and column whose index is a
        multiple of ``scale_factor`` (one per meter) is then overlaid on the
        grayscale view as a grid-line marker. Grid-line cells read as free
        in the boolean map unless ``grid_lines_occupied`` is set.

        Parameters
        ----------
        pixels : np.ndarray
            uint8 array of shape (height, width, channels), channels >= 3,
            channel order RGB(A).
        scale_factor : float
            Pixels per meter.
        """
        data = np.asarray(pixels)
        if data.ndim != 3 or data.shape[2] < 3:
            raise ValueError(
                f"pixels must have shape (height, width, >=3), got {data.shape}"
            )
        step = int(scale_factor)
        if step <= 0:
            raise ValueError(f"scale_factor must be >= 1, got {scale_factor}")

        rgb = data[:, :, :3].astype(np.float64)
        luminance = 0.30 * rgb[:, :, 0] + 0.59 * rgb[:, :, 1] + 0.11 * rgb[:, :, 2]
        gray = np.where(luminance > LUMINANCE_CUT, FREE_LEVEL, OBSTACLE_LEVEL).astype(np.uint8)

        height, width = gray.shape
        line_mask = np.zeros((height, width), dtype=bool)
        line_mask[:, np.arange(width) % step == 0] = True
        line_mask[np.arange(height) % step == 0, :] = True
        gray[line_mask] = GRID_LINE_LEVEL

        cells = gray < OCCUPANCY_CUT
        if grid_lines_occupied:
            cells = cells | line_mask
        return cls(cells, gray)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def cells(self) -> np.ndarray:
        """Read-only boolean array of shape (height, width)."""
        return self._cells

    @property
    def gray(self) -> np.ndarray:
        """Read-only grayscale view (255 free, 0 obstacle, 200 grid line)."""
        return self._gray

    @property
    def area(self) -> int:
        return self.width * self.height

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def index(self, x: int, y: int) -> int:
        """Row-major flat index of cell (x, y)."""
        return x + y * self.width

    def is_occupied(self, x: int, y: int) -> bool:
        """Return True if cell (x, y) holds an obstacle.

        Raises GridIndexError for cells outside the grid.
        """
        if not self.contains(x, y):
            raise GridIndexError(x, y, self.width, self.height)
        return bool(self._cells[y, x])

    def get(self, x: int, y: int, default: Optional[bool] = None) -> Optional[bool]:
        """Occupancy of cell (x, y), or ``default`` outside the grid."""
        if not self.contains(x, y):
            return default
        return bool(self._cells[y, x])

    def to_dict(self) -> Dict[str, Any]:
        """Summary of the grid for logging/telemetry."""
        return {
            "width": self.width,
            "height": self.height,
            "occupied": int(np.count_nonzero(self._cells)),
        }
