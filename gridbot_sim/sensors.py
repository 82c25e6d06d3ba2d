from __future__ import annotations

from typing import List, Optional, Tuple
import random

import numpy as np

from .geometry_utils import Point2D, distance, project_onto_segment
from .grid import OccupancyGrid


def bresenham_line(x0: int, y0: int, x1: int, y1: int) -> List[Tuple[int, int]]:
    """Integer cells on the line from (x0, y0) to (x1, y1), start first.

    All octants are handled by the error-accumulation form, which needs no
    slope division, so a zero-length line yields the single start cell.
    The result has ``max(|x1 - x0|, |y1 - y0|) + 1`` cells.
    """
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy

    cells: List[Tuple[int, int]] = []
    x, y = x0, y0
    while True:
        cells.append((x, y))
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x += sx
        if e2 <= dx:
            err += dx
            y += sy
    return cells


class RangeSensor:
    """Single range beam cast against an occupancy grid.

    Set the beam segment with ``set_start`` and ``set_end``, then call
    ``update_value``. The beam is rasterized with Bresenham's algorithm and
    the first occupied cell becomes the hit point; with no obstacle on the
    beam the hit point is the end point. Cells outside the grid are skipped.

    All values are in pixels.
    """

    def __init__(
        self,
        grid: Optional[OccupancyGrid] = None,
        stdev: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.grid = grid
        self.stdev = stdev
        self.rng = rng or random.Random()

        self._start = Point2D(0.0, 0.0)
        self._end = Point2D(0.0, 0.0)
        self._hit = Point2D(0.0, 0.0)
        self._samples: List[Tuple[int, int]] = []
        self._raw_value = 0.0
        self._noise = 0.0
        self._noise_enabled = False

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def set_start(self, p: Point2D) -> None:
        """Set the beam origin."""
        self._start = p

    def set_end(self, p: Point2D) -> None:
        """Set the farthest point the beam can reach."""
        self._end = p

    def set_hit(self, p: Point2D) -> None:
        """Override the hit point.

        ``update_value`` computes the hit point, so this is only needed to
        patch a reading by hand. The measured distance follows the new point.
        """
        self._hit = p
        self._raw_value = self._start.distance_to(p)

    def enable_noise(self, status: bool) -> None:
        """Add zero-mean Gaussian noise with std ``stdev`` to readings."""
        self._noise_enabled = bool(status)

    # ------------------------------------------------------------------
    # Ray casting
    # ------------------------------------------------------------------
    def update_value(self) -> float:
        """Re-cast the beam and return the (possibly noisy) distance."""
        x0, y0 = self._start.rounded()
        x1, y1 = self._end.rounded()
        cells = bresenham_line(x0, y0, x1, y1)

        grid = self.grid
        if grid is not None:
            cells = [(x, y) for x, y in cells if 0 <= x < grid.width and 0 <= y < grid.height]
        self._samples = cells

        hit = self._end
        if grid is not None and cells:
            xs = np.fromiter((c[0] for c in cells), dtype=np.intp, count=len(cells))
            ys = np.fromiter((c[1] for c in cells), dtype=np.intp, count=len(cells))
            occupied = grid.cells[ys, xs]
            if occupied.any():
                cx, cy = cells[int(np.argmax(occupied))]
                hx, hy = project_onto_segment(
                    cx, cy, self._start.x, self._start.y, self._end.x, self._end.y
                )
                hit = Point2D(hx, hy)

        self._hit = hit
        self._raw_value = self._start.distance_to(hit)

        if self._noise_enabled and self.stdev > 0.0:
            self._noise = self.rng.gauss(0.0, self.stdev)
        else:
            self._noise = 0.0
        return self.value

    # ------------------------------------------------------------------
    # Readings
    # ------------------------------------------------------------------
    @property
    def start(self) -> Point2D:
        return self._start

    @property
    def end(self) -> Point2D:
        return self._end

    @property
    def hit(self) -> Point2D:
        return self._hit

    @property
    def raw_value(self) -> float:
        """Distance from start to hit, without noise."""
        return self._raw_value

    @property
    def noise(self) -> float:
        """Noise sample added to the last reading (0.0 when disabled)."""
        return self._noise

    @property
    def noise_enabled(self) -> bool:
        return self._noise_enabled

    @property
    def value(self) -> float:
        """Measured distance: raw value plus noise."""
        return self._raw_value + self._noise

    @property
    def sampled_points(self) -> List[Point2D]:
        """Every grid cell visited by the last traversal, closest to start first."""
        return [Point2D(float(x), float(y)) for x, y in self._samples]

    def sample_distance_to_start(self, i: int) -> float:
        x, y = self._samples[i]
        return distance(x, y, self._start.x, self._start.y)

    def sample_distance_to_end(self, i: int) -> float:
        x, y = self._samples[i]
        return distance(x, y, self._end.x, self._end.y)

    def sample_distance_to_hit(self, i: int) -> float:
        x, y = self._samples[i]
        return distance(x, y, self._hit.x, self._hit.y)
