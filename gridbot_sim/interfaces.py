from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable
import threading

from .grid import OccupancyGrid

if TYPE_CHECKING:
    from .robot import DifferentialDriveRobot


# Called once per loop iteration from the simulation thread; reads the
# robot's getters and sets its wheel speeds.
ControlRoutine = Callable[["DifferentialDriveRobot"], None]


class RunStateProvider(ABC):
    """Host-side run/stop switch and loop cadence."""

    @abstractmethod
    def is_running(self) -> bool:
        """Return True while the simulation should advance."""

    @abstractmethod
    def iteration_delay(self) -> float:
        """Seconds to sleep between loop iterations."""


class GridProvider(ABC):
    """Source of the occupancy grid for a session."""

    @abstractmethod
    def get_grid(self) -> OccupancyGrid:
        """Return the grid the robot moves in."""


class FixedGrid(GridProvider):
    """GridProvider around an already built grid."""

    def __init__(self, grid: OccupancyGrid) -> None:
        self.grid = grid

    def get_grid(self) -> OccupancyGrid:
        return self.grid


class SimulationControls(RunStateProvider):
    """Thread-safe run flag and iteration delay set by a UI or a script."""

    FAST = 0.001
    MEDIUM = 0.01
    SLOW = 0.1

    def __init__(self, delay: float = MEDIUM, running: bool = False) -> None:
        self._lock = threading.Lock()
        self._delay = float(delay)
        self._running = bool(running)

    def start(self) -> None:
        with self._lock:
            self._running = True

    def stop(self) -> None:
        with self._lock:
            self._running = False

    def toggle(self) -> bool:
        """Flip the run flag and return the new value."""
        with self._lock:
            self._running = not self._running
            return self._running

    def set_delay(self, seconds: float) -> None:
        if seconds < 0.0:
            raise ValueError(f"delay must be non-negative, got {seconds}")
        with self._lock:
            self._delay = float(seconds)

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def iteration_delay(self) -> float:
        with self._lock:
            return self._delay
