"""
Top-level package for the differential-drive grid robot simulator.

Components:
- geometry_utils: Point2D/Pose value types, rotation about a pivot
- grid: occupancy grid built from image pixels or empty
- sensors: Bresenham range sensor
- config: session constants and YAML loading
- robot: differential drive kinematics and the sensor ring
- simulation: background loop, run states and session handle
- interfaces: run-state / grid / control collaborator interfaces
- render: pygame-based visualization (imported on demand)
"""

from .errors import CallbackFailure, ConfigLoadError, GridbotError, GridIndexError
from .geometry_utils import Point2D, Pose
from .grid import OccupancyGrid
from .sensors import RangeSensor, bresenham_line
from .config import SimConfig, load_config
from .robot import DifferentialDriveRobot, RobotSnapshot
from .interfaces import ControlRoutine, FixedGrid, GridProvider, RunStateProvider, SimulationControls
from .simulation import LoopState, SimulationLoop, SimulationSession

__all__ = [
    "CallbackFailure",
    "ConfigLoadError",
    "GridbotError",
    "GridIndexError",
    "Point2D",
    "Pose",
    "OccupancyGrid",
    "RangeSensor",
    "bresenham_line",
    "SimConfig",
    "load_config",
    "DifferentialDriveRobot",
    "RobotSnapshot",
    "ControlRoutine",
    "FixedGrid",
    "GridProvider",
    "RunStateProvider",
    "SimulationControls",
    "LoopState",
    "SimulationLoop",
    "SimulationSession",
]
