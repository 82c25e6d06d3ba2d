from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple
import math
import random
import threading

from .config import SimConfig
from .geometry_utils import Point2D, Pose
from .grid import OccupancyGrid
from .sensors import RangeSensor


# Below this wheel-speed difference the robot drives straight
STRAIGHT_LINE_EPS = 0.001
DEFAULT_TIME_STEP = 0.02


@dataclass(frozen=True)
class RobotSnapshot:
    """Consistent view of the robot after a step, in pixel units.

    Attributes
    ----------
    pose : Pose
        Current pose.
    prev_pose : Pose
        Pose before the last step (or at simulation start).
    left_speed, right_speed : float
        Wheel speeds (pixels/s).
    step_count : int
        Steps since the simulation was last started.
    time_step : float
        Integration step (seconds).
    sensor_values : tuple[float, ...]
        Measured distance of every ray.
    sensor_starts, sensor_hits : tuple[Point2D, ...]
        Beam origin and hit point of every ray.
    """

    pose: Pose
    prev_pose: Pose
    left_speed: float
    right_speed: float
    step_count: int
    time_step: float
    sensor_values: Tuple[float, ...]
    sensor_starts: Tuple[Point2D, ...]
    sensor_hits: Tuple[Point2D, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the snapshot to a dict for logging/telemetry."""
        return {
            "step": self.step_count,
            "x": self.pose.x,
            "y": self.pose.y,
            "theta": self.pose.theta,
            "prev_x": self.prev_pose.x,
            "prev_y": self.prev_pose.y,
            "prev_theta": self.prev_pose.theta,
            "left_speed": self.left_speed,
            "right_speed": self.right_speed,
            "time_step": self.time_step,
            "ranges": list(self.sensor_values),
        }


class DifferentialDriveRobot:
    """Two-wheeled robot on an occupancy grid with a ring of range sensors.

    Internally everything is in pixels; the public getters and setters take
    and return meters (and meters per second for wheel speeds), converted
    with the configuration scale factor. Headings are radians.

    Every change of pose re-casts the sensors and then publishes a new
    ``RobotSnapshot`` under the robot lock, so ``snapshot()`` never returns
    a pose paired with stale readings.
    """

    def __init__(
        self,
        config: SimConfig,
        grid: OccupancyGrid,
        rng: Optional[random.Random] = None,
        time_step: float = DEFAULT_TIME_STEP,
    ) -> None:
        self.config = config
        self.grid = grid
        self.rng = rng or random.Random()

        self._lock = threading.RLock()
        self._pose = Pose()
        self._prev_pose = self._pose
        self._speed_l = 0.0
        self._speed_r = 0.0
        self._time_step = float(time_step)
        self._step_count = 0

        self.sensors: Tuple[RangeSensor, ...] = tuple(
            RangeSensor(grid=grid, stdev=config.sensor_stdev_px, rng=self.rng)
            for _ in range(config.sensor_rays)
        )

        # Initial position: one meter from each border
        self.set_location(1.0, 1.0, 0.0)
        self._prev_pose = self._pose
        self._snapshot = self._make_snapshot()

    # ------------------------------------------------------------------
    # Kinematics
    # ------------------------------------------------------------------
    def step(self) -> None:
        """Advance the pose by one time step and refresh all sensors.

        Uses the exact arc solution of the differential-drive model. When the
        wheel speeds are (nearly) equal the arc radius blows up, so the robot
        is moved along a straight line instead; this is the limit of the arc
        formula as the speed difference goes to zero.
        """
        with self._lock:
            pose = self._pose
            dt = self._time_step
            radius = self.config.robot_radius_px
            diameter = self.config.robot_diameter_px

            plus = self._speed_l + self._speed_r
            minus = self._speed_l - self._speed_r
            cos_th = math.cos(pose.theta)
            sin_th = math.sin(pose.theta)

            if abs(minus) > STRAIGHT_LINE_EPS:
                a = radius * plus / minus
                th = pose.theta + minus * dt / diameter
                x = pose.x + a * (math.sin(th) - sin_th)
                y = pose.y - a * (math.cos(th) - cos_th)
            else:
                half_plus = plus / 2.0
                th = pose.theta
                x = pose.x + half_plus * cos_th * dt
                y = pose.y + half_plus * sin_th * dt

            self._prev_pose = pose
            self._pose = Pose(x, y, th)
            self._step_count += 1
            self._update_sensors()
            self._snapshot = self._make_snapshot()

    def begin_run(self) -> None:
        """Anchor the run: previous pose := current pose, zero the step
        counter and seed the sensors before any motion."""
        with self._lock:
            self._prev_pose = self._pose
            self._step_count = 0
            self._update_sensors()
            self._snapshot = self._make_snapshot()

    def update_all_sensors(self) -> None:
        """Re-cast every ray from the current pose."""
        with self._lock:
            self._update_sensors()
            self._snapshot = self._make_snapshot()

    def _update_sensors(self) -> None:
        cfg = self.config
        pose = self._pose
        step = cfg.sweep_step_rad
        start = cfg.sensor_start_angle_rad
        near = Point2D(pose.x + cfg.robot_radius_px, pose.y)
        far = Point2D(pose.x + cfg.robot_radius_px + cfg.sensor_max_range_px, pose.y)

        for i, sensor in enumerate(self.sensors):
            angle = pose.theta + step * i + start
            sensor.set_start(near.rotate_about(pose, angle))
            sensor.set_end(far.rotate_about(pose, angle))
            sensor.update_value()

    def _make_snapshot(self) -> RobotSnapshot:
        return RobotSnapshot(
            pose=self._pose,
            prev_pose=self._prev_pose,
            left_speed=self._speed_l,
            right_speed=self._speed_r,
            step_count=self._step_count,
            time_step=self._time_step,
            sensor_values=tuple(s.value for s in self.sensors),
            sensor_starts=tuple(s.start for s in self.sensors),
            sensor_hits=tuple(s.hit for s in self.sensors),
        )

    def snapshot(self) -> RobotSnapshot:
        """Latest published state; safe to call from any thread."""
        return self._snapshot

    # ------------------------------------------------------------------
    # Set
    # ------------------------------------------------------------------
    def set_location(self, x: float, y: float, theta: float) -> None:
        """Place the robot at (x, y) meters with heading theta (radians)."""
        s = self.config.scale_factor
        self.set_pose_px(Pose(x * s, y * s, theta))

    def set_pose_px(self, pose: Pose) -> None:
        """Place the robot using pixel coordinates (e.g. a mouse click)."""
        with self._lock:
            self._pose = pose
            self._update_sensors()
            self._snapshot = self._make_snapshot()

    def set_left_speed(self, s: float) -> None:
        """Set the left wheel speed (m/s)."""
        with self._lock:
            self._speed_l = s * self.config.scale_factor
            self._publish_controls()

    def set_right_speed(self, s: float) -> None:
        """Set the right wheel speed (m/s)."""
        with self._lock:
            self._speed_r = s * self.config.scale_factor
            self._publish_controls()

    def set_speeds(self, left: float, right: float) -> None:
        """Set both wheel speeds (m/s) in one update."""
        s = self.config.scale_factor
        with self._lock:
            self._speed_l = left * s
            self._speed_r = right * s
            self._publish_controls()

    def set_stop(self) -> None:
        """Set both wheel speeds to zero."""
        with self._lock:
            self._speed_l = 0.0
            self._speed_r = 0.0
            self._publish_controls()

    def set_time_step(self, t: float) -> None:
        if not t > 0.0:
            raise ValueError(f"time step must be positive, got {t}")
        with self._lock:
            self._time_step = float(t)
            self._publish_controls()

    def _publish_controls(self) -> None:
        # Pose and sensors are unchanged; only refresh the commanded values
        self._snapshot = replace(
            self._snapshot,
            left_speed=self._speed_l,
            right_speed=self._speed_r,
            time_step=self._time_step,
        )

    def enable_sensor_noise(self, status: bool) -> None:
        for sensor in self.sensors:
            sensor.enable_noise(status)

    # ------------------------------------------------------------------
    # Get
    # ------------------------------------------------------------------
    @property
    def pose(self) -> Pose:
        """Current pose (pixels)."""
        return self._pose

    @property
    def prev_pose(self) -> Pose:
        """Pose before the last step (pixels)."""
        return self._prev_pose

    def get_left_speed(self) -> float:
        return self._speed_l / self.config.scale_factor

    def get_right_speed(self) -> float:
        return self._speed_r / self.config.scale_factor

    def get_pos_x(self) -> float:
        return self._pose.x / self.config.scale_factor

    def get_pos_y(self) -> float:
        return self._pose.y / self.config.scale_factor

    def get_pos_x_prev(self) -> float:
        return self._prev_pose.x / self.config.scale_factor

    def get_pos_y_prev(self) -> float:
        return self._prev_pose.y / self.config.scale_factor

    def get_angle(self) -> float:
        return self._pose.theta

    def get_time_step(self) -> float:
        return self._time_step

    def get_step_count(self) -> int:
        return self._step_count

    def get_sensor_value(self, i: int) -> float:
        """Distance measured by ray ``i`` (meters), from the latest snapshot."""
        return self._snapshot.sensor_values[i] / self.config.scale_factor

    def get_sensor_value_at(self, angle: float) -> float:
        """Distance measured by the ray nearest to ``angle`` (degrees,
        relative to the heading), in meters.

        Angles outside the configured sweep return 0.0. A zero sweep puts
        every ray at the start angle, which then reads ray 0.
        """
        cfg = self.config
        start = cfg.sensor_start_angle
        if angle < start or angle > start + cfg.sensor_sweep_angle:
            return 0.0
        step = cfg.sweep_step_deg
        index = int(round((angle - start) / step)) if step > 0.0 else 0
        index = min(index, cfg.sensor_rays - 1)
        return self.get_sensor_value(index)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    def log_sensors(self, path: str) -> None:
        """Append the current reading of every ray (pixels) as one
        tab-separated line to ``path``."""
        values = self._snapshot.sensor_values
        with open(path, "a", encoding="utf-8") as f:
            f.write("\t".join(repr(v) for v in values) + "\n")

    def sensors_text(self) -> str:
        """Human-readable listing of every ray reading (pixels)."""
        values = self._snapshot.sensor_values
        lines = [f"Number of sensor rays = {len(values)}", ""]
        lines += [f"Ray-{i} = {v:4.2f}" for i, v in enumerate(values)]
        return "\n".join(lines) + "\n"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the latest snapshot to a dict (meters, radians)."""
        snap = self._snapshot
        s = self.config.scale_factor
        return {
            "x": snap.pose.x / s,
            "y": snap.pose.y / s,
            "theta": snap.pose.theta,
            "left_speed": snap.left_speed / s,
            "right_speed": snap.right_speed / s,
            "step": snap.step_count,
        }
