from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional
import logging
import math

import yaml

from .errors import ConfigLoadError

logger = logging.getLogger(__name__)


# Upper-case keys of the legacy key/value configuration format
KEY_ALIASES: Dict[str, str] = {
    "SCALE_FACTOR": "scale_factor",
    "SCREEN_TIMEOUT": "loop_timeout",
    "ROBOT_SIZE": "robot_diameter",
    "GRID_MAP_W": "grid_width",
    "GRID_MAP_H": "grid_height",
    "LIDAR_STDEV": "sensor_stdev",
    "LIDAR_START_ANGLE": "sensor_start_angle",
    "LIDAR_SWEEP_ANGLE": "sensor_sweep_angle",
    "LIDAR_RAYS": "sensor_rays",
    "LIDAR_MAX": "sensor_max_range",
    "CHOSEN_SAMPLE": "chosen_sample",
    "ODOM_SAMPLES": "odom_samples",
    "KT": "kt",
    "KD": "kd",
    "KR": "kr",
    "MT": "mt",
    "MD": "md",
    "MR": "mr",
}


@dataclass(frozen=True)
class SimConfig:
    """Physical and sensor constants of a simulation session.

    Fields hold the values as authored (meters, seconds, degrees). The
    pixel-unit values used by the engine are derived once on construction:
    distances are multiplied by ``scale_factor`` and the odometry gains are
    divided by it.

    Attributes
    ----------
    scale_factor : float
        Pixels per meter.
    loop_timeout : float
        Display refresh period (seconds).
    robot_diameter : float
        Robot diameter (meters).
    grid_width, grid_height : int
        Size of the empty grid used when no map image is loaded.
    sensor_stdev : float
        Std of the range noise (meters).
    sensor_start_angle : float
        Angle of the first ray relative to the heading (degrees).
    sensor_sweep_angle : float
        Angle covered by the rays (degrees).
    sensor_rays : int
        Number of rays.
    sensor_max_range : float
        Maximum distance a ray can measure (meters).
    chosen_sample, odom_samples : int
        Odometry sampling parameters.
    kt, kd, kr : float
        Translational, drift and rotational odometry error gains.
    mt, md, mr : float
        Means of the translational, drift and rotational odometry errors.
    """

    scale_factor: float = 192.0
    loop_timeout: float = 0.10
    robot_diameter: float = 0.1
    grid_width: int = 500
    grid_height: int = 500
    sensor_stdev: float = 0.1
    sensor_start_angle: float = -90.0
    sensor_sweep_angle: float = 180.0
    sensor_rays: int = 100
    sensor_max_range: float = 1.0
    chosen_sample: int = 0
    odom_samples: int = 1000
    kt: float = 0.10
    kd: float = 0.10
    kr: float = 0.08
    mt: float = 0.0
    md: float = 0.0
    mr: float = 0.0

    robot_diameter_px: float = field(init=False, repr=False)
    robot_radius_px: float = field(init=False, repr=False)
    sensor_stdev_px: float = field(init=False, repr=False)
    sensor_max_range_px: float = field(init=False, repr=False)
    kt_px: float = field(init=False, repr=False)
    kd_px: float = field(init=False, repr=False)
    kr_px: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.scale_factor > 0.0:
            raise ValueError(f"scale_factor must be positive, got {self.scale_factor}")
        if self.sensor_rays < 1:
            raise ValueError(f"sensor_rays must be >= 1, got {self.sensor_rays}")
        if self.grid_width < 0 or self.grid_height < 0:
            raise ValueError("grid size must be non-negative")
        if not self.robot_diameter > 0.0:
            raise ValueError(f"robot_diameter must be positive, got {self.robot_diameter}")
        if self.sensor_max_range < 0.0:
            raise ValueError(f"sensor_max_range must be non-negative, got {self.sensor_max_range}")
        if self.sensor_stdev < 0.0:
            raise ValueError(f"sensor_stdev must be non-negative, got {self.sensor_stdev}")
        if self.sensor_sweep_angle < 0.0:
            raise ValueError(f"sensor_sweep_angle must be non-negative, got {self.sensor_sweep_angle}")

        s = self.scale_factor
        object.__setattr__(self, "robot_diameter_px", self.robot_diameter * s)
        object.__setattr__(self, "robot_radius_px", 0.5 * self.robot_diameter * s)
        object.__setattr__(self, "sensor_stdev_px", self.sensor_stdev * s)
        object.__setattr__(self, "sensor_max_range_px", self.sensor_max_range * s)
        object.__setattr__(self, "kt_px", self.kt / s)
        object.__setattr__(self, "kd_px", self.kd / s)
        object.__setattr__(self, "kr_px", self.kr / s)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    @property
    def sweep_step_deg(self) -> float:
        """Angle between neighbouring rays (degrees)."""
        return self.sensor_sweep_angle / self.sensor_rays

    @property
    def sensor_start_angle_rad(self) -> float:
        return math.radians(self.sensor_start_angle)

    @property
    def sweep_step_rad(self) -> float:
        return math.radians(self.sweep_step_deg)

    # ------------------------------------------------------------------
    # (De)serialization
    # ------------------------------------------------------------------
    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SimConfig":
        """Build a config from key/value pairs.

        Keys may be field names or the upper-case keys of the legacy
        format. Unknown keys are ignored with a warning.
        """
        types = {f.name: (int if f.type == "int" else float) for f in fields(cls) if f.init}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = KEY_ALIASES.get(str(key), str(key))
            if name not in types:
                logger.warning("Ignoring unknown config key %r", key)
                continue
            try:
                kwargs[name] = types[name](value)
            except (TypeError, ValueError) as exc:
                raise ConfigLoadError(f"bad value for {key!r}: {value!r}") from exc
        try:
            return cls(**kwargs)
        except ValueError as exc:
            raise ConfigLoadError(str(exc)) from exc

    def to_dict(self) -> Dict[str, Any]:
        """Authored (physical-unit) values; round-trips through from_mapping."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.init}


def load_config(path: Optional[str], strict: bool = False) -> SimConfig:
    """Load a YAML config file.

    The file holds a flat mapping, optionally nested under a ``robot`` key.
    A missing or unreadable file falls back to the defaults with a warning
    unless ``strict`` is set, in which case ConfigLoadError is raised.
    """
    try:
        if path is None:
            raise ConfigLoadError("no configuration file given")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as exc:
            raise ConfigLoadError(f"cannot read {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigLoadError(f"cannot parse {path}: {exc}") from exc

        if data is None:
            data = {}
        if isinstance(data, dict) and isinstance(data.get("robot"), dict):
            data = data["robot"]
        if not isinstance(data, dict):
            raise ConfigLoadError(f"{path} does not hold a key/value mapping")
        return SimConfig.from_mapping(data)
    except ConfigLoadError as exc:
        if strict:
            raise
        logger.warning("Error loading config file: %s. Using default configuration.", exc)
        return SimConfig()
