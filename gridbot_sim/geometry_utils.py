"""
Geometry utilities for the grid robot simulation.

Provides the Point2D and Pose value types, rotation about a pivot and
small numeric helpers used by the robot kinematics and the range sensors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple
import math


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Point2D:
    """Immutable 2D point (pixels)."""

    x: float
    y: float

    def rotate_about(self, pivot: "Point2D | Pose", angle: float) -> "Point2D":
        """Rotate this point around ``pivot`` by ``angle`` radians (CCW positive)."""
        return rotate_about(self, pivot, angle)

    def distance_to(self, other: "Point2D") -> float:
        return distance(self.x, self.y, other.x, other.y)

    def rounded(self) -> Tuple[int, int]:
        """Grid cell containing this point."""
        return int(round(self.x)), int(round(self.y))


@dataclass(frozen=True)
class Pose:
    """Robot frame: position (pixels) and heading (radians, CCW from +x).

    The heading is accumulated without wrapping so that the number of
    turns the robot has made is preserved.
    """

    x: float = 0.0
    y: float = 0.0
    theta: float = 0.0

    @property
    def position(self) -> Point2D:
        return Point2D(self.x, self.y)


# ---------------------------------------------------------------------------
# Rotation and transforms
# ---------------------------------------------------------------------------


def rotate_about(point: Point2D, pivot: "Point2D | Pose", angle: float) -> Point2D:
    """
    Rotate ``point`` around ``pivot`` by a signed ``angle`` in radians.

    ``angle`` may be any finite value; it is reduced modulo 2*pi before the
    trigonometric evaluation so large accumulated headings keep full precision.
    """
    a = math.fmod(angle, 2.0 * math.pi)
    c = math.cos(a)
    s = math.sin(a)
    dx = point.x - pivot.x
    dy = point.y - pivot.y
    return Point2D(pivot.x + c * dx - s * dy, pivot.y + s * dx + c * dy)


def body_to_world(
    bx: float,
    by: float,
    ox: float,
    oy: float,
    yaw: float,
) -> Tuple[float, float]:
    """Transform body frame (bx, by) to world with origin (ox, oy) and heading yaw."""
    c = math.cos(yaw)
    s = math.sin(yaw)
    wx = ox + c * bx - s * by
    wy = oy + s * bx + c * by
    return wx, wy


# ---------------------------------------------------------------------------
# Clamping and distances
# ---------------------------------------------------------------------------


def clamp(value: float, vmin: float, vmax: float) -> float:
    """Clamp value to [vmin, vmax]."""
    return max(vmin, min(vmax, value))


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def project_onto_segment(
    px: float,
    py: float,
    x1: float,
    y1: float,
    x2: float,
    y2: float,
) -> Tuple[float, float]:
    """
    Closest point to (px, py) on the closed segment (x1,y1)-(x2,y2).

    A zero-length segment projects everything onto its single point.
    """
    dx = x2 - x1
    dy = y2 - y1
    length_sq = dx * dx + dy * dy
    if length_sq < 1e-12:
        return x1, y1
    t = ((px - x1) * dx + (py - y1) * dy) / length_sq
    t = clamp(t, 0.0, 1.0)
    return x1 + t * dx, y1 + t * dy
