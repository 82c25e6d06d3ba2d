from __future__ import annotations

import math
import random

from gridbot_sim.config import SimConfig
from gridbot_sim.geometry_utils import Pose
from gridbot_sim.grid import OccupancyGrid
from gridbot_sim.robot import STRAIGHT_LINE_EPS, DifferentialDriveRobot


def make_robot(scale: float = 100.0, diameter: float = 0.2) -> DifferentialDriveRobot:
    cfg = SimConfig(
        scale_factor=scale,
        robot_diameter=diameter,
        sensor_rays=4,
        sensor_max_range=0.5,
    )
    grid = OccupancyGrid.empty(400, 400)
    return DifferentialDriveRobot(cfg, grid, rng=random.Random(0))


def test_robot_forward_motion() -> None:
    robot = make_robot()
    robot.set_location(1.0, 1.0, 0.0)
    robot.set_time_step(0.1)
    robot.set_speeds(1.0, 1.0)

    robot.step()

    assert math.isclose(robot.get_pos_x(), 1.0 + 1.0 * 0.1, rel_tol=1e-9)
    assert math.isclose(robot.get_pos_y(), 1.0, abs_tol=1e-12)
    assert robot.get_angle() == 0.0
    assert robot.get_step_count() == 1


def test_robot_forward_motion_follows_heading() -> None:
    robot = make_robot()
    robot.set_location(1.0, 1.0, math.pi / 2.0)
    robot.set_time_step(0.5)
    robot.set_speeds(0.2, 0.2)

    robot.step()

    assert math.isclose(robot.get_pos_x(), 1.0, abs_tol=1e-9)
    assert math.isclose(robot.get_pos_y(), 1.1, rel_tol=1e-9)


def test_stopped_robot_does_not_move() -> None:
    robot = make_robot()
    robot.set_location(1.5, 0.7, 0.3)
    robot.set_speeds(0.4, 0.1)
    robot.set_stop()
    before = robot.pose

    robot.step()

    assert robot.pose == before
    assert robot.get_left_speed() == 0.0
    assert robot.get_right_speed() == 0.0


def test_opposite_wheels_rotate_in_place() -> None:
    robot = make_robot()
    robot.set_location(2.0, 2.0, 0.25)
    robot.set_time_step(1.0)
    robot.set_speeds(-1.0, 1.0)
    x0, y0 = robot.pose.x, robot.pose.y

    robot.step()

    diameter_px = robot.config.robot_diameter_px
    expected = 0.25 + (-2.0 * robot.config.scale_factor) * 1.0 / diameter_px
    assert robot.pose.x == x0
    assert robot.pose.y == y0
    assert math.isclose(robot.get_angle(), expected, rel_tol=1e-12)


def test_left_faster_increases_heading() -> None:
    robot = make_robot()
    robot.set_location(2.0, 2.0, 0.0)
    robot.set_speeds(1.0, -1.0)

    robot.step()

    assert robot.get_angle() > 0.0
    assert math.isclose(robot.get_pos_x(), 2.0, abs_tol=1e-12)


def test_straight_branch_is_limit_of_arc() -> None:
    # Scale 1 so wheel speeds are given directly in pixels/s
    theta = 0.7
    speed = 5.0
    dt = 0.1

    straight = make_robot(scale=1.0, diameter=20.0)
    straight.set_pose_px(Pose(50.0, 60.0, theta))
    straight.set_time_step(dt)
    straight.set_speeds(speed, speed)
    straight.step()

    for delta in (1e-6, 1e-9, 1e-12):
        diff = STRAIGHT_LINE_EPS + delta
        arc = make_robot(scale=1.0, diameter=20.0)
        arc.set_pose_px(Pose(50.0, 60.0, theta))
        arc.set_time_step(dt)
        arc.set_speeds(speed + diff / 2.0, speed - diff / 2.0)
        arc.step()

        assert math.isclose(arc.pose.x, straight.pose.x, abs_tol=1e-5)
        assert math.isclose(arc.pose.y, straight.pose.y, abs_tol=1e-5)
        assert math.isclose(arc.pose.theta, straight.pose.theta, abs_tol=1e-5)


def test_arc_steps_close_a_full_circle() -> None:
    robot = make_robot(scale=1.0, diameter=20.0)
    robot.set_pose_px(Pose(200.0, 200.0, 0.0))
    steps = 100
    # left - right = 1 px/s turns 1/20 rad per second
    robot.set_time_step(2.0 * math.pi * 20.0 / steps)
    robot.set_speeds(3.0, 2.0)

    xs = []
    for _ in range(steps):
        robot.step()
        xs.append(robot.pose.x)

    assert math.isclose(robot.pose.theta, 2.0 * math.pi, rel_tol=1e-9)
    assert math.isclose(robot.pose.x, 200.0, abs_tol=1e-6)
    assert math.isclose(robot.pose.y, 200.0, abs_tol=1e-6)
    # The robot actually travelled: R * (l + r) / (l - r) = 10 * 5 = 50 px radius
    assert max(xs) - min(xs) > 90.0


def test_previous_pose_is_pre_motion_pose() -> None:
    robot = make_robot()
    robot.set_location(1.0, 1.0, 0.0)
    robot.set_speeds(0.3, 0.2)
    before = robot.pose

    robot.step()

    assert robot.prev_pose == before
    assert robot.pose != before
    assert math.isclose(robot.get_pos_x_prev(), 1.0, rel_tol=1e-12)
    assert math.isclose(robot.get_pos_y_prev(), 1.0, rel_tol=1e-12)
