from __future__ import annotations

import math
import random

import numpy as np
import pytest

from gridbot_sim.geometry_utils import Point2D
from gridbot_sim.grid import OccupancyGrid
from gridbot_sim.sensors import RangeSensor, bresenham_line


def grid_with(cells, width: int = 100, height: int = 100) -> OccupancyGrid:
    data = np.zeros((height, width), dtype=bool)
    for x, y in cells:
        data[y, x] = True
    return OccupancyGrid(data)


def cast(grid: OccupancyGrid, start: Point2D, end: Point2D, **kwargs) -> RangeSensor:
    sensor = RangeSensor(grid=grid, **kwargs)
    sensor.set_start(start)
    sensor.set_end(end)
    sensor.update_value()
    return sensor


def test_bresenham_horizontal_and_vertical() -> None:
    assert bresenham_line(0, 0, 4, 0) == [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]
    assert bresenham_line(2, 3, 2, 0) == [(2, 3), (2, 2), (2, 1), (2, 0)]


def test_bresenham_zero_length_is_single_cell() -> None:
    assert bresenham_line(7, 9, 7, 9) == [(7, 9)]


def test_bresenham_all_octants_are_connected() -> None:
    for x1, y1 in [(10, 3), (3, 10), (-3, 10), (-10, 3), (-10, -3), (-3, -10), (3, -10), (10, -3), (6, 6)]:
        cells = bresenham_line(0, 0, x1, y1)
        assert cells[0] == (0, 0)
        assert cells[-1] == (x1, y1)
        assert len(cells) == max(abs(x1), abs(y1)) + 1
        for (ax, ay), (bx, by) in zip(cells, cells[1:]):
            assert max(abs(bx - ax), abs(by - ay)) == 1


def test_free_ray_hits_end_point() -> None:
    grid = OccupancyGrid.empty(100, 100)
    start = Point2D(10.0, 20.0)
    end = Point2D(70.3, 55.8)

    sensor = cast(grid, start, end)

    assert sensor.hit == end
    assert sensor.raw_value == start.distance_to(end)
    assert sensor.value == sensor.raw_value
    assert sensor.noise == 0.0


def test_obstacle_at_midpoint_is_hit() -> None:
    grid = grid_with([(50, 50)])

    sensor = cast(grid, Point2D(10.0, 50.0), Point2D(90.0, 50.0))

    assert sensor.hit == Point2D(50.0, 50.0)
    assert math.isclose(sensor.raw_value, 40.0)


def test_first_obstacle_along_ray_wins() -> None:
    grid = grid_with([(60, 50), (30, 50)])

    sensor = cast(grid, Point2D(10.0, 50.0), Point2D(90.0, 50.0))

    assert sensor.hit == Point2D(30.0, 50.0)


def test_hit_lies_on_segment_for_any_ray() -> None:
    rng = random.Random(3)
    data = np.zeros((100, 100), dtype=bool)
    data[40:60, 40:60] = True
    data[5, :] = True
    grid = OccupancyGrid(data)

    for _ in range(200):
        start = Point2D(rng.uniform(0, 99), rng.uniform(0, 99))
        end = Point2D(rng.uniform(0, 99), rng.uniform(0, 99))
        sensor = cast(grid, start, end)

        total = start.distance_to(end)
        assert sensor.raw_value <= total + 1e-9
        assert math.isclose(
            start.distance_to(sensor.hit) + sensor.hit.distance_to(end), total, abs_tol=1e-9
        )


def test_thin_diagonal_wall_is_not_skipped() -> None:
    # One-cell-thick anti-diagonal wall x + y = 100
    grid = grid_with([(x, 100 - x) for x in range(1, 100)], width=101, height=101)

    sensor = cast(grid, Point2D(10.0, 10.0), Point2D(90.0, 90.0))

    assert sensor.hit != sensor.end
    assert sensor.raw_value < sensor.start.distance_to(sensor.end)


def test_out_of_grid_end_is_clamped() -> None:
    grid = OccupancyGrid.empty(50, 50)
    start = Point2D(25.0, 25.0)
    end = Point2D(200.0, -80.0)

    sensor = cast(grid, start, end)

    assert sensor.hit == end
    points = sensor.sampled_points
    assert points
    assert all(0 <= p.x < 50 and 0 <= p.y < 50 for p in points)


def test_zero_length_ray() -> None:
    grid = OccupancyGrid.empty(10, 10)
    p = Point2D(4.0, 4.0)

    sensor = cast(grid, p, p)

    assert sensor.sampled_points == [Point2D(4.0, 4.0)]
    assert sensor.hit == p
    assert sensor.raw_value == 0.0


def test_zero_length_ray_on_obstacle() -> None:
    grid = grid_with([(4, 4)], width=10, height=10)

    sensor = cast(grid, Point2D(4.0, 4.0), Point2D(4.0, 4.0))

    assert sensor.hit == Point2D(4.0, 4.0)
    assert sensor.raw_value == 0.0


def test_sampled_points_are_ordered_from_start() -> None:
    grid = OccupancyGrid.empty(100, 100)

    sensor = cast(grid, Point2D(10.0, 10.0), Point2D(30.0, 20.0))

    dists = [sensor.sample_distance_to_start(i) for i in range(len(sensor.sampled_points))]
    assert dists == sorted(dists)
    assert sensor.sample_distance_to_end(len(dists) - 1) == 0.0
    assert sensor.sample_distance_to_hit(0) == Point2D(10.0, 10.0).distance_to(sensor.hit)


def test_noise_is_added_on_top_of_raw_value() -> None:
    grid = grid_with([(50, 50)])
    stdev = 2.0
    sensor = RangeSensor(grid=grid, stdev=stdev, rng=random.Random(42))
    sensor.enable_noise(True)
    sensor.set_start(Point2D(10.0, 50.0))
    sensor.set_end(Point2D(90.0, 50.0))

    value = sensor.update_value()

    expected_noise = random.Random(42).gauss(0.0, stdev)
    assert sensor.noise_enabled
    assert math.isclose(sensor.raw_value, 40.0)
    assert sensor.noise == expected_noise
    assert value == sensor.raw_value + expected_noise


def test_noise_disabled_by_default() -> None:
    sensor = RangeSensor(grid=OccupancyGrid.empty(20, 20), stdev=5.0)
    assert not sensor.noise_enabled
    sensor.set_end(Point2D(10.0, 0.0))
    assert sensor.update_value() == 10.0


def test_set_hit_overrides_reading() -> None:
    sensor = cast(OccupancyGrid.empty(20, 20), Point2D(0.0, 0.0), Point2D(10.0, 0.0))

    sensor.set_hit(Point2D(3.0, 4.0))

    assert sensor.hit == Point2D(3.0, 4.0)
    assert sensor.raw_value == 5.0


def test_sample_index_out_of_range() -> None:
    sensor = cast(OccupancyGrid.empty(20, 20), Point2D(0.0, 0.0), Point2D(2.0, 0.0))
    with pytest.raises(IndexError):
        sensor.sample_distance_to_start(3)
