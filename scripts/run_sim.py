from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import Optional

# Ensure project root is on path when running this script directly
_script_dir = Path(__file__).resolve().parent
_project_root = _script_dir.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pygame

from gridbot_sim.config import SimConfig, load_config
from gridbot_sim.grid import OccupancyGrid
from gridbot_sim.interfaces import ControlRoutine, GridProvider, SimulationControls
from gridbot_sim.render import PygameRenderer, load_map_pixels
from gridbot_sim.robot import DifferentialDriveRobot
from gridbot_sim.simulation import SimulationSession
from telemetry.logger import TelemetryLogger


class MapFile(GridProvider):
    """Grid from a map image, or an empty grid sized by the config."""

    def __init__(self, config: SimConfig, path: Optional[str]) -> None:
        self.config = config
        self.path = path

    def get_grid(self) -> OccupancyGrid:
        if self.path is None:
            return OccupancyGrid.empty(self.config.grid_width, self.config.grid_height)
        pixels = load_map_pixels(self.path)
        return OccupancyGrid.from_pixels(pixels, self.config.scale_factor)


def make_wander_routine(cruise: float = 0.1, turn: float = 0.05, safe_distance: float = 0.3) -> ControlRoutine:
    """Drive forward and turn toward the freer side when the front ray gets close.

    Speeds in m/s, distance in meters.
    """

    def wander(robot: DifferentialDriveRobot) -> None:
        front = robot.get_sensor_value_at(0.0)
        if front > safe_distance:
            robot.set_speeds(cruise, cruise)
            return
        # Positive ray angles are on the robot's right
        right = robot.get_sensor_value_at(45.0)
        left = robot.get_sensor_value_at(-45.0)
        if right > left:
            robot.set_speeds(turn, -turn)
        else:
            robot.set_speeds(-turn, turn)

    return wander


def main() -> None:
    parser = argparse.ArgumentParser(description="Differential-drive robot on an occupancy grid.")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/sim.yaml",
        help="Path to sim YAML config.",
    )
    parser.add_argument("--map", type=str, default=None, help="Map image (PNG). Empty world if omitted.")
    parser.add_argument("--telemetry", type=str, default=None, help="JSONL telemetry output path.")
    parser.add_argument("--sensor-log", type=str, default=None, help="Tab-separated sensor log path (L key).")
    parser.add_argument("--noise", action="store_true", help="Enable Gaussian sensor noise.")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--fps", type=int, default=30)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    config = load_config(args.config)
    controls = SimulationControls(delay=SimulationControls.MEDIUM)
    session = SimulationSession(
        config,
        MapFile(config, args.map),
        make_wander_routine(),
        run_state=controls,
        rng=random.Random(args.seed),
    )
    session.robot.enable_sensor_noise(args.noise)

    renderer = PygameRenderer(grid=session.grid, robot_radius_px=config.robot_radius_px)
    telemetry_logger = TelemetryLogger(args.telemetry) if args.telemetry else None

    print("SPACE run/stop, 1/2/3 fast/medium/slow, click to place robot (stopped), L log sensors, ESC quit.")

    session.start()
    last_step = -1
    running = True
    try:
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        running = False
                    elif event.key == pygame.K_SPACE:
                        controls.toggle()
                    elif event.key == pygame.K_1:
                        controls.set_delay(SimulationControls.FAST)
                    elif event.key == pygame.K_2:
                        controls.set_delay(SimulationControls.MEDIUM)
                    elif event.key == pygame.K_3:
                        controls.set_delay(SimulationControls.SLOW)
                    elif event.key == pygame.K_l and args.sensor_log:
                        session.robot.log_sensors(args.sensor_log)
                elif event.type == pygame.MOUSEBUTTONDOWN and not controls.is_running():
                    x, y = event.pos
                    s = config.scale_factor
                    session.robot.set_location(x / s, y / s, session.robot.get_angle())

            if session.loop.error is not None:
                print(f"Simulation ended: {session.loop.error}", file=sys.stderr)
                running = False

            snapshot = session.snapshot()
            if telemetry_logger is not None and snapshot.step_count != last_step:
                telemetry_logger.log_snapshot(snapshot)
                last_step = snapshot.step_count

            fps = renderer.tick(args.fps)
            status = "RUNNING" if controls.is_running() else "STOPPED"
            renderer.draw(snapshot, status=status, fps=fps)
    finally:
        session.close()
        renderer.close()
        if telemetry_logger is not None:
            telemetry_logger.close()


if __name__ == "__main__":
    main()
