from __future__ import annotations

from typing import List, Tuple
import math

import numpy as np
import pygame

from .geometry_utils import body_to_world
from .grid import OccupancyGrid
from .robot import RobotSnapshot


THEME = {
    "bg": (18, 22, 32),
    "robot_fill": (100, 220, 255),
    "robot_outline": (40, 140, 200),
    "robot_arrow": (140, 240, 255),
    "trail": (60, 160, 200),
    "beam": (255, 180, 100),
    "hit": (255, 90, 90),
    "hud_bg": (28, 34, 48),
    "hud_border": (55, 65, 88),
    "hud_text": (200, 220, 255),
}


def load_map_pixels(path: str) -> np.ndarray:
    """Decode an image file into a (height, width, 3) uint8 RGB array."""
    surface = pygame.image.load(path)
    # surfarray is indexed [x, y]
    return np.ascontiguousarray(pygame.surfarray.array3d(surface).transpose(1, 0, 2))


class PygameRenderer:
    """Top-down view of the grid, the robot and its sensor beams.

    One grid cell is one screen pixel and both share the same axes: the
    origin is the top-left corner and y grows downward.
    """

    def __init__(
        self,
        grid: OccupancyGrid,
        robot_radius_px: float,
        show_beams: bool = True,
        show_trail: bool = True,
        trail_max_length: int = 500,
        caption: str = "Grid Robot Simulation",
    ) -> None:
        pygame.init()
        pygame.display.set_caption(caption)
        self.screen = pygame.display.set_mode((max(grid.width, 1), max(grid.height, 1)))
        self.clock = pygame.time.Clock()

        self.grid = grid
        self.robot_radius_px = robot_radius_px
        self.show_beams = show_beams
        self.show_trail = show_trail
        self.trail_max_length = trail_max_length
        self.trail: List[Tuple[float, float]] = []

        # Static background built once from the grayscale view
        rgb = np.repeat(grid.gray.T[:, :, None], 3, axis=2)
        self._background = pygame.surfarray.make_surface(rgb)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def draw(
        self,
        snapshot: RobotSnapshot,
        status: str = "",
        fps: float = 0.0,
    ) -> None:
        """Render one frame."""
        self.screen.fill(THEME["bg"])
        self.screen.blit(self._background, (0, 0))

        if self.show_trail:
            self.trail.append((snapshot.pose.x, snapshot.pose.y))
            if len(self.trail) > self.trail_max_length:
                self.trail = self.trail[-self.trail_max_length :]
            if len(self.trail) >= 2:
                pygame.draw.lines(self.screen, THEME["trail"], False, self.trail, 1)

        if self.show_beams:
            self._draw_beams(snapshot)

        self._draw_robot(snapshot)
        self._draw_hud(snapshot, status, fps)
        pygame.display.flip()

    def _draw_beams(self, snapshot: RobotSnapshot) -> None:
        for start, hit in zip(snapshot.sensor_starts, snapshot.sensor_hits):
            p0 = (int(start.x), int(start.y))
            p1 = (int(hit.x), int(hit.y))
            pygame.draw.line(self.screen, THEME["beam"], p0, p1, 1)
            pygame.draw.circle(self.screen, THEME["hit"], p1, 2)

    def _draw_robot(self, snapshot: RobotSnapshot) -> None:
        pose = snapshot.pose
        center = (int(pose.x), int(pose.y))
        radius_px = max(2, int(self.robot_radius_px))
        pygame.draw.circle(self.screen, THEME["robot_fill"], center, radius_px, 0)
        pygame.draw.circle(self.screen, THEME["robot_outline"], center, radius_px, 2)

        hx, hy = body_to_world(radius_px * 1.5, 0.0, pose.x, pose.y, pose.theta)
        pygame.draw.line(self.screen, THEME["robot_arrow"], center, (int(hx), int(hy)), 3)

    def _draw_hud(self, snapshot: RobotSnapshot, status: str, fps: float) -> None:
        pad = 10
        font = pygame.font.SysFont("monospace", 13)
        heading_deg = math.degrees(snapshot.pose.theta)
        text = (
            f"  {status}  step={snapshot.step_count}  "
            f"th={heading_deg:.1f}deg  FPS={fps:.1f}  "
        )
        surf = font.render(text, True, THEME["hud_text"])
        r = surf.get_rect(topleft=(pad, pad))
        panel = r.inflate(pad, pad)
        pygame.draw.rect(self.screen, THEME["hud_bg"], panel)
        pygame.draw.rect(self.screen, THEME["hud_border"], panel, 1)
        self.screen.blit(surf, (panel.x + 4, panel.y + 4))

    def tick(self, target_fps: int) -> float:
        """Cap frame rate and return achieved FPS."""
        fps = self.clock.get_fps()
        self.clock.tick(target_fps)
        return fps

    def close(self) -> None:
        pygame.quit()

