from __future__ import annotations


class GridbotError(Exception):
    """Base class for simulator errors."""


class ConfigLoadError(GridbotError):
    """Configuration source is missing, unreadable or malformed."""


class GridIndexError(GridbotError, IndexError):
    """Grid cell lookup outside the grid extents."""

    def __init__(self, x: int, y: int, width: int, height: int) -> None:
        super().__init__(f"cell ({x}, {y}) outside {width}x{height} grid")
        self.x = x
        self.y = y


class CallbackFailure(GridbotError):
    """The user control routine raised; the simulation session is over."""
