"""Conduit Logging - hierarchical colored logging for MCP connection management."""

from .colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from .logger import (
    ConduitLogger,
    LogConfig,
    ServerLogger,
    ToolLogger,
)

__all__ = [
    # Logger classes
    "ConduitLogger",
    "ServerLogger",
    "ToolLogger",
    "LogConfig",
    # Colors
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
