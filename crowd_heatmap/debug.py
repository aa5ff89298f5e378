"""
Debug Logging
=============

Logging helpers for inspecting tracking sessions and heatmap output.

All package modules log through loggers under the "crowd_heatmap"
namespace. Nothing is printed unless the application configures logging or
calls `setup_debug_logging()`.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence

from crowd_heatmap.tracking.dataclasses import Coordinate, HeatMapPoint, Position

PACKAGE_LOGGER = "crowd_heatmap"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger(PACKAGE_LOGGER)
logger.addHandler(logging.NullHandler())

_debug_handler: logging.Handler | None = None


def setup_debug_logging(level: int = logging.DEBUG, fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Calling it again replaces the previous handler instead of stacking a
    second one.

    Args:
        level: Level for both the logger and the handler
        fmt: Log record format

    Returns:
        The package logger
    """
    global _debug_handler
    disable_debug_logging()
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.setLevel(level)
    _debug_handler = handler
    return logger


def disable_debug_logging() -> None:
    """Remove the handler installed by `setup_debug_logging()`."""
    global _debug_handler
    if _debug_handler is not None:
        logger.removeHandler(_debug_handler)
        _debug_handler.close()
        _debug_handler = None
    logger.setLevel(logging.NOTSET)


def format_coordinate(coordinate: Coordinate, precision: int = 6) -> str:
    return f"({coordinate.latitude:.{precision}f}, {coordinate.longitude:.{precision}f})"


def format_position(position: Position) -> str:
    return (
        f"#{position.id} session={position.session_id} "
        f"{format_coordinate(position.coordinate)} at {position.timestamp.isoformat()}"
    )


def log_position(position: Position) -> None:
    logger.debug("Position %s", format_position(position))


def log_heatmap_summary(points: Sequence[HeatMapPoint], label: str = "heatmap") -> None:
    """Log count and intensity range of a heatmap at DEBUG level."""
    if not points:
        logger.debug("%s: empty", label)
        return
    intensities = [p.intensity for p in points]
    logger.debug(
        "%s: %d points, intensity min=%.3f mean=%.3f max=%.3f",
        label,
        len(points),
        min(intensities),
        sum(intensities) / len(intensities),
        max(intensities),
    )
