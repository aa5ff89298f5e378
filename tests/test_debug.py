"""
Tests for the debug logging helpers.
"""

import logging
from datetime import datetime, timezone

import pytest

from crowd_heatmap.debug import (
    PACKAGE_LOGGER,
    disable_debug_logging,
    format_coordinate,
    format_position,
    log_heatmap_summary,
    log_position,
    setup_debug_logging,
)
from crowd_heatmap.tracking.dataclasses import Coordinate, HeatMapPoint, Position

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    disable_debug_logging()


class TestFormatting:
    def test_format_coordinate(self) -> None:
        assert format_coordinate(Coordinate(37.7763451, -122.4196629)) == "(37.776345, -122.419663)"
        assert format_coordinate(Coordinate(1.0, 2.0), precision=2) == "(1.00, 2.00)"

    def test_format_position(self) -> None:
        text = format_position(Position(Coordinate(1.0, 2.0), T0, session_id=4, id=7))
        assert text == "#7 session=4 (1.000000, 2.000000) at 2024-05-01T12:00:00+00:00"


class TestDebugHandler:
    def test_setup_replaces_previous_handler(self) -> None:
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        baseline = len(package_logger.handlers)
        setup_debug_logging()
        setup_debug_logging()
        assert len(package_logger.handlers) == baseline + 1
        assert package_logger.level == logging.DEBUG
        disable_debug_logging()
        assert len(package_logger.handlers) == baseline
        assert package_logger.level == logging.NOTSET

    def test_records_emitted(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger=PACKAGE_LOGGER):
            log_position(Position(Coordinate(1.0, 2.0), T0, 1, id=1))
            log_heatmap_summary([HeatMapPoint(Coordinate(0.0, 0.0), 0.25), HeatMapPoint(Coordinate(0.0, 1.0), 0.75)])
            log_heatmap_summary([], label="empty map")
        messages = [r.getMessage() for r in caplog.records]
        assert messages[0].startswith("Position #1 session=1")
        assert messages[1] == "heatmap: 2 points, intensity min=0.250 mean=0.500 max=0.750"
        assert messages[2] == "empty map: empty"
