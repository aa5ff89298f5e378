#!/usr/bin/env python3
"""
Simulate a walk along a short San Francisco route and render the heatmap.

This script:
1. Walks a fixed route with the movement simulator, persisting to SQLite
2. Consumes position events with a tracking monitor
3. Refreshes the crowd heatmap every few updates
4. Writes the final heatmap and path overlay to a PNG

Usage:
    python examples/simulate_route.py --ticks 20 --interval-ms 100
    python examples/simulate_route.py --db out/tracking.db --no-crowd
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

import numpy as np

try:
    import cv2
except ImportError:
    raise SystemExit(
        "This script requires opencv-python.\n"
        "Install with: pip install -e '.[viz]'"
    )

from crowd_heatmap import (
    Coordinate,
    HeatmapService,
    MonitorConfig,
    MovementSimulator,
    PositionUpdated,
    SqliteLocationRepository,
    StaticRouteSource,
    TrackingConfig,
    TrackingMonitor,
    log_heatmap_summary,
)
from crowd_heatmap.tracking.visualize import GeoBounds, draw_heatmap, draw_path

logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

SCRIPT_DIR = Path(__file__).resolve().parent
OUTPUT_DIR = SCRIPT_DIR / "output"

# Van Ness Ave & Fell St to Geary Blvd
ORIGIN = Coordinate(37.776345, -122.419663)
DESTINATION = Coordinate(37.783227, -122.439540)
ROUTE = [
    (37.776345, -122.419663),
    (37.777420, -122.419880),
    (37.778510, -122.420100),
    (37.779600, -122.420320),
    (37.780690, -122.420540),
    (37.781780, -122.420760),
    (37.782010, -122.422410),
    (37.782230, -122.424060),
    (37.782450, -122.425710),
    (37.782670, -122.427360),
    (37.782890, -122.429010),
    (37.783110, -122.432300),
    (37.783227, -122.439540),
]


async def run_simulation(args: argparse.Namespace) -> None:
    repository = SqliteLocationRepository(args.db)
    await repository.initialize()

    simulator = MovementSimulator(
        StaticRouteSource.from_points(ROUTE),
        repository,
        TrackingConfig(update_interval_ms=args.interval_ms),
    )
    service = HeatmapService(repository)
    monitor = TrackingMonitor(simulator, service, MonitorConfig(heatmap_refresh_interval=5))
    await monitor.set_heatmap_enabled(not args.no_crowd)

    if not await monitor.start_tracking(ORIGIN, DESTINATION):
        raise SystemExit(f"Could not start tracking: {monitor.last_error}")

    for _ in range(args.ticks):
        event = await simulator.events.get()
        await monitor.handle_event(event)
        if isinstance(event, PositionUpdated):
            logger.info(
                "Tick: (%.6f, %.6f)", event.position.latitude, event.position.longitude
            )
        if not simulator.is_tracking:
            break

    await monitor.stop_tracking()
    if monitor.last_error:
        logger.warning("Last error: %s", monitor.last_error)

    points = monitor.heatmap_points
    if points is None:
        # Crowd mode off: fall back to the plain density map
        result = await service.generate(session_id=simulator.current_session_id, crowd_enabled=False)
        points = result.value_or([])
    log_heatmap_summary(points)

    coordinates = [p.coordinate for p in points] + list(simulator.route)
    bounds = GeoBounds.around(coordinates, padding_m=150.0)
    canvas = np.full((args.height, args.width, 3), 245, dtype=np.uint8)
    canvas = draw_heatmap(canvas, points, bounds)
    canvas = draw_path(canvas, monitor.path_points, bounds)

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    output_path = OUTPUT_DIR / "heatmap.png"
    cv2.imwrite(str(output_path), canvas)
    logger.info("Saved heatmap with %d points to %s", len(points), output_path)

    await repository.close()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Simulate route tracking and render a heatmap")
    parser.add_argument("--db", type=Path, default=OUTPUT_DIR / "tracking.db", help="SQLite database path")
    parser.add_argument("--ticks", type=int, default=20, help="Position updates to consume (default: 20)")
    parser.add_argument("--interval-ms", type=int, default=100, help="Tick interval in ms (default: 100)")
    parser.add_argument("--no-crowd", action="store_true", help="Disable crowd simulation")
    parser.add_argument("--width", type=int, default=800)
    parser.add_argument("--height", type=int, default=600)

    args = parser.parse_args()
    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
