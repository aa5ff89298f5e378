"""
Tracking Monitor
================

Subscriber side of the movement simulator's event channel. Orchestrates one
simulator and one heatmap service and keeps the state a map display needs:
- current_position: the latest published position
- path_points: every earlier position of the session, oldest first
- heatmap_points: the last computed heatmap, None while the heatmap is off
- last_error: the most recent error message, held until replaced or cleared

The heatmap is recomputed every `heatmap_refresh_interval` position updates
while enabled, scoped to the current session while tracking and to all
stored positions otherwise.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from crowd_heatmap.heatmap import HeatmapService
from crowd_heatmap.tracking.dataclasses import (
    Coordinate,
    ErrorOccurred,
    HeatMapPoint,
    MonitorConfig,
    Position,
    PositionUpdated,
    TrackingEvent,
)
from crowd_heatmap.tracking.simulator import MovementSimulator

logger = logging.getLogger(__name__)


class TrackingMonitor:
    """Consumes simulator events and maintains display state.

    Args:
        simulator: The state machine whose events are consumed
        heatmap_service: Computes heatmaps from stored positions
        config: Heatmap refresh cadence
        on_heatmap: Optional callback invoked with each refreshed heatmap
            (None when the heatmap is switched off)
    """

    def __init__(
        self,
        simulator: MovementSimulator,
        heatmap_service: HeatmapService,
        config: MonitorConfig | None = None,
        on_heatmap: Callable[[list[HeatMapPoint] | None], None] | None = None,
    ) -> None:
        self.simulator = simulator
        self.heatmap_service = heatmap_service
        self.config = config if config is not None else MonitorConfig()
        self._on_heatmap = on_heatmap

        self.current_position: Position | None = None
        self.path_points: list[Position] = []
        self.heatmap_points: list[HeatMapPoint] | None = None
        self.last_error: str = ""
        self.heatmap_enabled = False

        self._updates_since_refresh = 0
        self._consumer: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def start_tracking(self, origin: Coordinate, destination: Coordinate) -> bool:
        """Clear the held error and start the simulator.

        On success the path history and refresh counter are reset.
        """
        self.clear_error()
        started = await self.simulator.start_tracking(origin, destination)
        if started:
            self.path_points.clear()
            self._updates_since_refresh = 0
        else:
            await self.drain()
        return started

    async def stop_tracking(self) -> None:
        """Stop the simulator, consume its last events and refresh the heatmap."""
        await self.simulator.stop_tracking()
        await self.drain()
        self.current_position = None
        await self.refresh_heatmap()

    async def set_heatmap_enabled(self, enabled: bool) -> None:
        """Toggle crowd heatmap display and recompute (or clear) it."""
        if enabled == self.heatmap_enabled:
            return
        self.heatmap_enabled = enabled
        self.heatmap_service.set_crowd_enabled(enabled)
        await self.refresh_heatmap()

    async def toggle_heatmap(self) -> None:
        await self.set_heatmap_enabled(not self.heatmap_enabled)

    def clear_error(self) -> None:
        self.last_error = ""

    # -------------------------------------------------------------------------
    # Heatmap
    # -------------------------------------------------------------------------

    async def refresh_heatmap(self) -> None:
        """Recompute the heatmap, or clear it when disabled.

        Failures are held in `last_error`; the previous heatmap is kept.
        """
        if not self.heatmap_enabled:
            self._set_heatmap(None)
            return

        session_id = self.simulator.current_session_id
        if self.simulator.is_tracking and session_id is not None:
            result = await self.heatmap_service.generate(session_id=session_id)
        else:
            result = await self.heatmap_service.generate()

        if result.is_success:
            logger.debug("Heatmap refreshed with %d points", len(result.value or []))
            self._set_heatmap(result.value or [])
        else:
            self.last_error = f"Failed to refresh heat map: {result.error_message}"

    def _set_heatmap(self, points: list[HeatMapPoint] | None) -> None:
        self.heatmap_points = points
        if self._on_heatmap is not None:
            self._on_heatmap(points)

    # -------------------------------------------------------------------------
    # Event handling
    # -------------------------------------------------------------------------

    async def handle_event(self, event: TrackingEvent) -> None:
        if isinstance(event, PositionUpdated):
            await self._on_position(event.position)
        elif isinstance(event, ErrorOccurred):
            logger.debug("Error event: %s", event.message)
            self.last_error = event.message

    async def _on_position(self, position: Position) -> None:
        if self.current_position is not None:
            self.path_points.append(self.current_position)
        self.current_position = position

        if not self.heatmap_enabled:
            return
        self._updates_since_refresh += 1
        if self._updates_since_refresh >= self.config.heatmap_refresh_interval:
            self._updates_since_refresh = 0
            await self.refresh_heatmap()

    async def drain(self) -> int:
        """Handle every event already queued, without waiting. Returns the count."""
        handled = 0
        while True:
            try:
                event = self.simulator.events.get_nowait()
            except asyncio.QueueEmpty:
                return handled
            await self.handle_event(event)
            handled += 1

    async def run(self) -> None:
        """Consume events until cancelled."""
        while True:
            event = await self.simulator.events.get()
            await self.handle_event(event)

    def start(self) -> None:
        """Run the consumer in a background task."""
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self.run(), name="tracking-monitor")

    async def aclose(self) -> None:
        """Stop the background consumer and the simulator."""
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        await self.simulator.close()
        await self.drain()
