"""
Movement Simulator
==================

Tracking state machine that walks a fetched route on a fixed cadence.

States: Idle -> Tracking -> Idle. Starting is only legal from Idle; stopping
is always legal and is a no-op when Idle.

While Tracking, one background task ticks once per interval. Each tick
persists a Position for the route point under the cursor, publishes a
PositionUpdated event, and advances the cursor. Past the end of the route
the last point is repeated until tracking stops.

Events are published on a single channel, `MovementSimulator.events`
(an asyncio.Queue of PositionUpdated | ErrorOccurred).

Guarantees:
- Positions are persisted and published in route order, at most one per tick
- Ticks run one at a time, whether from the loop or from tick()
- A Position is published only after it has been saved
- Once stop_tracking() returns, no further PositionUpdated is published for
  that session
- A failure inside the tick loop is published as ErrorOccurred and returns
  the simulator to Idle once the failed session is closed; it never
  propagates out of the task
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from crowd_heatmap.debug import log_position
from crowd_heatmap.result import (
    FailureKind,
    TrackingError,
    classify_exception,
    execute_with_error_handling,
)
from crowd_heatmap.tracking.dataclasses import (
    ROUTE_STATUS_OK,
    Coordinate,
    ErrorOccurred,
    Position,
    PositionUpdated,
    RouteResponse,
    Session,
    TrackingConfig,
    TrackingEvent,
)
from crowd_heatmap.tracking.storage import LocationRepository
from crowd_heatmap.validation import validate_origin_and_destination

logger = logging.getLogger(__name__)

ALREADY_TRACKING_MESSAGE = "Tracking is already active."


@runtime_checkable
class RouteSource(Protocol):
    """Returns an ordered route between two coordinates."""

    async def fetch_route(self, origin: Coordinate, destination: Coordinate) -> RouteResponse: ...


class StaticRouteSource:
    """Route source that always answers with the same response.

    Useful for demos and tests; records each request in `requests`.
    """

    def __init__(self, response: RouteResponse) -> None:
        self.response = response
        self.requests: list[tuple[Coordinate, Coordinate]] = []

    @classmethod
    def from_points(cls, points: list[tuple[float, float]]) -> StaticRouteSource:
        return cls(
            RouteResponse(
                status=ROUTE_STATUS_OK,
                points=tuple(Coordinate(lat, lng) for lat, lng in points),
            )
        )

    async def fetch_route(self, origin: Coordinate, destination: Coordinate) -> RouteResponse:
        self.requests.append((origin, destination))
        return self.response


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MovementSimulator:
    """Owns one tracking lifecycle at a time.

    Args:
        route_source: Provides the route to walk
        repository: Persists sessions and positions
        config: Tick interval
        clock: Returns the current time; UTC wall clock by default

    Example:
        >>> from crowd_heatmap.tracking.storage import InMemoryLocationRepository
        >>> source = StaticRouteSource.from_points([(0.0, 0.0), (0.0, 1.0)])
        >>> simulator = MovementSimulator(source, InMemoryLocationRepository())
        >>> await simulator.start_tracking(Coordinate(0.0, 0.0), Coordinate(0.0, 1.0))
        True
        >>> event = await simulator.events.get()
        >>> await simulator.stop_tracking()
    """

    def __init__(
        self,
        route_source: RouteSource,
        repository: LocationRepository,
        config: TrackingConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._route_source = route_source
        self._repository = repository
        self.config = config if config is not None else TrackingConfig()
        self._clock = clock if clock is not None else _utc_now

        self.events: asyncio.Queue[TrackingEvent] = asyncio.Queue()

        self._is_tracking = False
        self._route: tuple[Coordinate, ...] = ()
        self._cursor = 0
        self._session_id: int | None = None
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._transition_lock = asyncio.Lock()
        # Held for the whole of one tick; manual and loop ticks never overlap
        self._tick_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_tracking(self) -> bool:
        return self._is_tracking

    @property
    def current_session_id(self) -> int | None:
        """Id of the session being tracked, or of the last one once stopped."""
        return self._session_id

    @property
    def route(self) -> tuple[Coordinate, ...]:
        return self._route

    @property
    def cursor(self) -> int:
        """Index of the next route point to emit."""
        return self._cursor

    @property
    def has_arrived(self) -> bool:
        """True once every route point has been emitted at least once."""
        return bool(self._route) and self._cursor >= len(self._route)

    # -------------------------------------------------------------------------
    # Event channel
    # -------------------------------------------------------------------------

    def _publish(self, event: TrackingEvent) -> None:
        self.events.put_nowait(event)

    def _publish_error(self, message: str, kind: FailureKind | str = FailureKind.UNEXPECTED) -> None:
        kind_name = kind.value if isinstance(kind, FailureKind) else kind
        logger.debug("Publishing error event (%s): %s", kind_name, message)
        self._publish(ErrorOccurred(message=message, kind=kind_name))

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def start_tracking(self, origin: Coordinate, destination: Coordinate) -> bool:
        """Fetch a route, open a session and start ticking.

        Args:
            origin: Route start
            destination: Route end

        Returns:
            True if tracking started. False if already tracking, if the
            coordinates are invalid, if the route source did not answer "OK"
            with at least one point, or if a collaborator failed. Every False
            is accompanied by an ErrorOccurred event.
        """
        async with self._transition_lock:
            if self._is_tracking:
                self._publish_error(ALREADY_TRACKING_MESSAGE, FailureKind.VALIDATION)
                return False

            validation = validate_origin_and_destination(origin, destination)
            if not validation.is_valid:
                self._publish_error(validation.error_message, FailureKind.VALIDATION)
                return False

            async def _start() -> bool:
                response = await self._route_source.fetch_route(origin, destination)
                if not response.is_ok:
                    status = response.status
                    if status == ROUTE_STATUS_OK:
                        status = "NO_ROUTE_POINTS"
                    logger.warning("Route request failed with status %s", status)
                    self._publish_error(f"Failed to get route: {status}", FailureKind.NETWORK)
                    return False

                session = Session(
                    start_time=self._clock(),
                    origin=origin,
                    destination=destination,
                    is_active=True,
                )
                session_id = await self._repository.create_session(session)

                self._route = response.points
                self._cursor = 0
                self._session_id = session_id
                self._stop_event = asyncio.Event()
                self._is_tracking = True
                self._task = asyncio.create_task(
                    self._run(session_id, self._stop_event),
                    name=f"movement-simulator-session-{session_id}",
                )
                logger.info(
                    "Tracking started: session %d, %d route points, interval %d ms",
                    session_id,
                    len(self._route),
                    self.config.update_interval_ms,
                )
                return True

            result = await execute_with_error_handling(
                _start, "StartTracking", on_error=self._publish_error
            )
            return result.is_success and bool(result.value)

    async def stop_tracking(self) -> None:
        """Stop ticking and close the active session.

        No-op when Idle; safe to call repeatedly. Waits for an in-flight tick
        to finish so that no position is published after this returns.
        """
        async with self._transition_lock:
            if not self._is_tracking:
                return

            self._is_tracking = False
            await self._halt_loop()

            async def _close() -> None:
                await self._close_active_session(self._session_id)

            # A manual tick still in flight publishes before this returns
            async with self._tick_lock:
                await execute_with_error_handling(
                    _close, "StopTracking", on_error=self._publish_error
                )
            logger.info("Tracking stopped: session %s", self._session_id)

    async def close(self) -> None:
        """Stop tracking if active."""
        await self.stop_tracking()

    async def __aenter__(self) -> MovementSimulator:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _halt_loop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                logger.info("Tick loop was cancelled")

    async def _close_active_session(self, session_id: int | None) -> None:
        session = await self._repository.get_active_session()
        if session is None or session.id != session_id:
            logger.warning("No active session to close for session %s", session_id)
            return
        session.close(self._clock())
        await self._repository.update_session(session)

    # -------------------------------------------------------------------------
    # Tick loop
    # -------------------------------------------------------------------------

    async def tick(self) -> Position:
        """Persist and publish one position for the tracked session.

        Same step the background loop takes each interval, without the wait.
        Waits for any tick already running to finish first.

        Raises:
            TrackingError: If no session is being tracked
        """
        async with self._tick_lock:
            if not self._accepting_ticks() or self._session_id is None:
                raise TrackingError("Cannot tick while tracking is stopped")
            return await self._tick(self._session_id)

    def _accepting_ticks(self) -> bool:
        stop_event = self._stop_event
        return self._is_tracking and stop_event is not None and not stop_event.is_set()

    async def _tick(self, session_id: int) -> Position:
        """Persist and publish one position; advance the cursor."""
        index = min(self._cursor, len(self._route) - 1)
        position = Position(
            coordinate=self._route[index],
            timestamp=self._clock(),
            session_id=session_id,
        )
        position_id = await self._repository.save_location(position)
        stored = position.with_id(position_id)
        log_position(stored)

        self._publish(PositionUpdated(stored))
        if self._cursor < len(self._route):
            self._cursor += 1
        return stored

    async def _wait_for_stop(self, stop_event: asyncio.Event) -> bool:
        """Sleep one interval or until stop is requested. True if stopping."""
        interval = self.config.update_interval_seconds
        if interval <= 0:
            await asyncio.sleep(0)
            return stop_event.is_set()
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run(self, session_id: int, stop_event: asyncio.Event) -> None:
        try:
            while not stop_event.is_set():
                async with self._tick_lock:
                    if stop_event.is_set():
                        break
                    await self._tick(session_id)
                if await self._wait_for_stop(stop_event):
                    break
        except asyncio.CancelledError:
            logger.info("Operation cancelled: SimulateMovement")
            raise
        except Exception as exc:
            failure = classify_exception(exc)
            logger.error(
                "%s error in SimulateMovement for session %d",
                failure.kind.value,
                session_id,
                exc_info=exc,
            )
            # Refuse manual ticks, and keep start_tracking out until the
            # failed session is closed
            stop_event.set()
            await execute_with_error_handling(
                lambda: self._close_active_session(session_id), "CloseSessionAfterFailure"
            )
            self._is_tracking = False
            self._task = None
            self._publish_error(failure.message, failure.kind)
