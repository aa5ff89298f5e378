"""
Position and Session Storage
============================

The repository contract consumed by the movement simulator and the heatmap
service, plus two implementations:
- InMemoryLocationRepository: dict-backed, for tests and demos
- SqliteLocationRepository: stdlib sqlite3 in WAL mode, calls offloaded to a
  worker thread

All operations are coroutines and raise StorageError on failure.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from crowd_heatmap.result import StorageError
from crowd_heatmap.tracking.dataclasses import Coordinate, Position, Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class LocationRepository(Protocol):
    """Durable store for sessions and positions, keyed by session id."""

    async def create_session(self, session: Session) -> int: ...

    async def update_session(self, session: Session) -> None: ...

    async def get_active_session(self) -> Session | None: ...

    async def save_location(self, position: Position) -> int: ...

    async def get_all_locations(self) -> list[Position]: ...

    async def get_locations_by_session(self, session_id: int) -> list[Position]: ...

    async def delete_location(self, position_id: int) -> int: ...


# =============================================================================
# In-memory Repository
# =============================================================================


class InMemoryLocationRepository:
    """Dict-backed repository. Ids are assigned sequentially from 1."""

    def __init__(self) -> None:
        self._sessions: dict[int, Session] = {}
        self._locations: dict[int, Position] = {}
        self._next_session_id = 1
        self._next_location_id = 1

    async def create_session(self, session: Session) -> int:
        session_id = self._next_session_id
        self._next_session_id += 1
        self._sessions[session_id] = replace(session, id=session_id)
        return session_id

    async def update_session(self, session: Session) -> None:
        if session.id is None or session.id not in self._sessions:
            raise StorageError(f"Failed to update tracking session {session.id}: not found")
        self._sessions[session.id] = replace(session)

    async def get_active_session(self) -> Session | None:
        for session in self._sessions.values():
            if session.is_active:
                return replace(session)
        return None

    async def get_session(self, session_id: int) -> Session | None:
        session = self._sessions.get(session_id)
        return replace(session) if session is not None else None

    async def save_location(self, position: Position) -> int:
        position_id = self._next_location_id
        self._next_location_id += 1
        self._locations[position_id] = position.with_id(position_id)
        return position_id

    async def get_all_locations(self) -> list[Position]:
        return list(self._locations.values())

    async def get_locations_by_session(self, session_id: int) -> list[Position]:
        return [p for p in self._locations.values() if p.session_id == session_id]

    async def delete_location(self, position_id: int) -> int:
        return 1 if self._locations.pop(position_id, None) is not None else 0

    @property
    def session_count(self) -> int:
        return len(self._sessions)


# =============================================================================
# SQLite Repository
# =============================================================================


_SCHEMA = """
CREATE TABLE IF NOT EXISTS tracking_session(
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  start_time TEXT NOT NULL,
  end_time TEXT,
  origin_latitude REAL NOT NULL,
  origin_longitude REAL NOT NULL,
  destination_latitude REAL NOT NULL,
  destination_longitude REAL NOT NULL,
  is_active INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS location_point(
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  latitude REAL NOT NULL,
  longitude REAL NOT NULL,
  timestamp TEXT NOT NULL,
  session_id INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_location_point_session ON location_point(session_id);
"""


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=int(row["id"]),
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(row["end_time"]) if row["end_time"] else None,
        origin=Coordinate(row["origin_latitude"], row["origin_longitude"]),
        destination=Coordinate(row["destination_latitude"], row["destination_longitude"]),
        is_active=bool(row["is_active"]),
    )


def _row_to_position(row: sqlite3.Row) -> Position:
    return Position(
        id=int(row["id"]),
        coordinate=Coordinate(row["latitude"], row["longitude"]),
        timestamp=datetime.fromisoformat(row["timestamp"]),
        session_id=int(row["session_id"]),
    )


class SqliteLocationRepository:
    """SQLite-backed repository.

    The connection is opened lazily in autocommit mode with WAL journaling.
    Each call runs in a worker thread via `asyncio.to_thread` and calls are
    serialized by an asyncio.Lock, so a single connection is never used from
    two threads at once.

    Args:
        db_path: Database file, or ":memory:"
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    def _ensure_conn(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            self._db_path, timeout=30, isolation_level=None, check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=3000;")
        conn.executescript(_SCHEMA)
        self._conn = conn
        return conn

    async def _run(self, operation: str, fn: Callable[[sqlite3.Connection], T]) -> T:
        async with self._lock:
            try:
                return await asyncio.to_thread(lambda: fn(self._ensure_conn()))
            except sqlite3.Error as exc:
                logger.error("Database error in %s", operation, exc_info=True)
                raise StorageError(f"Failed to {operation}") from exc

    async def initialize(self) -> None:
        """Create tables if missing."""
        await self._run("initialize database", lambda conn: None)

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def create_session(self, session: Session) -> int:
        def _insert(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                "INSERT INTO tracking_session(start_time, end_time, origin_latitude, "
                "origin_longitude, destination_latitude, destination_longitude, is_active) "
                "VALUES(?, ?, ?, ?, ?, ?, ?)",
                (
                    session.start_time.isoformat(),
                    session.end_time.isoformat() if session.end_time else None,
                    session.origin.latitude,
                    session.origin.longitude,
                    session.destination.latitude,
                    session.destination.longitude,
                    int(session.is_active),
                ),
            )
            return int(cur.lastrowid)

        return await self._run("create tracking session", _insert)

    async def update_session(self, session: Session) -> None:
        if session.id is None:
            raise StorageError("Failed to update tracking session: session has no id")

        def _update(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                "UPDATE tracking_session SET start_time=?, end_time=?, origin_latitude=?, "
                "origin_longitude=?, destination_latitude=?, destination_longitude=?, "
                "is_active=? WHERE id=?",
                (
                    session.start_time.isoformat(),
                    session.end_time.isoformat() if session.end_time else None,
                    session.origin.latitude,
                    session.origin.longitude,
                    session.destination.latitude,
                    session.destination.longitude,
                    int(session.is_active),
                    session.id,
                ),
            )
            return cur.rowcount

        updated = await self._run("update tracking session", _update)
        if updated == 0:
            raise StorageError(f"Failed to update tracking session {session.id}: not found")

    async def get_active_session(self) -> Session | None:
        def _select(conn: sqlite3.Connection) -> Session | None:
            row = conn.execute(
                "SELECT * FROM tracking_session WHERE is_active=1 ORDER BY id LIMIT 1"
            ).fetchone()
            return _row_to_session(row) if row else None

        return await self._run("retrieve active session", _select)

    async def get_session(self, session_id: int) -> Session | None:
        def _select(conn: sqlite3.Connection) -> Session | None:
            row = conn.execute(
                "SELECT * FROM tracking_session WHERE id=?", (session_id,)
            ).fetchone()
            return _row_to_session(row) if row else None

        return await self._run(f"retrieve session {session_id}", _select)

    async def save_location(self, position: Position) -> int:
        def _insert(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                "INSERT INTO location_point(latitude, longitude, timestamp, session_id) "
                "VALUES(?, ?, ?, ?)",
                (
                    position.latitude,
                    position.longitude,
                    position.timestamp.isoformat(),
                    position.session_id,
                ),
            )
            return int(cur.lastrowid)

        return await self._run("save location data", _insert)

    async def get_all_locations(self) -> list[Position]:
        def _select(conn: sqlite3.Connection) -> list[Position]:
            rows = conn.execute("SELECT * FROM location_point ORDER BY id ASC").fetchall()
            return [_row_to_position(r) for r in rows]

        return await self._run("retrieve location data", _select)

    async def get_locations_by_session(self, session_id: int) -> list[Position]:
        def _select(conn: sqlite3.Connection) -> list[Position]:
            rows = conn.execute(
                "SELECT * FROM location_point WHERE session_id=? ORDER BY id ASC",
                (session_id,),
            ).fetchall()
            return [_row_to_position(r) for r in rows]

        return await self._run(f"retrieve locations for session {session_id}", _select)

    async def delete_location(self, position_id: int) -> int:
        def _delete(conn: sqlite3.Connection) -> int:
            return conn.execute(
                "DELETE FROM location_point WHERE id=?", (position_id,)
            ).rowcount

        return await self._run(f"delete location with id {position_id}", _delete)
