"""SQLite-backed durable store for playlist track records.

The public API is async but all DB work is synchronous and dispatched through
`run_blocking(...)` to keep the event loop non-blocking. Every failure surfaces
as `StorageError`; nothing here retries.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import closing, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from trackloop.db.schema import create_schema
from trackloop.utils.async_utils import run_blocking

_PERF_WARN_MS = 50.0
logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageError(RuntimeError):
    """Raised when a track store operation fails."""

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"Track store {operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


@dataclass(frozen=True)
class Track:
    """Persisted playlist entry.

    `order` always equals the track's position in the playlist once a mutation
    has completed.
    """

    id: str
    name: str
    loop: bool
    content: bytes
    order: int

    def __repr__(self) -> str:
        return (
            f"Track(id={self.id!r}, name={self.name!r}, loop={self.loop}, "
            f"content=<{len(self.content)} bytes>, order={self.order})"
        )


@dataclass(frozen=True)
class TrackInput:
    """Raw material for a new track: display name plus audio payload."""

    name: str
    content: bytes

    @classmethod
    def from_path(cls, path: Path) -> TrackInput:
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes())


class TrackStore:
    """SQLite-backed key-value store of `Track` records keyed by id.

    Each async call uses a fresh SQLite connection to avoid cross-thread access.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        await self._run("initialize", self._initialize_sync)

    async def put(self, track: Track) -> None:
        await self._run("put", self._put_sync, track)

    async def delete(self, track_id: str) -> None:
        await self._run("delete", self._delete_sync, track_id)

    async def get_all(self) -> list[Track]:
        return await self._run("get_all", self._get_all_sync)

    async def count(self) -> int:
        return await self._run("count", self._count_sync)

    async def _run(self, operation: str, func: Callable[..., T], *args: object) -> T:
        try:
            return await run_blocking(func, *args)
        except (sqlite3.Error, OSError) as exc:
            logger.warning(
                "Track store %s failed: %s",
                operation,
                exc,
                extra={"db_path": str(self._db_path)},
            )
            raise StorageError(operation, str(exc)) from exc

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a fresh connection, commit on success and always close it."""
        with closing(sqlite3.connect(self._db_path, timeout=30)) as conn:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            with conn:
                yield conn

    def _initialize_sync(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            create_schema(conn)
            journal_mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
            logger.info(
                "Track store ready: path=%s journal_mode=%s",
                self._db_path,
                journal_mode,
            )

    def _put_sync(self, track: Track) -> None:
        start = time.perf_counter()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tracks (id, name, loop, content, sort_order)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    loop = excluded.loop,
                    content = excluded.content,
                    sort_order = excluded.sort_order,
                    updated_at = strftime('%s','now')
                """,
                (
                    track.id,
                    track.name,
                    1 if track.loop else 0,
                    sqlite3.Binary(track.content),
                    track.order,
                ),
            )
        _log_slow_db_op("put", start=start, track_id=track.id, order=track.order)

    def _delete_sync(self, track_id: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM tracks WHERE id = ?", (track_id,))
            if not cursor.rowcount:
                logger.debug("Delete ignored for missing track id %s", track_id)

    def _get_all_sync(self) -> list[Track]:
        start = time.perf_counter()
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, name, loop, content, sort_order FROM tracks"
            ).fetchall()
        result = [
            Track(
                id=str(row["id"]),
                name=str(row["name"]),
                loop=bool(row["loop"]),
                content=bytes(row["content"]),
                order=int(row["sort_order"]),
            )
            for row in rows
        ]
        _log_slow_db_op("get_all", start=start, rows=len(result))
        return result

    def _count_sync(self) -> int:
        with self._connect() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM tracks").fetchone()[0])


def _log_slow_db_op(operation: str, *, start: float, **context: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    if elapsed_ms < _PERF_WARN_MS:
        return
    logger.warning(
        "Slow track store operation %s took %.1f ms",
        operation,
        elapsed_ms,
        extra={"operation": operation, "elapsed_ms": round(elapsed_ms, 1), **context},
    )
