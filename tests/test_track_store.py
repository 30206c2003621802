"""Tests for the SQLite track store."""

from __future__ import annotations

import asyncio
import sqlite3

import pytest

from trackloop.db.schema import SCHEMA_VERSION
from trackloop.services.track_store import StorageError, Track, TrackStore


def _run(coro):
    return asyncio.run(coro)


def _track(track_id: str, order: int, *, loop: bool = False) -> Track:
    return Track(
        id=track_id,
        name=f"{track_id}.mp3",
        loop=loop,
        content=bytes([order]) * 8,
        order=order,
    )


def test_initialize_creates_schema(tmp_path) -> None:
    db_path = tmp_path / "nested" / "tracks.sqlite"
    store = TrackStore(db_path)

    _run(store.initialize())
    assert db_path.exists()
    with sqlite3.connect(db_path) as conn:
        tables = {
            row[0]
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )
        }
        version = conn.execute("PRAGMA user_version").fetchone()[0]
    assert "tracks" in tables
    assert version == SCHEMA_VERSION

    # Re-initializing an existing database is harmless.
    _run(store.initialize())
    assert _run(store.count()) == 0


def test_put_and_get_all(tmp_path) -> None:
    store = TrackStore(tmp_path / "tracks.sqlite")
    _run(store.initialize())
    first = _track("a", 0, loop=True)
    second = _track("b", 1)

    _run(store.put(first))
    _run(store.put(second))

    loaded = sorted(_run(store.get_all()), key=lambda track: track.order)
    assert loaded == [first, second]
    assert _run(store.count()) == 2


def test_put_overwrites_existing_id(tmp_path) -> None:
    store = TrackStore(tmp_path / "tracks.sqlite")
    _run(store.initialize())
    _run(store.put(_track("a", 0)))

    updated = Track(id="a", name="renamed.ogg", loop=True, content=b"new", order=3)
    _run(store.put(updated))

    assert _run(store.get_all()) == [updated]


def test_delete_removes_record_and_ignores_missing_ids(tmp_path) -> None:
    store = TrackStore(tmp_path / "tracks.sqlite")
    _run(store.initialize())
    _run(store.put(_track("a", 0)))
    _run(store.put(_track("b", 1)))

    _run(store.delete("a"))
    _run(store.delete("missing"))

    assert [track.id for track in _run(store.get_all())] == ["b"]


def test_records_survive_a_new_store_instance(tmp_path) -> None:
    db_path = tmp_path / "tracks.sqlite"
    store = TrackStore(db_path)
    _run(store.initialize())
    track = _track("a", 0)
    _run(store.put(track))

    reopened = TrackStore(db_path)
    _run(reopened.initialize())
    assert _run(reopened.get_all()) == [track]


def test_unopenable_path_raises_storage_error(tmp_path, caplog) -> None:
    # A directory cannot be opened as a database file.
    store = TrackStore(tmp_path)

    with pytest.raises(StorageError) as excinfo:
        _run(store.get_all())
    assert excinfo.value.operation == "get_all"
    assert excinfo.value.detail
    assert any("Track store get_all failed" in r.message for r in caplog.records)


def test_put_failure_raises_storage_error(tmp_path) -> None:
    db_path = tmp_path / "tracks.sqlite"
    store = TrackStore(db_path)
    _run(store.initialize())
    with sqlite3.connect(db_path) as conn:
        conn.execute("DROP TABLE tracks")

    with pytest.raises(StorageError) as excinfo:
        _run(store.put(_track("a", 0)))
    assert excinfo.value.operation == "put"


def test_newer_schema_version_is_rejected(tmp_path) -> None:
    db_path = tmp_path / "tracks.sqlite"
    with sqlite3.connect(db_path) as conn:
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")

    with pytest.raises(RuntimeError, match="newer than supported"):
        _run(TrackStore(db_path).initialize())


def test_track_repr_hides_payload() -> None:
    track = Track(id="a", name="song.mp3", loop=False, content=b"\x00" * 2048, order=0)
    text = repr(track)
    assert "<2048 bytes>" in text
    assert "\\x00" not in text
