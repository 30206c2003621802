"""SQLite schema creation for the track store.

`PRAGMA user_version` is the source of truth for migration state. Migration
steps are applied sequentially and are idempotent within their version step.
"""

from __future__ import annotations

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_V1_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS tracks (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        loop INTEGER NOT NULL DEFAULT 0,
        content BLOB NOT NULL,
        sort_order INTEGER NOT NULL CHECK (sort_order >= 0),
        created_at INTEGER NOT NULL DEFAULT (strftime('%s','now')),
        updated_at INTEGER NOT NULL DEFAULT (strftime('%s','now'))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tracks_sort_order ON tracks(sort_order)",
]


def create_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate schema to `SCHEMA_VERSION` in the supplied connection."""
    version = conn.execute("PRAGMA user_version").fetchone()[0]
    if version > SCHEMA_VERSION:
        raise RuntimeError(
            "Unsupported database schema version.\n"
            f"Likely cause: database version {version} is newer than supported version {SCHEMA_VERSION}.\n"
            "Next step: run this trackloop build against a compatible database or upgrade trackloop."
        )
    if version == 0:
        _create_schema_v1(conn)
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")


def _create_schema_v1(conn: sqlite3.Connection) -> None:
    """Create base v1 tables/indexes in a fresh database."""
    for statement in SCHEMA_V1_STATEMENTS:
        conn.execute(statement)
