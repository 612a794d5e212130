"""SQLite connection and schema management."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from tenantforge.config import Config, load_config

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

TABLES = ("credential_map", "deployments")


def get_db(config: Config | None = None, db_path: str | None = None) -> sqlite3.Connection:
    """Return a configured SQLite connection.

    Uses WAL mode and row_factory=sqlite3.Row for dict-like access.
    """
    if db_path is None:
        if config is None:
            config = load_config()
        db_path = config.storage.sqlite_path

    conn = sqlite3.connect(db_path, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables from schema.sql."""
    conn.executescript(_SCHEMA_PATH.read_text())


def reset_db(config: Config | None = None) -> sqlite3.Connection:
    """Drop and recreate the database. Returns a fresh connection."""
    if config is None:
        config = load_config()

    db_path = Path(config.storage.sqlite_path)
    if db_path.exists():
        db_path.unlink()

    conn = get_db(config)
    init_db(conn)
    return conn


def db_stats(conn: sqlite3.Connection) -> dict[str, int]:
    """Return row counts for all tables (-1 when a table is missing)."""
    stats = {}
    for table in TABLES:
        try:
            row = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}").fetchone()
            stats[table] = row["cnt"]
        except sqlite3.OperationalError:
            stats[table] = -1
    return stats
