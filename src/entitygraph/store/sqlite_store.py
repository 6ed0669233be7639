from __future__ import annotations

import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Iterable


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

ENABLED_SOURCES_KEY = "entitygraph.enabled_sources"


def connect(db_path: str | os.PathLike[str]) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        );
        """
    )
    conn.execute(
        "INSERT OR REPLACE INTO meta(key, value) VALUES(?, ?)",
        ("schema_version", str(SCHEMA_VERSION)),
    )
    conn.commit()


def get_meta(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    return str(row["value"]) if row is not None else None


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute("INSERT OR REPLACE INTO meta(key, value) VALUES(?, ?)", (key, value))
    conn.commit()


class ToggleStore:
    """Persisted set of enabled source ids.

    Stored as a JSON array under a single key. Reads never fail: a missing key,
    corrupt value or database error all yield the default set. Writes are
    fire-and-forget.
    """

    def __init__(self, conn: sqlite3.Connection, *, default: Iterable[str], key: str = ENABLED_SOURCES_KEY):
        self.conn = conn
        self.default = frozenset(default)
        self.key = key

    def load(self) -> set[str]:
        try:
            raw = get_meta(self.conn, self.key)
        except sqlite3.Error as e:
            logger.warning("Failed to read enabled sources, using default: %s", e)
            return set(self.default)

        if raw is None:
            return set(self.default)

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt enabled-sources value %r, using default: %s", raw, e)
            return set(self.default)

        if not isinstance(data, list) or not all(isinstance(x, str) for x in data):
            logger.warning("Enabled-sources value is not a list of ids, using default: %r", data)
            return set(self.default)
        return set(data)

    def save(self, enabled: Iterable[str]) -> None:
        value = json.dumps(sorted(set(enabled)), ensure_ascii=True)
        try:
            set_meta(self.conn, self.key, value)
        except sqlite3.Error as e:
            logger.warning("Failed to persist enabled sources: %s", e)
