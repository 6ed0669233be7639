from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _opt_int(name: str) -> int | None:
    v = os.getenv(name, "").strip()
    return int(v) if v else None


@dataclass(frozen=True)
class Settings:
    # SQLite DB holding the enabled-source toggle and the relationship store.
    db_path: str = os.getenv("ENTITYGRAPH_DB_PATH", "./data/entitygraph.db")

    # Directory scanned for file-backed sources (one JSON/JSONL file per source).
    sources_dir: str = os.getenv("ENTITYGRAPH_SOURCES_DIR", "./data/sources")

    # Toggle defaults and dedup priority
    default_source: str = os.getenv("ENTITYGRAPH_DEFAULT_SOURCE", "catalogue:bookmarks")
    persistent_source: str = os.getenv("ENTITYGRAPH_PERSISTENT_SOURCE", "catalogue:graph-list")
    persistent_marker: str = os.getenv("ENTITYGRAPH_PERSISTENT_MARKER", "_graphListMember")

    # Collection
    max_workers: int = int(os.getenv("ENTITYGRAPH_MAX_WORKERS", "4"))

    # Initial positions for newly created nodes
    layout: str = os.getenv("ENTITYGRAPH_LAYOUT", "random")
    layout_seed: int | None = _opt_int("ENTITYGRAPH_LAYOUT_SEED")

    log_level: str = os.getenv("ENTITYGRAPH_LOG_LEVEL", "WARNING")
