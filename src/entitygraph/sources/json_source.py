from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from ..errors import SourceError
from ..models import PERSISTENT_MARKER_KEY, SourceEntity
from .base import Source
from .registry import SourceRegistry


logger = logging.getLogger(__name__)

SUPPORTED_EXTS = {".json", ".jsonl"}


class JsonFileSource(Source):
    """Entities read from a single JSON or JSONL file.

    JSON files hold either a list of entity records or ``{"entities": [...]}``;
    JSONL files hold one record per line.
    """

    def __init__(
        self,
        path: Path,
        *,
        source_id: str | None = None,
        label: str = "",
        marker_key: str = PERSISTENT_MARKER_KEY,
    ):
        self.path = Path(path)
        self.id = source_id or source_id_for(self.path)
        self.label = label or self.path.stem
        self.marker_key = marker_key

    def is_available(self) -> bool:
        return self.path.is_file()

    def get_entity_count(self) -> int:
        return len(self._records())

    def get_entities(self) -> list[SourceEntity]:
        out: list[SourceEntity] = []
        for i, rec in enumerate(self._records()):
            try:
                out.append(SourceEntity.from_dict(rec, source_id=self.id, marker_key=self.marker_key))
            except (ValueError, TypeError, KeyError) as e:
                raise SourceError(f"{self.path.name}: bad entity record #{i + 1}: {e}") from e
        return out

    def _records(self) -> list[dict[str, Any]]:
        if not self.path.is_file():
            raise SourceError(f"Source file not found: {self.path}")
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise SourceError(f"Failed to read {self.path}: {e}") from e

        try:
            if self.path.suffix.lower() == ".jsonl":
                records = [json.loads(line) for line in text.splitlines() if line.strip()]
            else:
                data = json.loads(text) if text.strip() else []
                records = data.get("entities", []) if isinstance(data, dict) else data
        except json.JSONDecodeError as e:
            raise SourceError(f"Invalid JSON in {self.path.name}: {e}") from e

        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise SourceError(f"{self.path.name}: expected a list of entity objects")
        return records


def source_id_for(path: Path) -> str:
    # "catalogue-bookmarks.json" -> "catalogue:bookmarks"; "reading-list.json" -> "catalogue:reading-list"
    stem = path.stem
    for prefix in ("catalogue-", "cache-"):
        if stem.startswith(prefix):
            return f"{prefix[:-1]}:{stem[len(prefix):]}"
    return f"catalogue:{stem}"


def iter_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.rglob("*")):
        if not p.is_file():
            continue
        if p.name.startswith("."):
            continue
        if p.suffix.lower() not in SUPPORTED_EXTS:
            continue
        yield p


def discover_json_sources(root: str | Path, *, marker_key: str = PERSISTENT_MARKER_KEY) -> SourceRegistry:
    registry = SourceRegistry()
    root = Path(root)
    if not root.is_dir():
        logger.info("Sources directory %s does not exist; no sources discovered", root)
        return registry

    for path in iter_files(root):
        src = JsonFileSource(path, marker_key=marker_key)
        if src.id in registry:
            logger.warning("Skipping %s: source id %s already registered", path, src.id)
            continue
        registry.register(src)
    return registry
