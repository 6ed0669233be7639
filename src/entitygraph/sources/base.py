from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..models import SourceEntity


# System source ids. The graph-list source is the persistent working set whose
# records win deduplication.
BOOKMARKS_SOURCE_ID = "catalogue:bookmarks"
HISTORY_SOURCE_ID = "catalogue:history"
GRAPH_LIST_SOURCE_ID = "catalogue:graph-list"
INDEXEDDB_CACHE_SOURCE_ID = "cache:indexeddb"
MEMORY_CACHE_SOURCE_ID = "cache:memory"

SYSTEM_SOURCE_IDS = (
    BOOKMARKS_SOURCE_ID,
    HISTORY_SOURCE_ID,
    GRAPH_LIST_SOURCE_ID,
    INDEXEDDB_CACHE_SOURCE_ID,
    MEMORY_CACHE_SOURCE_ID,
)


@dataclass(frozen=True)
class SourceInfo:
    id: str
    label: str
    category: str = "collection"  # "system" or "collection"


class Source(ABC):
    """Uniform contract every entity source implements.

    Sources are polled. ``get_entity_count`` may fail independently of
    ``get_entities``; both may raise, and callers isolate the failure.
    """

    id: str
    label: str = ""
    category: str = "collection"

    @abstractmethod
    def is_available(self) -> bool: ...

    @abstractmethod
    def get_entity_count(self) -> int: ...

    @abstractmethod
    def get_entities(self) -> list[SourceEntity]: ...

    def info(self) -> SourceInfo:
        category = "system" if self.id in SYSTEM_SOURCE_IDS else self.category
        return SourceInfo(id=self.id, label=self.label or self.id, category=category)


class StaticSource(Source):
    """In-memory source over a fixed entity list."""

    def __init__(self, source_id: str, entities: list[SourceEntity] | None = None, *, label: str = "", category: str = "collection"):
        self.id = source_id
        self.label = label or source_id
        self.category = category
        self._entities = list(entities or [])

    def is_available(self) -> bool:
        return True

    def get_entity_count(self) -> int:
        return len(self._entities)

    def get_entities(self) -> list[SourceEntity]:
        return list(self._entities)
