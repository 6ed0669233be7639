from __future__ import annotations

from .base import SYSTEM_SOURCE_IDS, Source, SourceInfo


class SourceRegistry:
    """Discovered sources, system sources first, in registration order."""

    def __init__(self, sources: list[Source] | None = None):
        self._sources: dict[str, Source] = {}
        for s in sources or []:
            self.register(s)

    def register(self, source: Source) -> None:
        if source.id in self._sources:
            raise ValueError(f"Duplicate source id: {source.id}")
        self._sources[source.id] = source

    def get(self, source_id: str) -> Source | None:
        return self._sources.get(source_id)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def sources(self) -> list[Source]:
        system = [s for s in self._sources.values() if s.id in SYSTEM_SOURCE_IDS]
        other = [s for s in self._sources.values() if s.id not in SYSTEM_SOURCE_IDS]
        return system + other

    def list_sources(self) -> list[SourceInfo]:
        return [s.info() for s in self.sources()]

    def ids(self) -> list[str]:
        return [s.id for s in self.sources()]
