from __future__ import annotations


class EntityGraphError(RuntimeError):
    pass


class SourceError(EntityGraphError):
    """A source could not produce its entities or count."""


class StoreError(EntityGraphError):
    pass
