from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from .ids import detect_entity_type, normalize_id


# Attribute key that marks a record as promoted into the persistent working set.
PERSISTENT_MARKER_KEY = "_graphListMember"

_YEAR_KEYS = ("year", "publication_year", "publicationYear")


def _str_value(v: Any) -> str:
    return v.value if isinstance(v, Enum) else str(v)


def edge_key(source: str, target: str, relation_type: str) -> str:
    return f"{source}-{target}-{_str_value(relation_type)}"


def as_flag(v: Any) -> bool:
    """Only a real ``True`` or the string ``"true"`` count as set."""
    if isinstance(v, str):
        return v.strip().lower() == "true"
    return v is True


def _entity_type(raw: Any, entity_id: str) -> str:
    if raw:
        return _str_value(raw)
    detected = detect_entity_type(entity_id)
    return detected.value if detected is not None else ""


@dataclass(frozen=True)
class Relationship:
    target_id: str
    target_type: str
    relation_type: str
    score: float | None = None
    author_position: str | None = None
    is_corresponding: bool | None = None
    is_open_access: bool | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Relationship:
        score = _pick(d, "score")
        target_id = normalize_id(str(_require(d, "target_id", "targetId")))
        return cls(
            target_id=target_id,
            target_type=_entity_type(_pick(d, "target_type", "targetType"), target_id),
            relation_type=_str_value(_require(d, "relation_type", "relationType", "type")),
            score=(float(score) if score is not None else None),
            author_position=_pick(d, "author_position", "authorPosition"),
            is_corresponding=_pick(d, "is_corresponding", "isCorresponding"),
            is_open_access=_pick(d, "is_open_access", "isOpenAccess"),
        )


@dataclass
class EntityAttributes:
    """Provenance-aware attribute bag.

    The two fields that drive aggregation logic are named; anything else the
    source reported is kept verbatim in ``extra``.
    """

    is_persistent_set_member: bool = False
    year: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None, *, marker_key: str = PERSISTENT_MARKER_KEY) -> EntityAttributes:
        d = dict(d or {})
        member = as_flag(d.pop(marker_key, False))
        year = None
        for k in _YEAR_KEYS:
            if k in d:
                year = _as_year(d.pop(k))
                break
        return cls(is_persistent_set_member=member, year=year, extra=d)

    def to_dict(self, *, marker_key: str = PERSISTENT_MARKER_KEY) -> dict[str, Any]:
        out = dict(self.extra)
        if self.is_persistent_set_member:
            out[marker_key] = True
        if self.year is not None:
            out["year"] = self.year
        return out

    def tagged(self, source_id: str) -> EntityAttributes:
        return EntityAttributes(
            is_persistent_set_member=self.is_persistent_set_member,
            year=self.year,
            extra={**self.extra, "source_id": source_id},
        )


@dataclass(frozen=True)
class SourceEntity:
    entity_id: str
    entity_type: str
    label: str
    source_id: str
    attributes: EntityAttributes = field(default_factory=EntityAttributes)
    relationships: tuple[Relationship, ...] = ()

    @classmethod
    def from_dict(
        cls,
        d: dict[str, Any],
        *,
        source_id: str,
        marker_key: str = PERSISTENT_MARKER_KEY,
    ) -> SourceEntity:
        entity_id = normalize_id(str(_require(d, "entity_id", "entityId", "id")))
        rels = _pick(d, "relationships", default=None) or []
        return cls(
            entity_id=entity_id,
            entity_type=_entity_type(_pick(d, "entity_type", "entityType", "type"), entity_id),
            label=str(_pick(d, "label", "display_name", default=None) or entity_id),
            source_id=str(_pick(d, "source_id", "sourceId", default=None) or source_id),
            attributes=EntityAttributes.from_dict(
                _pick(d, "attributes", "metadata", default=None), marker_key=marker_key
            ),
            relationships=tuple(Relationship.from_dict(r) for r in rels),
        )


@dataclass
class GraphNode:
    id: str
    entity_type: str
    label: str
    x: float = 0.0
    y: float = 0.0
    attributes: EntityAttributes = field(default_factory=EntityAttributes)

    @property
    def year(self) -> int | None:
        return self.attributes.year

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entityType": self.entity_type,
            "label": self.label,
            "x": self.x,
            "y": self.y,
            "attributes": self.attributes.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GraphNode:
        node_id = normalize_id(str(d["id"]))
        return cls(
            id=node_id,
            entity_type=_entity_type(_pick(d, "entity_type", "entityType", "type"), node_id),
            label=str(d.get("label") or node_id),
            x=float(d.get("x") or 0.0),
            y=float(d.get("y") or 0.0),
            attributes=EntityAttributes.from_dict(_pick(d, "attributes", "metadata", default=None)),
        )


@dataclass
class GraphEdge:
    id: str
    source: str
    target: str
    relation_type: str
    weight: float = 1.0
    score: float | None = None
    author_position: str | None = None
    is_corresponding: bool | None = None
    is_open_access: bool | None = None

    @classmethod
    def create(cls, source: str, target: str, relation_type: str, **kwargs: Any) -> GraphEdge:
        rt = _str_value(relation_type)
        return cls(id=edge_key(source, target, rt), source=source, target=target, relation_type=rt, **kwargs)

    @property
    def reverse_key(self) -> str:
        return edge_key(self.target, self.source, self.relation_type)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "relationType": self.relation_type,
            "weight": self.weight,
        }
        for name, key in (
            ("score", "score"),
            ("author_position", "authorPosition"),
            ("is_corresponding", "isCorresponding"),
            ("is_open_access", "isOpenAccess"),
        ):
            v = getattr(self, name)
            if v is not None:
                out[key] = v
        return out

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GraphEdge:
        source = normalize_id(str(d["source"]))
        target = normalize_id(str(d["target"]))
        rt = _str_value(_require(d, "relation_type", "relationType", "type"))
        score = d.get("score")
        return cls(
            id=str(d.get("id") or edge_key(source, target, rt)),
            source=source,
            target=target,
            relation_type=rt,
            weight=float(d["weight"]) if d.get("weight") is not None else (float(score) if score is not None else 1.0),
            score=(float(score) if score is not None else None),
            author_position=_pick(d, "author_position", "authorPosition"),
            is_corresponding=_pick(d, "is_corresponding", "isCorresponding"),
            is_open_access=_pick(d, "is_open_access", "isOpenAccess"),
        )


@dataclass
class SourceState:
    source: str
    enabled: bool
    entity_count: int | None = None
    error: Exception | None = None
    available: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "enabled": self.enabled,
            "available": self.available,
            "entityCount": self.entity_count,
            "error": (str(self.error) if self.error is not None else None),
        }


@dataclass
class GraphState:
    """Caller-owned aggregated graph.

    Node and edge dicts preserve insertion order, which is the order every
    analysis operation sees them in.
    """

    nodes: dict[str, GraphNode] = field(default_factory=dict)
    edges: dict[str, GraphEdge] = field(default_factory=dict)
    loading: bool = False
    error: Exception | None = None
    sources: list[SourceState] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node_list(self) -> list[GraphNode]:
        return list(self.nodes.values())

    def edge_list(self) -> list[GraphEdge]:
        return list(self.edges.values())

    def has_edge(self, edge: GraphEdge) -> bool:
        """Whether ``(source, target, type)`` or its reverse is already present."""
        key = edge_key(edge.source, edge.target, edge.relation_type)
        return key in self.edges or edge.reverse_key in self.edges

    def replace(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> None:
        self.nodes = {n.id: n for n in nodes}
        self.edges = {e.id: e for e in edges}

    def reset(self) -> None:
        self.nodes = {}
        self.edges = {}
        self.error = None
        self.loading = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges.values()],
            "loading": self.loading,
            "isEmpty": self.is_empty,
            "error": (str(self.error) if self.error is not None else None),
            "sources": [s.to_dict() for s in self.sources],
        }


def _pick(d: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d:
            return d[k]
    return default


def _require(d: dict[str, Any], *keys: str) -> Any:
    v = _pick(d, *keys)
    if v is None:
        raise ValueError(f"Missing required field {keys[0]!r} in {d!r}")
    return v


def _as_year(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None
