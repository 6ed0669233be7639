from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Sequence, TypeVar

from ..models import SourceEntity, SourceState
from ..sources.base import Source


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CollectionResult:
    entities: list[SourceEntity] = field(default_factory=list)
    states: list[SourceState] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def first_error(self) -> Exception | None:
        return next(iter(self.errors.values()), None)


def _fan_out(sources: Sequence[Source], call: Callable[[Source], T], *, max_workers: int) -> list[tuple[T | None, Exception | None]]:
    """Run ``call`` for every source concurrently; results come back in source order."""
    if not sources:
        return []

    workers = max(1, min(int(max_workers), len(sources)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="entitygraph-source") as ex:
        futs: list[Future] = [ex.submit(call, s) for s in sources]
        out: list[tuple[T | None, Exception | None]] = []
        for fut in futs:
            try:
                out.append((fut.result(), None))
            except Exception as e:
                out.append((None, e))
    return out


def _fetch(source: Source) -> list[SourceEntity] | None:
    if not source.is_available():
        return None
    return list(source.get_entities())


def _count(source: Source) -> int | None:
    if not source.is_available():
        return None
    return int(source.get_entity_count())


def collect_entities(
    sources: Sequence[Source],
    states: Sequence[SourceState],
    *,
    max_workers: int = 4,
) -> CollectionResult:
    """Fetch entities from every enabled source.

    A failing source contributes nothing and has its error recorded on its
    ``SourceState``; it never aborts the other sources. A source that reports
    itself unavailable is skipped and marked ``available=False`` without an
    error. Entities come back in source order, then in each source's own
    order.
    """
    by_id = {s.id: s for s in sources}
    result = CollectionResult()

    enabled: list[Source] = []
    for st in states:
        new_state = SourceState(source=st.source, enabled=st.enabled, entity_count=st.entity_count)
        result.states.append(new_state)
        if st.enabled and st.source in by_id:
            enabled.append(by_id[st.source])
        elif st.enabled:
            logger.warning("Enabled source %s is not registered; skipping", st.source)

    if not enabled:
        logger.info("No sources enabled; graph will be empty")
        return result

    state_by_id = {st.source: st for st in result.states}
    for src, (entities, err) in zip(enabled, _fan_out(enabled, _fetch, max_workers=max_workers)):
        st = state_by_id[src.id]
        if err is not None:
            logger.warning("Source %s failed to return entities: %s", src.id, err)
            st.error = err
            result.errors[src.id] = err
            continue
        if entities is None:
            logger.info("Source %s is unavailable; skipping", src.id)
            st.available = False
            continue
        result.entities.extend(entities)
        logger.debug("Source %s returned %d entities", src.id, len(entities))

    return result


def probe_entity_counts(
    sources: Sequence[Source],
    states: Sequence[SourceState],
    *,
    max_workers: int = 4,
) -> list[SourceState]:
    """Fill ``entity_count`` for every known source, enabled or not.

    A failing probe leaves ``entity_count`` as ``None`` and records the error;
    an unavailable source is marked ``available=False`` and not asked.
    """
    by_id = {s.id: s for s in sources}
    known = [st for st in states if st.source in by_id]
    probed = _fan_out([by_id[st.source] for st in known], _count, max_workers=max_workers)

    counts: dict[str, tuple[int | None, Exception | None]] = {
        st.source: res for st, res in zip(known, probed)
    }
    out: list[SourceState] = []
    for st in states:
        count, err = counts.get(st.source, (None, None))
        if err is not None:
            logger.warning("Source %s failed to report a count: %s", st.source, err)
        unavailable = st.source in counts and count is None and err is None
        out.append(
            SourceState(
                source=st.source,
                enabled=st.enabled,
                entity_count=count,
                error=err if err is not None else st.error,
                available=not unavailable,
            )
        )
    return out
