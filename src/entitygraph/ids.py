from __future__ import annotations

import re
from enum import Enum

# Bare identifiers such as "W2741809807" or "a5023888391". A node whose label
# still matches this has not had its display name resolved yet.
_UNRESOLVED_RE = re.compile(r"^[A-Z]\d+$", re.IGNORECASE)

_ID_URL_PREFIXES = (
    "https://openalex.org/",
    "http://openalex.org/",
    "https://api.openalex.org/",
)


class EntityType(str, Enum):
    WORK = "works"
    AUTHOR = "authors"
    INSTITUTION = "institutions"
    SOURCE = "sources"
    TOPIC = "topics"
    FUNDER = "funders"
    PUBLISHER = "publishers"
    FIELD = "fields"
    DOMAIN = "domains"
    SUBFIELD = "subfields"
    CONCEPT = "concepts"
    KEYWORD = "keywords"


_PREFIX_TYPES = {
    "W": EntityType.WORK,
    "A": EntityType.AUTHOR,
    "I": EntityType.INSTITUTION,
    "S": EntityType.SOURCE,
    "T": EntityType.TOPIC,
    "F": EntityType.FUNDER,
    "P": EntityType.PUBLISHER,
    "C": EntityType.CONCEPT,
    "K": EntityType.KEYWORD,
}


def looks_unresolved(label: str | None) -> bool:
    if not label:
        return True
    return _UNRESOLVED_RE.match(label.strip()) is not None


def normalize_id(raw: str) -> str:
    """Strip URL prefixes and upper-case the short form ("w123" -> "W123").

    Anything that does not reduce to a short id comes back stripped but
    otherwise unchanged.
    """
    s = raw.strip()
    for prefix in _ID_URL_PREFIXES:
        if s.startswith(prefix):
            s = s[len(prefix):]
            break
    # Route-style ids ("works/W123") keep only the last segment.
    tail = s.rsplit("/", 1)[-1]
    if _UNRESOLVED_RE.match(tail):
        return tail.upper()
    return s


def detect_entity_type(entity_id: str) -> EntityType | None:
    s = normalize_id(entity_id)
    if not _UNRESOLVED_RE.match(s):
        return None
    return _PREFIX_TYPES.get(s[0].upper())
