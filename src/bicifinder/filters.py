"""
Filter Predicate Engine.

Applied locally to every result set, whichever strategy produced it, since
filters forwarded upstream are not guaranteed to have been honoured.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .models import SEARCH_TERM_FIELDS, Bicycle, SearchFilters


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle.casefold() in value.casefold()


def matches(record: Bicycle, filters: SearchFilters) -> bool:
    """True when ``record`` satisfies every supplied filter."""
    for name, needle in filters.field_filters().items():
        if not _contains(getattr(record, name), needle):
            return False

    term = filters.search_term
    if term and not any(_contains(getattr(record, name), term) for name in SEARCH_TERM_FIELDS):
        return False

    return True


def apply_filters(records: Iterable[Bicycle], filters: SearchFilters) -> List[Bicycle]:
    """Order-preserving filter; returns a new list."""
    if filters.is_empty():
        return list(records)
    return [record for record in records if matches(record, filters)]


def unique_by_identifier(records: Iterable[Bicycle]) -> List[Bicycle]:
    """Drop records whose identifier already appeared; the first one wins."""
    seen: set[str] = set()
    unique: List[Bicycle] = []
    for record in records:
        if record.identifier in seen:
            continue
        seen.add(record.identifier)
        unique.append(record)
    return unique
