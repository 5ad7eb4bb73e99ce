"""
Parsing of the registry's REST responses.

Bodies come back in several shapes: a bare array, or an object holding the
array under one of a few conventional keys, optionally with paging metadata.
"""

from __future__ import annotations

from typing import Any, List, Mapping

from ..models import Continuation

# Tried in order when the body is an object.
ITEM_KEYS = ("content", "data", "bicicletas", "results")


def extract_items(payload: Any) -> List[Mapping[str, Any]]:
    """Return the record objects embedded in a response body."""
    items: Any = None
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, Mapping):
        for key in ITEM_KEYS:
            if isinstance(payload.get(key), list):
                items = payload[key]
                break
    if not items:
        return []
    return [item for item in items if isinstance(item, Mapping)]


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def detect_continuation(payload: Any) -> Continuation:
    """Read pagination metadata (Spring ``Page`` style or ``hasMore`` flags)."""
    if not isinstance(payload, Mapping):
        return Continuation.UNKNOWN

    if payload.get("last") is False or payload.get("hasNext") is True or payload.get("hasMore") is True:
        return Continuation.MORE

    total_pages = _as_int(payload.get("totalPages"))
    number = _as_int(payload.get("number"))
    if total_pages is not None and number is not None:
        return Continuation.MORE if number < total_pages - 1 else Continuation.NO_MORE

    if payload.get("last") is True or payload.get("hasNext") is False or payload.get("hasMore") is False:
        return Continuation.NO_MORE

    return Continuation.UNKNOWN
