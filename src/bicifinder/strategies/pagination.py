"""
Pagination state machine shared by the paginated strategies.

    FETCHING(page) -> EXTRACTING -> CONTINUE | STOP

Upstream pagination markers are unreliable, so the loop combines the explicit
continuation signal with a consecutive-empty-page heuristic and a hard ceiling.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import structlog

from ..models import Bicycle, Continuation, PageResult

logger = structlog.get_logger(__name__)

PageFetch = Callable[[int], Awaitable[PageResult]]


class PaginationState(str, Enum):
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    CONTINUE = "continue"
    STOP = "stop"


class StopReason(str, Enum):
    CONSECUTIVE_EMPTY = "consecutive_empty"
    NO_MORE_PAGES = "no_more_pages"
    UNKNOWN_CONTINUATION = "unknown_continuation"
    MAX_PAGES = "max_pages"


@dataclass(frozen=True)
class PaginationPolicy:
    """Tunable stop conditions."""

    max_pages: int = 100
    max_consecutive_empty: int = 2
    stop_on_unknown: bool = False


@dataclass
class PaginationRun:
    records: List[Bicycle] = field(default_factory=list)
    pages_fetched: int = 0
    stop_reason: Optional[StopReason] = None


def _next_state(
    result: PageResult, consecutive_empty: int, policy: PaginationPolicy
) -> tuple[PaginationState, Optional[StopReason]]:
    # The continuation signal is only read from pages that produced records.
    if not result.records:
        if consecutive_empty >= policy.max_consecutive_empty:
            return PaginationState.STOP, StopReason.CONSECUTIVE_EMPTY
        return PaginationState.CONTINUE, None

    if result.continuation is Continuation.NO_MORE:
        return PaginationState.STOP, StopReason.NO_MORE_PAGES
    if result.continuation is Continuation.UNKNOWN and policy.stop_on_unknown:
        return PaginationState.STOP, StopReason.UNKNOWN_CONTINUATION
    return PaginationState.CONTINUE, None


async def paginate(
    fetch: PageFetch,
    policy: PaginationPolicy,
    *,
    first_page: Optional[PageResult] = None,
    label: str = "pagination",
) -> PaginationRun:
    """Drive ``fetch`` page by page, strictly sequentially, from page 1.

    ``first_page`` lets a caller that already probed page 1 hand it over instead
    of fetching it again.
    """
    run = PaginationRun()
    consecutive_empty = 0
    page = 1
    state = PaginationState.FETCHING

    while state is not PaginationState.STOP:
        # FETCHING
        if page == 1 and first_page is not None:
            result = first_page
        else:
            result = await fetch(page)
        run.pages_fetched += 1

        # EXTRACTING
        state = PaginationState.EXTRACTING
        if result.records:
            consecutive_empty = 0
            run.records.extend(result.records)
        else:
            consecutive_empty += 1
            logger.info("Empty page", strategy=label, page=page, consecutive_empty=consecutive_empty)

        state, reason = _next_state(result, consecutive_empty, policy)
        if state is PaginationState.CONTINUE and page >= policy.max_pages:
            state, reason = PaginationState.STOP, StopReason.MAX_PAGES

        if state is PaginationState.STOP:
            run.stop_reason = reason
        else:
            page += 1
            state = PaginationState.FETCHING

    logger.info(
        "Pagination finished",
        strategy=label,
        pages_fetched=run.pages_fetched,
        records=len(run.records),
        stop_reason=run.stop_reason.value if run.stop_reason else None,
    )
    return run
