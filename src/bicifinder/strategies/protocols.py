"""
Protocols for pluggable acquisition strategies.
"""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from ..models import Bicycle, PageResult, SearchFilters


@runtime_checkable
class AcquisitionStrategy(Protocol):
    """One self-contained way of acquiring records from the upstream."""

    name: str

    async def acquire(self, filters: SearchFilters) -> List[Bicycle]:
        """Return every record the strategy could recover for ``filters``.

        An empty list means the strategy found nothing; raising means it failed
        outright. Either way the orchestrator moves on to the next strategy.
        """
        ...


@runtime_checkable
class PageSource(Protocol):
    """Fetches one 1-based page of listing results."""

    async def fetch_page(self, filters: SearchFilters, page: int) -> PageResult: ...
