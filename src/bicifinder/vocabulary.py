"""
Brand and color vocabularies proxied from the registry's configuration API.

Each list is cached as an immutable snapshot that is swapped in whole on
refresh, so concurrent readers see either the previous list or the new one.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from .config.config import Config
from .crawler.http_client import HttpClient
from .errors import VocabularyUnavailableError
from .extractor.api_parser import extract_items
from .models import VocabularyEntry
from .observability.metrics import increment

logger = structlog.get_logger(__name__)

BRANDS = "brands"
COLORS = "colors"

# Vocabulary kind -> label key in the upstream objects.
LABEL_KEYS = {BRANDS: "marca", COLORS: "color"}


@dataclass(frozen=True)
class VocabularySnapshot:
    entries: Tuple[VocabularyEntry, ...]
    fetched_at: float

    def is_fresh(self, ttl: float, now: float) -> bool:
        return now - self.fetched_at < ttl


def parse_vocabulary(payload: Any, label_key: str) -> List[VocabularyEntry]:
    """Map upstream objects to ``{id, label}`` pairs, dropping empty labels."""
    entries = []
    for item in extract_items(payload):
        label = item.get(label_key)
        if not isinstance(label, str) or not label.strip():
            continue
        entries.append(VocabularyEntry(id=item.get("id"), label=label.strip()))
    return entries


class VocabularyCache:
    """
    Process-wide TTL cache for the brand and color lists.

    Only one refresh per kind runs at a time; callers arriving during a refresh
    wait for it and reuse its result. A failed refresh falls back to the stale
    snapshot when there is one.
    """

    def __init__(self, http_client: HttpClient, config: Config, clock: Callable[[], float] = time.monotonic):
        self.http_client = http_client
        self.config = config
        self.clock = clock
        self._paths = {BRANDS: config.upstream.brands_path, COLORS: config.upstream.colors_path}
        self._snapshots: Dict[str, VocabularySnapshot] = {}
        self._locks = {kind: asyncio.Lock() for kind in LABEL_KEYS}
        self.logger = logger.bind(component="VocabularyCache")

    @property
    def ttl(self) -> float:
        return self.config.vocabulary.ttl_seconds

    def _fresh_snapshot(self, kind: str) -> Optional[VocabularySnapshot]:
        snapshot = self._snapshots.get(kind)
        if snapshot is not None and snapshot.is_fresh(self.ttl, self.clock()):
            return snapshot
        return None

    async def get(self, kind: str) -> List[VocabularyEntry]:
        if kind not in LABEL_KEYS:
            raise ValueError(f"Unknown vocabulary: {kind}")

        snapshot = self._fresh_snapshot(kind)
        if snapshot is not None:
            return list(snapshot.entries)

        async with self._locks[kind]:
            # Another caller may have refreshed while we waited.
            snapshot = self._fresh_snapshot(kind)
            if snapshot is not None:
                return list(snapshot.entries)

            stale = self._snapshots.get(kind)
            try:
                entries = await self._fetch(kind)
            except VocabularyUnavailableError as e:
                if stale is None:
                    increment("vocabulary_refreshes_total", kind=kind, outcome="error")
                    raise
                increment("vocabulary_refreshes_total", kind=kind, outcome="stale")
                self.logger.warning("Vocabulary refresh failed, serving stale copy", kind=kind, reason=e.reason)
                return list(stale.entries)

            self._snapshots[kind] = VocabularySnapshot(entries=tuple(entries), fetched_at=self.clock())
            increment("vocabulary_refreshes_total", kind=kind, outcome="success")
            self.logger.info("Vocabulary refreshed", kind=kind, entries=len(entries))
            return entries

    async def brands(self) -> List[VocabularyEntry]:
        return await self.get(BRANDS)

    async def colors(self) -> List[VocabularyEntry]:
        return await self.get(COLORS)

    async def _fetch(self, kind: str) -> List[VocabularyEntry]:
        url = self.config.upstream.api_base_url.rstrip("/") + "/" + self._paths[kind].lstrip("/")
        response = await self.http_client.fetch(
            url,
            headers={"Accept": "application/json"},
            timeout=self.config.fetcher.api_timeout,
        )
        if not response.ok:
            raise VocabularyUnavailableError(kind, f"HTTP {response.status}")

        payload = response.json()
        if payload is None:
            raise VocabularyUnavailableError(kind, "response is not JSON")
        return parse_vocabulary(payload, LABEL_KEYS[kind])
