"""
Acquisition Orchestrator.

Runs the configured strategies in priority order and adopts the first
non-empty result set.
"""

from __future__ import annotations

import time
from typing import Dict, List, Sequence

import structlog

from .models import Bicycle, SearchFilters
from .observability.metrics import increment, observe
from .strategies.protocols import AcquisitionStrategy

logger = structlog.get_logger(__name__)


class AcquisitionOrchestrator:
    """
    Ordered fallback over acquisition strategies.

    A strategy that raises is logged and skipped. When every strategy comes back
    empty the result is an empty list, which is a normal outcome rather than an
    error.
    """

    def __init__(self, strategies: Sequence[AcquisitionStrategy]) -> None:
        if not strategies:
            raise ValueError("At least one acquisition strategy is required")
        self.strategies = list(strategies)
        self.logger = logger.bind(component="AcquisitionOrchestrator")

        self._metrics: Dict[str, Dict[str, float]] = {
            strategy.name: {"attempts": 0, "hits": 0, "errors": 0, "total_time": 0.0} for strategy in self.strategies
        }

    @property
    def order(self) -> List[str]:
        return [strategy.name for strategy in self.strategies]

    async def acquire(self, filters: SearchFilters) -> List[Bicycle]:
        start = time.time()
        self.logger.info("Starting acquisition", order=self.order, filters=filters.model_dump(exclude_none=True))

        try:
            for strategy in self.strategies:
                stats = self._metrics[strategy.name]
                stats["attempts"] += 1
                attempt_start = time.time()

                try:
                    records = await strategy.acquire(filters)
                except Exception as e:
                    stats["errors"] += 1
                    stats["total_time"] += time.time() - attempt_start
                    increment("strategy_outcomes_total", strategy=strategy.name, outcome="error")
                    self.logger.error(
                        "Strategy failed",
                        event_type="strategy_failed",
                        strategy=strategy.name,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue

                stats["total_time"] += time.time() - attempt_start
                if not records:
                    increment("strategy_outcomes_total", strategy=strategy.name, outcome="empty")
                    self.logger.info("Strategy returned no records", strategy=strategy.name)
                    continue

                stats["hits"] += 1
                increment("strategy_outcomes_total", strategy=strategy.name, outcome="hit")
                self.logger.info("Adopted strategy result", strategy=strategy.name, records=len(records))
                return records

            self.logger.warning("No strategy produced records", order=self.order)
            return []
        finally:
            observe("acquisition_duration_seconds", time.time() - start)

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        metrics = {}
        for name, raw in self._metrics.items():
            attempts = raw["attempts"]
            metrics[name] = {
                **raw,
                "hit_rate": raw["hits"] / attempts if attempts > 0 else 0.0,
                "avg_time": raw["total_time"] / attempts if attempts > 0 else 0.0,
            }
        return metrics
