"""
Defines Prometheus metrics for the acquisition pipeline.
"""

from __future__ import annotations

from typing import Any, Dict

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Test suites import this module more than once; reuse an already registered
# collector instead of failing with a duplicate registration error.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race, fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "upstream_requests_total": Counter(
            "bicifinder_upstream_requests_total",
            "Requests sent to the upstream registry",
            ["method", "status_class"],
        ),
        "upstream_retries_total": Counter(
            "bicifinder_upstream_retries_total",
            "Retry attempts after a retryable upstream failure",
        ),
        "upstream_latency_seconds": Histogram(
            "bicifinder_upstream_latency_seconds",
            "Latency of a single upstream request including retries",
        ),
        "pages_fetched_total": Counter(
            "bicifinder_pages_fetched_total",
            "Listing or API pages fetched",
            ["strategy"],
        ),
        "strategy_outcomes_total": Counter(
            "bicifinder_strategy_outcomes_total",
            "Acquisition strategy outcomes",
            ["strategy", "outcome"],
        ),
        "acquisition_duration_seconds": Histogram(
            "bicifinder_acquisition_duration_seconds",
            "Time spent acquiring records for one search",
        ),
        "records_returned_total": Counter(
            "bicifinder_records_returned_total",
            "Records returned to callers after local filtering",
        ),
        "vocabulary_refreshes_total": Counter(
            "bicifinder_vocabulary_refreshes_total",
            "Vocabulary cache refreshes",
            ["kind", "outcome"],
        ),
        "image_relay_total": Counter(
            "bicifinder_image_relay_total",
            "Image relay requests",
            ["outcome"],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def increment(name: str, value: float = 1.0, **labels: str) -> None:
    """Increment a counter metric if it exists."""
    metric = METRICS.get(name)
    if metric is None:
        return
    if labels:
        metric.labels(**labels).inc(value)
    else:
        metric.inc(value)


def observe(name: str, value: float) -> None:
    """Observe a histogram metric if it exists."""
    metric = METRICS.get(name)
    if metric is not None:
        metric.observe(value)
