"""Metrics Protocol - Interface for metrics collection without concrete dependency

This protocol enables dependency injection of metrics throughout the
landscape services and worker, allowing components to be tested and run
without the server module (and without a Prometheus registry).
"""

from typing import Protocol, Any, ContextManager
from contextlib import contextmanager


class LabeledCounter(Protocol):
    def labels(self, **kwargs: Any) -> "LabeledCounter": ...
    def inc(self, amount: float = 1) -> None: ...


class LabeledHistogram(Protocol):
    def labels(self, **kwargs: Any) -> "LabeledHistogram": ...
    def observe(self, value: float) -> None: ...
    def time(self) -> ContextManager: ...


class MetricsCollector(Protocol):
    """Unified metrics interface for landscape components

    Used by:
    - deliberation/landscape.py - computation outcomes and durations
    - deliberation/weighting.py - weight cache hits/misses
    - deliberation/ordering.py - weighted-ordering fallbacks
    - pipeline/processor.py - clustering job outcomes
    """
    landscape_computations: LabeledCounter
    landscape_compute_duration: LabeledHistogram
    clustering_jobs: LabeledCounter
    ordering_fallbacks: LabeledCounter
    weight_cache: LabeledCounter

    def record_error(self, component: str, error: Exception) -> None: ...


class _NullCounter:
    def labels(self, **kwargs: Any) -> "_NullCounter":
        return self

    def inc(self, amount: float = 1) -> None:
        pass


class _NullHistogram:
    def labels(self, **kwargs: Any) -> "_NullHistogram":
        return self

    def observe(self, value: float) -> None:
        pass

    @contextmanager
    def time(self):
        yield


class NullMetrics:
    """No-op metrics for testing or standalone use"""

    def __init__(self):
        self.landscape_computations = _NullCounter()
        self.landscape_compute_duration = _NullHistogram()
        self.clustering_jobs = _NullCounter()
        self.ordering_fallbacks = _NullCounter()
        self.weight_cache = _NullCounter()

    def record_error(self, component: str, error: Exception) -> None:
        pass
