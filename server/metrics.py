"""
Prometheus Metrics Module

Provides instrumentation for the landscape pipeline:
- Landscape computations and their duration
- Clustering queue job outcomes and depth
- Weight cache hit rate
- Weighted ordering fallbacks
- Error tracking

Usage:
    from server.metrics import metrics
    metrics.landscape_computations.labels(status="success").inc()
    with metrics.landscape_compute_duration.time():
        await service.compute_opinion_landscape(poll_id)
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, REGISTRY


class LandscapeMetrics:
    """Centralized metrics for the landscape pipeline and API"""

    def __init__(self):
        # Computation metrics
        self.landscape_computations = Counter(
            'landscape_computations_total',
            'Landscape computations by outcome',
            ['status']  # success/insufficient_data/numerical_failure/persistence_failure/error
        )

        self.landscape_compute_duration = Histogram(
            'landscape_compute_duration_seconds',
            'Wall time of a full landscape computation',
            buckets=[0.1, 0.5, 1, 2, 5, 10, 30, 60, 120]
        )

        # Queue metrics
        self.clustering_jobs = Counter(
            'clustering_jobs_total',
            'Clustering jobs by outcome',
            ['status']  # completed/skipped/retry/failed
        )

        self.queue_size = Gauge(
            'clustering_queue_size',
            'Current clustering queue size by status',
            ['status']
        )

        # Ordering metrics
        self.ordering_fallbacks = Counter(
            'ordering_fallbacks_total',
            'Weighted orderings that fell back to random'
        )

        self.weight_cache = Counter(
            'weight_cache_total',
            'Statement weight cache lookups',
            ['result']  # hit/miss
        )

        # Error metrics
        self.errors = Counter(
            'landscape_errors_total',
            'Total errors by component and type',
            ['component', 'error_type']
        )

    def update_queue_sizes(self, queue_stats: dict):
        """Update queue size gauges from queue stats

        Args:
            queue_stats: Dict from ClusteringQueueRepository.get_queue_stats()
                        Keys: pending_count, processing_count, completed_count, failed_count
        """
        for status in ['pending', 'processing', 'completed', 'failed']:
            count = queue_stats.get(f'{status}_count', 0)
            self.queue_size.labels(status=status).set(count)

    def record_error(self, component: str, error: Exception):
        """Record an error

        Args:
            component: Component name (landscape/worker/weighting/api)
            error: Exception instance
        """
        error_type = type(error).__name__
        self.errors.labels(component=component, error_type=error_type).inc()


# Global metrics instance
metrics = LandscapeMetrics()


def get_metrics_text() -> str:
    """Get Prometheus metrics in text format

    Returns:
        Metrics text suitable for /metrics endpoint
    """
    return generate_latest(REGISTRY).decode('utf-8')
