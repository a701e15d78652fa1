"""Pipeline Protocols - Type interfaces for dependency injection"""

from pipeline.protocols.metrics import MetricsCollector, NullMetrics
from pipeline.protocols.stores import JobQueue, LandscapeStore, VoteStore, WeightStore

__all__ = [
    "MetricsCollector",
    "NullMetrics",
    "JobQueue",
    "LandscapeStore",
    "VoteStore",
    "WeightStore",
]
