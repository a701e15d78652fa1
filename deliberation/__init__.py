"""Deliberation module - opinion landscape of a poll

- Vote matrix construction (agree/disagree, pass = missing)
- PCA to a 2-D opinion map
- Fine k-means plus coarse opinion groups
- Statement classification (consensus / divisive / bridge / normal)
- Statement weighting and adaptive ordering
- Background recompute triggers
"""

from deliberation.cache import TTLCache
from deliberation.heatmap import DemographicHeatmapService
from deliberation.landscape import LandscapeService, LandscapeView, run_landscape_pipeline
from deliberation.ordering import OrderingContext, StatementOrderingService, order_statements
from deliberation.trigger import BackgroundTrigger, evaluate_trigger
from deliberation.weighting import StatementWeightingService

__all__ = [
    "TTLCache",
    "DemographicHeatmapService",
    "LandscapeService",
    "LandscapeView",
    "run_landscape_pipeline",
    "OrderingContext",
    "StatementOrderingService",
    "order_statements",
    "BackgroundTrigger",
    "evaluate_trigger",
    "StatementWeightingService",
]
