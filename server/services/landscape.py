"""
Landscape service wiring

Builds the landscape services once per process on top of a Database, so
the API lifespan and the standalone worker share one construction path.
"""

from dataclasses import dataclass

from config import LandscapeSettings, get_logger
from database.db_postgres import Database
from deliberation import (
    BackgroundTrigger,
    DemographicHeatmapService,
    LandscapeService,
    StatementOrderingService,
    StatementWeightingService,
    TTLCache,
)
from pipeline.processor import ClusteringWorker
from pipeline.protocols import MetricsCollector

logger = get_logger(__name__).bind(component="services")


@dataclass
class LandscapeServices:
    """Everything the routes need, stored on app.state.services"""

    settings: LandscapeSettings
    landscape: LandscapeService
    weighting: StatementWeightingService
    ordering: StatementOrderingService
    trigger: BackgroundTrigger
    heatmap: DemographicHeatmapService
    worker: ClusteringWorker


def build_services(
    db: Database,
    settings: LandscapeSettings,
    metrics: MetricsCollector,
) -> LandscapeServices:
    weighting = StatementWeightingService(
        db.votes, db.landscapes, db.weights, settings, metrics=metrics
    )
    landscape = LandscapeService(
        db.votes,
        db.landscapes,
        weighting,
        settings,
        TTLCache(settings.landscape_cache_ttl_seconds),
        metrics=metrics,
    )
    services = LandscapeServices(
        settings=settings,
        landscape=landscape,
        weighting=weighting,
        ordering=StatementOrderingService(db.votes, weighting, metrics=metrics),
        trigger=BackgroundTrigger(db.votes, db.queue, settings),
        heatmap=DemographicHeatmapService(
            db.votes, TTLCache(settings.heatmap_cache_ttl_seconds), settings
        ),
        worker=ClusteringWorker(db.queue, landscape, settings, metrics=metrics),
    )
    logger.info("landscape services initialized")
    return services
