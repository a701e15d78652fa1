"""
Monitoring and health check API routes
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from config import config, get_logger
from database.db_postgres import Database
from server.dependencies import get_db
from server.metrics import metrics, get_metrics_text

logger = get_logger(__name__).bind(component="monitoring_api")

router = APIRouter()

QUEUE_BACKLOG_THRESHOLD = 1000
QUEUE_FAILED_THRESHOLD = 50


@router.get("/api/health")
async def health_check(request: Request, db: Database = Depends(get_db)):
    """Database, clustering queue and worker status"""
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {},
    }

    if not await db.health_check():
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = {"status": "unhealthy"}
        return health_status

    health_status["checks"]["database"] = {"status": "healthy"}

    queue_stats = await db.queue.get_queue_stats()
    pending_count = queue_stats.get("pending_count", 0)
    failed_count = queue_stats.get("failed_count", 0)

    queue_status = "healthy"
    if pending_count > QUEUE_BACKLOG_THRESHOLD:
        queue_status = "backlogged"
        health_status["status"] = "degraded"
    elif failed_count > QUEUE_FAILED_THRESHOLD:
        queue_status = "degraded"
        health_status["status"] = "degraded"

    health_status["checks"]["queue"] = {
        "status": queue_status,
        "pending": pending_count,
        "processing": queue_stats.get("processing_count", 0),
        "failed": failed_count,
    }

    # The worker only runs in-process when background processing is on
    worker_running = request.app.state.services.worker.is_running
    if config.BACKGROUND_PROCESSING and not worker_running:
        health_status["status"] = "degraded"
    health_status["checks"]["worker"] = {
        "status": "running" if worker_running else "stopped",
        "background_processing": config.BACKGROUND_PROCESSING,
    }

    settings = request.app.state.services.settings
    health_status["checks"]["clustering"] = {
        "min_voters": settings.min_voters,
        "min_statements": settings.min_statements,
        "batch_size": settings.batch_size,
        "is_development": config.is_development(),
    }

    return health_status


@router.get("/api/metrics")
async def prometheus_metrics(db: Database = Depends(get_db)):
    """Prometheus scrape endpoint"""
    queue_stats = await db.queue.get_queue_stats()
    metrics.update_queue_sizes(queue_stats)
    return Response(content=get_metrics_text(), media_type="text/plain; version=0.0.4")
