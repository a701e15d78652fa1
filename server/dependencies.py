"""FastAPI Dependencies

Centralized dependency injection for reuse across all route modules.
Provides type-safe, testable access to shared resources; tests swap any of
these through app.dependency_overrides.
"""

import secrets

from fastapi import Header, HTTPException, Request

from config import config, LandscapeSettings
from database.db_postgres import Database
from deliberation import (
    BackgroundTrigger,
    DemographicHeatmapService,
    LandscapeService,
    StatementOrderingService,
    StatementWeightingService,
)


def get_db(request: Request) -> Database:
    """Dependency to get shared database instance from app state

    Usage in routes:
        @router.get("/endpoint")
        async def endpoint(db: Database = Depends(get_db)):
            stats = await db.queue.get_queue_stats()
            return stats
    """
    return request.app.state.db


def get_settings(request: Request) -> LandscapeSettings:
    return request.app.state.services.settings


def get_landscape_service(request: Request) -> LandscapeService:
    return request.app.state.services.landscape


def get_weighting_service(request: Request) -> StatementWeightingService:
    return request.app.state.services.weighting


def get_ordering_service(request: Request) -> StatementOrderingService:
    return request.app.state.services.ordering


def get_trigger(request: Request) -> BackgroundTrigger:
    return request.app.state.services.trigger


def get_heatmap_service(request: Request) -> DemographicHeatmapService:
    return request.app.state.services.heatmap


async def verify_admin_token(authorization: str = Header(None)):
    """Verify admin bearer token"""
    if not config.ADMIN_TOKEN:
        raise HTTPException(
            status_code=500, detail="Admin authentication not configured"
        )

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    try:
        scheme, token = authorization.split(" ")
    except ValueError:
        raise HTTPException(
            status_code=401, detail="Invalid authorization header format"
        )

    if scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authentication scheme")

    if not secrets.compare_digest(token, config.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Invalid admin token")

    return True
