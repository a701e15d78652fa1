"""
Opinion Landscape API Server

FastAPI application serving opinion landscapes, statement ordering and the
poll-service hooks. The clustering worker runs inside the same process when
background processing is enabled.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import config, configure_structlog, get_logger
from database.db_postgres import Database
from server.metrics import metrics
from server.middleware.request_id import RequestIDMiddleware
from server.routes import landscape, monitoring
from server.services.landscape import build_services

configure_structlog(is_development=config.is_development(), log_level=config.LOG_LEVEL)

logger = get_logger(__name__).bind(component="api")


# Lifespan context manager for database and worker initialization
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup connection pool, services and worker"""
    db = await Database.create()
    logger.info("initialized PostgreSQL database with async connection pool")

    services = build_services(db, config.landscape_settings(), metrics)
    app.state.db = db
    app.state.services = services

    worker_task = None
    if config.BACKGROUND_PROCESSING:
        worker_task = asyncio.create_task(services.worker.process_queue())
        logger.info("clustering worker started")

    yield

    if worker_task is not None:
        services.worker.stop()
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass
        logger.info("clustering worker stopped")

    # Shutdown: Close connection pool
    try:
        await db.close()
        logger.info("closed PostgreSQL connection pool")
    except Exception as e:
        # Don't crash on shutdown - log and continue
        logger.error("error closing connection pool", error=str(e), exc_info=True)


app = FastAPI(title="Opinion Landscape API", lifespan=lifespan)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

# Request ID middleware (must be early in stack for tracing)
app.add_middleware(RequestIDMiddleware)

# Mount routers
app.include_router(monitoring.router)  # Health and Prometheus endpoints
app.include_router(landscape.router)   # Per-poll landscape endpoints


if __name__ == "__main__":
    import sys
    import uvicorn

    if not config.ADMIN_TOKEN:
        logger.warning("no admin token configured, manual recompute will not work")
        logger.warning("set LANDSCAPE_ADMIN_TOKEN to enable admin functionality")

    logger.info("starting opinion landscape API server")
    logger.info("configuration", config_summary=config.summary())

    if len(sys.argv) > 1 and sys.argv[1] == "--init-db":
        async def init_db():
            db = await Database.create()
            try:
                await db.init_schema()
            finally:
                await db.close()

        asyncio.run(init_db())
        sys.exit(0)

    uvicorn.run(
        app,
        host=config.API_HOST,
        port=config.API_PORT,
        access_log=False,  # RequestIDMiddleware logs requests
    )
