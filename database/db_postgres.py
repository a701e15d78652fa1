"""PostgreSQL Database Layer with Repository Pattern

Database owns the asyncpg pool and the repositories sharing it. All data
access goes through the repositories.
"""

import asyncpg
import json
from dataclasses import asdict, is_dataclass
from typing import Optional
from pathlib import Path

from config import get_logger, config
from database.repositories_async import (
    ClusteringQueueRepository,
    LandscapeRepository,
    VoteRepository,
    WeightRepository,
)
from exceptions import DatabaseConnectionError

logger = get_logger(__name__).bind(component="database_postgres")


def _jsonb_encoder(obj):
    """JSONB encoder that also serializes dataclasses and Pydantic models

    Handles:
    - Native Python types (dict, list, str, int, float, bool, None)
    - Pydantic models (via model_dump())
    - Dataclasses, including pydantic dataclasses (via asdict())
    """
    def default(o):
        if hasattr(o, 'model_dump'):
            return o.model_dump()
        if is_dataclass(o) and not isinstance(o, type):
            return asdict(o)
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")

    return json.dumps(obj, default=default)


class Database:
    """Async PostgreSQL database with repository pattern

    Architecture:
    - Connection pooling (asyncpg pool shared across all repositories)
    - Repository per concern (votes, landscapes, weights, queue)
    - JSONB for PCA bases, centroids and per-group scores

    Usage:
        db = await Database.create()
        statements = await db.votes.list_approved_statements("poll_1")
        metadata = await db.landscapes.get_metadata("poll_1")
        await db.close()
    """

    pool: asyncpg.Pool

    # Repository attributes
    votes: VoteRepository
    landscapes: LandscapeRepository
    weights: WeightRepository
    queue: ClusteringQueueRepository

    def __init__(self, pool: asyncpg.Pool):
        """Initialize with connection pool and repositories

        Use Database.create() classmethod instead of direct instantiation.
        """
        self.pool = pool

        self.votes = VoteRepository(pool)
        self.landscapes = LandscapeRepository(pool)
        self.weights = WeightRepository(pool)
        self.queue = ClusteringQueueRepository(pool)

        logger.info("database initialized with repositories")

    @classmethod
    async def create(
        cls,
        dsn: Optional[str] = None,
        min_size: int = config.POSTGRES_POOL_MIN_SIZE,
        max_size: int = config.POSTGRES_POOL_MAX_SIZE
    ) -> "Database":
        """Create database with connection pool

        Args:
            dsn: PostgreSQL connection string (defaults to config.get_postgres_dsn())
            min_size: Minimum pool size
            max_size: Maximum pool size

        Raises:
            DatabaseConnectionError: Pool could not be created
        """
        if dsn is None:
            dsn = config.get_postgres_dsn()

        async def init_connection(conn):
            """Initialize connection with JSONB codec for automatic serialization"""
            await conn.set_type_codec(
                'jsonb',
                encoder=_jsonb_encoder,
                decoder=json.loads,
                schema='pg_catalog'
            )

        try:
            pool = await asyncpg.create_pool(
                dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=60,
                init=init_connection,
            )
            logger.info("connection pool created", min_size=min_size, max_size=max_size)
            return cls(pool)
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            # Connection errors only
            logger.error("failed to create connection pool", error=str(e))
            raise DatabaseConnectionError(f"Failed to connect to PostgreSQL: {e}")

    async def close(self):
        """Close connection pool"""
        await self.pool.close()
        logger.info("connection pool closed")

    async def init_schema(self):
        """Create tables and indexes from schema_postgres.sql

        Safe to call multiple times (uses IF NOT EXISTS).
        """
        schema_path = Path(__file__).parent / "schema_postgres.sql"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        async with self.pool.acquire() as conn:
            await conn.execute(schema_path.read_text())

        logger.info("schema initialized")

    async def health_check(self) -> bool:
        """True if a trivial query succeeds"""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            logger.warning("database health check failed", error=str(e))
            return False
