"""Base repository with async PostgreSQL connection pooling

Vote, landscape, weight and queue repositories inherit from BaseRepository
and share one pool.

Return Type Conventions
-----------------------
    get_X(poll_id) -> Optional[T]
        Single entity per poll. None if the poll has none.

    get_Xs(poll_id) / list_X(...) -> List[T]
        Empty list [] if none match.

    get_X_batch / get_weights(poll_id, ids) -> Dict[str, T]
        Keyed by id. Missing ids are absent from the dict (not errors).

    count_X(...) -> int

Connection Patterns
-------------------
    self.pool.acquire()
        Read-only queries that don't need atomicity.

    self.transaction()
        Writes that must land together (landscape replacement, job claims).
"""

import asyncpg
from typing import Any, List, Optional
from contextlib import asynccontextmanager

from config import get_logger

logger = get_logger(__name__).bind(component="repository")


class BaseRepository:
    """Base class for async PostgreSQL repositories

    - Pool is passed in, not created (Database owns it)
    - Transactions are explicit (async with self.transaction())
    - Queries use $1, $2 placeholders
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def _fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        """Execute query and fetch single row"""
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def _fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        """Execute query and fetch all rows"""
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def _fetchval(self, query: str, *args: Any) -> Any:
        """Execute query and return the first column of the first row"""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def _execute(self, query: str, *args: Any) -> str:
        """Execute query without returning rows, returns the status tag"""
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def _executemany(self, query: str, args: List[tuple]) -> None:
        """Execute query once per parameter tuple on one connection"""
        async with self.pool.acquire() as conn:
            await conn.executemany(query, args)

    @asynccontextmanager
    async def transaction(self):
        """Context manager for explicit transactions

        Usage:
            async with self.transaction() as conn:
                await conn.execute("DELETE ...")
                await conn.executemany("INSERT ...", rows)
                # Commits on clean exit, rolls back on exception
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    @staticmethod
    def _parse_row_count(result: str) -> int:
        """Extract row count from a status tag like 'UPDATE 5' or 'DELETE 3'."""
        if not result:
            return 0
        return int(result.split()[-1])
