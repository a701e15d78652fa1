"""Async ClusteringQueueRepository for landscape recompute jobs

Handles job queue management with PostgreSQL optimizations:
- Deduplicated enqueue (one pending/processing job per poll, enforced by a
  partial unique index)
- Atomic dequeue using FOR UPDATE SKIP LOCKED
- Retry with exponential backoff via available_at
- Terminal 'failed' status once attempts are exhausted
"""

from typing import Dict, Optional

import asyncpg

from database.repositories_async.base import BaseRepository
from pipeline.models import ClusteringJob
from config import get_logger
from exceptions import QueueError

logger = get_logger(__name__).bind(component="queue_repository")

RETRY = "retry"
FAILED = "failed"


class ClusteringQueueRepository(BaseRepository):
    """Repository for the clustering queue (implements JobQueue)

    Provides:
    - Enqueue jobs with deduplication
    - Atomic dequeue with row-level locking
    - Mark jobs complete/failed with retry logic
    - Queue statistics for monitoring
    """

    async def enqueue(self, poll_id: str, max_attempts: int = 3) -> Optional[int]:
        """Add a recompute job unless the poll already has a live one

        Returns:
            New job id, or None if a pending/processing job already exists
        """
        try:
            row = await self._fetchrow(
                """
                INSERT INTO clustering_queue (poll_id, status, attempt_count, max_attempts)
                VALUES ($1, 'pending', 0, $2)
                ON CONFLICT (poll_id) WHERE status IN ('pending', 'processing') DO NOTHING
                RETURNING id
                """,
                poll_id,
                max_attempts,
            )
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            raise QueueError(f"Failed to enqueue job: {e}", poll_id=poll_id) from e

        if not row:
            return None

        logger.debug("job enqueued", poll_id=poll_id, job_id=row["id"])
        return row["id"]

    async def get_next_job(self) -> Optional[ClusteringJob]:
        """Claim the oldest due pending job

        Uses FOR UPDATE SKIP LOCKED for safe concurrent access. Claiming
        counts as an attempt.
        """
        try:
            return await self._claim_next_job()
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            raise QueueError(f"Failed to claim job: {e}") from e

    async def _claim_next_job(self) -> Optional[ClusteringJob]:
        async with self.transaction() as conn:
            row = await conn.fetchrow(
                """
                SELECT id
                FROM clustering_queue
                WHERE status = 'pending' AND available_at <= NOW()
                ORDER BY available_at ASC, id ASC
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """
            )

            if not row:
                return None

            claimed = await conn.fetchrow(
                """
                UPDATE clustering_queue
                SET status = 'processing',
                    attempt_count = attempt_count + 1,
                    started_at = NOW()
                WHERE id = $1
                RETURNING id, poll_id, status, attempt_count, max_attempts,
                          error_message, created_at, available_at, processed_at
                """,
                row["id"],
            )

            return ClusteringJob.from_dict(dict(claimed))

    async def mark_completed(self, job_id: int, note: Optional[str] = None) -> None:
        """Mark job as completed, optionally recording why nothing was computed"""
        try:
            await self._execute(
                """
                UPDATE clustering_queue
                SET status = 'completed', error_message = $2, processed_at = NOW()
                WHERE id = $1
                """,
                job_id,
                note,
            )
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            raise QueueError(f"Failed to complete job: {e}", queue_id=job_id) from e

        logger.info("marked clustering job as completed", job_id=job_id, note=note)

    async def mark_failed(
        self,
        job_id: int,
        error_message: str,
        retryable: bool = True,
        backoff_base_seconds: float = 30.0,
    ) -> str:
        """Mark job as failed with retry logic

        - retryable and attempts left: back to 'pending', available after
          backoff_base * 2^(attempt-1) seconds
        - otherwise: 'failed' (terminal)

        Returns:
            "retry" or "failed"
        """
        try:
            return await self._settle_failed(job_id, error_message, retryable, backoff_base_seconds)
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            raise QueueError(f"Failed to record job failure: {e}", queue_id=job_id) from e

    async def _settle_failed(
        self, job_id: int, error_message: str, retryable: bool, backoff_base_seconds: float
    ) -> str:
        async with self.transaction() as conn:
            row = await conn.fetchrow(
                "SELECT poll_id, attempt_count, max_attempts FROM clustering_queue WHERE id = $1 FOR UPDATE",
                job_id,
            )

            if not row:
                logger.error("queue item not found", job_id=job_id)
                return FAILED

            attempt_count = row["attempt_count"]

            if retryable and attempt_count < row["max_attempts"]:
                delay = backoff_base_seconds * (2 ** max(attempt_count - 1, 0))
                await conn.execute(
                    """
                    UPDATE clustering_queue
                    SET status = 'pending',
                        error_message = $2,
                        available_at = NOW() + make_interval(secs => $3)
                    WHERE id = $1
                    """,
                    job_id,
                    error_message,
                    float(delay),
                )
                logger.warning(
                    "clustering job retry scheduled",
                    job_id=job_id,
                    poll_id=row["poll_id"],
                    attempt=attempt_count,
                    max_attempts=row["max_attempts"],
                    delay_seconds=delay,
                    error=error_message,
                )
                return RETRY

            await conn.execute(
                """
                UPDATE clustering_queue
                SET status = 'failed',
                    error_message = $2,
                    processed_at = NOW()
                WHERE id = $1
                """,
                job_id,
                error_message,
            )
            logger.error(
                "clustering job failed permanently",
                job_id=job_id,
                poll_id=row["poll_id"],
                attempts=attempt_count,
                error=error_message,
            )
            return FAILED

    async def reset_stale_jobs(self, older_than_minutes: int = 30) -> int:
        """Return jobs stuck in 'processing' (worker died) to 'pending'"""
        result = await self._execute(
            """
            UPDATE clustering_queue
            SET status = 'pending', available_at = NOW()
            WHERE status = 'processing'
              AND started_at < NOW() - make_interval(mins => $1)
            """,
            older_than_minutes,
        )
        count = self._parse_row_count(result)
        if count:
            logger.warning("reset stale clustering jobs", count=count)
        return count

    async def get_queue_stats(self) -> Dict[str, int]:
        """Get queue statistics for Prometheus

        Returns:
            Dict with {status}_count for each status
        """
        rows = await self._fetch(
            """
            SELECT status, COUNT(*) as count
            FROM clustering_queue
            GROUP BY status
            """
        )

        stats = {f"{row['status']}_count": row["count"] for row in rows}
        for status in ["pending", "processing", "completed", "failed"]:
            stats.setdefault(f"{status}_count", 0)
        return stats
