"""Clustering Worker - drains the clustering queue

One job recomputes one poll's landscape. Jobs for polls that no longer meet
the floors complete with a note. Retryable failures, and any error the
engine does not classify, go back to the queue with backoff until the
attempt cap.
"""

import asyncio
from typing import Optional

from config import get_logger, LandscapeSettings
from exceptions import InsufficientDataError, LandscapeError
from pipeline.models import ClusteringJob
from pipeline.protocols import JobQueue, MetricsCollector, NullMetrics

logger = get_logger(__name__).bind(component="processor")

QUEUE_FATAL_ERROR_BACKOFF = 10
STALE_JOB_MINUTES = 30


class ClusteringWorker:
    """Background consumer of clustering jobs

    Usage:
        worker = ClusteringWorker(db.queue, landscape_service, settings, metrics)
        task = asyncio.create_task(worker.process_queue())
        ...
        worker.stop()
    """

    def __init__(
        self,
        queue: JobQueue,
        landscape_service,
        settings: LandscapeSettings,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.queue = queue
        self.landscapes = landscape_service
        self.settings = settings
        self.metrics = metrics or NullMetrics()
        self.is_running = False

    def stop(self) -> None:
        self.is_running = False

    async def process_job(self, job: ClusteringJob) -> str:
        """Run one claimed job and record its outcome in the queue

        Returns:
            "completed", "skipped", "retry" or "failed"
        """
        log = logger.bind(job_id=job.id, poll_id=job.poll_id, attempt=job.attempt_count)

        try:
            eligibility = await self.landscapes.is_eligible_for_clustering(job.poll_id)
            if not eligibility.eligible:
                await self.queue.mark_completed(job.id, note=eligibility.reason)
                log.info("clustering job skipped, poll not eligible", reason=eligibility.reason)
                self.metrics.clustering_jobs.labels(status="skipped").inc()
                return "skipped"

            metadata = await self.landscapes.compute_opinion_landscape(job.poll_id)

        except InsufficientDataError as e:
            # Floors can fail on the real matrix after the count check passed
            await self.queue.mark_completed(job.id, note=e.reason)
            log.info("clustering job skipped, insufficient data", reason=e.reason)
            self.metrics.clustering_jobs.labels(status="skipped").inc()
            return "skipped"

        except LandscapeError as e:
            return await self._fail_job(job, e, retryable=e.is_retryable, log=log)

        except Exception as e:  # Intentionally broad: task isolation
            self.metrics.record_error("worker", e)
            return await self._fail_job(job, e, retryable=True, log=log)

        await self.queue.mark_completed(job.id)
        log.info(
            "clustering job completed",
            groups=metadata.group_count,
            quality_tier=metadata.quality_tier,
        )
        self.metrics.clustering_jobs.labels(status="completed").inc()
        return "completed"

    async def _fail_job(self, job: ClusteringJob, error: Exception, retryable: bool, log) -> str:
        outcome = await self.queue.mark_failed(
            job.id,
            str(error),
            retryable=retryable,
            backoff_base_seconds=self.settings.job_backoff_base_seconds,
        )
        log.error(
            "clustering job failed",
            error=str(error),
            error_type=type(error).__name__,
            retryable=retryable,
            outcome=outcome,
        )
        self.metrics.clustering_jobs.labels(status=outcome).inc()
        return outcome

    async def process_next_job(self) -> Optional[str]:
        """Claim and run the next due job. None if the queue is empty."""
        job = await self.queue.get_next_job()
        if job is None:
            return None

        logger.info("processing clustering job", job_id=job.id, poll_id=job.poll_id)
        return await self.process_job(job)

    async def process_batch(self, limit: Optional[int] = None) -> int:
        """Run up to `limit` due jobs back to back. Returns jobs processed."""
        limit = limit or self.settings.queue_batch_limit
        processed = 0
        while processed < limit:
            outcome = await self.process_next_job()
            if outcome is None:
                break
            processed += 1
        return processed

    async def process_queue(self):
        """Process jobs from the clustering queue continuously"""
        logger.info("starting clustering worker")
        self.is_running = True

        await self.queue.reset_stale_jobs(STALE_JOB_MINUTES)

        while self.is_running:
            try:
                processed = await self.process_batch()

                if not processed:
                    await asyncio.sleep(self.settings.queue_poll_interval_seconds)

            except Exception as e:  # Intentionally broad: daemon resilience
                # Queue/database trouble outside a job - back off and keep going
                logger.error("clustering worker error", error=str(e), error_type=type(e).__name__)
                self.metrics.record_error("worker", e)
                await asyncio.sleep(QUEUE_FATAL_ERROR_BACKOFF)

        logger.info("clustering worker stopped")
