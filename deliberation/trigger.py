"""Background clustering trigger

After each recorded vote, decide whether the poll's landscape is worth
recomputing. Triggers:
- the voter's vote count in the poll hits a milestone (10, 20, 50, ...)
- the voter just finished a batch (the last batch may be short)

Triggering never computes anything. It checks eligibility from counts and
enqueues a job; the queue refuses duplicates while one is pending or
processing.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from config import get_logger, LandscapeSettings
from deliberation.quality import check_eligibility

logger = get_logger(__name__).bind(component="clustering_trigger")

MILESTONE = "milestone"
BATCH_COMPLETE = "batch_complete"


@dataclass
class TriggerDecision:
    triggered: bool
    reason: Optional[str] = None
    job_id: Optional[int] = None
    skipped_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "triggered": self.triggered,
            "reason": self.reason,
            "job_id": self.job_id,
            "skipped_reason": self.skipped_reason,
        }


def is_batch_complete(vote_count: int, total_statements: int, batch_size: int) -> bool:
    """True when vote_count closes the voter's current batch.

    Batches are consecutive runs of batch_size statements; the final batch
    holds whatever is left.
    """
    if vote_count <= 0 or total_statements <= 0 or batch_size <= 0:
        return False
    batch_start = ((vote_count - 1) // batch_size) * batch_size
    actual_size = min(batch_size, total_statements - batch_start)
    if actual_size <= 0:
        return False
    return vote_count - batch_start == actual_size


def evaluate_trigger(
    vote_count: int,
    total_statements: int,
    batch_size: int,
    milestones: Sequence[int],
) -> TriggerDecision:
    if vote_count in milestones:
        return TriggerDecision(triggered=True, reason=MILESTONE)
    if is_batch_complete(vote_count, total_statements, batch_size):
        return TriggerDecision(triggered=True, reason=BATCH_COMPLETE)
    return TriggerDecision(triggered=False)


class BackgroundTrigger:
    """Vote-recorded hook that feeds the clustering queue"""

    def __init__(self, vote_store, job_queue, settings: LandscapeSettings):
        self.votes = vote_store
        self.queue = job_queue
        self.settings = settings

    async def on_vote_recorded(self, poll_id: str, voter_id: str) -> TriggerDecision:
        vote_count = await self.votes.count_voter_votes(poll_id, voter_id)
        total_statements = await self.votes.count_approved_statements(poll_id)

        decision = evaluate_trigger(
            vote_count,
            total_statements,
            self.settings.batch_size,
            self.settings.vote_milestones,
        )
        if not decision.triggered:
            return decision

        logger.debug(
            "vote triggered clustering",
            poll_id=poll_id,
            voter_id=voter_id,
            vote_count=vote_count,
            reason=decision.reason,
        )
        job_id, skipped = await self._enqueue_if_eligible(poll_id, total_statements)
        decision.job_id = job_id
        decision.skipped_reason = skipped
        return decision

    async def trigger_background_clustering(self, poll_id: str) -> Optional[int]:
        """Enqueue a recompute for the poll. Returns the job id, or None if skipped."""
        job_id, _ = await self._enqueue_if_eligible(poll_id)
        return job_id

    async def _enqueue_if_eligible(self, poll_id: str, statement_count: Optional[int] = None):
        if statement_count is None:
            statement_count = await self.votes.count_approved_statements(poll_id)
        voter_count = await self.votes.count_distinct_voters(poll_id)

        eligibility = check_eligibility(statement_count, voter_count, self.settings)
        if not eligibility.eligible:
            logger.debug("poll not eligible, skipping enqueue", poll_id=poll_id, reason=eligibility.reason)
            return None, eligibility.reason

        job_id = await self.queue.enqueue(poll_id, max_attempts=self.settings.job_max_attempts)
        if job_id is None:
            logger.debug("clustering already queued", poll_id=poll_id)
            return None, "already_queued"

        logger.info("clustering job enqueued", poll_id=poll_id, job_id=job_id)
        return job_id, None
