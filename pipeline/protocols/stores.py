"""Store Protocols - persistence interfaces consumed by the landscape services

The asyncpg repositories in database/repositories_async implement these;
tests substitute in-memory fakes.
"""

from typing import Dict, List, Optional, Protocol, Sequence

from database.models import (
    LandscapeMetadata,
    PollConfig,
    Statement,
    StatementClassification,
    StatementWeight,
    Vote,
    VoterAttribute,
    VoterPosition,
)
from pipeline.models import ClusteringJob


class VoteStore(Protocol):
    """Read-only view of polls, statements and votes"""

    async def list_approved_statements(self, poll_id: str) -> List[Statement]: ...

    async def list_votes(self, statement_ids: Sequence[str]) -> List[Vote]: ...

    async def count_approved_statements(self, poll_id: str) -> int: ...

    async def count_distinct_voters(self, poll_id: str) -> int: ...

    async def count_voter_votes(self, poll_id: str, voter_id: str) -> int: ...

    async def list_voted_statement_ids(self, poll_id: str, voter_id: str) -> List[str]: ...

    async def get_poll_config(self, poll_id: str) -> Optional[PollConfig]: ...

    async def list_voter_attributes(self, poll_id: str, attribute: str) -> List[VoterAttribute]: ...


class LandscapeStore(Protocol):
    """Persisted landscape: metadata, positions, classifications"""

    async def replace_landscape(
        self,
        metadata: LandscapeMetadata,
        positions: Sequence[VoterPosition],
        classifications: Sequence[StatementClassification],
    ) -> None: ...

    async def get_metadata(self, poll_id: str) -> Optional[LandscapeMetadata]: ...

    async def get_positions(self, poll_id: str) -> List[VoterPosition]: ...

    async def get_classifications(self, poll_id: str) -> List[StatementClassification]: ...

    async def has_landscape(self, poll_id: str) -> bool: ...


class WeightStore(Protocol):
    """Statement weight cache table"""

    async def get_weights(
        self, poll_id: str, statement_ids: Sequence[str]
    ) -> Dict[str, StatementWeight]: ...

    async def upsert_weights(self, weights: Sequence[StatementWeight]) -> None: ...

    async def delete_weights(self, poll_id: str) -> int: ...


class JobQueue(Protocol):
    """Clustering job queue"""

    async def enqueue(self, poll_id: str, max_attempts: int = 3) -> Optional[int]: ...

    async def get_next_job(self) -> Optional[ClusteringJob]: ...

    async def mark_completed(self, job_id: int, note: Optional[str] = None) -> None: ...

    async def mark_failed(
        self,
        job_id: int,
        error_message: str,
        retryable: bool = True,
        backoff_base_seconds: float = 30.0,
    ) -> str: ...

    async def reset_stale_jobs(self, older_than_minutes: int = 30) -> int: ...

    async def get_queue_stats(self) -> Dict[str, int]: ...
