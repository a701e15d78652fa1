"""
Pipeline Job Models - Type-safe clustering queue jobs with Pydantic validation

A clustering job only carries the poll id; the worker re-reads everything
else from the database so a job never acts on stale data.
"""

from pydantic.dataclasses import dataclass
from dataclasses import asdict
from datetime import datetime
from typing import Literal, Dict, Any, Optional


JobStatus = Literal["pending", "processing", "completed", "failed"]

# Statuses that block a new enqueue for the same poll
ACTIVE_STATUSES = ("pending", "processing")


@dataclass
class ClusteringJob:
    """Recompute the opinion landscape of one poll"""
    id: int
    poll_id: str
    status: JobStatus
    attempt_count: int = 0
    max_attempts: int = 3
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    available_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempt_count)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses"""
        data = asdict(self)
        for key in ("created_at", "available_at", "processed_at"):
            if data[key]:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusteringJob":
        return cls(
            id=data["id"],
            poll_id=data["poll_id"],
            status=data["status"],
            attempt_count=data.get("attempt_count", 0),
            max_attempts=data.get("max_attempts", 3),
            error_message=data.get("error_message"),
            created_at=data.get("created_at"),
            available_at=data.get("available_at"),
            processed_at=data.get("processed_at"),
        )
