"""Async VoteRepository - read-only access to polls, statements and votes

The poll service owns these tables; the landscape only reads them.
"Approved" is the only statement state the engine ever sees.
"""

from typing import List, Optional, Sequence

from database.models import PollConfig, Statement, Vote, VoterAttribute
from database.repositories_async.base import BaseRepository
from config import get_logger

logger = get_logger(__name__).bind(component="vote_repository")

# Attribute name -> column in voter_demographics (never interpolate user input)
DEMOGRAPHIC_COLUMNS = {
    "gender": "gender",
    "age_group": "age_group",
    "ethnicity": "ethnicity",
    "political_party": "political_party",
}


class VoteRepository(BaseRepository):
    """Repository for the vote store (implements VoteStore)"""

    async def list_approved_statements(self, poll_id: str) -> List[Statement]:
        """Approved statements in creation order (ties by id)"""
        rows = await self._fetch(
            """
            SELECT id, poll_id, text, created_at
            FROM statements
            WHERE poll_id = $1 AND approved
            ORDER BY created_at ASC, id ASC
            """,
            poll_id,
        )
        return [
            Statement(
                id=row["id"],
                poll_id=row["poll_id"],
                text=row["text"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def list_votes(self, statement_ids: Sequence[str]) -> List[Vote]:
        if not statement_ids:
            return []
        rows = await self._fetch(
            """
            SELECT voter_id, statement_id, value
            FROM votes
            WHERE statement_id = ANY($1::text[])
            """,
            list(statement_ids),
        )
        return [
            Vote(voter_id=row["voter_id"], statement_id=row["statement_id"], value=row["value"])
            for row in rows
        ]

    async def count_approved_statements(self, poll_id: str) -> int:
        count = await self._fetchval(
            "SELECT COUNT(*) FROM statements WHERE poll_id = $1 AND approved",
            poll_id,
        )
        return count or 0

    async def count_distinct_voters(self, poll_id: str) -> int:
        """Voters with at least one vote (pass included) on an approved statement"""
        count = await self._fetchval(
            """
            SELECT COUNT(DISTINCT v.voter_id)
            FROM votes v
            JOIN statements s ON s.id = v.statement_id
            WHERE s.poll_id = $1 AND s.approved
            """,
            poll_id,
        )
        return count or 0

    async def count_voter_votes(self, poll_id: str, voter_id: str) -> int:
        count = await self._fetchval(
            """
            SELECT COUNT(*)
            FROM votes v
            JOIN statements s ON s.id = v.statement_id
            WHERE s.poll_id = $1 AND s.approved AND v.voter_id = $2
            """,
            poll_id,
            voter_id,
        )
        return count or 0

    async def list_voted_statement_ids(self, poll_id: str, voter_id: str) -> List[str]:
        rows = await self._fetch(
            """
            SELECT v.statement_id
            FROM votes v
            JOIN statements s ON s.id = v.statement_id
            WHERE s.poll_id = $1 AND v.voter_id = $2
            """,
            poll_id,
            voter_id,
        )
        return [row["statement_id"] for row in rows]

    async def get_poll_config(self, poll_id: str) -> Optional[PollConfig]:
        row = await self._fetchrow(
            "SELECT order_mode, random_seed FROM polls WHERE id = $1",
            poll_id,
        )
        if not row:
            return None
        return PollConfig(order_mode=row["order_mode"], random_seed=row["random_seed"])

    async def list_voter_attributes(self, poll_id: str, attribute: str) -> List[VoterAttribute]:
        """Attribute value of every voter in the poll who has one"""
        column = DEMOGRAPHIC_COLUMNS.get(attribute)
        if column is None:
            raise ValueError(f"Unknown demographic attribute: {attribute}")

        rows = await self._fetch(
            f"""
            SELECT DISTINCT d.voter_id, d.{column} AS category
            FROM voter_demographics d
            JOIN votes v ON v.voter_id = d.voter_id
            JOIN statements s ON s.id = v.statement_id
            WHERE s.poll_id = $1 AND d.{column} IS NOT NULL
            """,
            poll_id,
        )
        return [VoterAttribute(voter_id=row["voter_id"], category=row["category"]) for row in rows]
