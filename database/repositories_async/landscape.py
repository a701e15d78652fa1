"""Async LandscapeRepository - persisted opinion landscapes

A landscape is metadata + voter positions + statement classifications.
Recomputation replaces all three in a single transaction (delete then
insert), so readers never see a mix of old and new rows.
"""

from typing import List, Optional, Sequence

import asyncpg

from database.models import (
    CoarseGroup,
    LandscapeMetadata,
    StatementClassification,
    VoterPosition,
)
from database.repositories_async.base import BaseRepository
from exceptions import PersistenceFailureError
from config import get_logger

logger = get_logger(__name__).bind(component="landscape_repository")


class LandscapeRepository(BaseRepository):
    """Repository for landscape tables (implements LandscapeStore)"""

    async def replace_landscape(
        self,
        metadata: LandscapeMetadata,
        positions: Sequence[VoterPosition],
        classifications: Sequence[StatementClassification],
    ) -> None:
        """Atomically swap the poll's landscape for a new one

        Raises:
            PersistenceFailureError: Transaction rolled back, prior landscape intact
        """
        poll_id = metadata.poll_id
        try:
            async with self.transaction() as conn:
                await conn.execute("DELETE FROM voter_positions WHERE poll_id = $1", poll_id)
                await conn.execute(
                    "DELETE FROM statement_classifications WHERE poll_id = $1", poll_id
                )
                await conn.execute(
                    "DELETE FROM poll_landscape_metadata WHERE poll_id = $1", poll_id
                )

                await conn.execute(
                    """
                    INSERT INTO poll_landscape_metadata (
                        poll_id, components, component_variance, mean_vector,
                        fine_centroids, fine_k, coarse_groups, silhouette_score,
                        variance_explained, quality_tier, consensus_level,
                        voter_count, statement_count, statement_ids, computed_at
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
                    """,
                    poll_id,
                    metadata.components,
                    metadata.component_variance,
                    metadata.mean_vector,
                    metadata.fine_centroids,
                    metadata.fine_k,
                    [g.to_dict() for g in metadata.coarse_groups],
                    metadata.silhouette_score,
                    metadata.variance_explained,
                    metadata.quality_tier,
                    metadata.consensus_level,
                    metadata.voter_count,
                    metadata.statement_count,
                    metadata.statement_ids,
                    metadata.computed_at,
                )

                await conn.executemany(
                    """
                    INSERT INTO voter_positions (
                        poll_id, voter_id, pc1, pc2, fine_cluster_id, coarse_group_id,
                        agree_count, disagree_count, pass_count, total_votes
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    """,
                    [
                        (
                            p.poll_id, p.voter_id, p.pc1, p.pc2, p.fine_cluster_id,
                            p.coarse_group_id, p.agree_count, p.disagree_count,
                            p.pass_count, p.total_votes,
                        )
                        for p in positions
                    ],
                )

                await conn.executemany(
                    """
                    INSERT INTO statement_classifications (
                        poll_id, statement_id, classification_type, pattern,
                        group_agreements, group_vote_counts, average_agreement,
                        standard_deviation, bridge_score, connects_groups
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    """,
                    [
                        (
                            c.poll_id, c.statement_id, c.classification_type, c.pattern,
                            {str(k): v for k, v in c.group_agreements.items()},
                            {str(k): v for k, v in c.group_vote_counts.items()},
                            c.average_agreement, c.standard_deviation,
                            c.bridge_score, c.connects_groups,
                        )
                        for c in classifications
                    ],
                )
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            logger.error("landscape transaction failed", poll_id=poll_id, error=str(e))
            raise PersistenceFailureError(
                "Failed to persist landscape", poll_id=poll_id, original_error=e
            ) from e

        logger.info(
            "persisted landscape",
            poll_id=poll_id,
            positions=len(positions),
            classifications=len(classifications),
        )

    async def get_metadata(self, poll_id: str) -> Optional[LandscapeMetadata]:
        row = await self._fetchrow(
            "SELECT * FROM poll_landscape_metadata WHERE poll_id = $1",
            poll_id,
        )
        if not row:
            return None
        return LandscapeMetadata(
            poll_id=row["poll_id"],
            components=row["components"],
            component_variance=row["component_variance"],
            mean_vector=row["mean_vector"],
            fine_centroids=row["fine_centroids"],
            fine_k=row["fine_k"],
            coarse_groups=[CoarseGroup(**g) for g in row["coarse_groups"]],
            silhouette_score=row["silhouette_score"],
            variance_explained=row["variance_explained"],
            quality_tier=row["quality_tier"],
            consensus_level=row["consensus_level"],
            voter_count=row["voter_count"],
            statement_count=row["statement_count"],
            statement_ids=row["statement_ids"],
            computed_at=row["computed_at"],
        )

    async def get_positions(self, poll_id: str) -> List[VoterPosition]:
        rows = await self._fetch(
            """
            SELECT poll_id, voter_id, pc1, pc2, fine_cluster_id, coarse_group_id,
                   agree_count, disagree_count, pass_count, total_votes
            FROM voter_positions
            WHERE poll_id = $1
            ORDER BY voter_id
            """,
            poll_id,
        )
        return [VoterPosition(**dict(row)) for row in rows]

    async def get_classifications(self, poll_id: str) -> List[StatementClassification]:
        rows = await self._fetch(
            """
            SELECT poll_id, statement_id, classification_type, pattern,
                   group_agreements, group_vote_counts, average_agreement,
                   standard_deviation, bridge_score, connects_groups
            FROM statement_classifications
            WHERE poll_id = $1
            ORDER BY statement_id
            """,
            poll_id,
        )
        # JSONB object keys come back as strings; the dataclass coerces them to int
        return [StatementClassification(**dict(row)) for row in rows]

    async def has_landscape(self, poll_id: str) -> bool:
        row = await self._fetchrow(
            "SELECT 1 FROM poll_landscape_metadata WHERE poll_id = $1",
            poll_id,
        )
        return row is not None
