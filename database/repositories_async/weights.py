"""Async WeightRepository - statement weight cache table

No TTL. Rows live until the landscape is recomputed or a statement is
approved, both of which delete every row of the poll.
"""

from typing import Dict, Sequence

from database.models import StatementWeight
from database.repositories_async.base import BaseRepository
from config import get_logger

logger = get_logger(__name__).bind(component="weight_repository")

WEIGHT_COLUMNS = """
    poll_id, statement_id, predictiveness, consensus_potential, recency_boost,
    pass_rate_penalty, vote_count_boost, combined_weight, mode,
    agree_count, disagree_count, pass_count, calculated_at
"""


class WeightRepository(BaseRepository):
    """Repository for cached statement weights (implements WeightStore)"""

    async def get_weights(
        self, poll_id: str, statement_ids: Sequence[str]
    ) -> Dict[str, StatementWeight]:
        """Cached weights keyed by statement id; missing ids are absent"""
        if not statement_ids:
            return {}
        rows = await self._fetch(
            f"""
            SELECT {WEIGHT_COLUMNS}
            FROM statement_weights
            WHERE poll_id = $1 AND statement_id = ANY($2::text[])
            """,
            poll_id,
            list(statement_ids),
        )
        return {row["statement_id"]: StatementWeight(**dict(row)) for row in rows}

    async def upsert_weights(self, weights: Sequence[StatementWeight]) -> None:
        """Insert or overwrite; concurrent fills converge on the same values"""
        if not weights:
            return
        await self._executemany(
            f"""
            INSERT INTO statement_weights ({WEIGHT_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, COALESCE($13, NOW()))
            ON CONFLICT (poll_id, statement_id) DO UPDATE SET
                predictiveness = EXCLUDED.predictiveness,
                consensus_potential = EXCLUDED.consensus_potential,
                recency_boost = EXCLUDED.recency_boost,
                pass_rate_penalty = EXCLUDED.pass_rate_penalty,
                vote_count_boost = EXCLUDED.vote_count_boost,
                combined_weight = EXCLUDED.combined_weight,
                mode = EXCLUDED.mode,
                agree_count = EXCLUDED.agree_count,
                disagree_count = EXCLUDED.disagree_count,
                pass_count = EXCLUDED.pass_count,
                calculated_at = EXCLUDED.calculated_at
            """,
            [
                (
                    w.poll_id, w.statement_id, w.predictiveness, w.consensus_potential,
                    w.recency_boost, w.pass_rate_penalty, w.vote_count_boost,
                    w.combined_weight, w.mode, w.agree_count, w.disagree_count,
                    w.pass_count, w.calculated_at,
                )
                for w in weights
            ],
        )
        logger.debug("upserted statement weights", poll_id=weights[0].poll_id, count=len(weights))

    async def delete_weights(self, poll_id: str) -> int:
        result = await self._execute(
            "DELETE FROM statement_weights WHERE poll_id = $1",
            poll_id,
        )
        return self._parse_row_count(result)
