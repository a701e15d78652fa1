"""Statement weighting service

Reads cached weights, fills misses synchronously, and drops the cache when
the landscape changes or a statement is approved. There is no TTL on the
cache table: those two triggers are the only invalidation.

Concurrent fills for the same poll are harmless, upserts are idempotent.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from config import get_logger, LandscapeSettings
from database.models import Statement, StatementClassification, StatementWeight
from deliberation import weights as formulas
from deliberation.quality import check_eligibility
from pipeline.protocols.metrics import MetricsCollector, NullMetrics

logger = get_logger(__name__).bind(component="statement_weighting")

CLUSTERING = "clustering"
COLD_START = "cold_start"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatementWeightingService:
    """Weights for weighted statement ordering

    Usage:
        service = StatementWeightingService(votes, landscapes, weight_cache, settings)
        weights = await service.get_statement_weights("poll_1", ["s1", "s2"])
    """

    def __init__(
        self,
        vote_store,
        landscape_store,
        weight_store,
        settings: LandscapeSettings,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.votes = vote_store
        self.landscapes = landscape_store
        self.weight_cache = weight_store
        self.settings = settings
        self.metrics = metrics or NullMetrics()
        self.clock = clock

    async def determine_mode(self, poll_id: str) -> str:
        """clustering iff the poll is eligible and a landscape is persisted"""
        statement_count = await self.votes.count_approved_statements(poll_id)
        voter_count = await self.votes.count_distinct_voters(poll_id)
        eligibility = check_eligibility(statement_count, voter_count, self.settings)
        if eligibility.eligible and await self.landscapes.has_landscape(poll_id):
            return CLUSTERING
        return COLD_START

    async def get_statement_weights(
        self, poll_id: str, statement_ids: Sequence[str]
    ) -> List[StatementWeight]:
        """Weights for the given statements, in the order requested.

        Ids that are not approved statements of the poll are skipped.
        """
        if not statement_ids:
            return []

        cached = await self.weight_cache.get_weights(poll_id, statement_ids)
        missing = [sid for sid in statement_ids if sid not in cached]

        if cached:
            self.metrics.weight_cache.labels(result="hit").inc(len(cached))
        if missing:
            self.metrics.weight_cache.labels(result="miss").inc(len(missing))
            computed = await self._compute_weights(poll_id, missing)
            if computed:
                await self.weight_cache.upsert_weights(computed)
            cached = {**cached, **{w.statement_id: w for w in computed}}

            logger.debug(
                "filled weight cache",
                poll_id=poll_id,
                hits=len(statement_ids) - len(missing),
                computed=len(computed),
            )

        return [cached[sid] for sid in statement_ids if sid in cached]

    async def _compute_weights(
        self, poll_id: str, statement_ids: Sequence[str]
    ) -> List[StatementWeight]:
        statements = await self.votes.list_approved_statements(poll_id)
        by_id: Dict[str, Statement] = {s.id: s for s in statements}

        unknown = [sid for sid in statement_ids if sid not in by_id]
        if unknown:
            logger.warning("weights requested for unknown statements", poll_id=poll_id, count=len(unknown))

        votes = await self.votes.list_votes(list(by_id))
        agree: Counter = Counter()
        disagree: Counter = Counter()
        passed: Counter = Counter()
        for vote in votes:
            if vote.value > 0:
                agree[vote.statement_id] += 1
            elif vote.value < 0:
                disagree[vote.statement_id] += 1
            else:
                passed[vote.statement_id] += 1

        mode = await self.determine_mode(poll_id)
        classifications: Dict[str, StatementClassification] = {}
        if mode == CLUSTERING:
            classifications = {
                c.statement_id: c for c in await self.landscapes.get_classifications(poll_id)
            }

        totals = {sid: agree[sid] + disagree[sid] + passed[sid] for sid in by_id}
        average_votes = sum(totals.values()) / len(totals) if totals else 0.0
        now = self.clock()

        results = []
        for sid in statement_ids:
            statement = by_id.get(sid)
            if statement is None:
                continue
            tallies = dict(
                agree_count=agree[sid],
                disagree_count=disagree[sid],
                pass_count=passed[sid],
            )
            recency = formulas.recency_boost(statement.created_at, now)
            penalty = formulas.pass_rate_penalty(passed[sid], totals[sid])

            if mode == CLUSTERING:
                classification = classifications.get(sid)
                if classification is None:
                    results.append(self._neutral_weight(poll_id, sid, now, recency, tallies))
                    continue
                predictiveness = formulas.predictiveness(classification.group_agreements)
                consensus = formulas.consensus_potential(classification)
                results.append(
                    StatementWeight(
                        poll_id=poll_id,
                        statement_id=sid,
                        predictiveness=predictiveness,
                        consensus_potential=consensus,
                        recency_boost=recency,
                        pass_rate_penalty=penalty,
                        combined_weight=formulas.clustering_weight(
                            predictiveness, consensus, recency, penalty
                        ),
                        mode=CLUSTERING,
                        calculated_at=now,
                        **tallies,
                    )
                )
            else:
                boost = formulas.vote_count_boost(totals[sid], average_votes)
                results.append(
                    StatementWeight(
                        poll_id=poll_id,
                        statement_id=sid,
                        predictiveness=0.0,
                        consensus_potential=0.0,
                        recency_boost=recency,
                        pass_rate_penalty=penalty,
                        vote_count_boost=boost,
                        combined_weight=formulas.cold_start_weight(boost, recency, penalty),
                        mode=COLD_START,
                        calculated_at=now,
                        **tallies,
                    )
                )
        return results

    def _neutral_weight(
        self, poll_id: str, statement_id: str, now: datetime, recency: float, tallies: dict
    ) -> StatementWeight:
        neutral = formulas.NEUTRAL_COMPONENT
        return StatementWeight(
            poll_id=poll_id,
            statement_id=statement_id,
            predictiveness=neutral,
            consensus_potential=neutral,
            recency_boost=recency,
            pass_rate_penalty=neutral,
            combined_weight=neutral,
            mode=CLUSTERING,
            calculated_at=now,
            **tallies,
        )

    async def invalidate_weights(self, poll_id: str) -> int:
        """Delete every cached weight of the poll"""
        deleted = await self.weight_cache.delete_weights(poll_id)
        logger.info("invalidated statement weights", poll_id=poll_id, deleted=deleted)
        return deleted

    async def on_statement_approved(self, poll_id: str) -> int:
        """A new statement changes the cold-start average, so start over"""
        return await self.invalidate_weights(poll_id)
