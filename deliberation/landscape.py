"""Opinion landscape orchestration

compute_opinion_landscape(poll_id):
    eligibility (counts) -> statements + votes -> matrix -> floors on the
    real matrix -> PCA -> fine k-means -> coarse groups -> classification
    -> quality tier -> persist (one transaction) -> invalidate caches

The numeric stages are CPU-bound and run in a worker thread under a time
budget so the event loop keeps serving requests. Nothing is written unless
every stage succeeded.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from config import get_logger, LandscapeSettings
from database.models import (
    Eligibility,
    LandscapeMetadata,
    StatementClassification,
    VoterPosition,
)
from deliberation.cache import TTLCache
from deliberation.classifier import classify_statements, compute_group_agreements
from deliberation.coalitions import analyze_coalitions
from deliberation.kmeans import build_coarse_groups, fine_cluster
from deliberation.matrix import OpinionMatrix, build_opinion_matrix
from deliberation.pca import compute_pca
from deliberation.quality import (
    check_eligibility,
    consensus_level,
    quality_tier,
    require_floors,
)
from exceptions import (
    ComputationTimeoutError,
    InsufficientDataError,
    NumericalFailureError,
    PersistenceFailureError,
)
from pipeline.protocols.metrics import MetricsCollector, NullMetrics

logger = get_logger(__name__).bind(component="landscape")


@dataclass
class LandscapeComputation:
    """Everything one computation writes"""

    metadata: LandscapeMetadata
    positions: List[VoterPosition]
    classifications: List[StatementClassification]


@dataclass
class LandscapeView:
    """Persisted landscape as served to readers"""

    metadata: LandscapeMetadata
    positions: List[VoterPosition] = field(default_factory=list)
    classifications: List[StatementClassification] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "metadata": self.metadata.to_dict(),
            "positions": [p.to_dict() for p in self.positions],
            "classifications": [c.to_dict() for c in self.classifications],
        }


def run_landscape_pipeline(
    poll_id: str,
    matrix: OpinionMatrix,
    settings: LandscapeSettings,
    computed_at: Optional[datetime] = None,
) -> LandscapeComputation:
    """Pure numeric pipeline on an already-built matrix (runs in a thread)"""
    pca = compute_pca(matrix.values, settings.pca_components, poll_id=poll_id)
    fine = fine_cluster(pca.coordinates, settings, poll_id=poll_id)
    coarse = build_coarse_groups(pca.coordinates, fine, settings)

    group_ids = [g.id for g in coarse.groups]
    agreements = compute_group_agreements(
        matrix, coarse.voter_labels, group_ids, settings.min_group_voters
    )
    classifications = classify_statements(poll_id, agreements, settings)

    variance = pca.variance_explained
    tier = quality_tier(variance, fine.silhouette, settings)

    metadata = LandscapeMetadata(
        poll_id=poll_id,
        components=pca.components.tolist(),
        component_variance=pca.component_variance.tolist(),
        mean_vector=pca.mean_vector.tolist(),
        fine_centroids=fine.centroids.tolist(),
        fine_k=fine.k,
        coarse_groups=coarse.groups,
        silhouette_score=fine.silhouette,
        variance_explained=variance,
        quality_tier=tier,
        consensus_level=consensus_level(classifications),
        voter_count=matrix.voter_count,
        statement_count=matrix.statement_count,
        statement_ids=list(matrix.statement_ids),
        computed_at=computed_at or datetime.now(timezone.utc),
    )

    positions = []
    for i, voter_id in enumerate(matrix.voter_ids):
        tally = matrix.voter_tallies[voter_id]
        positions.append(
            VoterPosition(
                poll_id=poll_id,
                voter_id=voter_id,
                pc1=float(pca.coordinates[i, 0]),
                pc2=float(pca.coordinates[i, 1]),
                fine_cluster_id=int(fine.labels[i]),
                coarse_group_id=int(coarse.voter_labels[i]),
                agree_count=tally.agree,
                disagree_count=tally.disagree,
                pass_count=tally.passed,
                total_votes=tally.total,
            )
        )

    return LandscapeComputation(metadata, positions, classifications)


class LandscapeService:
    """Computes, persists and serves opinion landscapes

    Usage:
        service = LandscapeService(db.votes, db.landscapes, weighting, settings, TTLCache(300))
        eligibility = await service.is_eligible_for_clustering("poll_1")
        metadata = await service.compute_opinion_landscape("poll_1")
        view = await service.get_landscape("poll_1")
    """

    def __init__(
        self,
        vote_store,
        landscape_store,
        weighting_service,
        settings: LandscapeSettings,
        cache: TTLCache,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.votes = vote_store
        self.landscapes = landscape_store
        self.weighting = weighting_service
        self.settings = settings
        self.cache = cache
        self.metrics = metrics or NullMetrics()

    async def is_eligible_for_clustering(self, poll_id: str) -> Eligibility:
        """Count-only check of the hard floors"""
        statement_count = await self.votes.count_approved_statements(poll_id)
        voter_count = await self.votes.count_distinct_voters(poll_id)
        return check_eligibility(statement_count, voter_count, self.settings)

    async def compute_opinion_landscape(self, poll_id: str) -> LandscapeMetadata:
        """Recompute and persist the landscape of a poll.

        Raises:
            InsufficientDataError: A hard floor is not met (nothing written)
            NumericalFailureError: PCA/k-means degenerate or timed out (nothing written)
            PersistenceFailureError: Transaction failed (nothing written)
        """
        log = logger.bind(poll_id=poll_id)
        started = time.perf_counter()
        status = "success"

        try:
            eligibility = await self.is_eligible_for_clustering(poll_id)
            if not eligibility.eligible:
                require_floors(
                    eligibility.statement_count, eligibility.voter_count, self.settings, poll_id
                )

            statements = await self.votes.list_approved_statements(poll_id)
            votes = await self.votes.list_votes([s.id for s in statements])
            matrix = build_opinion_matrix(statements, votes)

            # Counts can drift from the matrix (votes only on unapproved statements)
            require_floors(matrix.statement_count, matrix.voter_count, self.settings, poll_id)

            try:
                result = await asyncio.wait_for(
                    asyncio.to_thread(run_landscape_pipeline, poll_id, matrix, self.settings),
                    timeout=self.settings.compute_timeout_seconds,
                )
            except asyncio.TimeoutError:
                raise ComputationTimeoutError(
                    f"landscape computation exceeded {self.settings.compute_timeout_seconds}s",
                    stage="compute",
                    poll_id=poll_id,
                    matrix_shape=matrix.shape,
                )

            await self.landscapes.replace_landscape(
                result.metadata, result.positions, result.classifications
            )

        except InsufficientDataError as e:
            status = "insufficient_data"
            log.info("landscape skipped, insufficient data", reason=e.reason)
            raise
        except NumericalFailureError as e:
            status = "numerical_failure"
            log.error("landscape numerical failure", stage=e.stage, error=str(e))
            self.metrics.record_error("landscape", e)
            raise
        except PersistenceFailureError as e:
            status = "persistence_failure"
            log.error("landscape persistence failed", error=str(e))
            self.metrics.record_error("landscape", e)
            raise
        except Exception as e:
            status = "error"
            log.error("landscape computation failed", error=str(e), error_type=type(e).__name__)
            self.metrics.record_error("landscape", e)
            raise
        finally:
            duration = time.perf_counter() - started
            self.metrics.landscape_computations.labels(status=status).inc()
            self.metrics.landscape_compute_duration.observe(duration)

        self.cache.delete(poll_id)
        await self._invalidate_weights(poll_id)

        metadata = result.metadata
        log_method = log.warning if metadata.quality_tier == "low" else log.info
        log_method(
            "computed opinion landscape",
            voters=metadata.voter_count,
            statements=metadata.statement_count,
            fine_k=metadata.fine_k,
            groups=metadata.group_count,
            quality_tier=metadata.quality_tier,
            variance_explained=round(metadata.variance_explained, 4),
            silhouette=round(metadata.silhouette_score, 4),
            duration_seconds=round(duration, 3),
        )
        return metadata

    async def _invalidate_weights(self, poll_id: str) -> None:
        """Post-commit, so a failure here must not undo a good landscape"""
        try:
            await self.weighting.invalidate_weights(poll_id)
        except Exception as e:
            logger.warning(
                "weight invalidation failed after landscape commit",
                poll_id=poll_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.metrics.record_error("weighting", e)

    async def get_landscape(self, poll_id: str) -> Optional[LandscapeView]:
        """Persisted landscape, or None if the poll was never computed"""
        view = self.cache.get(poll_id)
        if view is not None:
            return view

        metadata = await self.landscapes.get_metadata(poll_id)
        if metadata is None:
            return None

        view = LandscapeView(
            metadata=metadata,
            positions=await self.landscapes.get_positions(poll_id),
            classifications=await self.landscapes.get_classifications(poll_id),
        )
        self.cache.set(poll_id, view)
        return view

    async def get_group_agreement_matrix(self, poll_id: str) -> Optional[dict]:
        """Statement x group agreement grid with coalition analysis"""
        view = await self.get_landscape(poll_id)
        if view is None:
            return None

        groups = view.metadata.coarse_groups
        group_ids = [g.id for g in groups]
        coalitions = analyze_coalitions(
            [c.group_agreements for c in view.classifications],
            group_ids,
            {g.id: g.label for g in groups},
            self.settings.strong_agreement_threshold,
        )

        return {
            "poll_id": poll_id,
            "groups": [g.to_dict() for g in groups],
            "statements": [
                {
                    "statement_id": c.statement_id,
                    "classification_type": c.classification_type,
                    "pattern": c.pattern,
                    "group_percentages": c.group_percentages(),
                    "group_vote_counts": c.group_vote_counts,
                    "average_agreement": c.average_agreement,
                    "standard_deviation": c.standard_deviation,
                }
                for c in view.classifications
            ],
            "coalitions": coalitions.to_dict(),
        }
