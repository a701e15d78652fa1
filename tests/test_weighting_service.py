"""
Tests for StatementWeightingService

Cold start vs clustering mode, the weight cache fill path and invalidation.
"""

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from database.models import LandscapeMetadata, StatementClassification
from deliberation.weighting import CLUSTERING, COLD_START, StatementWeightingService
from tests.conftest import BASE_TIME, POLL_ID

NOW = BASE_TIME + timedelta(hours=1)


def make_metadata(poll_id: str = POLL_ID) -> LandscapeMetadata:
    return LandscapeMetadata(
        poll_id=poll_id,
        components=[[0.0], [0.0]],
        component_variance=[0.0, 0.0],
        mean_vector=[0.0],
        fine_centroids=[[0.0, 0.0]],
        fine_k=1,
        coarse_groups=[],
        silhouette_score=0.0,
        variance_explained=0.0,
        quality_tier="low",
        consensus_level="low",
        voter_count=2,
        statement_count=6,
        statement_ids=[],
        computed_at=BASE_TIME,
    )


@pytest.fixture
def service(vote_store, landscape_store, weight_store, settings, metrics):
    return StatementWeightingService(
        vote_store, landscape_store, weight_store, settings, metrics=metrics, clock=lambda: NOW
    )


class TestColdStart:
    """No landscape yet: vote-count boost, recency and pass penalty only"""

    def test_mode_without_landscape(self, service):
        assert asyncio.run(service.determine_mode(POLL_ID)) == COLD_START

    def test_under_voted_statements_weigh_more(self, service, vote_store):
        for voter, value in (("a", 1), ("b", 1), ("c", 1), ("d", 0)):
            vote_store.add_vote(voter, "s1", value)

        s1, s2 = asyncio.run(service.get_statement_weights(POLL_ID, ["s1", "s2"]))

        assert s1.mode == COLD_START
        assert s1.predictiveness == 0.0
        assert s1.consensus_potential == 0.0
        assert s1.vote_count_boost == 0.5
        assert s1.recency_boost == 2.0
        assert s1.pass_rate_penalty == pytest.approx(0.775)
        assert s1.combined_weight == pytest.approx(0.775)
        assert (s1.agree_count, s1.disagree_count, s1.pass_count) == (3, 0, 1)

        assert s2.vote_count_boost == 1.5
        assert s2.pass_rate_penalty == 0.5
        assert s2.combined_weight == pytest.approx(1.5)


class TestWeightCache:
    def test_second_read_hits_cache(self, service, weight_store, metrics):
        asyncio.run(service.get_statement_weights(POLL_ID, ["s1", "s2"]))
        asyncio.run(service.get_statement_weights(POLL_ID, ["s1", "s2"]))

        assert len(weight_store.upserted) == 2
        assert metrics.weight_cache.value(result="miss") == 2
        assert metrics.weight_cache.value(result="hit") == 2

    def test_invalidate_forces_recompute(self, service, weight_store):
        asyncio.run(service.get_statement_weights(POLL_ID, ["s1", "s2", "s3"]))
        deleted = asyncio.run(service.invalidate_weights(POLL_ID))
        asyncio.run(service.get_statement_weights(POLL_ID, ["s1", "s2", "s3"]))

        assert deleted == 3
        assert len(weight_store.upserted) == 6

    def test_statement_approval_invalidates(self, service, weight_store):
        asyncio.run(service.get_statement_weights(POLL_ID, ["s1"]))
        assert asyncio.run(service.on_statement_approved(POLL_ID)) == 1
        assert weight_store.weights == {}

    def test_results_follow_request_order_and_skip_unknown(self, service):
        weights = asyncio.run(service.get_statement_weights(POLL_ID, ["s3", "ghost", "s1"]))
        assert [w.statement_id for w in weights] == ["s3", "s1"]

    def test_empty_request(self, service, weight_store):
        assert asyncio.run(service.get_statement_weights(POLL_ID, [])) == []
        assert weight_store.upserted == []


class TestClusteringMode:
    """Eligible poll with a persisted landscape"""

    @pytest.fixture
    def clustering_service(self, vote_store, landscape_store, weight_store, settings):
        small = replace(settings, min_statements=2, min_voters=2)
        for voter in ("a", "b"):
            vote_store.add_vote(voter, "s1", 1 if voter == "a" else -1)
        landscape_store.metadata[POLL_ID] = make_metadata()
        landscape_store.classifications[POLL_ID] = [
            StatementClassification(
                poll_id=POLL_ID,
                statement_id="s1",
                classification_type="divisive",
                pattern="split",
                group_agreements={0: 1.0, 1: 0.0},
                group_vote_counts={0: 1, 1: 1},
                average_agreement=0.5,
                standard_deviation=0.5,
            )
        ]
        return StatementWeightingService(
            vote_store, landscape_store, weight_store, small, clock=lambda: NOW
        )

    def test_mode(self, clustering_service):
        assert asyncio.run(clustering_service.determine_mode(POLL_ID)) == CLUSTERING

    def test_classified_statement(self, clustering_service):
        [weight] = asyncio.run(clustering_service.get_statement_weights(POLL_ID, ["s1"]))
        assert weight.mode == CLUSTERING
        assert weight.predictiveness == 1.0
        assert weight.consensus_potential == 1.0
        assert weight.pass_rate_penalty == 1.0
        assert weight.combined_weight == pytest.approx(2.0)
        assert weight.vote_count_boost is None

    def test_unclassified_statement_is_neutral(self, clustering_service):
        [weight] = asyncio.run(clustering_service.get_statement_weights(POLL_ID, ["s2"]))
        assert weight.mode == CLUSTERING
        assert weight.predictiveness == 0.5
        assert weight.consensus_potential == 0.5
        assert weight.combined_weight == 0.5
        assert weight.recency_boost == 2.0
