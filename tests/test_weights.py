"""
Tests for statement weight formulas
"""

from datetime import datetime, timedelta, timezone

import pytest

from database.models import StatementClassification
from deliberation import weights as formulas

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def classification(kind: str, scores) -> StatementClassification:
    return StatementClassification(
        poll_id="p",
        statement_id="s",
        classification_type=kind,
        pattern="none",
        group_agreements=scores,
        group_vote_counts={g: 5 for g in scores},
        average_agreement=0.5,
        standard_deviation=0.0,
    )


class TestPredictiveness:
    def test_max_separation(self):
        assert formulas.predictiveness({0: 1.0, 1: 0.0}) == 1.0

    def test_no_separation(self):
        assert formulas.predictiveness({0: 0.7, 1: 0.7, 2: 0.7}) == 0.0

    def test_single_group(self):
        assert formulas.predictiveness({0: 1.0}) == 0.0

    def test_partial(self):
        # var([0.75, 0.25]) = 0.0625
        assert formulas.predictiveness({0: 0.75, 1: 0.25}) == pytest.approx(0.25)


class TestConsensusPotential:
    def test_consensus(self):
        assert formulas.consensus_potential(classification("negative_consensus", {0: 0.1})) == 1.0

    def test_bridge(self):
        assert formulas.consensus_potential(classification("bridge", {0: 0.9})) == 0.7

    def test_share_of_decided_groups(self):
        result = formulas.consensus_potential(
            classification("divisive", {0: 0.9, 1: 0.1, 2: 0.5, 3: 0.55})
        )
        assert result == 0.5

    def test_no_groups(self):
        assert formulas.consensus_potential(classification("normal", {})) == 0.0


class TestRecencyBoost:
    def test_first_day(self):
        assert formulas.recency_boost(NOW - timedelta(hours=23), NOW) == 2.0

    def test_halves_each_week(self):
        assert formulas.recency_boost(NOW - timedelta(days=7), NOW) == pytest.approx(1.0)
        assert formulas.recency_boost(NOW - timedelta(days=14), NOW) == pytest.approx(0.5)

    def test_floor(self):
        assert formulas.recency_boost(NOW - timedelta(days=365), NOW) == 0.1

    def test_naive_timestamps_treated_as_utc(self):
        naive = (NOW - timedelta(days=7)).replace(tzinfo=None)
        assert formulas.recency_boost(naive, NOW) == pytest.approx(1.0)

    def test_future_timestamp_counts_as_fresh(self):
        assert formulas.recency_boost(NOW + timedelta(hours=2), NOW) == 2.0


class TestPassRatePenalty:
    def test_no_passes(self):
        assert formulas.pass_rate_penalty(0, 10) == 1.0

    def test_half_passes(self):
        assert formulas.pass_rate_penalty(5, 10) == pytest.approx(0.55)

    def test_all_passes_floored(self):
        assert formulas.pass_rate_penalty(10, 10) == pytest.approx(0.1)

    def test_no_votes(self):
        assert formulas.pass_rate_penalty(0, 0) == 0.5


class TestVoteCountBoost:
    @pytest.mark.parametrize("votes,average,expected", [
        (0, 10, 1.5),
        (10, 10, 1.0),
        (15, 10, 0.5),
        (40, 10, 0.5),
        (5, 0, 1.0),
    ])
    def test_clamped(self, votes, average, expected):
        assert formulas.vote_count_boost(votes, average) == pytest.approx(expected)


class TestCombined:
    def test_clustering_weight_is_product(self):
        assert formulas.clustering_weight(0.5, 0.8, 2.0, 0.5) == pytest.approx(0.4)

    def test_cold_start_weight_is_product(self):
        assert formulas.cold_start_weight(1.5, 2.0, 1.0) == pytest.approx(3.0)
