"""
Tests for statement classification

Scores are 0..1; the percentages in test names are the display values
(score - 0.5) * 200.
"""

import numpy as np
import pytest

from deliberation.classifier import (
    GroupAgreement,
    agreement_score,
    classify_pattern,
    classify_statements,
    compute_group_agreements,
    find_opposed_pairs,
)
from deliberation.matrix import build_opinion_matrix
from database.models import Vote
from tests.conftest import make_statements


def pct(*percentages):
    """Group scores from display percentages, groups numbered from 0"""
    return {g: p / 200 + 0.5 for g, p in enumerate(percentages)}


class TestAgreementScore:
    def test_all_agree(self):
        assert agreement_score(4, 0) == 1.0

    def test_even_split(self):
        assert agreement_score(3, 3) == 0.5

    def test_no_votes(self):
        assert agreement_score(0, 0) is None


class TestClassifyPattern:
    """Priority rules, first match wins"""

    def test_full_positive_consensus(self):
        verdict = classify_pattern(pct(95, 92, 97), set())
        assert verdict.classification_type == "positive_consensus"
        assert verdict.pattern == "full_consensus"

    def test_full_negative_consensus(self):
        verdict = classify_pattern(pct(-80, -75), set())
        assert verdict.classification_type == "negative_consensus"
        assert verdict.pattern == "full_consensus"

    def test_split_without_opposition_is_divisive(self):
        verdict = classify_pattern(pct(95, -90, 10), set())
        assert verdict.classification_type == "divisive"
        assert verdict.pattern == "split"

    def test_bridge_when_positive_groups_are_otherwise_opposed(self):
        verdict = classify_pattern(pct(95, -90, 10), {(0, 2)})
        assert verdict.classification_type == "bridge"
        assert verdict.connects_groups == [0, 2]
        assert verdict.bridge_score == pytest.approx(0.55)

    def test_partial_consensus_three_groups(self):
        """Two of three strong, the third lukewarm"""
        verdict = classify_pattern(pct(80, 85, 20), set())
        assert verdict.classification_type == "positive_consensus"
        assert verdict.pattern == "partial_consensus"

    def test_partial_consensus_outranks_split(self):
        """The one holdout may be strong on the other side"""
        verdict = classify_pattern({0: 0.975, 1: 0.96, 2: 0.05}, set())
        assert verdict.classification_type == "positive_consensus"
        assert verdict.pattern == "partial_consensus"

    def test_negative_partial_consensus_with_strong_holdout(self):
        verdict = classify_pattern(pct(-80, 75, -90, -85), set())
        assert verdict.classification_type == "negative_consensus"
        assert verdict.pattern == "partial_consensus"

    def test_partial_consensus_five_groups_allows_two_holdouts(self):
        verdict = classify_pattern(pct(-70, -65, -90, 0, 30), set())
        assert verdict.classification_type == "negative_consensus"
        assert verdict.pattern == "partial_consensus"

    def test_two_groups_never_partial(self):
        verdict = classify_pattern(pct(90, 10), set())
        assert verdict.classification_type == "normal"

    def test_lopsided_split_is_normal(self):
        """Three strong agree vs one strong disagree with two lukewarm is not a split"""
        verdict = classify_pattern(pct(90, 90, 90, -90, 0, 0), set())
        assert verdict.classification_type == "normal"

    def test_single_group_is_normal(self):
        verdict = classify_pattern(pct(99), set())
        assert verdict.classification_type == "normal"
        assert verdict.pattern == "none"

    def test_lukewarm_group_blocks_full_consensus(self):
        verdict = classify_pattern(pct(55, 95), set())
        assert verdict.classification_type == "normal"


class TestGroupAgreements:
    def test_scores_per_group(self, settings):
        statements = make_statements(count=1)
        votes = [
            Vote(voter_id="a", statement_id="s1", value=1),
            Vote(voter_id="b", statement_id="s1", value=1),
            Vote(voter_id="c", statement_id="s1", value=-1),
            Vote(voter_id="d", statement_id="s1", value=0),
        ]
        matrix = build_opinion_matrix(statements, votes)
        labels = np.array([0, 0, 1, 1])  # a, b | c, d
        [result] = compute_group_agreements(matrix, labels, [0, 1])

        assert result.scores == {0: 1.0, 1: 0.0}
        assert result.counts == {0: 2, 1: 1}

    def test_group_without_votes_left_out(self, settings):
        statements = make_statements(count=1)
        votes = [
            Vote(voter_id="a", statement_id="s1", value=1),
            Vote(voter_id="b", statement_id="s1", value=0),
        ]
        matrix = build_opinion_matrix(statements, votes)
        [result] = compute_group_agreements(matrix, np.array([0, 1]), [0, 1])
        assert 1 not in result.scores
        assert result.agree[1] == 0

    def test_min_group_voters(self, settings):
        statements = make_statements(count=1)
        votes = [Vote(voter_id="a", statement_id="s1", value=1)]
        matrix = build_opinion_matrix(statements, votes)
        [result] = compute_group_agreements(matrix, np.array([0]), [0], min_group_voters=2)
        assert result.scores == {}


class TestOpposedPairs:
    """Opposition is measured on the other statements"""

    def test_pair_opposed_elsewhere(self, settings):
        agreements = [
            GroupAgreement("s1", scores=pct(95, -90, 10)),
            GroupAgreement("s2", scores=pct(90, 5, -85)),
            GroupAgreement("s3", scores=pct(-88, 0, 92)),
            GroupAgreement("bridge", scores=pct(80, -70, 75)),
        ]
        opposed = find_opposed_pairs(agreements, settings)
        assert (0, 2) in opposed[3]

    def test_own_statement_excluded(self, settings):
        """A single opposing statement does not make the pair opposed for itself"""
        agreements = [
            GroupAgreement("s1", scores=pct(90, -90)),
            GroupAgreement("s2", scores=pct(90, 90)),
        ]
        opposed = find_opposed_pairs(agreements, settings)
        assert opposed[0] == set()


class TestClassifyStatements:
    def test_one_result_per_statement(self, settings):
        agreements = [
            GroupAgreement("s1", scores=pct(95, 92, 97), counts={0: 5, 1: 5, 2: 5}),
            GroupAgreement("s2", scores=pct(95, -90, 10), counts={0: 5, 1: 5, 2: 5}),
            GroupAgreement("s3", scores={}),
        ]
        results = classify_statements("p", agreements, settings)

        assert [r.statement_id for r in results] == ["s1", "s2", "s3"]
        assert results[0].classification_type == "positive_consensus"
        assert results[1].classification_type in ("divisive", "bridge")
        assert results[2].classification_type == "normal"
        assert results[2].average_agreement == 0.5
        assert results[2].standard_deviation == 0.0

    def test_bridge_classification_end_to_end(self, settings):
        agreements = [
            GroupAgreement("s1", scores=pct(95, -90, -80)),
            GroupAgreement("s2", scores=pct(90, 5, -85)),
            GroupAgreement("s3", scores=pct(-88, 0, 92)),
            GroupAgreement("common", scores=pct(70, -65, 75)),
        ]
        results = classify_statements("p", agreements, settings)
        bridge = results[3]
        assert bridge.classification_type == "bridge"
        assert bridge.pattern == "bridge"
        assert bridge.connects_groups == [0, 2]
        assert bridge.group_percentages() == {0: 70, 1: -65, 2: 75}
