"""Statement classification against coarse opinion groups

Per statement and group:
    score = ((agree - disagree) / (agree + disagree) + 1) / 2
over that group's non-pass votes. Display percentage is (score - 0.5) * 200
and a group is "strong" beyond +/-60 points.

Rules, first match wins:
1. full consensus     every group strong on the same side
2. partial consensus  (3+ groups) all but one (all but two with 5+ groups)
                      strong on one side, at least two of them; the
                      holdouts may sit anywhere
3. bridge             groups with score > 0.5 include a pair that is
                      opposed on the rest of the poll
4. split              strong agree and strong disagree groups, counts
                      within one of each other -> divisive
5. normal
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from config import get_logger, LandscapeSettings
from database.models import StatementClassification
from deliberation.coalitions import (
    ALIGNED,
    OPPOSED,
    pair_relations,
    score_to_percentage,
)
from deliberation.matrix import OpinionMatrix

logger = get_logger(__name__).bind(component="statement_classifier")


@dataclass
class GroupAgreement:
    """Per-group tallies and scores for one statement"""

    statement_id: str
    scores: Dict[int, float] = field(default_factory=dict)
    counts: Dict[int, int] = field(default_factory=dict)
    agree: Dict[int, int] = field(default_factory=dict)
    disagree: Dict[int, int] = field(default_factory=dict)

    def percentages(self) -> Dict[int, int]:
        return {g: round(score_to_percentage(s)) for g, s in self.scores.items()}


@dataclass
class Verdict:
    classification_type: str
    pattern: str
    bridge_score: Optional[float] = None
    connects_groups: Optional[List[int]] = None


def agreement_score(agree: int, disagree: int) -> Optional[float]:
    total = agree + disagree
    if total == 0:
        return None
    return ((agree - disagree) / total + 1) / 2


def compute_group_agreements(
    matrix: OpinionMatrix,
    voter_labels: np.ndarray,
    group_ids: Sequence[int],
    min_group_voters: int = 1,
) -> List[GroupAgreement]:
    """Score every statement for every coarse group.

    Groups with fewer than min_group_voters non-pass votes on a statement
    are left out of that statement's scores.
    """
    masks = {g: voter_labels == g for g in group_ids}
    agreements = []
    for j, statement_id in enumerate(matrix.statement_ids):
        column = matrix.values[:, j]
        result = GroupAgreement(statement_id=statement_id)
        for g, mask in masks.items():
            votes = column[mask]
            agree = int(np.sum(votes == 1))
            disagree = int(np.sum(votes == -1))
            result.agree[g] = agree
            result.disagree[g] = disagree
            if agree + disagree < max(1, min_group_voters):
                continue
            result.scores[g] = agreement_score(agree, disagree)
            result.counts[g] = agree + disagree
        agreements.append(result)
    return agreements


def _detect_bridge(
    scores: Dict[int, float],
    opposed_pairs: Set[Tuple[int, int]],
) -> Optional[Verdict]:
    positive = sorted(g for g, s in scores.items() if s > 0.5)
    connected: Set[int] = set()
    for i, a in enumerate(positive):
        for b in positive[i + 1:]:
            if (a, b) in opposed_pairs:
                connected.update((a, b))
    if not connected:
        return None
    connects = sorted(connected)
    return Verdict(
        classification_type="bridge",
        pattern="bridge",
        bridge_score=min(scores[g] for g in connects),
        connects_groups=connects,
    )


def classify_pattern(
    scores: Dict[int, float],
    opposed_pairs: Set[Tuple[int, int]],
    threshold: float = 60.0,
) -> Verdict:
    """Apply the priority rules to one statement's group scores"""
    n = len(scores)
    if n < 2:
        return Verdict("normal", "none")

    percentages = {g: score_to_percentage(s) for g, s in scores.items()}
    strong_agree = [g for g, p in percentages.items() if p > threshold]
    strong_disagree = [g for g, p in percentages.items() if p < -threshold]

    if len(strong_agree) == n:
        return Verdict("positive_consensus", "full_consensus")
    if len(strong_disagree) == n:
        return Verdict("negative_consensus", "full_consensus")

    if n >= 3:
        allowance = 2 if n >= 5 else 1
        if len(strong_agree) >= max(2, n - allowance):
            return Verdict("positive_consensus", "partial_consensus")
        if len(strong_disagree) >= max(2, n - allowance):
            return Verdict("negative_consensus", "partial_consensus")

    bridge = _detect_bridge(scores, opposed_pairs)
    if bridge:
        return bridge

    if strong_agree and strong_disagree and abs(len(strong_agree) - len(strong_disagree)) <= 1:
        return Verdict("divisive", "split")

    return Verdict("normal", "none")


def find_opposed_pairs(
    agreements: Sequence[GroupAgreement],
    settings: LandscapeSettings,
) -> List[Set[Tuple[int, int]]]:
    """For each statement, the group pairs opposed across the other statements.

    A pair is opposed when it sits on strongly opposite sides on at least
    bridge_min_opposition of the other statements both groups rated, and
    opposition outnumbers alignment there.
    """
    threshold = settings.strong_agreement_threshold
    relations = [pair_relations(a.scores, threshold) for a in agreements]

    totals: Dict[Tuple[int, int], Counter] = {}
    for statement_relations in relations:
        for pair, kind in statement_relations.items():
            tally = totals.setdefault(pair, Counter())
            tally[kind] += 1
            tally["rated"] += 1

    opposed_per_statement = []
    for statement_relations in relations:
        opposed = set()
        for pair, tally in totals.items():
            own = statement_relations.get(pair)
            rated = tally["rated"] - (own is not None)
            if rated <= 0:
                continue
            oppositions = tally[OPPOSED] - (own == OPPOSED)
            alignments = tally[ALIGNED] - (own == ALIGNED)
            if oppositions / rated >= settings.bridge_min_opposition and oppositions > alignments:
                opposed.add(pair)
        opposed_per_statement.append(opposed)
    return opposed_per_statement


def classify_statements(
    poll_id: str,
    agreements: Sequence[GroupAgreement],
    settings: LandscapeSettings,
) -> List[StatementClassification]:
    """Classify every statement of the poll (exactly one result each)"""
    opposed = find_opposed_pairs(agreements, settings)
    classifications = []
    counts: Counter = Counter()

    for agreement, opposed_pairs in zip(agreements, opposed):
        verdict = classify_pattern(
            agreement.scores, opposed_pairs, settings.strong_agreement_threshold
        )
        values = list(agreement.scores.values())
        average = float(np.mean(values)) if values else 0.5
        deviation = float(np.std(values)) if values else 0.0

        classifications.append(
            StatementClassification(
                poll_id=poll_id,
                statement_id=agreement.statement_id,
                classification_type=verdict.classification_type,
                pattern=verdict.pattern,
                group_agreements=dict(agreement.scores),
                group_vote_counts=dict(agreement.counts),
                average_agreement=average,
                standard_deviation=deviation,
                bridge_score=verdict.bridge_score,
                connects_groups=verdict.connects_groups,
            )
        )
        counts[verdict.classification_type] += 1

    logger.debug("classified statements", poll_id=poll_id, **dict(counts))
    return classifications
