"""Coalition analysis between opinion groups

For every pair of coarse groups, counts the statements where both groups
sit strongly on the same side (aligned), on opposite sides (opposed), or
where at least one of them is lukewarm (neutral). Only statements both
groups rated are counted.

The opposition counts are what bridge detection uses to decide whether two
groups are "otherwise opposed".
"""

from dataclasses import dataclass, asdict
from itertools import combinations
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from config import get_logger

logger = get_logger(__name__).bind(component="coalitions")

ALIGNED = "aligned"
OPPOSED = "opposed"
NEUTRAL = "neutral"

DEFAULT_STRONG_THRESHOLD = 60.0


def score_to_percentage(score: float) -> float:
    """0..1 agreement score to -100..+100"""
    return (score - 0.5) * 200


def relation(pct_a: float, pct_b: float, threshold: float = DEFAULT_STRONG_THRESHOLD) -> str:
    """How two groups relate on one statement, from their percentages"""
    if abs(pct_a) <= threshold or abs(pct_b) <= threshold:
        return NEUTRAL
    if (pct_a > 0) == (pct_b > 0):
        return ALIGNED
    return OPPOSED


@dataclass
class PairwiseAlignment:
    group_ids: Tuple[int, int]
    group_labels: Tuple[str, str]
    agreement_count: int = 0
    disagreement_count: int = 0
    neutral_count: int = 0
    alignment_percentage: int = 0

    @property
    def rated_count(self) -> int:
        return self.agreement_count + self.disagreement_count + self.neutral_count

    def to_dict(self) -> dict:
        data = asdict(self)
        data["group_ids"] = list(self.group_ids)
        data["group_labels"] = list(self.group_labels)
        return data


@dataclass
class CoalitionAnalysis:
    pairwise_alignment: List[PairwiseAlignment]
    strongest_coalitions: List[PairwiseAlignment]
    polarization_level: int

    def pair(self, group_a: int, group_b: int) -> Optional[PairwiseAlignment]:
        key = (min(group_a, group_b), max(group_a, group_b))
        for alignment in self.pairwise_alignment:
            if alignment.group_ids == key:
                return alignment
        return None

    def is_strong_coalition(self, group_a: int, group_b: int) -> bool:
        """Groups align on more than half of all statements"""
        alignment = self.pair(group_a, group_b)
        return alignment is not None and alignment.alignment_percentage > 50

    def coalitions_above(self, min_alignment: int = 50) -> List[PairwiseAlignment]:
        return [a for a in self.pairwise_alignment if a.alignment_percentage >= min_alignment]

    def to_dict(self) -> dict:
        return {
            "pairwise_alignment": [a.to_dict() for a in self.pairwise_alignment],
            "strongest_coalitions": [a.to_dict() for a in self.strongest_coalitions],
            "polarization_level": self.polarization_level,
        }


def analyze_coalitions(
    group_scores: Sequence[Mapping[int, float]],
    group_ids: Sequence[int],
    group_labels: Optional[Mapping[int, str]] = None,
    threshold: float = DEFAULT_STRONG_THRESHOLD,
) -> CoalitionAnalysis:
    """Pairwise group alignment across statements.

    Args:
        group_scores: One mapping per statement, group id -> agreement score (0..1)
        group_ids: All coarse group ids
        group_labels: Optional display labels
        threshold: Strong-position threshold in percentage points

    Returns:
        CoalitionAnalysis sorted by alignment percentage, then agreement count
    """
    labels = dict(group_labels or {})
    pairs: List[PairwiseAlignment] = []

    for a, b in combinations(sorted(group_ids), 2):
        alignment = PairwiseAlignment(
            group_ids=(a, b),
            group_labels=(labels.get(a, f"Group {a + 1}"), labels.get(b, f"Group {b + 1}")),
        )
        for scores in group_scores:
            if a not in scores or b not in scores:
                continue
            kind = relation(
                score_to_percentage(scores[a]), score_to_percentage(scores[b]), threshold
            )
            if kind == ALIGNED:
                alignment.agreement_count += 1
            elif kind == OPPOSED:
                alignment.disagreement_count += 1
            else:
                alignment.neutral_count += 1

        if group_scores:
            alignment.alignment_percentage = round(
                alignment.agreement_count / len(group_scores) * 100
            )
        pairs.append(alignment)

    pairs.sort(key=lambda p: (-p.alignment_percentage, -p.agreement_count, p.group_ids))

    return CoalitionAnalysis(
        pairwise_alignment=pairs,
        strongest_coalitions=pairs[:3],
        polarization_level=polarization_level(pairs),
    )


def polarization_level(pairs: Sequence[PairwiseAlignment]) -> int:
    """Share of rated pair-statements where the pair is opposed, 0..100"""
    rated = sum(p.rated_count for p in pairs)
    if not rated:
        return 0
    opposed = sum(p.disagreement_count for p in pairs)
    return round(opposed / rated * 100)


def pair_relations(
    group_scores: Mapping[int, float],
    threshold: float = DEFAULT_STRONG_THRESHOLD,
) -> Dict[Tuple[int, int], str]:
    """Relation of every rated group pair on a single statement"""
    percentages = {g: score_to_percentage(s) for g, s in group_scores.items()}
    return {
        (a, b): relation(percentages[a], percentages[b], threshold)
        for a, b in combinations(sorted(percentages), 2)
    }
