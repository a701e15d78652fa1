"""Statement weight formulas

Pure functions, no I/O. Two modes:

clustering  = predictiveness * consensus_potential * recency * pass_penalty
cold_start  = vote_count_boost * recency * pass_penalty

Clustering mode needs a persisted landscape; cold start only needs raw
vote tallies, so brand-new polls still get a useful ordering.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

import numpy as np

from database.models import StatementClassification, CONSENSUS_TYPES

# Max variance of scores in [0, 1] (half the groups at 0, half at 1)
MAX_SCORE_VARIANCE = 0.25

NEUTRAL_COMPONENT = 0.5
BRIDGE_CONSENSUS_POTENTIAL = 0.7

RECENCY_FRESH_HOURS = 24
RECENCY_FRESH_BOOST = 2.0
RECENCY_HALF_LIFE_DAYS = 7
RECENCY_FLOOR = 0.1

PASS_PENALTY_SLOPE = 0.9
PASS_PENALTY_FLOOR = 0.1
NO_VOTES_PASS_PENALTY = 0.5

VOTE_BOOST_MIN = 0.5
VOTE_BOOST_MAX = 1.5


def predictiveness(group_agreements: Dict[int, float]) -> float:
    """How well a statement separates groups: var(scores) / 0.25, capped at 1"""
    if len(group_agreements) < 2:
        return 0.0
    variance = float(np.var(list(group_agreements.values())))
    return min(variance / MAX_SCORE_VARIANCE, 1.0)


def consensus_potential(classification: StatementClassification) -> float:
    """1.0 for consensus, 0.7 for bridges, else the share of decided groups"""
    if classification.classification_type in CONSENSUS_TYPES:
        return 1.0
    if classification.classification_type == "bridge":
        return BRIDGE_CONSENSUS_POTENTIAL
    scores = list(classification.group_agreements.values())
    if not scores:
        return 0.0
    decided = sum(1 for s in scores if s > 0.6 or s < 0.4)
    return decided / len(scores)


def recency_boost(created_at: datetime, now: Optional[datetime] = None) -> float:
    """2.0 for the first day, then halves every week, floored at 0.1"""
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    age_hours = max((now - created_at).total_seconds() / 3600, 0.0)
    if age_hours < RECENCY_FRESH_HOURS:
        return RECENCY_FRESH_BOOST
    age_days = age_hours / 24
    boost = RECENCY_FRESH_BOOST * 0.5 ** (age_days / RECENCY_HALF_LIFE_DAYS)
    return max(boost, RECENCY_FLOOR)


def pass_rate_penalty(pass_count: int, total_votes: int) -> float:
    if total_votes <= 0:
        return NO_VOTES_PASS_PENALTY
    rate = pass_count / total_votes
    return max(1.0 - PASS_PENALTY_SLOPE * rate, PASS_PENALTY_FLOOR)


def vote_count_boost(vote_count: int, average_votes: float) -> float:
    """Under-voted statements go first: clamp(2 - votes/avg, 0.5, 1.5)"""
    if average_votes <= 0:
        return 1.0
    boost = 2.0 - vote_count / average_votes
    return min(max(boost, VOTE_BOOST_MIN), VOTE_BOOST_MAX)


def clustering_weight(
    predictiveness_value: float,
    consensus_value: float,
    recency_value: float,
    pass_penalty_value: float,
) -> float:
    return predictiveness_value * consensus_value * recency_value * pass_penalty_value


def cold_start_weight(
    vote_boost_value: float,
    recency_value: float,
    pass_penalty_value: float,
) -> float:
    return vote_boost_value * recency_value * pass_penalty_value
