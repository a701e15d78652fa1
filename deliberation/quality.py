"""Eligibility floors and result quality

Hard floors (statements first, then voters) decide whether a poll can be
clustered at all. Soft thresholds only tag the result: a low-quality
landscape is still persisted, just labelled "low".
"""

from typing import Sequence

from config import get_logger, LandscapeSettings
from database.models import Eligibility, StatementClassification
from exceptions import InsufficientDataError

logger = get_logger(__name__).bind(component="quality_gate")


def check_eligibility(
    statement_count: int,
    voter_count: int,
    settings: LandscapeSettings,
) -> Eligibility:
    """Evaluate the hard floors from counts alone"""
    try:
        require_floors(statement_count, voter_count, settings)
    except InsufficientDataError as e:
        return Eligibility(
            eligible=False,
            voter_count=voter_count,
            statement_count=statement_count,
            reason=e.reason,
        )
    return Eligibility(eligible=True, voter_count=voter_count, statement_count=statement_count)


def require_floors(
    statement_count: int,
    voter_count: int,
    settings: LandscapeSettings,
    poll_id: str = None,
) -> None:
    """Raise InsufficientDataError for the first floor missed"""
    if statement_count < settings.min_statements:
        raise InsufficientDataError(
            "statements", settings.min_statements, statement_count, poll_id=poll_id
        )
    if voter_count < settings.min_voters:
        raise InsufficientDataError("users", settings.min_voters, voter_count, poll_id=poll_id)


def quality_tier(
    variance_explained: float,
    silhouette: float,
    settings: LandscapeSettings,
) -> str:
    """high when both measures are high, medium when both are at least medium"""
    if variance_explained >= settings.variance_high and silhouette >= settings.silhouette_high:
        return "high"
    if variance_explained >= settings.variance_medium and silhouette >= settings.silhouette_medium:
        return "medium"
    return "low"


def consensus_level(classifications: Sequence[StatementClassification]) -> str:
    """high when half the statements are consensus, medium from 30%"""
    if not classifications:
        return "low"
    share = sum(1 for c in classifications if c.is_consensus) / len(classifications)
    if share >= 0.5:
        return "high"
    if share >= 0.3:
        return "medium"
    return "low"
