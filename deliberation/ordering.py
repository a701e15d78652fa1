"""Statement presentation order

Three modes, one dispatch function:
- sequential: as given (creation order)
- random: seeded Fisher-Yates, stable per (voter, poll, seed)
- weighted: seeded weighted sampling without replacement, heavier
  statements tend to come first

Weighted ordering never fails the request: any error drops to random.
"""

import math
from bisect import bisect_right
from dataclasses import dataclass
from itertools import accumulate
from statistics import median
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, TypeVar

from config import get_logger
from database.models import OrderMode, PollConfig
from deliberation.seeded_random import SeededRandom, derive_seed
from exceptions import ValidationError
from pipeline.protocols.metrics import MetricsCollector, NullMetrics

logger = get_logger(__name__).bind(component="statement_ordering")

MIN_WEIGHT = 1e-6


class HasId(Protocol):
    id: str


S = TypeVar("S", bound=HasId)


@dataclass
class OrderingContext:
    voter_id: str
    poll_id: str
    poll_config: PollConfig

    def rng(self) -> SeededRandom:
        return SeededRandom(
            derive_seed(self.voter_id, self.poll_id, self.poll_config.random_seed)
        )


def sequential_order(statements: Sequence[S]) -> List[S]:
    return list(statements)


def random_order(statements: Sequence[S], context: OrderingContext) -> List[S]:
    return context.rng().shuffle(statements)


def _resolve_weights(statements: Sequence[S], weights: Mapping[str, float]) -> List[float]:
    """Weights per statement; missing -> median of known, non-positive -> epsilon"""
    known = [w for w in (weights.get(s.id) for s in statements) if w is not None and not math.isnan(w)]
    fill = median(known) if known else 1.0

    resolved = []
    for statement in statements:
        weight = weights.get(statement.id)
        if weight is None:
            weight = fill
        if not weight > MIN_WEIGHT:  # also catches NaN
            weight = MIN_WEIGHT
        resolved.append(float(weight))
    return resolved


def weighted_order(
    statements: Sequence[S],
    context: OrderingContext,
    weights: Mapping[str, float],
) -> List[S]:
    """Draw statements one at a time with probability proportional to weight"""
    rng = context.rng()
    remaining = list(statements)
    remaining_weights = _resolve_weights(remaining, weights)
    ordered: List[S] = []

    while remaining:
        cumulative = list(accumulate(remaining_weights))
        target = rng.next() * cumulative[-1]
        index = min(bisect_right(cumulative, target), len(remaining) - 1)
        ordered.append(remaining.pop(index))
        remaining_weights.pop(index)

    return ordered


def order_statements(
    statements: Sequence[S],
    context: OrderingContext,
    weights: Optional[Mapping[str, float]] = None,
    metrics: Optional[MetricsCollector] = None,
) -> List[S]:
    """Order statements according to the poll's order mode.

    Args:
        statements: Candidate statements, in creation order
        context: Voter, poll and poll config
        weights: statement id -> combined weight (weighted mode only)
        metrics: Optional collector for fallback counts

    Returns:
        A permutation of statements
    """
    mode = OrderMode(context.poll_config.order_mode)

    if mode is OrderMode.SEQUENTIAL:
        return sequential_order(statements)

    if mode is OrderMode.RANDOM:
        return random_order(statements, context)

    if mode is OrderMode.WEIGHTED:
        try:
            if weights is None:
                raise ValidationError("weighted ordering requires weights", field="weights")
            return weighted_order(statements, context, weights)
        except Exception as e:
            logger.warning(
                "weighted ordering failed, falling back to random",
                poll_id=context.poll_id,
                voter_id=context.voter_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            (metrics or NullMetrics()).ordering_fallbacks.inc()
            return random_order(statements, context)

    raise ValidationError(f"unknown order mode: {mode}", field="order_mode", value=mode)


class StatementOrderingService:
    """Orders a voter's statements, fetching weights when the poll needs them

    Usage:
        service = StatementOrderingService(vote_store, weighting_service)
        batch = await service.get_statement_batch("poll_1", "voter_9", 10)
    """

    def __init__(self, vote_store, weighting_service, metrics: Optional[MetricsCollector] = None):
        self.votes = vote_store
        self.weighting = weighting_service
        self.metrics = metrics or NullMetrics()

    async def order_for_voter(self, statements: Sequence[S], voter_id: str, poll_id: str) -> List[S]:
        poll_config = await self.votes.get_poll_config(poll_id) or PollConfig()
        context = OrderingContext(voter_id=voter_id, poll_id=poll_id, poll_config=poll_config)

        weights: Optional[Dict[str, float]] = None
        if OrderMode(poll_config.order_mode) is OrderMode.WEIGHTED:
            try:
                computed = await self.weighting.get_statement_weights(
                    poll_id, [s.id for s in statements]
                )
                weights = {w.statement_id: w.combined_weight for w in computed}
            except Exception as e:
                # order_statements falls back to random when weights are None
                logger.warning(
                    "weight lookup failed for ordering",
                    poll_id=poll_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return order_statements(statements, context, weights, self.metrics)

    async def get_statement_batch(self, poll_id: str, voter_id: str, batch_size: int = 10) -> List[S]:
        """Next statements the voter has not voted on, in presentation order.

        The full approved set is ordered first and voted statements are
        filtered out afterwards, so a voter's order stays stable as they vote.
        """
        if batch_size <= 0:
            raise ValidationError("batch_size must be positive", field="batch_size", value=batch_size)

        statements = await self.votes.list_approved_statements(poll_id)
        ordered = await self.order_for_voter(statements, voter_id, poll_id)
        voted = set(await self.votes.list_voted_statement_ids(poll_id, voter_id))
        return [s for s in ordered if s.id not in voted][:batch_size]
