"""Opinion matrix construction

Turns approved statements plus raw votes into a voters x statements matrix.
Agree is +1, disagree is -1, pass and unvoted are both NaN: a pass is an
abstention, not a neutral position, so it must not pull a voter toward 0
during imputation.

No statistics happen here. Per-voter and per-statement tallies are counted
from the raw votes (passes included) for VoterPosition rows and cold-start
weighting.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

import numpy as np

from config import get_logger
from database.models import Statement, Vote, VOTE_AGREE, VOTE_DISAGREE

logger = get_logger(__name__).bind(component="opinion_matrix")


@dataclass
class VoteTally:
    agree: int = 0
    disagree: int = 0
    passed: int = 0

    @property
    def total(self) -> int:
        return self.agree + self.disagree + self.passed

    @property
    def pass_rate(self) -> float:
        return self.passed / self.total if self.total else 0.0

    def add(self, value: int) -> None:
        if value == VOTE_AGREE:
            self.agree += 1
        elif value == VOTE_DISAGREE:
            self.disagree += 1
        else:
            self.passed += 1


@dataclass
class OpinionMatrix:
    """Sparse vote matrix with row/column identities

    values[i, j] is +1, -1 or NaN for voter_ids[i] on statement_ids[j].
    """

    voter_ids: List[str]
    statement_ids: List[str]
    values: np.ndarray
    voter_tallies: Dict[str, VoteTally] = field(default_factory=dict)
    statement_tallies: Dict[str, VoteTally] = field(default_factory=dict)

    @property
    def shape(self):
        return self.values.shape

    @property
    def voter_count(self) -> int:
        return len(self.voter_ids)

    @property
    def statement_count(self) -> int:
        return len(self.statement_ids)

    def statement_column(self, statement_id: str) -> np.ndarray:
        return self.values[:, self.statement_ids.index(statement_id)]


def order_statements_by_creation(statements: Iterable[Statement]) -> List[Statement]:
    """Creation order, ties broken by id"""
    return sorted(statements, key=lambda s: (s.created_at, s.id))


def build_opinion_matrix(
    statements: Sequence[Statement],
    votes: Iterable[Vote],
) -> OpinionMatrix:
    """Build the opinion matrix for one poll.

    Args:
        statements: Approved statements (any order)
        votes: Votes on those statements; votes on other statements are ignored

    Returns:
        OpinionMatrix with one row per voter who cast at least one vote
        (pass counts) on an approved statement. Rows sorted by voter id.
    """
    ordered = order_statements_by_creation(statements)
    statement_ids = [s.id for s in ordered]
    column_of = {sid: j for j, sid in enumerate(statement_ids)}

    voter_tallies: Dict[str, VoteTally] = {}
    statement_tallies: Dict[str, VoteTally] = {sid: VoteTally() for sid in statement_ids}
    cells: Dict[str, Dict[int, int]] = {}
    ignored = 0

    for vote in votes:
        column = column_of.get(vote.statement_id)
        if column is None:
            ignored += 1
            continue

        voter_tallies.setdefault(vote.voter_id, VoteTally()).add(vote.value)
        statement_tallies[vote.statement_id].add(vote.value)

        row = cells.setdefault(vote.voter_id, {})
        if vote.value in (VOTE_AGREE, VOTE_DISAGREE):
            row[column] = vote.value

    voter_ids = sorted(voter_tallies)
    values = np.full((len(voter_ids), len(statement_ids)), np.nan)
    for i, voter_id in enumerate(voter_ids):
        for column, value in cells.get(voter_id, {}).items():
            values[i, column] = value

    if ignored:
        logger.debug("ignored votes on unapproved statements", count=ignored)

    return OpinionMatrix(
        voter_ids=voter_ids,
        statement_ids=statement_ids,
        values=values,
        voter_tallies=voter_tallies,
        statement_tallies=statement_tallies,
    )
