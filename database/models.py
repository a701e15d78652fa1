"""
Database Models for the opinion landscape

Pydantic dataclasses with runtime validation for core entities.
Vote matrices and PCA/k-means intermediates stay as numpy arrays inside
deliberation/; everything here is plain lists and scalars so it can go
straight into JSONB and API responses.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional
from datetime import datetime
from dataclasses import asdict

from pydantic import field_validator
from pydantic.dataclasses import dataclass


VOTE_AGREE = 1
VOTE_DISAGREE = -1
VOTE_PASS = 0

ClassificationType = Literal[
    "positive_consensus", "negative_consensus", "divisive", "bridge", "normal"
]
ClassificationPattern = Literal[
    "full_consensus", "partial_consensus", "split", "bridge", "none"
]
QualityTier = Literal["high", "medium", "low"]
ConsensusLevel = Literal["high", "medium", "low"]
WeightMode = Literal["clustering", "cold_start"]

CONSENSUS_TYPES = ("positive_consensus", "negative_consensus")


class OrderMode(str, Enum):
    """Statement presentation strategies"""

    SEQUENTIAL = "sequential"
    RANDOM = "random"
    WEIGHTED = "weighted"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# --- Inputs from the vote store ---


@dataclass
class Statement:
    """Approved statement of a poll"""

    id: str
    poll_id: str
    created_at: datetime
    text: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = _iso(self.created_at)
        return data


@dataclass
class Vote:
    """Single immutable vote, unique per (voter, statement)"""

    voter_id: str
    statement_id: str
    value: int

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: int) -> int:
        if v not in (VOTE_AGREE, VOTE_DISAGREE, VOTE_PASS):
            raise ValueError(f"vote value must be -1, 0 or 1, got {v}")
        return v


@dataclass
class PollConfig:
    """Per-poll presentation settings"""

    order_mode: OrderMode = OrderMode.SEQUENTIAL
    random_seed: Optional[str] = None


@dataclass
class VoterAttribute:
    """Demographic attribute value for one voter (heatmap input)"""

    voter_id: str
    category: str


@dataclass
class Eligibility:
    """Result of the cheap count-only eligibility check"""

    eligible: bool
    voter_count: int
    statement_count: int
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# --- Persisted landscape ---


@dataclass
class CoarseGroup:
    """Opinion group formed by merging fine k-means clusters"""

    id: int
    label: str
    centroid: List[float]
    fine_cluster_ids: List[int]
    voter_count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LandscapeMetadata:
    """One row per poll, wholly replaced on recomputation"""

    poll_id: str
    components: List[List[float]]
    component_variance: List[float]
    mean_vector: List[float]
    fine_centroids: List[List[float]]
    fine_k: int
    coarse_groups: List[CoarseGroup]
    silhouette_score: float
    variance_explained: float
    quality_tier: QualityTier
    consensus_level: ConsensusLevel
    voter_count: int
    statement_count: int
    statement_ids: List[str]
    computed_at: Optional[datetime] = None

    @property
    def group_count(self) -> int:
        return len(self.coarse_groups)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["computed_at"] = _iso(self.computed_at)
        data["group_count"] = self.group_count
        return data


@dataclass
class VoterPosition:
    """Voter coordinates and group assignment"""

    poll_id: str
    voter_id: str
    pc1: float
    pc2: float
    fine_cluster_id: int
    coarse_group_id: int
    agree_count: int = 0
    disagree_count: int = 0
    pass_count: int = 0
    total_votes: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StatementClassification:
    """Per-statement verdict with per-group agreement scores (0..1)"""

    poll_id: str
    statement_id: str
    classification_type: ClassificationType
    pattern: ClassificationPattern
    group_agreements: Dict[int, float]
    group_vote_counts: Dict[int, int]
    average_agreement: float
    standard_deviation: float
    bridge_score: Optional[float] = None
    connects_groups: Optional[List[int]] = None

    @property
    def is_consensus(self) -> bool:
        return self.classification_type in CONSENSUS_TYPES

    def group_percentages(self) -> Dict[int, int]:
        """Display percentages in [-100, 100] per group"""
        return {
            group_id: round((score - 0.5) * 200)
            for group_id, score in self.group_agreements.items()
        }

    def to_dict(self) -> dict:
        data = asdict(self)
        data["group_percentages"] = self.group_percentages()
        return data


@dataclass
class StatementWeight:
    """Cached ordering weight for one statement"""

    poll_id: str
    statement_id: str
    predictiveness: float
    consensus_potential: float
    recency_boost: float
    pass_rate_penalty: float
    combined_weight: float
    mode: WeightMode
    vote_count_boost: Optional[float] = None
    agree_count: int = 0
    disagree_count: int = 0
    pass_count: int = 0
    calculated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["calculated_at"] = _iso(self.calculated_at)
        return data
