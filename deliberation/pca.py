"""Dimensionality reduction for the opinion map

1. Column means from present votes (a column nobody voted on gets 0.0)
2. Impute missing cells with the column mean
3. Centre and decompose (no scaling, votes are already on one scale)
4. Project voters to 2-D

Degenerate matrices (identical rows, zero-variance columns, a single
statement) collapse to the origin with 0.0 variance explained instead of
raising; only non-finite output is treated as a failure.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from sklearn.decomposition import PCA

from config import get_logger
from exceptions import NumericalFailureError, ValidationError

logger = get_logger(__name__).bind(component="pca")

# Below this total variance the data is treated as a single point
ZERO_VARIANCE_EPSILON = 1e-12


@dataclass
class PCAResult:
    """Basis plus voter coordinates

    components has shape (n_components, n_statements), coordinates
    (n_voters, n_components). mean_vector doubles as the imputation vector.
    """

    coordinates: np.ndarray
    components: np.ndarray
    component_variance: np.ndarray
    mean_vector: np.ndarray

    @property
    def variance_explained(self) -> float:
        """Share of total variance captured by the first two components"""
        total = float(np.sum(self.component_variance[:2]))
        return min(max(total, 0.0), 1.0)


def column_means(values: np.ndarray) -> np.ndarray:
    """Mean of present (non-NaN) cells per column, 0.0 for empty columns"""
    present = ~np.isnan(values)
    counts = present.sum(axis=0)
    sums = np.where(present, values, 0.0).sum(axis=0)
    means = np.zeros(values.shape[1])
    np.divide(sums, counts, out=means, where=counts > 0)
    return means


def impute_missing_votes(values: np.ndarray, means: Optional[np.ndarray] = None) -> np.ndarray:
    """Replace NaN cells with column means"""
    if means is None:
        means = column_means(values)
    return np.where(np.isnan(values), means[np.newaxis, :], values)


def compute_pca(
    values: np.ndarray,
    n_components: int = 2,
    poll_id: Optional[str] = None,
) -> PCAResult:
    """Reduce an N x M vote matrix (NaN = missing) to n_components dimensions.

    Args:
        values: Vote matrix, cells in {-1, +1, NaN}
        n_components: Output dimensionality (padded with zeros if rank is lower)
        poll_id: For error context only

    Returns:
        PCAResult

    Raises:
        NumericalFailureError: Empty matrix or non-finite output
    """
    n_voters, n_statements = values.shape
    if n_voters == 0 or n_statements == 0:
        raise NumericalFailureError(
            "cannot reduce an empty matrix",
            stage="pca",
            poll_id=poll_id,
            matrix_shape=(n_voters, n_statements),
        )

    means = column_means(values)
    imputed = impute_missing_votes(values, means)

    coordinates = np.zeros((n_voters, n_components))
    components = np.zeros((n_components, n_statements))
    component_variance = np.zeros(n_components)

    total_variance = float(np.var(imputed, axis=0).sum())
    if total_variance <= ZERO_VARIANCE_EPSILON:
        # Everyone sits on the same point
        logger.warning(
            "zero variance matrix, voters collapse to origin",
            poll_id=poll_id,
            voters=n_voters,
            statements=n_statements,
        )
        return PCAResult(coordinates, components, component_variance, means)

    k = min(n_components, n_voters, n_statements)
    pca = PCA(n_components=k, svd_solver="full")
    projected = pca.fit_transform(imputed)

    coordinates[:, :k] = projected
    components[:k] = pca.components_
    component_variance[:k] = np.clip(pca.explained_variance_ratio_, 0.0, 1.0)

    if not (
        np.all(np.isfinite(coordinates))
        and np.all(np.isfinite(components))
        and np.all(np.isfinite(component_variance))
    ):
        raise NumericalFailureError(
            "PCA produced non-finite values",
            stage="pca",
            poll_id=poll_id,
            matrix_shape=(n_voters, n_statements),
        )

    result = PCAResult(coordinates, components, component_variance, means)
    logger.debug(
        "computed pca",
        poll_id=poll_id,
        voters=n_voters,
        statements=n_statements,
        variance_explained=round(result.variance_explained, 4),
    )
    return result


def project_voter(votes: Sequence[Optional[float]], basis: PCAResult) -> np.ndarray:
    """Project one voter's vote vector into an existing basis.

    Missing votes (None or NaN) are imputed with the basis mean, which
    centres them to zero.
    """
    vector = np.array([np.nan if v is None else float(v) for v in votes])
    if vector.shape[0] != basis.mean_vector.shape[0]:
        raise ValidationError(
            f"vote vector has {vector.shape[0]} entries, basis has {basis.mean_vector.shape[0]}",
            field="votes",
        )
    imputed = np.where(np.isnan(vector), basis.mean_vector, vector)
    return basis.components @ (imputed - basis.mean_vector)
