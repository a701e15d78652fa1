"""
Tests for PCA reduction and projection

Covers imputation, degenerate matrices and out-of-sample projection.
"""

import numpy as np
import pytest

from deliberation.pca import column_means, compute_pca, impute_missing_votes, project_voter
from exceptions import NumericalFailureError, ValidationError

nan = np.nan


class TestImputation:
    def test_column_means_ignore_missing(self):
        values = np.array([[1.0, nan], [-1.0, nan], [1.0, 1.0]])
        means = column_means(values)
        assert means[0] == pytest.approx(1 / 3)
        assert means[1] == 1.0

    def test_empty_column_mean_is_zero(self):
        values = np.array([[nan, 1.0], [nan, -1.0]])
        assert column_means(values)[0] == 0.0

    def test_missing_cells_take_column_mean(self):
        values = np.array([[1.0, nan], [1.0, -1.0]])
        imputed = impute_missing_votes(values)
        assert imputed[0, 1] == -1.0
        assert not np.isnan(imputed).any()


class TestComputePCA:
    """Shape, bounds and degenerate inputs"""

    def test_two_camps_separate_on_first_component(self):
        camp_a = [1, 1, 1, -1, -1]
        camp_b = [-1, -1, -1, 1, 1]
        values = np.array([camp_a] * 5 + [camp_b] * 5, dtype=float)
        result = compute_pca(values)

        assert result.coordinates.shape == (10, 2)
        assert result.components.shape == (2, 5)
        pc1 = result.coordinates[:, 0]
        assert np.sign(pc1[0]) != np.sign(pc1[-1])
        assert 0.0 <= result.variance_explained <= 1.0
        assert result.variance_explained == pytest.approx(1.0)

    def test_identical_voters_collapse_to_origin(self):
        """Zero variance is not an error"""
        values = np.array([[1.0, -1.0, 1.0]] * 4)
        result = compute_pca(values)
        assert np.all(result.coordinates == 0)
        assert result.variance_explained == 0.0

    def test_single_statement_padded_to_two_components(self):
        values = np.array([[1.0], [-1.0], [1.0]])
        result = compute_pca(values)
        assert result.coordinates.shape == (3, 2)
        assert np.all(result.coordinates[:, 1] == 0)
        assert 0.0 <= result.variance_explained <= 1.0

    def test_all_missing_matrix_collapses(self):
        values = np.full((3, 4), nan)
        result = compute_pca(values)
        assert np.all(result.coordinates == 0)

    def test_empty_matrix_raises(self):
        with pytest.raises(NumericalFailureError) as exc_info:
            compute_pca(np.empty((0, 3)), poll_id="p")
        assert exc_info.value.stage == "pca"
        assert exc_info.value.matrix_shape == (0, 3)


class TestProjectVoter:
    def test_projection_matches_fit_coordinates(self):
        values = np.array([
            [1, 1, -1, -1],
            [1, 1, -1, 1],
            [-1, -1, 1, 1],
            [-1, 1, 1, 1],
        ], dtype=float)
        basis = compute_pca(values)
        projected = project_voter(values[2].tolist(), basis)
        assert projected == pytest.approx(basis.coordinates[2], abs=1e-9)

    def test_missing_votes_sit_at_the_mean(self):
        values = np.array([[1, -1], [-1, 1], [1, 1]], dtype=float)
        basis = compute_pca(values)
        assert project_voter([None, None], basis) == pytest.approx([0.0, 0.0])

    def test_length_mismatch_rejected(self):
        basis = compute_pca(np.array([[1.0, -1.0], [-1.0, 1.0]]))
        with pytest.raises(ValidationError):
            project_voter([1, -1, 1], basis)
