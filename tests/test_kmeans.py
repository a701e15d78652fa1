"""
Tests for fine k-means and coarse opinion groups
"""

from dataclasses import replace

import numpy as np
import pytest

from deliberation.kmeans import (
    assign_to_nearest_cluster,
    build_coarse_groups,
    compute_silhouette,
    count_distinct_points,
    determine_fine_k,
    fine_cluster,
)


def three_blobs(per_blob: int = 12, seed: int = 7) -> np.ndarray:
    rng = np.random.default_rng(seed)
    centres = np.array([[-5.0, 0.0], [5.0, 0.0], [0.0, 6.0]])
    return np.vstack([c + rng.normal(scale=0.3, size=(per_blob, 2)) for c in centres])


class TestDetermineFineK:
    """Menu value by voter count, capped by the data"""

    @pytest.mark.parametrize("voters,expected", [
        (20, 10),     # menu 20, capped at 20 // 2
        (49, 20),
        (50, 25),     # menu 50, capped at 25
        (99, 49),
        (100, 50),    # menu 100, capped at 50
        (400, 100),
    ])
    def test_menu_and_cap(self, voters, expected):
        assert determine_fine_k(voters) == expected

    def test_never_below_two(self):
        assert determine_fine_k(3) == 2

    def test_custom_menu(self):
        assert determine_fine_k(300, menu=(8, 12, 16)) == 16


class TestSilhouette:
    def test_single_cluster_is_zero(self):
        points = np.array([[0.0, 0.0], [1.0, 1.0]])
        assert compute_silhouette(points, np.array([0, 0])) == 0.0

    def test_all_singletons_is_zero(self):
        points = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]])
        assert compute_silhouette(points, np.array([0, 1, 2])) == 0.0

    def test_well_separated_clusters_score_high(self):
        points = np.array([[0.0, 0.0], [0.1, 0.0], [10.0, 0.0], [10.1, 0.0]])
        score = compute_silhouette(points, np.array([0, 0, 1, 1]))
        assert 0.9 < score <= 1.0


class TestFineCluster:
    def test_labels_and_centroids(self, settings):
        points = three_blobs()
        result = fine_cluster(points, settings)

        assert result.k == determine_fine_k(len(points), settings.fine_k_menu)
        assert result.labels.shape == (len(points),)
        assert result.centroids.shape == (result.k, 2)
        assert -1.0 <= result.silhouette <= 1.0

    def test_deterministic_with_fixed_seed(self, settings):
        points = three_blobs()
        first = fine_cluster(points, settings)
        second = fine_cluster(points, settings)
        assert np.array_equal(first.labels, second.labels)

    def test_k_capped_at_distinct_points(self, settings):
        points = np.array([[0.0, 0.0]] * 5 + [[1.0, 1.0]] * 5 + [[2.0, 0.0]] * 5)
        assert count_distinct_points(points) == 3
        result = fine_cluster(points, settings)
        assert result.k == 3

    def test_single_point_gives_one_cluster(self, settings):
        points = np.zeros((6, 2))
        result = fine_cluster(points, settings)
        assert result.k == 1
        assert set(result.labels.tolist()) == {0}
        assert result.silhouette == 0.0


class TestCoarseGroups:
    """Bottom-up merging of fine clusters"""

    def test_recovers_three_blobs(self, settings):
        points = three_blobs()
        fine = fine_cluster(points, settings)
        coarse = build_coarse_groups(points, fine, settings)

        assert len(coarse.groups) == 3
        assert sorted(g.voter_count for g in coarse.groups) == [12, 12, 12]
        for blob in range(3):
            labels = coarse.voter_labels[blob * 12:(blob + 1) * 12]
            assert len(set(labels.tolist())) == 1

    def test_groups_ordered_by_size_and_labelled(self, settings):
        rng = np.random.default_rng(3)
        big = rng.normal(loc=(-4, 0), scale=0.2, size=(20, 2))
        small = rng.normal(loc=(4, 0), scale=0.2, size=(8, 2))
        points = np.vstack([big, small])
        fine = fine_cluster(points, settings)
        coarse = build_coarse_groups(points, fine, settings)

        assert [g.id for g in coarse.groups] == list(range(len(coarse.groups)))
        assert coarse.groups[0].voter_count == 20
        assert coarse.groups[0].label == "Opinion Group 1"

    def test_every_voter_lands_in_a_listed_group(self, settings):
        points = three_blobs()
        fine = fine_cluster(points, settings)
        coarse = build_coarse_groups(points, fine, settings)
        group_ids = {g.id for g in coarse.groups}
        assert set(coarse.voter_labels.tolist()) <= group_ids
        assert sum(g.voter_count for g in coarse.groups) == len(points)

    def test_never_exceeds_max_groups(self, settings):
        rng = np.random.default_rng(11)
        points = rng.uniform(-10, 10, size=(60, 2))
        tight = replace(settings, coarse_max_groups=3)
        fine = fine_cluster(points, tight)
        coarse = build_coarse_groups(points, fine, tight)
        assert 2 <= len(coarse.groups) <= 3

    def test_target_group_count(self, settings):
        points = three_blobs()
        targeted = replace(settings, coarse_target_groups=2)
        fine = fine_cluster(points, targeted)
        coarse = build_coarse_groups(points, fine, targeted)
        assert len(coarse.groups) == 2

    def test_single_fine_cluster_gives_single_group(self, settings):
        points = np.zeros((5, 2))
        fine = fine_cluster(points, settings)
        coarse = build_coarse_groups(points, fine, settings)
        assert len(coarse.groups) == 1
        assert coarse.groups[0].voter_count == 5


class TestAssignToNearestCluster:
    def test_nearest_wins(self):
        centroids = [[0.0, 0.0], [10.0, 10.0]]
        assert assign_to_nearest_cluster([9.0, 8.0], centroids) == 1

    def test_tie_goes_to_first(self):
        assert assign_to_nearest_cluster([0.0, 0.0], [[1.0, 0.0], [-1.0, 0.0]]) == 0

    def test_no_centroids(self):
        with pytest.raises(ValueError):
            assign_to_nearest_cluster([0.0, 0.0], [])
