"""Fine clustering and coarse opinion groups

Fine k-means runs on the 2-D PCA coordinates with K from a menu keyed by
voter count. Fine clusters are then merged bottom-up (nearest centroids
first, voter-weighted) into a handful of coarse opinion groups that the
classifier and UI work with.

K menu:
    < 50 voters  -> 20
    < 100 voters -> 50
    otherwise    -> 100
capped at half the voter count (min 2) and at the number of distinct points.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
from sklearn.cluster import KMeans
from sklearn.metrics import silhouette_samples

from config import get_logger, LandscapeSettings
from database.models import CoarseGroup
from exceptions import NumericalFailureError

logger = get_logger(__name__).bind(component="kmeans")

# Voter counts at which the next menu entry applies
FINE_K_THRESHOLDS = (50, 100)


@dataclass
class FineClustering:
    labels: np.ndarray
    centroids: np.ndarray
    k: int
    silhouette: float


@dataclass
class CoarseGrouping:
    groups: List[CoarseGroup]
    voter_labels: np.ndarray
    fine_to_coarse: dict
    silhouette: float


def determine_fine_k(n_voters: int, menu: Sequence[int] = (20, 50, 100)) -> int:
    """Pick fine K from the menu, then cap it to what the data supports"""
    index = sum(1 for threshold in FINE_K_THRESHOLDS if n_voters >= threshold)
    k = menu[min(index, len(menu) - 1)]
    return min(k, max(2, n_voters // 2))


def count_distinct_points(coordinates: np.ndarray) -> int:
    return len(np.unique(np.round(coordinates, 9), axis=0))


def compute_silhouette(coordinates: np.ndarray, labels: np.ndarray) -> float:
    """Mean silhouette over voters in non-singleton clusters.

    0.0 when there are fewer than two clusters or every voter is alone.
    """
    n = len(labels)
    unique, counts = np.unique(labels, return_counts=True)
    if len(unique) < 2 or len(unique) >= n:
        return 0.0

    samples = silhouette_samples(coordinates, labels)
    size_of = dict(zip(unique.tolist(), counts.tolist()))
    keep = np.array([size_of[label] > 1 for label in labels.tolist()])
    if not keep.any():
        return 0.0

    score = float(np.mean(samples[keep]))
    if not np.isfinite(score):
        return 0.0
    return min(max(score, -1.0), 1.0)


def fine_cluster(
    coordinates: np.ndarray,
    settings: LandscapeSettings,
    k: Optional[int] = None,
    poll_id: Optional[str] = None,
) -> FineClustering:
    """Run k-means on voter coordinates.

    Raises:
        NumericalFailureError: k-means returned non-finite centroids
    """
    n_voters = coordinates.shape[0]
    if k is None:
        k = determine_fine_k(n_voters, settings.fine_k_menu)

    distinct = count_distinct_points(coordinates)
    k = min(k, distinct)

    if k < 2:
        # All voters on one point
        centroid = coordinates.mean(axis=0, keepdims=True)
        return FineClustering(
            labels=np.zeros(n_voters, dtype=int),
            centroids=centroid,
            k=1,
            silhouette=0.0,
        )

    kmeans = KMeans(
        n_clusters=k,
        init="k-means++",
        n_init=settings.kmeans_n_init,
        max_iter=settings.kmeans_max_iter,
        random_state=settings.random_state,
    )
    labels = kmeans.fit_predict(coordinates)
    centroids = kmeans.cluster_centers_

    if not np.all(np.isfinite(centroids)):
        raise NumericalFailureError(
            "k-means produced non-finite centroids",
            stage="kmeans",
            poll_id=poll_id,
            matrix_shape=coordinates.shape,
        )

    silhouette = compute_silhouette(coordinates, labels)
    logger.debug(
        "computed fine clusters",
        poll_id=poll_id,
        voters=n_voters,
        k=k,
        silhouette=round(silhouette, 4),
    )
    return FineClustering(labels=labels, centroids=centroids, k=k, silhouette=silhouette)


def _merge_levels(centroids: np.ndarray, counts: np.ndarray, fine_ids: List[int], stop_at: int):
    """Yield partitions from len(fine_ids) clusters down to stop_at.

    Each partition is a list of (fine_ids, centroid, voter_count). The two
    nearest centroids merge into their voter-weighted mean.
    """
    clusters = [
        ([fid], centroids[fid].astype(float), int(counts[fid]))
        for fid in fine_ids
    ]
    yield list(clusters)

    while len(clusters) > stop_at:
        points = np.array([c[1] for c in clusters])
        diffs = points[:, np.newaxis, :] - points[np.newaxis, :, :]
        distances = np.sqrt((diffs ** 2).sum(axis=2))
        np.fill_diagonal(distances, np.inf)
        a, b = np.unravel_index(int(np.argmin(distances)), distances.shape)
        a, b = min(a, b), max(a, b)

        ids_a, centroid_a, count_a = clusters[a]
        ids_b, centroid_b, count_b = clusters[b]
        total = count_a + count_b
        merged_centroid = (centroid_a * count_a + centroid_b * count_b) / total
        clusters[a] = (sorted(ids_a + ids_b), merged_centroid, total)
        del clusters[b]
        yield list(clusters)


def _voter_labels(fine_labels: np.ndarray, partition) -> np.ndarray:
    mapping = {}
    for index, (ids, _, _) in enumerate(partition):
        for fid in ids:
            mapping[fid] = index
    return np.array([mapping[int(label)] for label in fine_labels], dtype=int)


def build_coarse_groups(
    coordinates: np.ndarray,
    fine: FineClustering,
    settings: LandscapeSettings,
) -> CoarseGrouping:
    """Merge fine clusters into at most settings.coarse_max_groups groups.

    With coarse_target_groups set, merging stops at that count. Otherwise
    every level in 2..max is scored by voter-level silhouette and the best
    one is kept (ties go to fewer groups).
    """
    fine_ids, counts = np.unique(fine.labels, return_counts=True)
    voter_counts = np.zeros(len(fine.centroids), dtype=int)
    voter_counts[fine_ids] = counts
    occupied = [int(fid) for fid in fine_ids]

    target = settings.coarse_target_groups
    floor = min(target if target else 2, len(occupied))
    ceiling = min(settings.coarse_max_groups, len(occupied))

    best_partition = None
    best_score = -np.inf
    for partition in _merge_levels(fine.centroids, voter_counts, occupied, stop_at=floor):
        if len(partition) > ceiling:
            continue
        if target:
            if len(partition) == floor:
                best_partition = partition
            continue
        score = compute_silhouette(coordinates, _voter_labels(fine.labels, partition))
        # Levels arrive from most to fewest groups, so >= favours fewer groups on ties
        if score >= best_score:
            best_score = score
            best_partition = partition

    # Largest group first
    ordered = sorted(best_partition, key=lambda c: (-c[2], c[0][0]))
    groups = []
    fine_to_coarse = {}
    for group_id, (ids, centroid, count) in enumerate(ordered):
        groups.append(
            CoarseGroup(
                id=group_id,
                label=settings.group_label_template.format(n=group_id + 1),
                centroid=[float(x) for x in centroid],
                fine_cluster_ids=list(ids),
                voter_count=count,
            )
        )
        for fid in ids:
            fine_to_coarse[fid] = group_id

    voter_labels = np.array([fine_to_coarse[int(label)] for label in fine.labels], dtype=int)
    silhouette = compute_silhouette(coordinates, voter_labels)

    logger.debug(
        "built coarse groups",
        fine_k=fine.k,
        groups=len(groups),
        silhouette=round(silhouette, 4),
    )
    return CoarseGrouping(
        groups=groups,
        voter_labels=voter_labels,
        fine_to_coarse=fine_to_coarse,
        silhouette=silhouette,
    )


def assign_to_nearest_cluster(point: Sequence[float], centroids: Sequence[Sequence[float]]) -> int:
    """Index of the centroid closest to point (first wins on ties)"""
    centres = np.asarray(centroids, dtype=float)
    if centres.size == 0:
        raise ValueError("no centroids to assign to")
    distances = np.linalg.norm(centres - np.asarray(point, dtype=float), axis=1)
    return int(np.argmin(distances))
