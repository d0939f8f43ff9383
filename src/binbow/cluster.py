import logging
from typing import List, NamedTuple

import numpy as np

from binbow.config import INIT_METHODS
from binbow.descriptors import hamming_matrix, majority_centroid
from binbow.errors import EmptyInput, InvalidConfiguration

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITER = 100
DEFAULT_N_INIT = 1


class Cluster(NamedTuple):
    centroid: np.ndarray  # (32,) uint8 majority vector of the members
    members: np.ndarray  # row indices into the clustered descriptor set


def cluster_step(descriptors, k, rng, max_iter=DEFAULT_MAX_ITER, n_init=DEFAULT_N_INIT,
                 init="random") -> List[Cluster]:
    """
    Split a descriptor set into at most k clusters with binary k-means.

    Centroids are seeded from k distinct descriptor patterns sampled without
    replacement (uniformly by default, or D^2-weighted for "kmeans++"), then
    assignment to the nearest centroid and majority-vote updates alternate until no
    descriptor changes cluster or ``max_iter`` is reached. With ``n_init`` > 1
    the whole run is repeated and the lowest-distortion result is kept.

    Args:
        descriptors: Validated (N, 32) uint8 array, N > 0
        k: Maximum number of clusters (>= 2)
        rng: np.random.Generator supplying all randomness
        max_iter: Iteration cap per run
        n_init: Number of independently seeded runs
        init: "random" or "kmeans++"

    Returns:
        List of 1..k non-empty clusters. Together their members partition
        range(N).
    """
    if len(descriptors) == 0:
        raise EmptyInput("Cannot cluster an empty descriptor set", stage="cluster")
    if k < 2:
        raise InvalidConfiguration(f"Branching factor must be >= 2, got {k}", stage="cluster")
    if init not in INIT_METHODS:
        raise InvalidConfiguration(f"Unknown init method {init!r}", stage="cluster")

    distinct = np.unique(descriptors, axis=0)

    # Too few distinct patterns to split further: one cluster per pattern
    if len(distinct) <= k:
        assignments = hamming_matrix(descriptors, distinct).argmin(axis=1)
        return _collect(distinct, assignments)

    best = None
    for _ in range(n_init):
        centroids = _seed_centroids(distinct, k, rng, init)
        centroids, assignments, distortion = _lloyd(descriptors, centroids, max_iter)
        if best is None or distortion < best[2]:
            best = (centroids, assignments, distortion)

    centroids, assignments, _ = best
    return _collect(centroids, assignments)


def _seed_centroids(distinct, k, rng, init):
    if init == "random":
        return distinct[rng.choice(len(distinct), size=k, replace=False)].copy()

    chosen = [int(rng.integers(len(distinct)))]
    closest = hamming_matrix(distinct, distinct[chosen])[:, 0]
    for _ in range(1, k):
        # Already chosen patterns have distance 0, so they are never drawn twice
        weights = closest.astype(np.float64) ** 2
        nxt = int(rng.choice(len(distinct), p=weights / weights.sum()))
        chosen.append(nxt)
        closest = np.minimum(closest, hamming_matrix(distinct, distinct[nxt:nxt + 1])[:, 0])
    return distinct[chosen].copy()


def _lloyd(descriptors, centroids, max_iter):
    assignments = None
    for _ in range(max_iter):
        distances = hamming_matrix(descriptors, centroids)
        new_assignments = distances.argmin(axis=1)
        if assignments is not None and np.array_equal(new_assignments, assignments):
            break
        assignments = new_assignments
        centroids = _update_centroids(descriptors, assignments, centroids)
    else:
        logger.debug("Cluster step stopped at the iteration cap (%d) before converging", max_iter)
        distances = hamming_matrix(descriptors, centroids)

    distortion = int(distances[np.arange(len(descriptors)), assignments].sum())
    return centroids, assignments, distortion


def _update_centroids(descriptors, assignments, centroids):
    updated = centroids.copy()
    for j in range(len(centroids)):
        members = descriptors[assignments == j]
        # An emptied cluster keeps its previous centroid
        if len(members):
            updated[j] = majority_centroid(members)
    return updated


def _collect(centroids, assignments):
    clusters = []
    for j in range(len(centroids)):
        members = np.flatnonzero(assignments == j)
        if len(members):
            clusters.append(Cluster(centroids[j].copy(), members))
    return clusters
