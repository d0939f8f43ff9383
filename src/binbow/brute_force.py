"""
Brute-force word assignment baseline.

Compares every descriptor against every word centroid instead of descending
the tree, to measure how often greedy descent lands on the truly nearest word.
"""
import time

import numpy as np

from binbow.descriptors import as_descriptors, hamming_matrix


def brute_force_words(vocabulary, descriptors) -> np.ndarray:
    """Nearest word by exhaustive Hamming search (ties: lowest word id)."""
    descriptors = as_descriptors(descriptors, stage="brute_force")
    if not len(descriptors):
        return np.empty(0, dtype=np.int64)
    return hamming_matrix(descriptors, vocabulary.leaf_centroids()).argmin(axis=1)


def evaluate_agreement(vocabulary, descriptors):
    """
    Compare greedy descent against exhaustive search on a descriptor set.

    A greedy word counts as a distance match when its centroid is as close
    as the exhaustive winner's, even if the word ids differ.
    """
    descriptors = as_descriptors(descriptors, stage="brute_force")
    centroids = vocabulary.leaf_centroids()

    start = time.time()
    greedy = vocabulary.route_many(descriptors)
    greedy_time = time.time() - start

    start = time.time()
    distances = hamming_matrix(descriptors, centroids)
    exhaustive = distances.argmin(axis=1)
    brute_time = time.time() - start

    n = len(descriptors)
    rows = np.arange(n)
    same_word = int((greedy == exhaustive).sum())
    same_distance = int((distances[rows, greedy] == distances[rows, exhaustive]).sum())
    return {
        "num_descriptors": n,
        "word_agreement": same_word / n if n else 0.0,
        "distance_agreement": same_distance / n if n else 0.0,
        "mean_extra_distance": float((distances[rows, greedy] - distances[rows, exhaustive]).mean()) if n else 0.0,
        "greedy_time_ms": greedy_time * 1000,
        "brute_time_ms": brute_time * 1000,
    }
