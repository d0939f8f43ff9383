"""
Similarity between BoW vectors.

Both scores live in [0, 1], reach 1 exactly when the two vectors are equal
and are symmetric in their arguments:

    l1:  1 - 0.5 * sum_i |a_i - b_i|          (for L1-normalized vectors)
    l2:  1 - ||a - b||_2 / sqrt(2)            (for L2-normalized vectors)

Sums run over the union of the two vectors' words, a missing word counting
as weight 0.
"""
from enum import Enum
from typing import List, Tuple

import numpy as np

from binbow.errors import InvalidConfiguration


class Scoring(str, Enum):
    L1 = "l1"
    L2 = "l2"


def _aligned(a, b):
    """Dense weight arrays of a and b over the union of their word ids."""
    union = np.union1d(a.word_ids, b.word_ids)
    dense_a = np.zeros(len(union))
    dense_b = np.zeros(len(union))
    dense_a[np.searchsorted(union, a.word_ids)] = a.weights
    dense_b[np.searchsorted(union, b.word_ids)] = b.weights
    return dense_a, dense_b


def score(a, b, method=None) -> float:
    """
    Similarity of two BoW vectors sharing the same normalization.

    Args:
        a, b: BowVector
        method: Scoring (or its string value); defaults to the vectors' norm

    Returns:
        Score in [0, 1]; 0.0 when either vector is empty
    """
    if a.norm != b.norm:
        raise InvalidConfiguration(
            f"Cannot compare {a.norm.value}- and {b.norm.value}-normalized vectors", stage="score"
        )
    method = Scoring(method or a.norm.value)
    if a.is_empty or b.is_empty:
        return 0.0

    dense_a, dense_b = _aligned(a, b)
    diff = dense_a - dense_b
    if method is Scoring.L1:
        value = 1.0 - 0.5 * np.abs(diff).sum()
    else:
        value = 1.0 - np.sqrt(np.dot(diff, diff)) / np.sqrt(2.0)
    return float(min(1.0, max(0.0, value)))


def rank(query, candidates, method=None, top_k=None) -> List[Tuple[int, float]]:
    """
    Score a query against every candidate.

    Returns:
        (candidate_index, score) pairs, highest score first; candidates with
        equal scores keep their original order
    """
    similarities = [(index, score(query, candidate, method))
                    for index, candidate in enumerate(candidates)]
    similarities.sort(key=lambda x: x[1], reverse=True)
    return similarities[:top_k] if top_k is not None else similarities
