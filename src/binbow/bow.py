"""
Bag-of-words vectors and the descriptor -> BoW transform.
"""
from enum import Enum
from typing import Dict, Iterator, List, Tuple

import numpy as np
from joblib import Parallel, delayed
from sklearn.preprocessing import normalize

from binbow.descriptors import as_descriptors


class Norm(str, Enum):
    L1 = "l1"
    L2 = "l2"


class BowVector:
    """
    Sparse weighted word histogram of one image.

    Word ids are kept in ascending order; weights are non-negative. All
    vectors compared with each other must share the same Norm.
    """

    __slots__ = ("_word_ids", "_weights", "_norm")

    def __init__(self, word_ids, weights, norm=Norm.L2):
        word_ids = np.asarray(word_ids, dtype=np.int64).reshape(-1)
        weights = np.asarray(weights, dtype=np.float64).reshape(-1)
        if len(word_ids) != len(weights):
            raise ValueError(f"Got {len(word_ids)} word ids but {len(weights)} weights")
        if len(word_ids) and word_ids.min() < 0:
            raise ValueError("Word ids must be non-negative")
        if np.any(weights < 0) or not np.all(np.isfinite(weights)):
            raise ValueError("Weights must be finite and non-negative")

        order = np.argsort(word_ids, kind="stable")
        word_ids = word_ids[order]
        weights = weights[order]
        if np.any(np.diff(word_ids) == 0):
            raise ValueError("Word ids must be unique")

        word_ids.flags.writeable = False
        weights.flags.writeable = False
        self._word_ids = word_ids
        self._weights = weights
        self._norm = Norm(norm)

    @classmethod
    def empty(cls, norm=Norm.L2):
        return cls(np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64), norm)

    @property
    def word_ids(self):
        return self._word_ids

    @property
    def weights(self):
        return self._weights

    @property
    def norm(self):
        return self._norm

    @property
    def is_empty(self):
        return len(self._word_ids) == 0

    def get(self, word_id, default=0.0) -> float:
        pos = np.searchsorted(self._word_ids, word_id)
        if pos < len(self._word_ids) and self._word_ids[pos] == word_id:
            return float(self._weights[pos])
        return default

    def to_dict(self) -> Dict[int, float]:
        return dict(self)

    def __len__(self):
        return len(self._word_ids)

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        return ((int(w), float(v)) for w, v in zip(self._word_ids, self._weights))

    def __contains__(self, word_id):
        pos = np.searchsorted(self._word_ids, word_id)
        return bool(pos < len(self._word_ids) and self._word_ids[pos] == word_id)

    def __eq__(self, other):
        if not isinstance(other, BowVector):
            return NotImplemented
        return (self._norm == other._norm
                and np.array_equal(self._word_ids, other._word_ids)
                and np.array_equal(self._weights, other._weights))

    __hash__ = None

    def __repr__(self):
        shown = ", ".join(f"{w}: {v:.4f}" for w, v in list(self)[:5])
        more = ", ..." if len(self) > 5 else ""
        return f"BowVector({{{shown}{more}}}, norm={self._norm.value!r})"


def _weigh(vocabulary, words, norm):
    """Histogram of routed word ids -> weighted, normalized BowVector."""
    if not len(words):
        return BowVector.empty(norm)

    word_ids, counts = np.unique(words, return_counts=True)
    if vocabulary.weighting.uses_counts:
        values = counts.astype(np.float64)
    else:
        values = np.ones(len(word_ids), dtype=np.float64)
    values *= vocabulary.word_weights[word_ids]

    # Zero-weight words never contribute to a score
    keep = values > 0
    word_ids, values = word_ids[keep], values[keep]
    if not len(values):
        return BowVector.empty(norm)
    values = normalize(values.reshape(1, -1), norm=norm.value)[0]
    return BowVector(word_ids, values, norm)


def transform(vocabulary, descriptors, norm=Norm.L2) -> BowVector:
    """
    Transform one image's descriptor set into its BoW vector.

    Every descriptor is routed to a word independently; word counts are
    weighted with the vocabulary's weighting scheme and the result is
    normalized (L2 by default). An empty descriptor set gives an empty vector.
    """
    norm = Norm(norm)
    descriptors = as_descriptors(descriptors, stage="transform")
    return _weigh(vocabulary, vocabulary.route_many(descriptors), norm)


def transform_with_direct_index(vocabulary, descriptors, norm=Norm.L2) \
        -> Tuple[BowVector, List[Tuple[int, ...]]]:
    """
    Like transform(), also returning the direct index.

    ``direct_index[i]`` holds the arena indices of the nodes descriptor i
    passed through below the root, ending at its word's leaf node.
    """
    norm = Norm(norm)
    descriptors = as_descriptors(descriptors, stage="transform")
    paths = [vocabulary.route_path(d)[1:] for d in descriptors]
    words = np.array([vocabulary.node(p[-1] if p else vocabulary.root).word_id for p in paths],
                     dtype=np.int64)
    return _weigh(vocabulary, words, norm), paths


def transform_many(vocabulary, descriptor_sets, norm=Norm.L2, n_jobs=1) -> List[BowVector]:
    """Transform several images; with n_jobs != 1 the work is spread over threads."""
    if n_jobs == 1:
        return [transform(vocabulary, d, norm) for d in descriptor_sets]
    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(transform)(vocabulary, d, norm) for d in descriptor_sets
    )
