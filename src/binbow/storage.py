"""
Versioned .npz encoding of vocabularies and BoW vectors.

Everything is stored as plain arrays so files load with allow_pickle=False.
"""
from pathlib import Path

import numpy as np

from binbow.bow import BowVector
from binbow.errors import FormatError
from binbow.vocabulary import InternalNode, LeafNode, Vocabulary

FORMAT_VERSION = 1

_INTERNAL, _LEAF = 0, 1

_VOCABULARY_FIELDS = (
    "format_version", "k", "depth", "weighting", "seed", "kinds", "centroids",
    "child_offsets", "child_indices", "word_ids", "weights", "cluster_sizes",
    "training_descriptor_count", "training_item_count",
)
_BOW_FIELDS = ("format_version", "word_ids", "weights", "norm")


def vocabulary_to_arrays(vocabulary):
    nodes = vocabulary.nodes
    child_counts = [len(n.children) if isinstance(n, InternalNode) else 0 for n in nodes]
    return {
        "format_version": np.array(FORMAT_VERSION),
        "k": np.array(vocabulary.k),
        "depth": np.array(vocabulary.depth),
        "weighting": np.array(vocabulary.weighting.value),
        # Seeds may exceed 64 bits, keep them as text
        "seed": np.array("" if vocabulary.seed is None else str(vocabulary.seed)),
        "kinds": np.array([_LEAF if isinstance(n, LeafNode) else _INTERNAL for n in nodes], dtype=np.uint8),
        "centroids": np.stack([n.centroid for n in nodes]),
        "child_offsets": np.concatenate([[0], np.cumsum(child_counts)]).astype(np.int64),
        "child_indices": np.array([c for n in nodes if isinstance(n, InternalNode) for c in n.children],
                                  dtype=np.int64),
        "word_ids": np.array([n.word_id if isinstance(n, LeafNode) else -1 for n in nodes], dtype=np.int64),
        "weights": np.array([n.weight if isinstance(n, LeafNode) else 0.0 for n in nodes], dtype=np.float64),
        "cluster_sizes": np.array([n.cluster_size for n in nodes], dtype=np.int64),
        "training_descriptor_count": np.array(vocabulary.training_descriptor_count),
        "training_item_count": np.array(vocabulary.training_item_count),
    }


def _check_fields(arrays, fields, what):
    missing = [f for f in fields if f not in arrays]
    if missing:
        raise FormatError(f"{what} data is missing fields {missing}", stage="load")
    version = int(arrays["format_version"])
    if version != FORMAT_VERSION:
        raise FormatError(f"Unsupported {what} format version {version}, expected {FORMAT_VERSION}",
                          stage="load")


def vocabulary_from_arrays(arrays) -> Vocabulary:
    _check_fields(arrays, _VOCABULARY_FIELDS, "vocabulary")
    kinds = arrays["kinds"]
    offsets = arrays["child_offsets"]
    child_indices = arrays["child_indices"]
    if len(offsets) != len(kinds) + 1:
        raise FormatError("child_offsets does not match the node count", stage="load")
    for name in ("centroids", "word_ids", "weights", "cluster_sizes"):
        if len(arrays[name]) != len(kinds):
            raise FormatError(f"{name} does not match the node count", stage="load")

    nodes = []
    for i, kind in enumerate(kinds):
        centroid = arrays["centroids"][i]
        size = int(arrays["cluster_sizes"][i])
        if kind == _LEAF:
            nodes.append(LeafNode(centroid, int(arrays["word_ids"][i]), float(arrays["weights"][i]), size))
        elif kind == _INTERNAL:
            children = tuple(int(c) for c in child_indices[offsets[i]:offsets[i + 1]])
            nodes.append(InternalNode(centroid, children, size))
        else:
            raise FormatError(f"Unknown node kind {kind}", stage="load", index=i)

    seed = str(arrays["seed"])
    # Structural checks live in Vocabulary; report their failures as decode errors
    try:
        return Vocabulary(
            nodes,
            int(arrays["k"]),
            int(arrays["depth"]),
            weighting=str(arrays["weighting"]),
            seed=int(seed) if seed else None,
            training_descriptor_count=int(arrays["training_descriptor_count"]),
            training_item_count=int(arrays["training_item_count"]),
        )
    except ValueError as e:
        raise FormatError(f"Malformed vocabulary data: {e}", stage="load") from e


def bow_to_arrays(bow):
    return {
        "format_version": np.array(FORMAT_VERSION),
        "word_ids": np.asarray(bow.word_ids),
        "weights": np.asarray(bow.weights),
        "norm": np.array(bow.norm.value),
    }


def bow_from_arrays(arrays) -> BowVector:
    _check_fields(arrays, _BOW_FIELDS, "BoW")
    try:
        return BowVector(arrays["word_ids"], arrays["weights"], str(arrays["norm"]))
    except ValueError as e:
        raise FormatError(f"Malformed BoW data: {e}", stage="load") from e


def _save(path, arrays):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # savez appends .npz when missing, write through a handle to keep the given name
    with open(path, "wb") as f:
        np.savez_compressed(f, **arrays)


def _load(path):
    with np.load(path, allow_pickle=False) as data:
        return {name: data[name] for name in data.files}


def save_vocabulary(vocabulary, path):
    _save(path, vocabulary_to_arrays(vocabulary))


def load_vocabulary(path) -> Vocabulary:
    return vocabulary_from_arrays(_load(path))


def save_bow(bow, path):
    _save(path, bow_to_arrays(bow))


def load_bow(path) -> BowVector:
    return bow_from_arrays(_load(path))
