"""
Vocabulary construction by recursive binary k-means.

The training corpus is split into up to k clusters at the root, each cluster
is split again, and so on until the configured depth, where every node
becomes a visual word. A branch stops early and becomes a word when all of
its descriptors share one bit pattern. After the tree is grown, every
training item is routed through it to count in how many items each word
appears, and word weights are derived from those counts.
"""
import logging
import time
from typing import List, NamedTuple, Optional

import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm

from binbow.cluster import cluster_step
from binbow.config import VocabularyConfig
from binbow.descriptors import DESCRIPTOR_BYTES, as_descriptors, majority_centroid
from binbow.errors import EmptyInput
from binbow.vocabulary import InternalNode, LeafNode, Vocabulary

logger = logging.getLogger(__name__)


class _Branch(NamedTuple):
    """Subtree grown from one descriptor subset, before arena indices exist."""
    centroid: np.ndarray
    size: int
    children: Optional[List["_Branch"]]


def build_vocabulary(training_descriptors, k=None, depth=None, seed=None, *, config=None,
                     progress=False, **params) -> Vocabulary:
    """
    Build a vocabulary tree from a training corpus.

    Args:
        training_descriptors: Sequence of per-item (per-image) descriptor sets.
            A single 2-D array is treated as a corpus where every descriptor
            is its own item.
        k: Branching factor (>= 2)
        depth: Number of levels from root to leaf (>= 1)
        seed: Seed for all random choices. None draws fresh entropy; the
            value used is available as ``vocabulary.seed`` either way.
        config: VocabularyConfig to use instead of the keyword parameters
        progress: Show tqdm progress bars
        **params: Any other VocabularyConfig field (weighting, max_iter,
            n_init, init, n_jobs)

    Returns:
        The finished, immutable Vocabulary
    """
    if config is None:
        overrides = {name: value for name, value in (("k", k), ("depth", depth), ("seed", seed))
                     if value is not None}
        config = VocabularyConfig.from_params({**overrides, **params})
    else:
        config = config.validate()

    items = _training_items(training_descriptors)
    corpus = np.concatenate(items) if items else np.empty((0, DESCRIPTOR_BYTES), dtype=np.uint8)
    if not len(corpus):
        raise EmptyInput("Training corpus contains no descriptors", stage="training")

    seed = config.seed
    if seed is None:
        seed = int(np.random.SeedSequence().entropy)
    logger.info("Building vocabulary: k=%d, depth=%d, %d descriptors from %d items, seed=%d",
                config.k, config.depth, len(corpus), len(items), seed)

    start = time.time()
    root = _grow_root(corpus, config, np.random.SeedSequence(seed), progress)
    nodes = _flatten(root)
    logger.info("Tree grown in %.2fs: %d nodes", time.time() - start, len(nodes))

    # Route the corpus through the unpublished tree to count item frequencies
    provisional = Vocabulary(nodes, config.k, config.depth, config.weighting)
    weights = _word_weights(provisional, corpus, [len(item) for item in items], config)
    nodes = [n._replace(weight=float(weights[n.word_id])) if isinstance(n, LeafNode) else n
             for n in nodes]

    vocabulary = Vocabulary(
        nodes,
        config.k,
        config.depth,
        weighting=config.weighting,
        seed=seed,
        training_descriptor_count=len(corpus),
        training_item_count=len(items),
    )
    logger.info("Vocabulary ready: %d words, %d nodes", vocabulary.word_count, vocabulary.node_count)
    return vocabulary


def _training_items(training_descriptors):
    if isinstance(training_descriptors, np.ndarray) and training_descriptors.ndim == 2:
        corpus = as_descriptors(training_descriptors, stage="training")
        return [corpus[i:i + 1] for i in range(len(corpus))]
    return [as_descriptors(item, stage="training", index=i)
            for i, item in enumerate(training_descriptors)]


def _grow_root(corpus, config, seed_seq, progress):
    """Cluster the root, then grow its child subtrees as independent tasks."""
    centroid = majority_centroid(corpus)
    if _single_pattern(corpus):
        return _Branch(centroid, len(corpus), None)

    rng = np.random.default_rng(seed_seq)
    clusters = cluster_step(corpus, config.k, rng, config.max_iter, config.n_init, config.init)
    jobs = [(corpus[c.members], c.centroid, 1, config, s)
            for c, s in zip(clusters, seed_seq.spawn(len(clusters)))]
    if config.n_jobs == 1:
        children = [_grow(*job) for job in tqdm(jobs, desc="subtrees", disable=not progress)]
    else:
        children = Parallel(n_jobs=config.n_jobs)(delayed(_grow)(*job) for job in jobs)
    return _Branch(centroid, len(corpus), children)


def _grow(descriptors, centroid, level, config, seed_seq):
    if level == config.depth or _single_pattern(descriptors):
        return _Branch(centroid, len(descriptors), None)

    logger.debug("Cluster step with %d descriptors at level %d", len(descriptors), level)
    rng = np.random.default_rng(seed_seq)
    clusters = cluster_step(descriptors, config.k, rng, config.max_iter, config.n_init, config.init)
    children = [
        _grow(descriptors[c.members], c.centroid, level + 1, config, s)
        for c, s in zip(clusters, seed_seq.spawn(len(clusters)))
    ]
    return _Branch(centroid, len(descriptors), children)


def _single_pattern(descriptors):
    return bool((descriptors == descriptors[0]).all())


def _flatten(root):
    """Lay a grown tree out in depth-first pre-order; words numbered in leaf order."""
    nodes = []
    word_count = [0]

    def visit(branch):
        index = len(nodes)
        nodes.append(None)
        if branch.children is None:
            nodes[index] = LeafNode(branch.centroid, word_count[0], 0.0, branch.size)
            word_count[0] += 1
        else:
            children = tuple(visit(child) for child in branch.children)
            nodes[index] = InternalNode(branch.centroid, children, branch.size)
        return index

    visit(root)
    return nodes


def _word_weights(vocabulary, corpus, item_lengths, config):
    """
    Per-word weights from training statistics.

    idf-based schemes use ln(N / n_w) where N is the number of training items
    and n_w the number of items with at least one descriptor routed to word
    w; words that no item reaches get 0. tf and binary weight every word 1.
    """
    if not config.weighting.uses_idf:
        return np.ones(vocabulary.word_count, dtype=np.float64)

    words = vocabulary.route_many(corpus)
    item_ids = np.repeat(np.arange(len(item_lengths)), item_lengths)
    # One (item, word) pair per item that reaches the word
    pairs = np.unique(item_ids * vocabulary.word_count + words)
    item_frequency = np.bincount(pairs % vocabulary.word_count, minlength=vocabulary.word_count)

    weights = np.zeros(vocabulary.word_count, dtype=np.float64)
    reached = item_frequency > 0
    weights[reached] = np.log(len(item_lengths) / item_frequency[reached])
    return weights
