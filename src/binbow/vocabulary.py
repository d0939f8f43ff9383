"""
Vocabulary tree stored as a flat arena of nodes.

Nodes live in a tuple addressed by integer index, root at index 0, laid out
in depth-first pre-order. A node is either an InternalNode holding the arena
indices of its children or a LeafNode (a visual word). Descriptors are routed
by greedy descent: at every internal node go to the child whose centroid is
closest in Hamming distance, lowest child position on ties.
"""
from dataclasses import dataclass
from typing import NamedTuple, Tuple

import numpy as np

from binbow.config import Weighting
from binbow.descriptors import DESCRIPTOR_BYTES, as_descriptors, hamming_matrix
from binbow.errors import DimensionMismatch, InvalidConfiguration


class InternalNode(NamedTuple):
    centroid: np.ndarray
    children: Tuple[int, ...]
    cluster_size: int = 0


class LeafNode(NamedTuple):
    centroid: np.ndarray
    word_id: int
    weight: float = 0.0
    cluster_size: int = 0


@dataclass(frozen=True)
class VocabularyStats:
    """Read-only summary of a built vocabulary, for diagnostics."""

    word_count: int
    node_count: int
    internal_count: int
    depth: int
    branching_factor: int
    training_descriptor_count: int
    training_item_count: int
    cluster_sizes: Tuple[int, ...]

    @property
    def min_cluster_size(self):
        return min(self.cluster_sizes, default=0)

    @property
    def max_cluster_size(self):
        return max(self.cluster_sizes, default=0)

    @property
    def mean_cluster_size(self):
        return float(np.mean(self.cluster_sizes)) if self.cluster_sizes else 0.0

    def __str__(self):
        return "\n".join([
            f"Word/leaf nodes:          {self.word_count}",
            f"Internal nodes:           {self.internal_count}",
            f"Levels:                   {self.depth}",
            f"Branching factor:         {self.branching_factor}",
            f"Training descriptors:     {self.training_descriptor_count}",
            f"Training items:           {self.training_item_count}",
            f"Min word cluster size:    {self.min_cluster_size}",
            f"Max word cluster size:    {self.max_cluster_size}",
            f"Mean word cluster size:   {self.mean_cluster_size:.2f}",
        ])


def _frozen(array):
    array = np.array(array, copy=True)
    array.flags.writeable = False
    return array


class Vocabulary:
    """
    Immutable hierarchical vocabulary of visual words.

    Instances are normally produced by ``build_vocabulary`` or
    ``load_vocabulary``. The constructor checks the tree invariants and
    raises InvalidConfiguration when they do not hold.
    """

    def __init__(self, nodes, k, depth, weighting=Weighting.TF_IDF, seed=None,
                 training_descriptor_count=0, training_item_count=0):
        if k < 2:
            raise InvalidConfiguration(f"Branching factor must be >= 2, got {k}", stage="vocabulary")
        if depth < 1:
            raise InvalidConfiguration(f"Depth must be >= 1, got {depth}", stage="vocabulary")
        if not nodes:
            raise InvalidConfiguration("A vocabulary needs at least one node", stage="vocabulary")

        frozen_nodes = []
        for node in nodes:
            if isinstance(node, InternalNode):
                node = node._replace(centroid=_frozen(node.centroid),
                                     children=tuple(int(c) for c in node.children),
                                     cluster_size=int(node.cluster_size))
            elif isinstance(node, LeafNode):
                node = node._replace(centroid=_frozen(node.centroid), word_id=int(node.word_id),
                                     weight=float(node.weight), cluster_size=int(node.cluster_size))
            else:
                raise InvalidConfiguration(f"Unknown node type {type(node).__name__}", stage="vocabulary")
            frozen_nodes.append(node)

        self._nodes = tuple(frozen_nodes)
        self._k = int(k)
        self._depth = int(depth)
        self._weighting = Weighting(weighting)
        self._seed = seed
        self._training_descriptor_count = int(training_descriptor_count)
        self._training_item_count = int(training_item_count)

        self._leaf_levels = self._check_structure()
        leaves = sorted((n.word_id, i) for i, n in enumerate(self._nodes) if isinstance(n, LeafNode))
        self._word_nodes = tuple(i for _, i in leaves)
        self._word_weights = _frozen(
            np.array([self._nodes[i].weight for i in self._word_nodes], dtype=np.float64)
        )
        # Child centroid matrices, one (children, 32) block per internal node
        self._child_centroids = {
            i: _frozen(np.stack([self._nodes[c].centroid for c in n.children]))
            for i, n in enumerate(self._nodes)
            if isinstance(n, InternalNode)
        }

    def _check_structure(self):
        parents = [None] * len(self._nodes)
        levels = {0: 0}
        stack = [0]
        visited = 0
        while stack:
            index = stack.pop()
            visited += 1
            node = self._nodes[index]
            if node.centroid.shape != (DESCRIPTOR_BYTES,) or node.centroid.dtype != np.uint8:
                raise InvalidConfiguration(f"Node {index} centroid is not a 32-byte descriptor",
                                           stage="vocabulary", index=index)
            if isinstance(node, LeafNode):
                continue
            if not 1 <= len(node.children) <= self._k:
                raise InvalidConfiguration(
                    f"Internal node has {len(node.children)} children, expected 1..{self._k}",
                    stage="vocabulary", index=index,
                )
            if levels[index] >= self._depth:
                raise InvalidConfiguration(f"Internal node at level {levels[index]} exceeds depth {self._depth}",
                                           stage="vocabulary", index=index)
            for child in node.children:
                if not 0 < child < len(self._nodes) or parents[child] is not None:
                    raise InvalidConfiguration(f"Child {child} is out of range or has two parents",
                                               stage="vocabulary", index=index)
                parents[child] = index
                levels[child] = levels[index] + 1
                stack.append(child)

        if visited != len(self._nodes):
            raise InvalidConfiguration(
                f"{len(self._nodes) - visited} nodes are unreachable from the root", stage="vocabulary"
            )

        word_ids = sorted(n.word_id for n in self._nodes if isinstance(n, LeafNode))
        if word_ids != list(range(len(word_ids))):
            raise InvalidConfiguration("Word ids must be dense and unique", stage="vocabulary")
        return {n.word_id: levels[i] for i, n in enumerate(self._nodes) if isinstance(n, LeafNode)}

    # -- read-only properties

    @property
    def root(self):
        return 0

    @property
    def nodes(self):
        return self._nodes

    @property
    def k(self):
        return self._k

    @property
    def depth(self):
        return self._depth

    @property
    def weighting(self):
        return self._weighting

    @property
    def seed(self):
        """Seed the tree was built from, or None when unknown."""
        return self._seed

    @property
    def training_descriptor_count(self):
        return self._training_descriptor_count

    @property
    def training_item_count(self):
        return self._training_item_count

    @property
    def word_count(self):
        return len(self._word_nodes)

    @property
    def node_count(self):
        return len(self._nodes)

    @property
    def word_weights(self):
        """Array of word weights indexed by word id."""
        return self._word_weights

    def node(self, index):
        return self._nodes[index]

    def word(self, word_id) -> LeafNode:
        return self._nodes[self._word_nodes[word_id]]

    def word_node_index(self, word_id):
        return self._word_nodes[word_id]

    def leaf_level(self, word_id):
        """Number of edges between the root and the given word."""
        return self._leaf_levels[word_id]

    def children(self, index):
        node = self._nodes[index]
        return node.children if isinstance(node, InternalNode) else ()

    def leaf_centroids(self):
        """(W, 32) array of word centroids in word id order."""
        return np.stack([self._nodes[i].centroid for i in self._word_nodes])

    # -- routing

    def route_path(self, descriptor) -> Tuple[int, ...]:
        """
        Greedy descent of one descriptor.

        Returns:
            Arena indices of every node visited, root first, leaf last
        """
        descriptor = as_descriptors(descriptor, stage="transform")
        if len(descriptor) != 1:
            raise DimensionMismatch(f"route_path() takes one descriptor, got {len(descriptor)}",
                                    stage="transform")
        index = self.root
        path = [index]
        while isinstance(self._nodes[index], InternalNode):
            nearest = int(hamming_matrix(descriptor, self._child_centroids[index])[0].argmin())
            index = self._nodes[index].children[nearest]
            path.append(index)
        return tuple(path)

    def route(self, descriptor) -> int:
        """Word id reached by one descriptor."""
        return self._nodes[self.route_path(descriptor)[-1]].word_id

    def route_many(self, descriptors) -> np.ndarray:
        """
        Route a descriptor set, level by level, with the same tie-breaking as route().

        Returns:
            int64 array of word ids, one per descriptor
        """
        descriptors = as_descriptors(descriptors, stage="transform")
        words = np.empty(len(descriptors), dtype=np.int64)
        stack = [(self.root, np.arange(len(descriptors)))]
        while stack:
            index, rows = stack.pop()
            if not len(rows):
                continue
            node = self._nodes[index]
            if isinstance(node, LeafNode):
                words[rows] = node.word_id
                continue
            nearest = hamming_matrix(descriptors[rows], self._child_centroids[index]).argmin(axis=1)
            for position, child in enumerate(node.children):
                stack.append((child, rows[nearest == position]))
        return words

    # -- diagnostics

    def stats(self) -> VocabularyStats:
        return VocabularyStats(
            word_count=self.word_count,
            node_count=self.node_count,
            internal_count=self.node_count - self.word_count,
            depth=self._depth,
            branching_factor=self._k,
            training_descriptor_count=self._training_descriptor_count,
            training_item_count=self._training_item_count,
            cluster_sizes=tuple(self._nodes[i].cluster_size for i in self._word_nodes),
        )

    def __eq__(self, other):
        if not isinstance(other, Vocabulary):
            return NotImplemented
        if (self._k, self._depth, self._weighting, len(self._nodes)) != \
                (other._k, other._depth, other._weighting, len(other._nodes)):
            return False
        for mine, theirs in zip(self._nodes, other._nodes):
            if type(mine) is not type(theirs) or not np.array_equal(mine.centroid, theirs.centroid):
                return False
            if mine[1:] != theirs[1:]:
                return False
        return True

    __hash__ = None

    def __repr__(self):
        return (f"Vocabulary(words={self.word_count}, nodes={self.node_count}, "
                f"k={self._k}, depth={self._depth}, weighting={self._weighting.value!r})")
