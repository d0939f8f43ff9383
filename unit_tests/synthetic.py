"""Synthetic ORB-like descriptor corpora for the unit tests."""
import numpy as np

from binbow.vocabulary import InternalNode, LeafNode, Vocabulary


def random_descriptors(rng, n):
    return rng.integers(0, 256, size=(n, 32), dtype=np.uint8)


def flip_bits(descriptor, n_bits, rng):
    """Copy of one (32,) descriptor with n_bits distinct bits flipped."""
    bits = np.unpackbits(descriptor)
    bits[rng.choice(bits.size, size=n_bits, replace=False)] ^= 1
    return np.packbits(bits)


def grouped_corpus(seed=0, n_super=5, n_sub=5, members=8, super_flip=16, member_flip=2):
    """
    Two-level clustered corpus.

    ``n_super`` random centres far apart (~128 bits), ``n_sub`` sub-centres
    around each (``super_flip`` bits away) and ``members`` descriptors around
    each sub-centre (``member_flip`` bits away).

    Returns:
        (groups, sub_centres): list of (members, 32) arrays, one per sub-centre,
        and the (n_super * n_sub, 32) array of sub-centres
    """
    rng = np.random.default_rng(seed)
    groups = []
    sub_centres = []
    for centre in random_descriptors(rng, n_super):
        for _ in range(n_sub):
            sub = flip_bits(centre, super_flip, rng)
            sub_centres.append(sub)
            groups.append(np.stack([flip_bits(sub, member_flip, rng) for _ in range(members)]))
    return groups, np.stack(sub_centres)


def two_word_vocabulary(weights=(1.0, 1.0), weighting="tf-idf"):
    """Depth-1 vocabulary with an all-zeros word 0 and an all-ones word 1."""
    zeros = np.zeros(32, dtype=np.uint8)
    ones = np.full(32, 255, dtype=np.uint8)
    nodes = [
        InternalNode(zeros, (1, 2), 4),
        LeafNode(zeros, 0, weights[0], 2),
        LeafNode(ones, 1, weights[1], 2),
    ]
    return Vocabulary(nodes, k=2, depth=1, weighting=weighting)
