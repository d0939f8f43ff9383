"""
Binary bag-of-words vocabulary trees for visual place recognition.

    vocabulary = build_vocabulary(descriptor_sets, k=10, depth=3, seed=0)
    bows = transform_many(vocabulary, descriptor_sets)
    ranking = rank(transform(vocabulary, query_descriptors), bows, top_k=5)
"""
from binbow.bow import BowVector, Norm, transform, transform_many, transform_with_direct_index
from binbow.builder import build_vocabulary
from binbow.config import VocabularyConfig, Weighting
from binbow.descriptors import as_descriptors, hamming
from binbow.errors import BowError, DimensionMismatch, EmptyInput, FormatError, InvalidConfiguration
from binbow.scoring import Scoring, rank, score
from binbow.storage import load_bow, load_vocabulary, save_bow, save_vocabulary
from binbow.vocabulary import InternalNode, LeafNode, Vocabulary, VocabularyStats

__version__ = "0.1.0"

__all__ = [
    "BowError",
    "BowVector",
    "DimensionMismatch",
    "EmptyInput",
    "FormatError",
    "InternalNode",
    "InvalidConfiguration",
    "LeafNode",
    "Norm",
    "Scoring",
    "Vocabulary",
    "VocabularyConfig",
    "VocabularyStats",
    "Weighting",
    "as_descriptors",
    "build_vocabulary",
    "hamming",
    "load_bow",
    "load_vocabulary",
    "rank",
    "save_bow",
    "save_vocabulary",
    "score",
    "transform",
    "transform_many",
    "transform_with_direct_index",
]
