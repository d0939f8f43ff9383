"""
Vocabulary build parameters.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from numbers import Integral

from binbow.errors import InvalidConfiguration


class Weighting(str, Enum):
    """How word counts are turned into BoW weights."""

    TF_IDF = "tf-idf"
    IDF = "idf"
    TF = "tf"
    BINARY = "binary"

    @property
    def uses_idf(self):
        return self in (Weighting.TF_IDF, Weighting.IDF)

    @property
    def uses_counts(self):
        return self in (Weighting.TF_IDF, Weighting.TF)


INIT_METHODS = ("random", "kmeans++")

DEFAULT_VOCABULARY_PARAMS = {
    "k": 10,
    "depth": 3,
    "seed": None,
    "weighting": Weighting.TF_IDF,
    "max_iter": 100,
    "n_init": 1,
    "init": "random",
    "n_jobs": 1,
}


@dataclass(frozen=True)
class VocabularyConfig:
    k: int = DEFAULT_VOCABULARY_PARAMS["k"]
    depth: int = DEFAULT_VOCABULARY_PARAMS["depth"]
    seed: int = DEFAULT_VOCABULARY_PARAMS["seed"]
    weighting: Weighting = DEFAULT_VOCABULARY_PARAMS["weighting"]
    max_iter: int = DEFAULT_VOCABULARY_PARAMS["max_iter"]
    n_init: int = DEFAULT_VOCABULARY_PARAMS["n_init"]
    init: str = DEFAULT_VOCABULARY_PARAMS["init"]
    n_jobs: int = DEFAULT_VOCABULARY_PARAMS["n_jobs"]

    @classmethod
    def from_params(cls, params=None):
        """Merge ``params`` over the defaults and validate the result."""
        merged = {**DEFAULT_VOCABULARY_PARAMS, **(params or {})}
        unknown = set(merged) - set(DEFAULT_VOCABULARY_PARAMS)
        if unknown:
            raise InvalidConfiguration(
                f"Unknown vocabulary parameters: {sorted(unknown)}", stage="config"
            )
        return cls(**merged).validate()

    def validate(self):
        """Fail fast on degenerate trees. Returns a config with a normalized weighting."""
        if not isinstance(self.k, Integral) or self.k < 2:
            raise InvalidConfiguration(f"Branching factor must be >= 2, got {self.k}", stage="config")
        if not isinstance(self.depth, Integral) or self.depth < 1:
            raise InvalidConfiguration(f"Depth must be >= 1, got {self.depth}", stage="config")
        if self.max_iter < 1:
            raise InvalidConfiguration(f"max_iter must be >= 1, got {self.max_iter}", stage="config")
        if self.n_init < 1:
            raise InvalidConfiguration(f"n_init must be >= 1, got {self.n_init}", stage="config")
        if self.init not in INIT_METHODS:
            raise InvalidConfiguration(
                f"Unknown init method {self.init!r}, expected one of {INIT_METHODS}", stage="config"
            )
        if self.seed is not None and (not isinstance(self.seed, Integral) or self.seed < 0):
            raise InvalidConfiguration(f"Seed must be a non-negative int, got {self.seed!r}", stage="config")
        try:
            weighting = Weighting(self.weighting)
        except ValueError:
            raise InvalidConfiguration(
                f"Unknown weighting {self.weighting!r}", stage="config"
            ) from None
        return VocabularyConfig(**{**asdict(self), "weighting": weighting})
