"""
Error types raised by the vocabulary, transform and scoring code.

Every error can carry the pipeline stage it came from and the index of the
offending input, so a failure deep inside a training corpus points at the
image that caused it.
"""


class BowError(Exception):
    """Base class for all binbow errors."""

    def __init__(self, message, stage=None, index=None):
        self.stage = stage
        self.index = index
        context = []
        if stage is not None:
            context.append(f"stage={stage}")
        if index is not None:
            context.append(f"index={index}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class InvalidConfiguration(BowError, ValueError):
    """Bad tree parameters, inconsistent inputs or a malformed vocabulary."""


class EmptyInput(BowError, ValueError):
    """An operation that needs descriptors was given none."""


class DimensionMismatch(BowError, ValueError):
    """A descriptor is not 256 bits wide."""


class FormatError(BowError, ValueError):
    """A stored vocabulary or BoW vector cannot be decoded."""
