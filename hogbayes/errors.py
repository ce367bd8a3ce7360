"""
Exception types raised by the recognition pipeline.
"""

from __future__ import annotations


class HogBayesError(Exception):
    """Base class for pipeline errors."""


class InvalidParameterError(HogBayesError, ValueError):
    """A dimension, count or option is out of its valid range."""


class DimensionMismatchError(HogBayesError, ValueError):
    """Feature count of the input does not match the model."""


class EmptyTrainingSetError(HogBayesError, ValueError):
    """No usable training sample was found."""


class NotTrainedError(HogBayesError, RuntimeError):
    """Prediction was requested from a model that was never trained."""
