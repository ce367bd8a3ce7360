"""
Discretized Naive Bayes classifier over [0, 1] feature vectors.

Every feature is split into equal-width bins; training counts how often
each class lands in each bin and turns the counts into Laplace-smoothed
likelihoods. Inference sums log-likelihoods and converts them to a
posterior with a max-subtracted softmax.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .constants import DEFAULT_ALPHA, DEFAULT_NB_BINS, PROBABILITY_FLOOR
from .datasets import FeatureSet
from .errors import (
    DimensionMismatchError,
    EmptyTrainingSetError,
    InvalidParameterError,
    NotTrainedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionResult:
    """Outcome of a single inference call."""

    prediction: int
    confidence: float
    class_probs: np.ndarray = field(repr=False, compare=False)
    top_n: Tuple[int, ...]
    # General-model label replaced by a specialized classifier, if any.
    overridden_from: Optional[int] = None
    specialized_confidence: Optional[float] = None

    @property
    def n(self) -> int:
        return len(self.top_n)


class NaiveBayesModel:
    """Naive Bayes over binned features with additive smoothing."""

    def __init__(self, num_classes: int, num_features: int,
                 num_bins: int = DEFAULT_NB_BINS, alpha: float = DEFAULT_ALPHA) -> None:
        if num_classes < 1 or num_features < 1 or num_bins < 1:
            raise InvalidParameterError(
                f"Model dimensions must be positive (classes={num_classes}, "
                f"features={num_features}, bins={num_bins})"
            )
        if alpha <= 0:
            raise InvalidParameterError(f"Smoothing alpha must be positive, got {alpha}")

        self.num_classes = int(num_classes)
        self.num_features = int(num_features)
        self.num_bins = int(num_bins)
        self.bin_width = 1.0 / self.num_bins
        self.alpha = float(alpha)

        self.class_prior = np.zeros(self.num_classes, dtype=np.float64)
        self.feature_prob = np.zeros((self.num_classes, self.num_features, self.num_bins), dtype=np.float64)
        self.trained = False

        self._log_prior: np.ndarray | None = None
        self._log_feature_prob: np.ndarray | None = None

    def __repr__(self) -> str:
        state = "trained" if self.trained else "untrained"
        return (
            f"NaiveBayesModel(classes={self.num_classes}, features={self.num_features}, "
            f"bins={self.num_bins}, alpha={self.alpha}, {state})"
        )

    def bin_indices(self, values: np.ndarray) -> np.ndarray:
        """Map feature values to bin indices, clipping values to [0, 1]."""
        clipped = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
        # Same as value / bin_width.
        bins = np.floor(clipped * self.num_bins).astype(np.int64)
        return np.clip(bins, 0, self.num_bins - 1)

    def train(self, feature_set: FeatureSet) -> "NaiveBayesModel":
        """
        Estimate priors and smoothed likelihoods from a labeled feature set.

        Samples whose label is outside [0, num_classes) are skipped.
        The model is left untouched if training fails.
        """
        if feature_set.num_features != self.num_features:
            raise DimensionMismatchError(
                f"Feature set has {feature_set.num_features} features, model expects {self.num_features}"
            )
        if feature_set.labels is None:
            raise InvalidParameterError("Training requires a labeled feature set")

        labels = feature_set.labels
        valid = (labels >= 0) & (labels < self.num_classes)
        skipped = int(labels.size - np.count_nonzero(valid))
        if skipped:
            logger.warning(
                "Skipped %d samples with labels outside [0, %d)", skipped, self.num_classes
            )
        if not np.any(valid):
            raise EmptyTrainingSetError("No training samples with a valid label")

        labels = labels[valid]
        bins = self.bin_indices(feature_set.features[valid])

        class_counts = np.bincount(labels, minlength=self.num_classes).astype(np.float64)
        # Flat (class, feature, bin) offsets into a single count buffer.
        offsets = (labels[:, None] * self.num_features + np.arange(self.num_features)[None, :]) * self.num_bins + bins
        counts = np.bincount(
            offsets.ravel(),
            minlength=self.num_classes * self.num_features * self.num_bins,
        ).reshape(self.num_classes, self.num_features, self.num_bins)

        class_prior = class_counts / labels.size
        feature_prob = (counts + self.alpha) / (class_counts[:, None, None] + self.alpha * self.num_bins)

        self.class_prior = class_prior
        self.feature_prob = feature_prob
        self._log_prior = np.log(np.maximum(class_prior, PROBABILITY_FLOOR))
        self._log_feature_prob = np.log(np.maximum(feature_prob, PROBABILITY_FLOOR))
        self.trained = True

        logger.info(
            "Trained Naive Bayes on %d samples (%d classes, %d features, %d bins)",
            labels.size, self.num_classes, self.num_features, self.num_bins,
        )
        return self

    def log_posteriors(self, features: np.ndarray) -> np.ndarray:
        """Unnormalised log posterior of every class for one feature vector."""
        if not self.trained:
            raise NotTrainedError("Model not trained yet!")
        features = np.asarray(features, dtype=np.float64).reshape(-1)
        if features.size != self.num_features:
            raise DimensionMismatchError(
                f"Feature vector has {features.size} values, model expects {self.num_features}"
            )
        bins = self.bin_indices(features)
        per_feature = self._log_feature_prob[:, np.arange(self.num_features), bins]
        return self._log_prior + per_feature.sum(axis=1)

    def predict_proba(self, features: np.ndarray) -> np.ndarray:
        """Posterior class probabilities for one feature vector."""
        log_probs = self.log_posteriors(features)
        weights = np.exp(log_probs - log_probs.max())
        return weights / weights.sum()

    def predict_with_confidence(self, features: np.ndarray, top_n: int = 1) -> PredictionResult:
        """
        Predict a class together with its probability and ranked alternatives.

        Args:
            features: feature vector of length num_features
            top_n: number of ranked classes to return, clamped to [1, num_classes]

        Returns:
            PredictionResult: confidence is the probability of the top class
        """
        probs = self.predict_proba(features)
        top_n = max(1, min(int(top_n), self.num_classes))
        # Descending probability, lower class index first on ties.
        ranking = np.lexsort((np.arange(self.num_classes), -probs))[:top_n]
        best = int(ranking[0])
        return PredictionResult(
            prediction=best,
            confidence=float(probs[best]),
            class_probs=probs,
            top_n=tuple(int(c) for c in ranking),
        )

    def predict(self, features: np.ndarray) -> int:
        return self.predict_with_confidence(features, top_n=1).prediction

    def predict_batch(self, feature_set: FeatureSet) -> np.ndarray:
        """Predicted label for every sample of a feature set."""
        if feature_set.num_features != self.num_features:
            raise DimensionMismatchError(
                f"Feature set has {feature_set.num_features} features, model expects {self.num_features}"
            )
        return np.array([self.predict(row) for row in feature_set.features], dtype=np.int64)
