"""
Two-stage classification with specialized pairwise classifiers.

A general model labels every sample. When it is unsure and its two best
guesses form a registered confusable pair, a binary model trained only on
that pair gets the final word, provided it is confident itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, List, Optional

import numpy as np

from .constants import (
    DEFAULT_ALPHA,
    DEFAULT_NB_BINS,
    HIGH_CONFIDENCE_THRESHOLD,
    SPECIALIZED_CONFIDENCE_THRESHOLD,
)
from .datasets import FeatureSet
from .errors import EmptyTrainingSetError, InvalidParameterError
from .naive_bayes import NaiveBayesModel, PredictionResult

logger = logging.getLogger(__name__)


@dataclass
class SpecializedClassifier:
    """Binary model for one confusable pair; label 0 is class_a, 1 is class_b."""

    class_a: int
    class_b: int
    confidence_threshold: float
    model: NaiveBayesModel

    @property
    def pair(self) -> FrozenSet[int]:
        return frozenset((self.class_a, self.class_b))

    @property
    def trained(self) -> bool:
        return self.model.trained

    def to_original_label(self, binary_label: int) -> int:
        return self.class_a if binary_label == 0 else self.class_b

    def filter_training_set(self, feature_set: FeatureSet) -> FeatureSet:
        """Samples of the two classes only, relabeled 0 / 1."""
        if feature_set.labels is None:
            raise InvalidParameterError("Training requires a labeled feature set")
        mask = (feature_set.labels == self.class_a) | (feature_set.labels == self.class_b)
        if not np.any(mask):
            logger.warning(
                "No training samples found for classes %d and %d", self.class_a, self.class_b
            )
            raise EmptyTrainingSetError(
                f"No training samples found for classes {self.class_a} and {self.class_b}"
            )
        labels = np.where(feature_set.labels[mask] == self.class_a, 0, 1)
        logger.info(
            "Created filtered training set with %d samples for classes %d and %d",
            int(mask.sum()), self.class_a, self.class_b,
        )
        return FeatureSet(features=feature_set.features[mask], labels=labels)


class CascadeManager:
    """Registry of specialized classifiers plus the two-stage decision policy."""

    def __init__(self, high_confidence: float = HIGH_CONFIDENCE_THRESHOLD,
                 specialized_confidence: float = SPECIALIZED_CONFIDENCE_THRESHOLD) -> None:
        self.high_confidence = float(high_confidence)
        self.specialized_confidence = float(specialized_confidence)
        self.classifiers: List[SpecializedClassifier] = []
        self._by_pair: Dict[FrozenSet[int], int] = {}

    def __len__(self) -> int:
        return len(self.classifiers)

    def add_classifier(
        self,
        class_a: int,
        class_b: int,
        threshold: float,
        num_features: int,
        num_bins: int = DEFAULT_NB_BINS,
        alpha: float = DEFAULT_ALPHA,
    ) -> int:
        """
        Register an untrained binary classifier for a class pair.

        Returns:
            int: index of the new classifier
        """
        class_a, class_b = int(class_a), int(class_b)
        if class_a == class_b:
            raise InvalidParameterError(f"A specialized pair needs two distinct classes, got {class_a} twice")
        pair = frozenset((class_a, class_b))
        if pair in self._by_pair:
            raise InvalidParameterError(f"Classes {class_a} and {class_b} already have a specialized classifier")

        model = NaiveBayesModel(2, num_features, num_bins, alpha)
        self.classifiers.append(SpecializedClassifier(class_a, class_b, float(threshold), model))
        index = len(self.classifiers) - 1
        self._by_pair[pair] = index
        logger.info("Added specialized classifier for classes %d and %d", class_a, class_b)
        return index

    def train(self, classifier_index: int, feature_set: FeatureSet) -> SpecializedClassifier:
        """Train one specialized classifier on its two classes of feature_set."""
        if not 0 <= classifier_index < len(self.classifiers):
            raise InvalidParameterError(f"Invalid classifier index {classifier_index}")
        classifier = self.classifiers[classifier_index]
        classifier.model.train(classifier.filter_training_set(feature_set))
        logger.info(
            "Trained specialized classifier for classes %d and %d",
            classifier.class_a, classifier.class_b,
        )
        return classifier

    def train_all(self, feature_set: FeatureSet) -> None:
        for index in range(len(self.classifiers)):
            self.train(index, feature_set)

    def find(self, class_a: int, class_b: int) -> Optional[SpecializedClassifier]:
        """Classifier registered for the pair, in either order."""
        index = self._by_pair.get(frozenset((int(class_a), int(class_b))))
        return None if index is None else self.classifiers[index]

    def classify(self, general_model: NaiveBayesModel, features: np.ndarray, top_n: int = 2) -> PredictionResult:
        """
        Two-stage classification of one feature vector.

        The general prediction is returned unchanged when its confidence is
        above high_confidence. Otherwise, if the two best classes have a
        trained specialized classifier and the general confidence is below
        that pair's threshold, the specialized label replaces the general
        one when the specialized confidence is above specialized_confidence.
        An override only moves the new label to the front of top_n; the
        general confidence and class_probs are kept.
        """
        requested = max(1, int(top_n))
        # Rank at least two classes so the pair check is possible.
        result = general_model.predict_with_confidence(features, max(requested, 2))

        if result.confidence > self.high_confidence or result.n < 2:
            return _truncate(result, requested)

        first, second = result.top_n[0], result.top_n[1]
        classifier = self.find(first, second)
        if classifier is None or not classifier.trained:
            return _truncate(result, requested)
        if result.confidence >= classifier.confidence_threshold:
            return _truncate(result, requested)

        specialized = classifier.model.predict_with_confidence(features, 2)
        label = classifier.to_original_label(specialized.prediction)
        logger.debug(
            "Specialized classifier %d/%d predicted %d with confidence %.3f (general %d at %.3f)",
            classifier.class_a, classifier.class_b, label, specialized.confidence,
            result.prediction, result.confidence,
        )
        if specialized.confidence <= self.specialized_confidence or label == result.prediction:
            return _truncate(result, requested)

        ranking = list(result.top_n)
        position = ranking.index(label)
        ranking[0], ranking[position] = ranking[position], ranking[0]
        logger.debug("Specialized classifier overrode prediction from %d to %d", result.prediction, label)
        overridden = replace(
            result,
            prediction=label,
            top_n=tuple(ranking),
            overridden_from=result.prediction,
            specialized_confidence=specialized.confidence,
        )
        return _truncate(overridden, requested)


def _truncate(result: PredictionResult, top_n: int) -> PredictionResult:
    if result.n <= top_n:
        return result
    return replace(result, top_n=result.top_n[:top_n])


def two_stage_classify(
    general_model: NaiveBayesModel,
    manager: CascadeManager,
    features: np.ndarray,
    top_n: int = 2,
) -> PredictionResult:
    """Run the general model, then let the manager's specialized classifiers refine it."""
    return manager.classify(general_model, features, top_n)
