"""
Top-K feature selection and projection of feature sets onto selected columns.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, List, Optional, Sequence

import numpy as np

from ..datasets import FeatureSet
from ..errors import InvalidParameterError
from .scoring import chi_square_scores, fisher_scores, mutual_information_scores, variance_scores

logger = logging.getLogger(__name__)


class SelectionMethod(str, Enum):
    VARIANCE = "variance"
    CHI_SQUARE = "chi_square"
    MUTUAL_INFO = "mutual_info"
    FISHER = "fisher"

    @classmethod
    def parse(cls, value: "SelectionMethod | str") -> "SelectionMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise InvalidParameterError(f"Unknown selection method: {value}. Use one of: {choices}") from None


LABELED_METHODS = {SelectionMethod.CHI_SQUARE, SelectionMethod.MUTUAL_INFO, SelectionMethod.FISHER}


def _unique_classes(target_classes: Iterable[int]) -> List[int]:
    seen: List[int] = []
    for cls in target_classes:
        if int(cls) not in seen:
            seen.append(int(cls))
    return seen


def _validate(feature_set: FeatureSet, method: SelectionMethod,
              num_classes: Optional[int], target_classes: Optional[Sequence[int]]) -> None:
    if feature_set.num_samples == 0 or feature_set.num_features == 0:
        raise InvalidParameterError("Cannot select features from an empty feature set")
    if method in LABELED_METHODS and feature_set.labels is None:
        raise InvalidParameterError(f"Method '{method.value}' requires labels")
    if method in (SelectionMethod.CHI_SQUARE, SelectionMethod.MUTUAL_INFO):
        if num_classes is None or num_classes < 1:
            raise InvalidParameterError(f"Method '{method.value}' requires a positive num_classes")
    if method is SelectionMethod.FISHER:
        if target_classes is None or len(_unique_classes(target_classes)) < 2:
            raise InvalidParameterError("Pairwise discrimination needs at least two target classes")


def rank_features(scores: np.ndarray) -> np.ndarray:
    """Feature indices ordered by score descending, then index ascending."""
    scores = np.asarray(scores, dtype=np.float64)
    return np.lexsort((np.arange(scores.size), -scores))


def score_features(
    feature_set: FeatureSet,
    method: SelectionMethod | str,
    num_classes: Optional[int] = None,
    target_classes: Optional[Sequence[int]] = None,
) -> np.ndarray:
    """
    Score every feature with the given method.

    Args:
        feature_set: samples to score
        method: one of SelectionMethod
        num_classes: label range for chi-square and mutual information
        target_classes: classes compared pairwise by the Fisher method

    Returns:
        np.ndarray: one score per feature
    """
    method = SelectionMethod.parse(method)
    _validate(feature_set, method, num_classes, target_classes)

    features = feature_set.features
    if method is SelectionMethod.VARIANCE:
        return variance_scores(features)
    if method is SelectionMethod.CHI_SQUARE:
        return chi_square_scores(features, feature_set.labels, int(num_classes))
    if method is SelectionMethod.MUTUAL_INFO:
        return mutual_information_scores(features, feature_set.labels, int(num_classes))
    return fisher_scores(features, feature_set.labels, _unique_classes(target_classes))


def select_features(
    feature_set: FeatureSet,
    num_to_select: int,
    method: SelectionMethod | str = SelectionMethod.MUTUAL_INFO,
    num_classes: Optional[int] = None,
    target_classes: Optional[Sequence[int]] = None,
) -> np.ndarray:
    """
    Pick the highest-scoring features.

    Returns:
        np.ndarray: min(num_to_select, num_features) unique feature indices,
            best first, ties broken by lower index
    """
    if num_to_select < 1:
        raise InvalidParameterError(f"num_to_select must be positive, got {num_to_select}")
    method = SelectionMethod.parse(method)

    scores = score_features(feature_set, method, num_classes, target_classes)
    num_to_select = min(int(num_to_select), feature_set.num_features)
    selected = rank_features(scores)[:num_to_select]

    logger.info(
        "Selected %d/%d features by %s (scores %.6f to %.6f)",
        num_to_select, feature_set.num_features, method.value,
        scores[selected[0]], scores[selected[-1]],
    )
    return selected


def select_class_specific_features(
    feature_set: FeatureSet,
    target_classes: Sequence[int],
    num_to_select: int,
) -> np.ndarray:
    """Features that best separate a small group of frequently confused classes."""
    logger.info(
        "Targeting class-specific features for classes: %s",
        ", ".join(str(int(c)) for c in target_classes),
    )
    return select_features(
        feature_set, num_to_select, SelectionMethod.FISHER, target_classes=target_classes
    )


def combine_selections(*selections: Iterable[int]) -> np.ndarray:
    """Concatenate index lists in order, dropping repeats."""
    combined: List[int] = []
    seen = set()
    for indices in selections:
        for idx in indices:
            idx = int(idx)
            if idx not in seen:
                seen.add(idx)
                combined.append(idx)
    return np.array(combined, dtype=np.int64)


def select_hybrid_features(
    feature_set: FeatureSet,
    num_classes: int,
    target_classes: Sequence[int],
    num_class_specific: int,
    num_general: int,
    method: SelectionMethod | str = SelectionMethod.MUTUAL_INFO,
) -> np.ndarray:
    """
    Class-specific features first, followed by general features not already chosen.
    """
    specific = select_class_specific_features(feature_set, target_classes, num_class_specific)
    general = select_features(feature_set, feature_set.num_features, method, num_classes=num_classes)
    chosen = set(specific.tolist())
    remaining = [int(idx) for idx in general if int(idx) not in chosen][:max(0, int(num_general))]
    return combine_selections(specific, remaining)


def create_reduced_feature_set(feature_set: FeatureSet, selected_indices: Sequence[int]) -> FeatureSet:
    """
    Keep only the selected columns, in the order given.

    Labels are copied unchanged.
    """
    indices = np.asarray(selected_indices, dtype=np.int64).reshape(-1)
    if indices.size == 0:
        raise InvalidParameterError("No feature indices given")
    if feature_set.num_samples == 0:
        raise InvalidParameterError("Cannot reduce an empty feature set")
    if indices.min() < 0 or indices.max() >= feature_set.num_features:
        raise InvalidParameterError(
            f"Feature indices must lie in [0, {feature_set.num_features})"
        )

    labels = None if feature_set.labels is None else feature_set.labels.copy()
    reduced = FeatureSet(features=feature_set.features[:, indices], labels=labels)
    logger.info("Created reduced feature set with %d features per sample", indices.size)
    return reduced
