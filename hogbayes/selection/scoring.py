"""
Per-feature relevance scores.

All scorers take the full (num_samples, num_features) matrix and return one
score per feature. A score of 0 means the feature carries no information.
"""

from __future__ import annotations

from itertools import combinations
from typing import Dict, Sequence, Tuple

import numpy as np

from ..constants import PROBABILITY_FLOOR, SELECTION_NUM_BINS


def safe_divide(numerator, denominator, floor: float = PROBABILITY_FLOOR, default: float = 0.0):
    """
    Elementwise division that yields ``default`` wherever |denominator| < floor.

    Scalars in, scalar out; arrays in, array out.
    """
    num, den = np.broadcast_arrays(
        np.asarray(numerator, dtype=np.float64), np.asarray(denominator, dtype=np.float64)
    )
    out = np.full(num.shape, default, dtype=np.float64)
    np.divide(num, den, out=out, where=np.abs(den) >= floor)
    if out.ndim == 0:
        return float(out)
    return out


def discretize(features: np.ndarray, num_bins: int = SELECTION_NUM_BINS) -> np.ndarray:
    """
    Equal-width binning of every column over its own [min, max] range.

    Columns with a degenerate range use a bin width of 1.
    """
    lo = features.min(axis=0)
    width = (features.max(axis=0) - lo) / num_bins
    width[width <= 0.0] = 1.0
    bins = np.floor((features - lo) / width).astype(np.int64)
    return np.clip(bins, 0, num_bins - 1)


def contingency_tables(
    features: np.ndarray,
    labels: np.ndarray,
    num_classes: int,
    num_bins: int = SELECTION_NUM_BINS,
) -> np.ndarray:
    """
    Bin x class counts for every feature.

    Samples with a label outside [0, num_classes) are left out.

    Returns:
        np.ndarray: int array of shape (num_features, num_bins, num_classes)
    """
    num_features = features.shape[1]
    bins = discretize(features, num_bins)
    valid = (labels >= 0) & (labels < num_classes)
    bins, labels = bins[valid], labels[valid]

    offsets = (np.arange(num_features)[None, :] * num_bins + bins) * num_classes + labels[:, None]
    counts = np.bincount(offsets.ravel(), minlength=num_features * num_bins * num_classes)
    return counts.reshape(num_features, num_bins, num_classes)


def _marginals(tables: np.ndarray) -> Tuple[np.ndarray, np.ndarray, int]:
    bin_totals = tables.sum(axis=2)
    class_totals = tables.sum(axis=1)
    total = int(tables[0].sum()) if tables.shape[0] else 0
    return bin_totals, class_totals, total


def variance_scores(features: np.ndarray) -> np.ndarray:
    """Unbiased sample variance of every feature, ignoring labels."""
    if features.shape[0] <= 1:
        return np.zeros(features.shape[1], dtype=np.float64)
    return np.var(features, axis=0, ddof=1)


def chi_square_scores(features: np.ndarray, labels: np.ndarray, num_classes: int) -> np.ndarray:
    """Chi-square statistic between each discretized feature and the labels."""
    if features.shape[0] <= 1:
        return np.zeros(features.shape[1], dtype=np.float64)

    tables = contingency_tables(features, labels, num_classes)
    bin_totals, class_totals, total = _marginals(tables)
    if total == 0:
        return np.zeros(features.shape[1], dtype=np.float64)

    expected = bin_totals[:, :, None] * class_totals[:, None, :] / total
    diff = tables - expected
    # Cells with expected count below the floor contribute nothing.
    return safe_divide(diff * diff, expected).sum(axis=(1, 2))


def mutual_information_scores(features: np.ndarray, labels: np.ndarray, num_classes: int) -> np.ndarray:
    """Mutual information (nats) between each discretized feature and the labels."""
    if features.shape[0] <= 1:
        return np.zeros(features.shape[1], dtype=np.float64)

    tables = contingency_tables(features, labels, num_classes)
    bin_totals, class_totals, total = _marginals(tables)
    if total == 0:
        return np.zeros(features.shape[1], dtype=np.float64)

    p_joint = tables / total
    p_bin = bin_totals / total
    p_class = class_totals / total
    occupied = p_joint > 0
    # A nonzero joint cell implies nonzero marginals, so the logs are finite.
    log_bin = np.log(p_bin, out=np.zeros_like(p_bin), where=p_bin > 0)
    log_class = np.log(p_class, out=np.zeros_like(p_class), where=p_class > 0)
    log_ratio = np.log(p_joint, out=np.zeros_like(p_joint), where=occupied)
    log_ratio -= log_bin[:, :, None] + log_class[:, None, :]
    return np.where(occupied, p_joint * log_ratio, 0.0).sum(axis=(1, 2))


def _class_statistics(features: np.ndarray, labels: np.ndarray, cls: int) -> Tuple[int, np.ndarray, np.ndarray]:
    values = features[labels == cls]
    count = values.shape[0]
    if count == 0:
        zeros = np.zeros(features.shape[1], dtype=np.float64)
        return 0, zeros, zeros
    mean = values.mean(axis=0)
    var = values.var(axis=0, ddof=1) if count > 1 else np.zeros(features.shape[1], dtype=np.float64)
    return count, mean, var


def fisher_scores(features: np.ndarray, labels: np.ndarray, target_classes: Sequence[int]) -> np.ndarray:
    """
    Mean pairwise Fisher score over every unordered pair of target classes.

    For one pair the score is (mean1 - mean2)^2 / (var1 + var2); it is 0
    when either class has no samples or the summed variance vanishes.
    """
    num_features = features.shape[1]
    if features.shape[0] <= 1:
        return np.zeros(num_features, dtype=np.float64)

    stats: Dict[int, Tuple[int, np.ndarray, np.ndarray]] = {
        int(cls): _class_statistics(features, labels, int(cls)) for cls in target_classes
    }

    total = np.zeros(num_features, dtype=np.float64)
    num_pairs = 0
    for first, second in combinations([int(cls) for cls in target_classes], 2):
        count1, mean1, var1 = stats[first]
        count2, mean2, var2 = stats[second]
        num_pairs += 1
        if count1 == 0 or count2 == 0:
            continue
        diff = mean1 - mean2
        total += safe_divide(diff * diff, var1 + var2)

    if num_pairs == 0:
        return total
    return total / num_pairs
