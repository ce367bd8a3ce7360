"""
Accuracy reporting for the general model and the two-stage cascade.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import accuracy_score, classification_report, confusion_matrix

from .cascade import CascadeManager
from .datasets import FeatureSet
from .errors import InvalidParameterError
from .naive_bayes import NaiveBayesModel


def evaluate_model(
    model: NaiveBayesModel,
    feature_set: FeatureSet,
    manager: Optional[CascadeManager] = None,
    top_n: int = 2,
) -> Dict[str, Any]:
    """
    Evaluate a trained model, optionally through the cascade.

    Returns:
        dict: accuracy, predictions, confusion_matrix, classification_report
            and the number of cascade overrides
    """
    if feature_set.labels is None:
        raise InvalidParameterError("Evaluation requires a labeled feature set")

    predictions = np.empty(feature_set.num_samples, dtype=np.int64)
    overrides = 0
    for i, row in enumerate(feature_set.features):
        if manager is None:
            result = model.predict_with_confidence(row, top_n)
        else:
            result = manager.classify(model, row, top_n)
            if result.overridden_from is not None:
                overrides += 1
        predictions[i] = result.prediction

    y_true = feature_set.labels
    labels = list(range(model.num_classes))
    return {
        'accuracy': accuracy_score(y_true, predictions),
        'predictions': predictions,
        'confusion_matrix': confusion_matrix(y_true, predictions, labels=labels),
        'classification_report': classification_report(
            y_true, predictions, labels=labels, zero_division=0
        ),
        'overrides': overrides,
    }


def top_confusions(cm: np.ndarray, n: int = 10) -> List[Tuple[int, int, int]]:
    """
    Most frequent off-diagonal (actual, predicted) pairs.

    Returns:
        list: (actual, predicted, count) sorted by count, then by position
    """
    cm = np.asarray(cm)
    off_diagonal = cm.copy()
    np.fill_diagonal(off_diagonal, 0)
    flat = off_diagonal.ravel()
    order = np.lexsort((np.arange(flat.size), -flat))
    pairs = []
    for idx in order[:n]:
        if flat[idx] == 0:
            break
        actual, predicted = divmod(int(idx), cm.shape[1])
        pairs.append((actual, predicted, int(flat[idx])))
    return pairs


def per_class_accuracy(cm: np.ndarray, label_names: Optional[Mapping[int, str]] = None) -> pd.DataFrame:
    """Accuracy of every class from a confusion matrix (0 for unseen classes)."""
    cm = np.asarray(cm)
    totals = cm.sum(axis=1)
    correct = np.diag(cm)
    accuracy = np.divide(correct, totals, out=np.zeros(len(totals), dtype=np.float64), where=totals > 0)
    names = [label_names.get(i, str(i)) if label_names else str(i) for i in range(len(totals))]
    return pd.DataFrame({'label': names, 'samples': totals, 'correct': correct, 'accuracy': accuracy})


def plot_confusion_matrix(cm: np.ndarray, label_names: Optional[Mapping[int, str]] = None,
                          title: str = 'Confusion Matrix', save_path: Optional[str] = None) -> None:
    """Heatmap of a confusion matrix; saved to save_path or shown."""
    cm = np.asarray(cm)
    ticks = [label_names.get(i, str(i)) if label_names else str(i) for i in range(cm.shape[0])]
    fig, ax = plt.subplots(figsize=(max(6, cm.shape[0] * 0.45), max(5, cm.shape[0] * 0.4)))
    sns.heatmap(cm, annot=cm.shape[0] <= 12, fmt='d', cmap='Blues',
                xticklabels=ticks, yticklabels=ticks, ax=ax)
    ax.set_title(title)
    ax.set_xlabel('Predicted')
    ax.set_ylabel('Actual')
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        plt.close(fig)
        print(f"Confusion matrix saved to {save_path}")
    else:
        plt.show()
