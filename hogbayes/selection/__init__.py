"""
Feature scoring and selection.

Scores every descriptor dimension by variance, chi-square, mutual
information or pairwise Fisher discrimination and projects feature sets
onto the best-scoring dimensions.
"""

from ..datasets import load_selected_indices, save_selected_indices
from .scoring import safe_divide
from .selector import (
    SelectionMethod,
    combine_selections,
    create_reduced_feature_set,
    rank_features,
    score_features,
    select_class_specific_features,
    select_features,
    select_hybrid_features,
)

__all__ = [
    "SelectionMethod",
    "combine_selections",
    "create_reduced_feature_set",
    "load_selected_indices",
    "rank_features",
    "safe_divide",
    "save_selected_indices",
    "score_features",
    "select_class_specific_features",
    "select_features",
    "select_hybrid_features",
]
