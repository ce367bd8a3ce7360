"""
Default parameters, label vocabularies and pipeline configuration.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Tuple

from .errors import InvalidParameterError

# HOG descriptor
DEFAULT_CELL_SIZE = 4
DEFAULT_HOG_BINS = 9
HOG_NORM_EPSILON = 1e-6

# Naive Bayes
DEFAULT_NB_BINS = 32
DEFAULT_ALPHA = 1.0
PROBABILITY_FLOOR = 1e-10

# Feature selection
SELECTION_NUM_BINS = 8

# Cascade policy
HIGH_CONFIDENCE_THRESHOLD = 0.8
SPECIALIZED_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_PAIR_THRESHOLD = 0.75

DIGIT_SYMBOLS: List[str] = [str(d) for d in range(10)]
LETTER_SYMBOLS: List[str] = [chr(ord("A") + i) for i in range(26)]

ALPHABETS: Dict[str, List[str]] = {
    "digits": DIGIT_SYMBOLS,
    "letters": LETTER_SYMBOLS,
}

# Pairs the general model tends to mix up, as (class_a, class_b, threshold).
DEFAULT_CONFUSABLE_PAIRS: Dict[str, List[Tuple[int, int, float]]] = {
    "digits": [
        (4, 9, DEFAULT_PAIR_THRESHOLD),
        (3, 5, DEFAULT_PAIR_THRESHOLD),
        (7, 9, DEFAULT_PAIR_THRESHOLD),
    ],
    "letters": [
        (8, 11, DEFAULT_PAIR_THRESHOLD),   # I / L
        (6, 16, DEFAULT_PAIR_THRESHOLD),   # G / Q
        (20, 21, DEFAULT_PAIR_THRESHOLD),  # U / V
        (2, 4, DEFAULT_PAIR_THRESHOLD),    # C / E
    ],
}


def default_label_mapping(alphabet: str = "digits") -> Dict[int, str]:
    """
    Deterministic index->symbol mapping for the given alphabet.
    """
    try:
        symbols = ALPHABETS[alphabet]
    except KeyError:
        raise InvalidParameterError(f"Unknown alphabet: {alphabet}") from None
    return {idx: symbol for idx, symbol in enumerate(symbols)}


@dataclass(frozen=True)
class PipelineConfig:
    """Parameters shared by training, selection and the cascade."""

    alphabet: str = "digits"
    cell_size: int = DEFAULT_CELL_SIZE
    hog_bins: int = DEFAULT_HOG_BINS
    nb_bins: int = DEFAULT_NB_BINS
    alpha: float = DEFAULT_ALPHA
    num_selected: int | None = None
    selection_method: str = "mutual_info"
    high_confidence: float = HIGH_CONFIDENCE_THRESHOLD
    specialized_confidence: float = SPECIALIZED_CONFIDENCE_THRESHOLD
    confusable_pairs: Tuple[Tuple[int, int, float], ...] = field(default_factory=tuple)

    @property
    def num_classes(self) -> int:
        return len(default_label_mapping(self.alphabet))

    @property
    def pairs(self) -> Tuple[Tuple[int, int, float], ...]:
        """Configured pairs, or the alphabet's defaults when none are set."""
        if self.confusable_pairs:
            return self.confusable_pairs
        return tuple(DEFAULT_CONFUSABLE_PAIRS.get(self.alphabet, []))

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: str | os.PathLike[str]) -> PipelineConfig:
    """
    Read a JSON config file. Unknown keys are rejected.
    """
    with open(path, "r", encoding="utf-8") as handle:
        raw = json.load(handle)

    known = set(PipelineConfig.__dataclass_fields__)
    unknown = sorted(set(raw) - known)
    if unknown:
        raise InvalidParameterError(f"Unknown config keys: {', '.join(unknown)}")

    if "confusable_pairs" in raw:
        raw["confusable_pairs"] = tuple(
            (int(a), int(b), float(threshold)) for a, b, threshold in raw["confusable_pairs"]
        )
    return PipelineConfig(**raw)
