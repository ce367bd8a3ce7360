"""
Data boundary for the recognizer.

Provides:
- FeatureSet: the samples x features matrix with optional labels
- IDX (MNIST / EMNIST) image and label readers
- The selected-feature index list format (uint32 count, then uint32 indices)
"""

from __future__ import annotations

import gzip
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import InvalidParameterError

logger = logging.getLogger(__name__)

IDX_IMAGES_MAGIC = 2051
IDX_LABELS_MAGIC = 2049


@dataclass
class FeatureSet:
    """
    Feature matrix of shape (num_samples, num_features) plus optional labels.

    Labels are absent for unlabeled inference sets.
    """

    features: np.ndarray
    labels: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.features = np.asarray(self.features, dtype=np.float64)
        if self.features.ndim != 2:
            raise InvalidParameterError(
                f"Features must be a 2-D matrix, got shape {self.features.shape}"
            )
        if self.labels is not None:
            raw = np.asarray(self.labels).reshape(-1)
            if raw.dtype.kind == "f" and not np.all(np.mod(raw, 1) == 0):
                raise InvalidParameterError("Labels must be whole numbers")
            if raw.dtype.kind not in "iufb":
                raise InvalidParameterError(f"Labels must be integers, got dtype {raw.dtype}")
            self.labels = raw.astype(np.int64)
            if self.labels.shape[0] != self.features.shape[0]:
                raise InvalidParameterError(
                    f"Got {self.labels.shape[0]} labels for {self.features.shape[0]} samples"
                )

    @property
    def num_samples(self) -> int:
        return int(self.features.shape[0])

    @property
    def num_features(self) -> int:
        return int(self.features.shape[1])

    @property
    def is_labeled(self) -> bool:
        return self.labels is not None

    def __len__(self) -> int:
        return self.num_samples

    def class_distribution(self) -> Dict[int, int]:
        """
        Count samples per label.

        Returns:
            dict: label -> number of samples, sorted by label
        """
        if self.labels is None:
            raise InvalidParameterError("Feature set has no labels")
        counts = pd.Series(self.labels).value_counts().sort_index()
        return {int(label): int(count) for label, count in counts.items()}


def image_from_buffer(pixels: bytes | Sequence[int] | np.ndarray, rows: int, cols: int) -> np.ndarray:
    """Wrap a row-major byte buffer as a rows x cols uint8 image."""
    if rows < 1 or cols < 1:
        raise InvalidParameterError(f"Invalid image size {rows}x{cols}")
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        flat = np.frombuffer(pixels, dtype=np.uint8)
    else:
        flat = np.asarray(pixels, dtype=np.uint8).reshape(-1)
    if flat.size != rows * cols:
        raise InvalidParameterError(
            f"Buffer holds {flat.size} pixels, expected {rows * cols}"
        )
    return flat.reshape(rows, cols)


def _read_bytes(path: str | os.PathLike[str]) -> bytes:
    path = os.fspath(path)
    if not os.path.exists(path):
        raise FileNotFoundError(f"IDX file not found: {path}")
    opener = gzip.open if path.endswith(".gz") else open
    with opener(path, "rb") as handle:
        return handle.read()


def _read_header(data: bytes, num_fields: int, path: str | os.PathLike[str]) -> Tuple[int, ...]:
    header_size = 4 * num_fields
    if len(data) < header_size:
        raise ValueError(f"Truncated IDX header in {path}")
    return tuple(int(v) for v in np.frombuffer(data[:header_size], dtype=">u4"))


def load_idx_images(path: str | os.PathLike[str]) -> np.ndarray:
    """
    Load an IDX3 image file.

    Returns:
        np.ndarray: uint8 array of shape (num_images, rows, cols)
    """
    data = _read_bytes(path)
    magic, num_images, rows, cols = _read_header(data, 4, path)
    if magic != IDX_IMAGES_MAGIC:
        raise ValueError(f"Invalid image file magic {magic} in {path}")

    expected = num_images * rows * cols
    payload = np.frombuffer(data, dtype=np.uint8, offset=16)
    if payload.size < expected:
        raise ValueError(f"Image file {path} holds {payload.size} bytes, expected {expected}")
    return payload[:expected].reshape(num_images, rows, cols)


def load_idx_labels(path: str | os.PathLike[str]) -> np.ndarray:
    """
    Load an IDX1 label file.

    Returns:
        np.ndarray: uint8 array of shape (num_labels,)
    """
    data = _read_bytes(path)
    magic, num_labels = _read_header(data, 2, path)
    if magic != IDX_LABELS_MAGIC:
        raise ValueError(f"Invalid label file magic {magic} in {path}")

    payload = np.frombuffer(data, dtype=np.uint8, offset=8)
    if payload.size < num_labels:
        raise ValueError(f"Label file {path} holds {payload.size} labels, expected {num_labels}")
    return payload[:num_labels]


def load_idx_dataset(
    images_path: str | os.PathLike[str],
    labels_path: str | os.PathLike[str],
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Load a matching pair of IDX image and label files.

    Returns:
        tuple: (images, labels)
    """
    images = load_idx_images(images_path)
    labels = load_idx_labels(labels_path)
    if images.shape[0] != labels.shape[0]:
        raise ValueError(
            f"Number of images ({images.shape[0]}) doesn't match number of labels ({labels.shape[0]})"
        )
    logger.info(
        "Loaded %d images of size %dx%d from %s",
        images.shape[0], images.shape[1], images.shape[2], images_path,
    )
    return images, labels


def adjust_emnist_labels(labels: np.ndarray) -> np.ndarray:
    """Shift EMNIST letter labels from 1..26 to 0..25."""
    labels = np.asarray(labels, dtype=np.int64)
    unexpected = int(np.count_nonzero(labels <= 0))
    if unexpected:
        logger.warning("Found %d unexpected label values <= 0; leaving them unchanged", unexpected)
    return np.where(labels > 0, labels - 1, labels)


def save_selected_indices(path: str | os.PathLike[str], indices: Sequence[int] | np.ndarray) -> None:
    """
    Write selected feature indices as a little-endian uint32 count followed
    by the uint32 indices.
    """
    indices = np.asarray(indices, dtype=np.int64).reshape(-1)
    if indices.size and (indices.min() < 0 or indices.max() > np.iinfo(np.uint32).max):
        raise InvalidParameterError("Feature indices must fit in uint32")

    payload = np.empty(indices.size + 1, dtype="<u4")
    payload[0] = indices.size
    payload[1:] = indices
    directory = os.path.dirname(os.fspath(path))
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "wb") as handle:
        handle.write(payload.tobytes())
    logger.info("Saved %d selected feature indices to %s", indices.size, path)


def load_selected_indices(path: str | os.PathLike[str]) -> np.ndarray:
    """Read an index list written by save_selected_indices."""
    with open(path, "rb") as handle:
        data = handle.read()
    if len(data) < 4 or len(data) % 4:
        raise ValueError(f"Malformed index file {path}")

    values = np.frombuffer(data, dtype="<u4")
    count = int(values[0])
    if values.size - 1 != count:
        raise ValueError(
            f"Index file {path} declares {count} indices but holds {values.size - 1}"
        )
    return values[1:].astype(np.int64)
