"""
Histogram of Oriented Gradients descriptor for small grayscale glyphs.

Each image is split into non-overlapping square cells. Every pixel votes
its gradient magnitude into an unsigned orientation histogram of its cell,
each cell histogram is L2-normalised and the cells are concatenated in
row-major order.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from tqdm import tqdm

from .constants import DEFAULT_CELL_SIZE, DEFAULT_HOG_BINS, HOG_NORM_EPSILON
from .datasets import FeatureSet
from .errors import InvalidParameterError

logger = logging.getLogger(__name__)


def hog_feature_length(rows: int, cols: int, cell_size: int = DEFAULT_CELL_SIZE,
                       num_bins: int = DEFAULT_HOG_BINS) -> int:
    """Number of descriptor values produced for a rows x cols image."""
    return (rows // cell_size) * (cols // cell_size) * num_bins


def _check_params(shape: tuple, cell_size: int, num_bins: int) -> None:
    if cell_size < 1:
        raise InvalidParameterError(f"cell_size must be positive, got {cell_size}")
    if num_bins < 1:
        raise InvalidParameterError(f"num_bins must be positive, got {num_bins}")
    if len(shape) != 2:
        raise InvalidParameterError(f"Expected a 2-D grayscale image, got shape {shape}")
    if shape[0] < cell_size or shape[1] < cell_size:
        raise InvalidParameterError(
            f"Image of size {shape[0]}x{shape[1]} is smaller than one {cell_size}x{cell_size} cell"
        )


def compute_gradients(image: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Central-difference gradients with edge-clamped neighbours.

    Returns:
        tuple: (magnitude, orientation in degrees within [0, 180))
    """
    padded = np.pad(np.asarray(image, dtype=np.float64), 1, mode="edge")
    dx = padded[1:-1, 2:] - padded[1:-1, :-2]
    dy = padded[2:, 1:-1] - padded[:-2, 1:-1]

    magnitude = np.sqrt(dx * dx + dy * dy)
    orientation = np.mod(np.degrees(np.arctan2(dy, dx)) + 180.0, 180.0)
    # Flat regions have no direction.
    orientation[(dx == 0) & (dy == 0)] = 0.0
    return magnitude, orientation


def extract(image: np.ndarray, cell_size: int = DEFAULT_CELL_SIZE,
            num_bins: int = DEFAULT_HOG_BINS) -> np.ndarray:
    """
    Extract the HOG descriptor of a single image.

    Args:
        image: rows x cols uint8 grayscale image
        cell_size: side length of a cell in pixels
        num_bins: orientation bins per cell over [0, 180)

    Returns:
        np.ndarray: float64 vector of length
            (rows // cell_size) * (cols // cell_size) * num_bins, values in [0, 1]
    """
    image = np.asarray(image)
    _check_params(image.shape, cell_size, num_bins)

    magnitude, orientation = compute_gradients(image)

    cells_y = image.shape[0] // cell_size
    cells_x = image.shape[1] // cell_size
    height, width = cells_y * cell_size, cells_x * cell_size
    magnitude = magnitude[:height, :width]
    orientation = orientation[:height, :width]

    bins = np.minimum((orientation * num_bins / 180.0).astype(np.int64), num_bins - 1)
    cell_rows = np.arange(height) // cell_size
    cell_cols = np.arange(width) // cell_size
    cell_index = cell_rows[:, None] * cells_x + cell_cols[None, :]

    histograms = np.bincount(
        (cell_index * num_bins + bins).ravel(),
        weights=magnitude.ravel(),
        minlength=cells_y * cells_x * num_bins,
    ).reshape(cells_y * cells_x, num_bins)

    norms = np.sqrt(np.sum(histograms * histograms, axis=1, keepdims=True) + HOG_NORM_EPSILON)
    return (histograms / norms).ravel()


def extract_batch(
    images: np.ndarray,
    cell_size: int = DEFAULT_CELL_SIZE,
    num_bins: int = DEFAULT_HOG_BINS,
    labels: Optional[np.ndarray] = None,
    progress: bool = False,
) -> FeatureSet:
    """
    Extract HOG descriptors for a stack of images.

    Args:
        images: array of shape (num_images, rows, cols)
        labels: optional labels copied into the result
        progress: show a progress bar

    Returns:
        FeatureSet: one descriptor row per image
    """
    images = np.asarray(images)
    if images.ndim != 3:
        raise InvalidParameterError(f"Expected an image stack (N, rows, cols), got shape {images.shape}")
    _check_params(images.shape[1:], cell_size, num_bins)

    num_features = hog_feature_length(images.shape[1], images.shape[2], cell_size, num_bins)
    features = np.empty((images.shape[0], num_features), dtype=np.float64)
    iterator = range(images.shape[0])
    if progress:
        iterator = tqdm(iterator, desc="Extracting HOG features", unit="img")
    for i in iterator:
        features[i] = extract(images[i], cell_size, num_bins)

    logger.info(
        "Extracted HOG features: %d images, %d features per image",
        images.shape[0], num_features,
    )
    return FeatureSet(features=features, labels=labels)
