"""
Command-line entry point: train, select features, build the cascade and evaluate.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from .cascade import CascadeManager
from .constants import PipelineConfig, default_label_mapping, load_config
from .datasets import (
    FeatureSet,
    adjust_emnist_labels,
    load_idx_dataset,
    load_selected_indices,
    save_selected_indices,
)
from .errors import EmptyTrainingSetError
from .evaluation import evaluate_model, per_class_accuracy, plot_confusion_matrix, top_confusions
from .hog import extract, extract_batch
from .naive_bayes import NaiveBayesModel
from .selection import SelectionMethod, create_reduced_feature_set, select_features, select_hybrid_features

logger = logging.getLogger(__name__)


def load_image_file(image_path: str, shape: Tuple[int, int]) -> np.ndarray:
    """Read an image as grayscale and resize it to (rows, cols)."""
    image = cv2.imread(image_path, cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise ValueError(f"Could not load image from {image_path}")
    rows, cols = shape
    if image.shape != (rows, cols):
        image = cv2.resize(image, (cols, rows), interpolation=cv2.INTER_AREA)
    return image


def load_split(images_path: str, labels_path: str, alphabet: str) -> Tuple[np.ndarray, np.ndarray]:
    images, labels = load_idx_dataset(images_path, labels_path)
    labels = labels.astype(np.int64)
    if alphabet == "letters":
        labels = adjust_emnist_labels(labels)
    return images, labels


def choose_features(train_set: FeatureSet, config: PipelineConfig,
                    load_indices: Optional[str], save_indices: Optional[str]) -> Optional[np.ndarray]:
    """Selected feature indices from file, from a fresh selection, or None."""
    if load_indices:
        indices = load_selected_indices(load_indices)
        print(f"Loaded {len(indices)} selected feature indices from {load_indices}")
        return indices
    if not config.num_selected:
        return None

    method = SelectionMethod.parse(config.selection_method)
    pair_classes = sorted({c for a, b, _ in config.pairs for c in (a, b)})
    if method is SelectionMethod.FISHER:
        indices = select_features(train_set, config.num_selected, method, target_classes=pair_classes)
    elif pair_classes:
        num_specific = config.num_selected // 4
        indices = select_hybrid_features(
            train_set, config.num_classes, pair_classes,
            num_class_specific=max(1, num_specific),
            num_general=config.num_selected - max(1, num_specific),
            method=method,
        )
    else:
        indices = select_features(train_set, config.num_selected, method, num_classes=config.num_classes)

    if save_indices:
        save_selected_indices(save_indices, indices)
        print(f"Selected feature indices saved to '{save_indices}'")
    return indices


def build_cascade(train_set: FeatureSet, config: PipelineConfig) -> CascadeManager:
    manager = CascadeManager(config.high_confidence, config.specialized_confidence)
    for class_a, class_b, threshold in config.pairs:
        index = manager.add_classifier(
            class_a, class_b, threshold, train_set.num_features, config.nb_bins, config.alpha
        )
        try:
            manager.train(index, train_set)
        except EmptyTrainingSetError as exc:
            logger.warning("Leaving classifier %d/%d untrained: %s", class_a, class_b, exc)
    return manager


def print_report(name: str, results: dict, label_names: dict) -> None:
    print(f"\n{name} accuracy: {100.0 * results['accuracy']:.2f}%")
    if 'overrides' in results and results['overrides']:
        print(f"Specialized classifier overrides: {results['overrides']}")

    print("\nTop confusions:")
    print("Actual\tPredicted\tCount")
    print("------\t---------\t-----")
    for actual, predicted, count in top_confusions(results['confusion_matrix']):
        print(f"{label_names[actual]}\t{label_names[predicted]}\t\t{count}")

    print("\nPer-class accuracy:")
    table = per_class_accuracy(results['confusion_matrix'], label_names)
    for row in table.itertuples(index=False):
        print(f"{row.label}\t{100.0 * row.accuracy:.2f}%")


def run(args: argparse.Namespace) -> int:
    config = load_config(args.config) if args.config else PipelineConfig()
    config = config.with_overrides(
        alphabet=args.alphabet,
        cell_size=args.cell_size,
        hog_bins=args.hog_bins,
        nb_bins=args.nb_bins,
        alpha=args.alpha,
        num_selected=args.select,
        selection_method=args.method,
    )
    label_names = default_label_mapping(config.alphabet)

    print("=" * 60)
    print("HOG + NAIVE BAYES HANDWRITING RECOGNIZER")
    print("=" * 60)

    print("\n1. Loading training data...")
    train_images, train_labels = load_split(args.train_images, args.train_labels, config.alphabet)
    image_shape = train_images.shape[1:]
    print(f"Loaded {len(train_images)} training images")

    print("\n2. Extracting HOG features...")
    start_time = time.time()
    train_set = extract_batch(train_images, config.cell_size, config.hog_bins, train_labels, progress=True)
    print(f"Extracted {train_set.num_features} features per image in {time.time() - start_time:.2f} seconds")

    indices = choose_features(train_set, config, args.load_indices, args.save_indices)
    if indices is not None:
        train_set = create_reduced_feature_set(train_set, indices)

    print("\n3. Training general model...")
    model = NaiveBayesModel(config.num_classes, train_set.num_features, config.nb_bins, config.alpha)
    model.train(train_set)

    manager = None
    if args.cascade:
        print("\n4. Training specialized classifiers...")
        manager = build_cascade(train_set, config)
        print(f"Trained {len(manager)} specialized classifiers")

    if args.predict_image:
        image = load_image_file(args.predict_image, image_shape)
        features = extract(image, config.cell_size, config.hog_bins)
        if indices is not None:
            features = features[indices]
        if manager is not None:
            result = manager.classify(model, features, top_n=3)
        else:
            result = model.predict_with_confidence(features, top_n=3)
        print(f"\nRecognized: {label_names[result.prediction]} (confidence: {result.confidence:.3f})")
        if result.overridden_from is not None:
            print(f"  Specialized classifier overrode {label_names[result.overridden_from]} "
                  f"(confidence: {result.specialized_confidence:.3f})")
        for rank, cls in enumerate(result.top_n, start=1):
            print(f"  {rank}. {label_names[cls]} ({result.class_probs[cls]:.3f})")

    if args.test_images and args.test_labels:
        print("\n5. Evaluating...")
        test_images, test_labels = load_split(args.test_images, args.test_labels, config.alphabet)
        test_set = extract_batch(test_images, config.cell_size, config.hog_bins, test_labels, progress=True)
        if indices is not None:
            test_set = create_reduced_feature_set(test_set, indices)

        general = evaluate_model(model, test_set)
        print_report("General model", general, label_names)
        if args.plot:
            plot_confusion_matrix(general['confusion_matrix'], label_names, save_path=args.plot)

        if manager is not None:
            cascaded = evaluate_model(model, test_set, manager)
            print_report("Two-stage", cascaded, label_names)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HOG + Naive Bayes handwritten character recognizer")
    parser.add_argument('--train-images', required=True, help='IDX training images file')
    parser.add_argument('--train-labels', required=True, help='IDX training labels file')
    parser.add_argument('--test-images', help='IDX test images file')
    parser.add_argument('--test-labels', help='IDX test labels file')
    parser.add_argument('--alphabet', choices=['digits', 'letters'], help='Label vocabulary (letters use EMNIST 1-based labels)')
    parser.add_argument('--config', help='JSON config file')
    parser.add_argument('--cell-size', type=int, help='HOG cell size in pixels')
    parser.add_argument('--hog-bins', type=int, help='HOG orientation bins')
    parser.add_argument('--nb-bins', type=int, help='Naive Bayes bins per feature')
    parser.add_argument('--alpha', type=float, help='Laplace smoothing strength')
    parser.add_argument('--select', type=int, help='Number of features to keep')
    parser.add_argument('--method', choices=[m.value for m in SelectionMethod], help='Feature selection method')
    parser.add_argument('--load-indices', help='Apply a previously saved feature selection')
    parser.add_argument('--save-indices', help='Save the computed feature selection')
    parser.add_argument('--cascade', action='store_true', help='Train specialized classifiers for confusable pairs')
    parser.add_argument('--plot', help='Save the confusion matrix heatmap to this path')
    parser.add_argument('--predict-image', help='Recognize a single image file')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main function with command line interface"""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    for path in (args.train_images, args.train_labels, args.predict_image):
        if path and not os.path.exists(path):
            print(f"Error: file {path} not found")
            return 1
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
