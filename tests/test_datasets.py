"""
Tests for feature sets, IDX loading and configuration
"""

import gzip
import json
import os
import tempfile
import unittest

import numpy as np

from hogbayes.constants import PipelineConfig, default_label_mapping, load_config
from hogbayes.datasets import (
    FeatureSet,
    adjust_emnist_labels,
    image_from_buffer,
    load_idx_dataset,
    load_idx_images,
    load_idx_labels,
)
from hogbayes.errors import InvalidParameterError


def _idx_images(images, magic=2051):
    num, rows, cols = images.shape
    return np.array([magic, num, rows, cols], dtype=">u4").tobytes() + images.astype(np.uint8).tobytes()


def _idx_labels(labels, magic=2049):
    return np.array([magic, len(labels)], dtype=">u4").tobytes() + np.asarray(labels, dtype=np.uint8).tobytes()


class TestFeatureSet(unittest.TestCase):

    def test_shape_and_dtype(self):
        data = FeatureSet(features=[[0, 1, 2], [3, 4, 5]], labels=[1, 0])
        self.assertEqual(data.features.dtype, np.float64)
        self.assertEqual(data.labels.dtype, np.int64)
        self.assertEqual((data.num_samples, data.num_features), (2, 3))
        self.assertEqual(len(data), 2)
        self.assertTrue(data.is_labeled)

    def test_unlabeled(self):
        data = FeatureSet(features=np.zeros((4, 2)))
        self.assertFalse(data.is_labeled)
        with self.assertRaises(InvalidParameterError):
            data.class_distribution()

    def test_validation(self):
        with self.assertRaises(InvalidParameterError):
            FeatureSet(features=np.zeros(5))
        with self.assertRaises(InvalidParameterError):
            FeatureSet(features=np.zeros((3, 2)), labels=[0, 1])

    def test_fractional_labels_rejected(self):
        with self.assertRaises(InvalidParameterError):
            FeatureSet(features=np.zeros((2, 1)), labels=[1.7, 0.0])
        with self.assertRaises(InvalidParameterError):
            FeatureSet(features=np.zeros((2, 1)), labels=[np.nan, 0.0])
        data = FeatureSet(features=np.zeros((2, 1)), labels=[2.0, 0.0])
        np.testing.assert_array_equal(data.labels, [2, 0])

    def test_class_distribution(self):
        data = FeatureSet(features=np.zeros((5, 1)), labels=[2, 0, 2, 2, 0])
        self.assertEqual(data.class_distribution(), {0: 2, 2: 3})


class TestImageBuffer(unittest.TestCase):

    def test_row_major(self):
        image = image_from_buffer(bytes(range(6)), 2, 3)
        np.testing.assert_array_equal(image, [[0, 1, 2], [3, 4, 5]])
        self.assertEqual(image.dtype, np.uint8)

    def test_size_mismatch(self):
        with self.assertRaises(InvalidParameterError):
            image_from_buffer(bytes(5), 2, 3)
        with self.assertRaises(InvalidParameterError):
            image_from_buffer(b"", 0, 3)


class TestIdx(unittest.TestCase):
    """Test the IDX readers"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        rng = np.random.default_rng(2)
        self.images = rng.integers(0, 256, size=(3, 4, 5), dtype=np.uint8)
        self.labels = np.array([7, 0, 3], dtype=np.uint8)

    def _write(self, name, payload):
        path = os.path.join(self.tmp.name, name)
        opener = gzip.open if name.endswith(".gz") else open
        with opener(path, "wb") as handle:
            handle.write(payload)
        return path

    def test_load_dataset(self):
        images_path = self._write("images-idx3-ubyte", _idx_images(self.images))
        labels_path = self._write("labels-idx1-ubyte", _idx_labels(self.labels))
        images, labels = load_idx_dataset(images_path, labels_path)
        np.testing.assert_array_equal(images, self.images)
        np.testing.assert_array_equal(labels, self.labels)

    def test_gzip(self):
        path = self._write("images-idx3-ubyte.gz", _idx_images(self.images))
        np.testing.assert_array_equal(load_idx_images(path), self.images)

    def test_bad_magic(self):
        images_path = self._write("images", _idx_images(self.images, magic=2049))
        labels_path = self._write("labels", _idx_labels(self.labels, magic=2051))
        with self.assertRaises(ValueError):
            load_idx_images(images_path)
        with self.assertRaises(ValueError):
            load_idx_labels(labels_path)

    def test_truncated(self):
        path = self._write("images", _idx_images(self.images)[:-1])
        with self.assertRaises(ValueError):
            load_idx_images(path)
        with self.assertRaises(ValueError):
            load_idx_labels(self._write("labels", b"\x00\x00"))

    def test_count_mismatch(self):
        images_path = self._write("images", _idx_images(self.images))
        labels_path = self._write("labels", _idx_labels([1, 2]))
        with self.assertRaises(ValueError):
            load_idx_dataset(images_path, labels_path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_idx_images(os.path.join(self.tmp.name, "nope"))

    def test_emnist_labels(self):
        np.testing.assert_array_equal(adjust_emnist_labels([1, 26, 5]), [0, 25, 4])
        with self.assertLogs("hogbayes.datasets", level="WARNING"):
            np.testing.assert_array_equal(adjust_emnist_labels([0, 2]), [0, 1])


class TestConfig(unittest.TestCase):
    """Test pipeline configuration"""

    def test_defaults(self):
        config = PipelineConfig()
        self.assertEqual(config.num_classes, 10)
        self.assertEqual(config.high_confidence, 0.8)
        self.assertEqual(config.specialized_confidence, 0.7)
        self.assertIn((4, 9, 0.75), config.pairs)

    def test_label_mapping(self):
        self.assertEqual(default_label_mapping("digits")[7], "7")
        letters = default_label_mapping("letters")
        self.assertEqual((letters[0], letters[25]), ("A", "Z"))
        with self.assertRaises(InvalidParameterError):
            default_label_mapping("runes")

    def test_overrides_skip_none(self):
        config = PipelineConfig().with_overrides(nb_bins=16, alpha=None)
        self.assertEqual(config.nb_bins, 16)
        self.assertEqual(config.alpha, 1.0)

    def test_load_config(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w", encoding="utf-8") as handle:
                json.dump({"alphabet": "letters", "confusable_pairs": [[8, 11, 0.6]]}, handle)
            config = load_config(path)
        self.assertEqual(config.num_classes, 26)
        self.assertEqual(config.pairs, ((8, 11, 0.6),))

    def test_unknown_keys_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w", encoding="utf-8") as handle:
                json.dump({"cell_sise": 4}, handle)
            with self.assertRaises(InvalidParameterError):
                load_config(path)


if __name__ == "__main__":
    unittest.main()
