"""
Tests for the HOG descriptor extractor
"""

import unittest

import numpy as np

from hogbayes.errors import InvalidParameterError
from hogbayes.hog import compute_gradients, extract, extract_batch, hog_feature_length


class TestGradients(unittest.TestCase):
    """Test gradient computation"""

    def test_edge_clamped_central_differences(self):
        """Boundary pixels reuse the edge pixel instead of wrapping"""
        image = np.array([[0, 10, 30],
                          [0, 10, 30],
                          [0, 10, 30]], dtype=np.uint8)
        magnitude, orientation = compute_gradients(image)
        # Left column: right - self, middle: right - left, right column: self - left
        np.testing.assert_allclose(magnitude[1], [10.0, 30.0, 20.0])
        np.testing.assert_allclose(orientation[1], [0.0, 0.0, 0.0])

    def test_orientation_is_unsigned(self):
        """A gradient and its negation fall on the same orientation"""
        rising = np.tile(np.arange(0, 50, 10, dtype=np.uint8), (5, 1))
        falling = rising[:, ::-1].copy()
        _, o1 = compute_gradients(rising)
        _, o2 = compute_gradients(falling)
        np.testing.assert_allclose(o1, o2)

    def test_vertical_gradient_is_ninety_degrees(self):
        image = np.tile(np.arange(0, 50, 10, dtype=np.uint8)[:, None], (1, 5))
        _, orientation = compute_gradients(image)
        np.testing.assert_allclose(orientation, 90.0)

    def test_flat_region_has_zero_orientation(self):
        _, orientation = compute_gradients(np.full((4, 4), 128, dtype=np.uint8))
        self.assertTrue(np.all(orientation == 0.0))
        self.assertFalse(np.any(np.isnan(orientation)))


class TestExtract(unittest.TestCase):
    """Test single-image extraction"""

    def setUp(self):
        rng = np.random.default_rng(0)
        self.image = rng.integers(0, 256, size=(28, 28), dtype=np.uint8)

    def test_feature_length(self):
        """Vector length is (rows/cell)(cols/cell)bins"""
        features = extract(self.image, cell_size=4, num_bins=9)
        self.assertEqual(features.shape, (7 * 7 * 9,))
        self.assertEqual(hog_feature_length(28, 28, 4, 9), 441)

    def test_partial_cells_are_dropped(self):
        image = np.zeros((10, 13), dtype=np.uint8)
        self.assertEqual(extract(image, cell_size=4, num_bins=6).size, 2 * 3 * 6)

    def test_values_in_unit_interval(self):
        features = extract(self.image, cell_size=4, num_bins=9)
        self.assertTrue(features.min() >= 0.0)
        self.assertTrue(features.max() <= 1.0)

    def test_cells_are_l2_normalised(self):
        features = extract(self.image, cell_size=7, num_bins=9).reshape(-1, 9)
        norms = np.linalg.norm(features, axis=1)
        np.testing.assert_allclose(norms, 1.0, atol=1e-6)

    def test_blank_image_gives_zero_vector(self):
        features = extract(np.zeros((28, 28), dtype=np.uint8), cell_size=4, num_bins=9)
        self.assertTrue(np.all(features == 0.0))

    def test_vertical_edge_votes_into_first_bin(self):
        """A vertical edge has horizontal gradient, orientation 0"""
        image = np.zeros((8, 8), dtype=np.uint8)
        image[:, 4:] = 255
        features = extract(image, cell_size=8, num_bins=4)
        self.assertGreater(features[0], 0.99)
        np.testing.assert_allclose(features[1:], 0.0, atol=1e-9)

    def test_deterministic(self):
        np.testing.assert_array_equal(extract(self.image), extract(self.image))

    def test_invalid_parameters(self):
        with self.assertRaises(InvalidParameterError):
            extract(self.image, cell_size=0)
        with self.assertRaises(InvalidParameterError):
            extract(self.image, num_bins=0)
        with self.assertRaises(InvalidParameterError):
            extract(np.zeros((2, 2), dtype=np.uint8), cell_size=4)
        with self.assertRaises(InvalidParameterError):
            extract(np.zeros((4, 4, 3), dtype=np.uint8))


class TestExtractBatch(unittest.TestCase):
    """Test batch extraction"""

    def test_batch_matches_single(self):
        rng = np.random.default_rng(1)
        images = rng.integers(0, 256, size=(5, 12, 12), dtype=np.uint8)
        labels = np.array([0, 1, 2, 1, 0])
        feature_set = extract_batch(images, cell_size=4, num_bins=9, labels=labels)

        self.assertEqual(feature_set.num_samples, 5)
        self.assertEqual(feature_set.num_features, 3 * 3 * 9)
        np.testing.assert_array_equal(feature_set.labels, labels)
        for i in range(5):
            np.testing.assert_allclose(feature_set.features[i], extract(images[i], 4, 9))

    def test_rejects_non_stack(self):
        with self.assertRaises(InvalidParameterError):
            extract_batch(np.zeros((28, 28), dtype=np.uint8))


if __name__ == "__main__":
    unittest.main()
