"""
Tests for evaluation and reporting
"""

import os
import tempfile
import unittest

import matplotlib

matplotlib.use("Agg")

import numpy as np

from hogbayes.cascade import CascadeManager
from hogbayes.datasets import FeatureSet
from hogbayes.errors import InvalidParameterError
from hogbayes.evaluation import evaluate_model, per_class_accuracy, plot_confusion_matrix, top_confusions
from hogbayes.naive_bayes import NaiveBayesModel


def _three_class_set():
    features = np.array([[0.1, 0.1], [0.15, 0.1], [0.5, 0.5], [0.55, 0.5], [0.9, 0.9], [0.95, 0.9]])
    return FeatureSet(features=features, labels=[0, 0, 1, 1, 2, 2])


class TestEvaluateModel(unittest.TestCase):

    def setUp(self):
        self.data = _three_class_set()
        self.model = NaiveBayesModel(3, 2, num_bins=4).train(self.data)

    def test_training_set_accuracy(self):
        results = evaluate_model(self.model, self.data)
        self.assertEqual(results['accuracy'], 1.0)
        np.testing.assert_array_equal(results['predictions'], self.data.labels)
        np.testing.assert_array_equal(results['confusion_matrix'], np.diag([2, 2, 2]))
        self.assertEqual(results['overrides'], 0)
        self.assertIsInstance(results['classification_report'], str)

    def test_with_cascade(self):
        manager = CascadeManager()
        index = manager.add_classifier(0, 1, 0.75, 2, num_bins=4)
        manager.train(index, self.data)
        results = evaluate_model(self.model, self.data, manager)
        self.assertEqual(results['accuracy'], 1.0)
        self.assertEqual(results['confusion_matrix'].shape, (3, 3))

    def test_unlabeled_rejected(self):
        with self.assertRaises(InvalidParameterError):
            evaluate_model(self.model, FeatureSet(features=self.data.features))


class TestReports(unittest.TestCase):

    def setUp(self):
        self.cm = np.array([[5, 3, 0],
                            [1, 4, 3],
                            [0, 0, 0]])

    def test_top_confusions(self):
        self.assertEqual(top_confusions(self.cm), [(0, 1, 3), (1, 2, 3), (1, 0, 1)])
        self.assertEqual(top_confusions(self.cm, n=1), [(0, 1, 3)])
        self.assertEqual(top_confusions(np.eye(3, dtype=int)), [])

    def test_per_class_accuracy(self):
        table = per_class_accuracy(self.cm, {0: "A", 1: "B", 2: "C"})
        self.assertEqual(list(table['label']), ["A", "B", "C"])
        np.testing.assert_allclose(table['accuracy'], [5 / 8, 0.5, 0.0])
        self.assertEqual(list(table['samples']), [8, 8, 0])

    def test_plot_saved(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "cm.png")
            plot_confusion_matrix(self.cm, {0: "A", 1: "B", 2: "C"}, save_path=path)
            self.assertTrue(os.path.exists(path))


if __name__ == "__main__":
    unittest.main()
