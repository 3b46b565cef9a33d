"""Tests for the entropy and label helpers."""

import math

import numpy as np
import pytest

from decision_forest.core.impurity import best_label, entropy, feature_mean, label_entropy


class TestEntropy:
    """Test entropy of label distributions."""

    def test_single_class_is_pure(self):
        """A single-class distribution has zero entropy."""
        assert label_entropy(np.array([0.0, 12.0, 0.0])) == 0.0

    @pytest.mark.parametrize("num_classes", [2, 3, 4, 7])
    def test_balanced_distribution(self, num_classes):
        """A perfectly balanced distribution has entropy log2(C)."""
        counts = np.full(num_classes, 5.0)
        assert label_entropy(counts) == pytest.approx(math.log2(num_classes))

    def test_empty_distribution(self):
        """No examples means no entropy."""
        assert label_entropy(np.zeros(3)) == 0.0

    def test_label_matrix(self):
        """The entropy of a label matrix uses its column sums."""
        labels = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 0.0], [0.0, 1.0]])
        assert entropy(labels) == pytest.approx(1.0)
        assert entropy(np.zeros((0, 2))) == 0.0

    def test_skewed_distribution(self):
        """Entropy of a 3:1 split matches the closed form."""
        expected = -(0.75 * math.log2(0.75) + 0.25 * math.log2(0.25))
        assert label_entropy(np.array([3.0, 1.0])) == pytest.approx(expected)


class TestLabelHelpers:
    """Test majority label and feature mean helpers."""

    def test_best_label_ties_go_low(self):
        """Ties are broken toward the lowest class index."""
        assert best_label(np.array([2.0, 5.0, 5.0])) == 1

    def test_feature_mean(self):
        """The mean of a column, or 0 for no rows."""
        features = np.array([[1.0, 10.0], [3.0, 20.0]])
        assert feature_mean(features, 0) == pytest.approx(2.0)
        assert feature_mean(features, 1) == pytest.approx(15.0)
        assert feature_mean(np.zeros((0, 2)), 0) == 0.0
