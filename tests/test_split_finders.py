"""Tests for the split point strategies."""

import numpy as np
import pytest

from decision_forest.core.impurity import entropy
from decision_forest.core.split_finders import (
    MeanSplitPointFinder, SequentialSplitPointFinder, SplitMethod
)


class TestSplitPointFinders:
    """Test the mean and sequential split point finders."""

    def test_sequential_dominates_mean_on_iris(self, iris_dataset):
        """The exhaustive search never finds less gain than the mean split."""
        features = iris_dataset.features
        labels = iris_dataset.labels
        node_entropy = entropy(labels)
        mean_finder = MeanSplitPointFinder()
        seq_finder = SequentialSplitPointFinder()
        for feature in range(iris_dataset.num_inputs):
            mean_split = mean_finder.compute_split(feature, 3, features, labels, node_entropy)
            seq_split = seq_finder.compute_split(feature, 3, features, labels, node_entropy)
            assert seq_split.gain >= mean_split.gain - 1e-12

    def test_sequential_dominates_mean_on_subsets(self, iris_dataset):
        """Dominance also holds on random row subsets."""
        rng = np.random.default_rng(7)
        for _ in range(20):
            rows = rng.choice(iris_dataset.num_examples, size=15, replace=False)
            subset = iris_dataset.subset(rows)
            node_entropy = entropy(subset.labels)
            for feature in range(subset.num_inputs):
                mean_split = MeanSplitPointFinder().compute_split(
                    feature, 3, subset.features, subset.labels, node_entropy)
                seq_split = SequentialSplitPointFinder().compute_split(
                    feature, 3, subset.features, subset.labels, node_entropy)
                assert seq_split.gain >= mean_split.gain - 1e-12

    def test_sequential_finds_gap(self, separable_dataset):
        """The exhaustive search puts the threshold between the classes."""
        splitter = SequentialSplitPointFinder().compute_split(
            0, 2, separable_dataset.features, separable_dataset.labels, 1.0)
        assert 4.0 <= splitter.threshold < 5.0
        assert splitter.gain == pytest.approx(1.0)

    def test_constant_feature_is_null(self, separable_dataset):
        """A feature with one distinct value cannot be split."""
        splitter = SequentialSplitPointFinder().compute_split(
            1, 2, separable_dataset.features, separable_dataset.labels, 1.0)
        assert splitter.is_null

    def test_adjacent_floats_tie_goes_left(self):
        """With adjacent float values, rows at the lower value still go left."""
        low = 1.0
        high = np.nextafter(1.0, 2.0)
        features = np.array([[low], [low], [high], [high]])
        labels = np.array([[1.0, 0.0], [1.0, 0.0], [0.0, 1.0], [0.0, 1.0]])
        splitter = SequentialSplitPointFinder().compute_split(0, 2, features, labels, 1.0)
        assert splitter.threshold == low
        assert splitter.left_count == 2 and splitter.right_count == 2
        assert splitter.partition(features).tolist() == [True, True, False, False]

    def test_midpoint_bounds(self):
        """The midpoint is at least the low value and below the high value."""
        assert SequentialSplitPointFinder.midpoint(1.0, 3.0) == 2.0
        high = np.nextafter(5.0, 6.0)
        mid = SequentialSplitPointFinder.midpoint(5.0, high)
        assert 5.0 <= mid < high

    def test_small_node_uses_mean(self):
        """Two rows are split at the mean."""
        features = np.array([[0.0], [4.0]])
        labels = np.array([[1.0, 0.0], [0.0, 1.0]])
        splitter = SequentialSplitPointFinder().compute_split(0, 2, features, labels, 1.0)
        assert splitter.threshold == pytest.approx(2.0)

    def test_split_method_enum(self):
        """Each split method creates the matching finder."""
        assert isinstance(SplitMethod.MEAN.create(), MeanSplitPointFinder)
        assert isinstance(SplitMethod.SEQUENTIAL.create(), SequentialSplitPointFinder)
