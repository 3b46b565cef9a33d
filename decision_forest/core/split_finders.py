"""
Strategies for choosing the split point of a feature at a decision tree node.
"""

from abc import ABC, abstractmethod
from enum import Enum

import numpy as np

from decision_forest.core.impurity import feature_mean
from decision_forest.core.splitter import NULL_SPLITTER, Splitter, compute_splitter, split_rows


class SplitPointFinder(ABC):
    """Abstract base class for split point strategies."""

    @abstractmethod
    def compute_split(
        self,
        feature: int,
        num_classes: int,
        features: np.ndarray,
        labels: np.ndarray,
        entropy: float
    ) -> Splitter:
        """
        Propose a split for one feature over a set of rows.

        Args:
            feature: Index of the feature to split on.
            num_classes: Number of label columns.
            features: Feature matrix of the rows at the node.
            labels: Label matrix of the rows at the node.
            entropy: Entropy at the node.

        Returns:
            The best split found, or the null splitter.
        """
        pass


class MeanSplitPointFinder(SplitPointFinder):
    """Only test the mean of the feature as the split point."""

    def compute_split(self, feature, num_classes, features, labels, entropy):
        mean = feature_mean(features, feature)
        return split_rows(feature, mean, features, labels, entropy)


class SequentialSplitPointFinder(SplitPointFinder):
    """
    Exhaustive search for the best split point.

    The rows are grouped by distinct feature value.  Walking the values in order, each
    group's label sums are moved from the right side to the left, and the midpoint
    between the group and the next one is tested as a threshold.
    """

    def compute_split(self, feature, num_classes, features, labels, entropy):
        if features.shape[0] <= 2:
            mean = feature_mean(features, feature)
            return split_rows(feature, mean, features, labels, entropy)
        values, groups = np.unique(features[:, feature], return_inverse=True)
        group_sums = np.zeros((values.size, num_classes))
        np.add.at(group_sums, groups.ravel(), labels)
        left_sums = np.zeros(num_classes)
        right_sums = group_sums.sum(axis=0)
        best = NULL_SPLITTER
        for k in range(values.size - 1):
            left_sums += group_sums[k]
            right_sums -= group_sums[k]
            threshold = self.midpoint(values[k], values[k + 1])
            test = compute_splitter(feature, threshold, entropy, left_sums, right_sums)
            if test < best:
                best = test
        return best

    @staticmethod
    def midpoint(low: float, high: float) -> float:
        """
        Return a threshold between two adjacent distinct values.

        The result is always >= low and < high, so rows at the lower value go left and
        rows at the upper value go right even when the two values are adjacent floats.
        """
        mid = (low + high) / 2.0
        if not (low <= mid < high):
            mid = low
        return float(mid)


class SplitMethod(Enum):
    """Enumerator for split point strategies."""

    MEAN = "mean"
    SEQUENTIAL = "sequential"

    def create(self) -> SplitPointFinder:
        if self is SplitMethod.SEQUENTIAL:
            return SequentialSplitPointFinder()
        return MeanSplitPointFinder()
