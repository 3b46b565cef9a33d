"""
Split proposals for decision tree choice nodes.
"""

from typing import Tuple

import numpy as np

from decision_forest.core.impurity import label_entropy


class Splitter:
    """
    A proposal for splitting a choice node on one feature at one threshold.

    Splitters are ordered so that the better proposal sorts first: higher gain wins,
    and between equal gains the more even split wins.  Two different proposals can
    compare equal, so the ordering is not suitable for sets.
    """

    __slots__ = (
        "feature", "threshold", "left_entropy", "right_entropy",
        "left_count", "right_count", "gain"
    )

    def __init__(
        self,
        feature: int = -1,
        threshold: float = 0.0,
        left_entropy: float = 0.0,
        right_entropy: float = 0.0,
        left_count: int = 0,
        right_count: int = 0,
        gain: float = 0.0
    ):
        self.feature = feature
        self.threshold = threshold
        self.left_entropy = left_entropy
        self.right_entropy = right_entropy
        self.left_count = left_count
        self.right_count = right_count
        self.gain = gain

    @property
    def is_null(self) -> bool:
        return self.feature < 0

    @property
    def is_useful(self) -> bool:
        """True if this split actually improves the entropy."""
        return not self.is_null and self.gain > 0.0

    @property
    def imbalance(self) -> int:
        return abs(self.left_count - self.right_count)

    def sort_key(self) -> Tuple[float, int]:
        return (-self.gain, self.imbalance)

    def __lt__(self, other: "Splitter") -> bool:
        return self.sort_key() < other.sort_key()

    def __le__(self, other: "Splitter") -> bool:
        return self.sort_key() <= other.sort_key()

    def __gt__(self, other: "Splitter") -> bool:
        return self.sort_key() > other.sort_key()

    def __ge__(self, other: "Splitter") -> bool:
        return self.sort_key() >= other.sort_key()

    def splits_left(self, row: np.ndarray) -> bool:
        """Return True if the specified feature row would go to the left child."""
        return row[self.feature] <= self.threshold

    def partition(self, features: np.ndarray) -> np.ndarray:
        """Return a mask that is True for each row going to the left child."""
        return features[:, self.feature] <= self.threshold

    def __repr__(self) -> str:
        if self.is_null:
            return "Splitter(NULL)"
        return (
            f"Splitter(feature={self.feature}, threshold={self.threshold}, gain={self.gain:.6f}, "
            f"left_count={self.left_count}, right_count={self.right_count})"
        )


# Null splitter, indicating do not split
NULL_SPLITTER = Splitter()


def compute_splitter(
    feature: int,
    threshold: float,
    old_entropy: float,
    left_label_sums: np.ndarray,
    right_label_sums: np.ndarray
) -> Splitter:
    """
    Compute a split proposal from the label sums on each side of the split.

    Args:
        feature: Index of the feature being used to split.
        threshold: Largest value that goes to the left.
        old_entropy: Entropy at the current node.
        left_label_sums: Sum of the label vectors on the left.
        right_label_sums: Sum of the label vectors on the right.

    Returns:
        The proposal, or the null splitter if either side would be empty.
    """
    left_count = int(round(float(np.sum(left_label_sums))))
    right_count = int(round(float(np.sum(right_label_sums))))
    if left_count <= 0 or right_count <= 0:
        return NULL_SPLITTER
    left_entropy = label_entropy(left_label_sums)
    right_entropy = label_entropy(right_label_sums)
    gain = old_entropy - (left_entropy * left_count + right_entropy * right_count) / (left_count + right_count)
    return Splitter(feature, threshold, left_entropy, right_entropy, left_count, right_count, gain)


def split_rows(
    feature: int,
    threshold: float,
    features: np.ndarray,
    labels: np.ndarray,
    old_entropy: float
) -> Splitter:
    """
    Compute a split proposal for a feature and threshold over a set of rows.

    Args:
        feature: Index of the feature being used to split.
        threshold: Largest value that goes to the left.
        features: Feature matrix of the rows at the current node.
        labels: Label matrix of the rows at the current node.
        old_entropy: Entropy at the current node.

    Returns:
        The proposal, or the null splitter if either side would be empty.
    """
    mask = features[:, feature] <= threshold
    left_sums = labels[mask].sum(axis=0)
    right_sums = labels[~mask].sum(axis=0)
    return compute_splitter(feature, threshold, old_entropy, left_sums, right_sums)
