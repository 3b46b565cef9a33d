"""
Impurity measures for decision tree construction.
"""

import numpy as np


def label_entropy(label_counts: np.ndarray) -> float:
    """
    Compute the base-2 Shannon entropy of a vector of label counts.

    Args:
        label_counts: Number (or total weight) of examples with each label.

    Returns:
        Entropy of the normalized distribution; 0 for an empty set.
    """
    label_counts = np.asarray(label_counts, dtype=np.float64)
    total = label_counts.sum()
    if total <= 0.0:
        return 0.0
    p = label_counts[label_counts > 0.0] / total
    return float(-np.sum(p * np.log2(p)))


def entropy(labels: np.ndarray) -> float:
    """
    Compute the entropy of a one-hot label matrix.

    Args:
        labels: Label matrix, one row per example.

    Returns:
        Entropy of the label distribution; 0 if there are no rows.
    """
    if labels.shape[0] == 0:
        return 0.0
    return label_entropy(labels.sum(axis=0))


def best_label(label_counts: np.ndarray) -> int:
    """Return the index of the most popular label, ties going to the lowest index."""
    label_counts = np.asarray(label_counts)
    if label_counts.size == 0:
        return 0
    return int(np.argmax(label_counts))


def feature_mean(features: np.ndarray, i: int) -> float:
    """Return the mean value of feature column i, or 0 if there are no rows."""
    if features.shape[0] == 0:
        return 0.0
    return float(np.mean(features[:, i]))
