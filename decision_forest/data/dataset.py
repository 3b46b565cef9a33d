"""
In-memory training set: a numeric feature matrix paired with a one-hot label matrix.
"""

from typing import List, Optional, Sequence

import numpy as np

from decision_forest.config import LABEL_TOLERANCE
from decision_forest.exceptions import DataError


class Dataset:
    """
    Immutable pairing of a feature matrix (rows x inputs) and a one-hot label
    matrix (rows x classes).

    Both arrays are copied on construction and marked read-only, so a dataset can
    be shared freely between the workers that build the trees of a forest.
    """

    def __init__(
        self,
        features: np.ndarray,
        labels: np.ndarray,
        feature_names: Optional[Sequence[str]] = None,
        label_names: Optional[Sequence[str]] = None,
        validate: bool = True
    ):
        """
        Initialize the dataset.

        Args:
            features: Feature matrix, one row per example.
            labels: One-hot label matrix, one row per example.
            feature_names: Optional names of the feature columns.
            label_names: Optional names of the label columns.
            validate: Whether to check the invariants of the data.

        Raises:
            DataError: If the arrays do not form a usable dataset.
        """
        features = np.array(features, dtype=np.float64)
        labels = np.array(labels, dtype=np.float64)
        if validate:
            self._check_invariants(features, labels)
        features.setflags(write=False)
        labels.setflags(write=False)
        self._features = features
        self._labels = labels
        self.feature_names = list(feature_names) if feature_names is not None else None
        self.label_names = list(label_names) if label_names is not None else None
        if self.feature_names is not None and len(self.feature_names) != features.shape[1]:
            raise DataError(
                f"Expected {features.shape[1]} feature names, got {len(self.feature_names)}"
            )
        if self.label_names is not None and len(self.label_names) != labels.shape[1]:
            raise DataError(
                f"Expected {labels.shape[1]} label names, got {len(self.label_names)}"
            )

    @staticmethod
    def _check_invariants(features: np.ndarray, labels: np.ndarray) -> None:
        if features.ndim != 2:
            raise DataError(f"features must be a 2-D matrix, got {features.ndim} dimensions")
        if labels.ndim != 2:
            raise DataError(f"labels must be a 2-D matrix, got {labels.ndim} dimensions")
        if features.shape[0] != labels.shape[0]:
            raise DataError(
                f"Number of feature rows ({features.shape[0]}) does not match "
                f"number of label rows ({labels.shape[0]})"
            )
        if features.shape[0] == 0:
            raise DataError("Dataset has no rows")
        if labels.shape[1] == 0:
            raise DataError("Dataset has no label columns")
        if not np.all(np.isfinite(features)):
            raise DataError("features contain NaN or infinite values")
        sums = labels.sum(axis=1)
        bad = np.flatnonzero(np.abs(sums - 1.0) > LABEL_TOLERANCE)
        if bad.size > 0:
            raise DataError(
                f"Label vector of row {bad[0]} sums to {sums[bad[0]]}, expected 1.0 "
                f"({bad.size} bad rows)"
            )

    @classmethod
    def from_class_indices(
        cls,
        features: np.ndarray,
        classes: Sequence[int],
        num_classes: Optional[int] = None,
        **kwargs
    ) -> "Dataset":
        """
        Build a dataset from a vector of class indices instead of a one-hot matrix.

        Args:
            features: Feature matrix.
            classes: Class index of each row.
            num_classes: Number of label columns; defaults to the largest index + 1.

        Returns:
            The new dataset.
        """
        classes = np.asarray(classes, dtype=np.int64)
        if classes.ndim != 1:
            raise DataError(f"classes must be a vector, got {classes.ndim} dimensions")
        if classes.size > 0 and classes.min() < 0:
            raise DataError(f"Class indices must be non-negative, got {classes.min()}")
        if num_classes is None:
            num_classes = int(classes.max()) + 1 if classes.size > 0 else 1
        elif classes.size > 0 and classes.max() >= num_classes:
            raise DataError(f"Class index {classes.max()} out of range for {num_classes} classes")
        labels = np.zeros((classes.size, num_classes))
        labels[np.arange(classes.size), classes] = 1.0
        return cls(features, labels, **kwargs)

    @property
    def features(self) -> np.ndarray:
        return self._features

    @property
    def labels(self) -> np.ndarray:
        return self._labels

    @property
    def num_examples(self) -> int:
        return self._features.shape[0]

    @property
    def num_inputs(self) -> int:
        return self._features.shape[1]

    @property
    def num_outcomes(self) -> int:
        return self._labels.shape[1]

    def __len__(self) -> int:
        return self.num_examples

    def label_sums(self) -> np.ndarray:
        """Return the number of occurrences of each label."""
        return self._labels.sum(axis=0)

    def best_label(self) -> int:
        """Return the most popular label, ties going to the lowest index."""
        return int(np.argmax(self.label_sums()))

    def row_classes(self) -> np.ndarray:
        """Return the index of the highest-valued label in each row."""
        return np.argmax(self._labels, axis=1)

    def subset(self, indices: Sequence[int]) -> "Dataset":
        """
        Create a dataset from copies of the selected rows.

        Args:
            indices: Row indices to copy; repeats are allowed.

        Returns:
            The new dataset, sharing the column names of this one.
        """
        indices = np.asarray(indices, dtype=np.int64)
        return Dataset(
            self._features[indices],
            self._labels[indices],
            feature_names=self.feature_names,
            label_names=self.label_names,
            validate=False
        )

    def column_names(self) -> List[str]:
        """Return the feature names, generating positional names if there are none."""
        if self.feature_names is not None:
            return list(self.feature_names)
        return [f"feature_{i}" for i in range(self.num_inputs)]

    def __repr__(self) -> str:
        return (
            f"Dataset(num_examples={self.num_examples}, num_inputs={self.num_inputs}, "
            f"num_outcomes={self.num_outcomes})"
        )
