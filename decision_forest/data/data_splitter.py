"""
Module for splitting a dataset into training and testing sets.
"""

import logging
from collections import Counter
from typing import Tuple

import numpy as np
from sklearn.model_selection import StratifiedKFold, train_test_split

from decision_forest.config import CV_FOLDS, RANDOM_STATE, TEST_SIZE
from decision_forest.data.dataset import Dataset


class DataSplitter:
    """Class to handle data splitting for model training and testing."""

    def __init__(self, random_state: int = RANDOM_STATE, test_size=TEST_SIZE):
        """
        Initialize the DataSplitter.

        Args:
            random_state: Random seed for reproducibility.
            test_size: Proportion (float) or number (int) of rows to hold out for testing.
        """
        self.random_state = random_state
        self.test_size = test_size
        self.logger = logging.getLogger('decision_forest')

    def train_test_split(self, dataset: Dataset, stratify: bool = True) -> Tuple[Dataset, Dataset]:
        """
        Split a dataset into training and testing sets.

        Args:
            dataset: Dataset to split.
            stratify: Whether to keep the class proportions in both sets.

        Returns:
            Tuple of (training_set, testing_set).
        """
        classes = dataset.row_classes()
        strata = classes if stratify else None
        if strata is not None:
            class_counts = Counter(classes.tolist())
            min_count = min(class_counts.values())
            # If any class has only one sample, we can't stratify
            if min_count < 2:
                self.logger.warning(
                    f"Cannot perform stratified split because the least populated class has only {min_count} member(s). "
                    f"Falling back to random split. Class distribution: {dict(class_counts)}"
                )
                strata = None
        train_idx, test_idx = train_test_split(
            np.arange(dataset.num_examples),
            test_size=self.test_size,
            random_state=self.random_state,
            stratify=strata
        )
        return dataset.subset(np.sort(train_idx)), dataset.subset(np.sort(test_idx))

    def get_cv_folds(self, n_folds: int = CV_FOLDS) -> StratifiedKFold:
        """
        Create cross-validation folds that keep the class proportions of each fold.

        Args:
            n_folds: Number of folds for cross-validation.

        Returns:
            StratifiedKFold object.
        """
        return StratifiedKFold(
            n_splits=n_folds,
            shuffle=True,
            random_state=self.random_state
        )
