"""
Shared fixtures for the decision forest tests.
"""

import numpy as np
import pytest
from sklearn.datasets import load_iris

from decision_forest.core.random_forest import Parms
from decision_forest.data.data_splitter import DataSplitter
from decision_forest.data.dataset import Dataset


@pytest.fixture
def iris_dataset():
    """The 150-row, 4-feature, 3-class iris data."""
    iris = load_iris()
    return Dataset.from_class_indices(
        iris.data, iris.target, 3,
        feature_names=list(iris.feature_names),
        label_names=list(iris.target_names)
    )


@pytest.fixture
def iris_split(iris_dataset):
    """Stratified 102/48 train/test split of the iris data."""
    return DataSplitter(random_state=42, test_size=48).train_test_split(iris_dataset)


@pytest.fixture
def separable_dataset():
    """Two classes separated on feature 0 between 4 and 5; feature 1 is constant."""
    x = np.arange(10, dtype=np.float64)
    features = np.column_stack([x, np.full(10, 3.0)])
    classes = (x >= 5).astype(int)
    return Dataset.from_class_indices(features, classes, 2, feature_names=["signal", "flat"])


@pytest.fixture
def skewed_dataset():
    """Three classes with 1000, 100 and 10 rows; feature 0 is the row index."""
    classes = np.repeat([0, 1, 2], [1000, 100, 10])
    features = np.arange(classes.size, dtype=np.float64).reshape(-1, 1)
    return Dataset.from_class_indices(features, classes, 3)


@pytest.fixture
def tree_parms():
    """Hyperparameters for growing single trees to full depth."""
    return Parms(num_trees=1, num_features_per_node=2, leaf_limit=1, num_examples_per_tree=10, max_depth=10)
