"""
Random forest classifier.

A random forest is a set of decision trees, each trained on a randomly-selected subset
of the full training set.  The forest predicts an outcome by voting.
"""

import logging
import math
import time
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from decision_forest.config import (
    DEFAULT_LEAF_LIMIT, DEFAULT_NUM_TREES, FEATURE_SAMPLING_FACTOR,
    MAX_DEPTH_FACTOR, N_JOBS, RANDOM_STATE, SAMPLE_SIZE_DIVISOR
)
from decision_forest.core.decision_tree import DecisionTree
from decision_forest.core.feature_selectors import (
    NormalSelectorSource, SelectorSource, TreeFeatureSelectorFactory
)
from decision_forest.core.randomizers import Method, Randomizer
from decision_forest.core.serialization import read_forest, write_forest
from decision_forest.data.dataset import Dataset
from decision_forest.exceptions import ConfigurationError, DataError

logger = logging.getLogger('decision_forest')


@dataclass(frozen=True)
class Parms:
    """
    Hyperparameters for a random forest.

    Fields left as None are derived from the shape of the training set by resolve().
    """

    num_trees: int = DEFAULT_NUM_TREES
    num_features_per_node: Optional[int] = None
    leaf_limit: int = DEFAULT_LEAF_LIMIT
    num_examples_per_tree: Optional[int] = None
    max_depth: Optional[int] = None
    method: Method = Method.RANDOM

    @classmethod
    def for_shape(cls, num_rows: int, num_inputs: int, **overrides) -> "Parms":
        """
        Construct hyperparameters with reasonable values for a training set.

        Args:
            num_rows: Number of input rows.
            num_inputs: Number of feature columns.
            overrides: Explicit values for any of the fields.

        Returns:
            Fully resolved and validated hyperparameters.
        """
        return cls(**overrides).resolve(num_rows, num_inputs)

    @classmethod
    def for_dataset(cls, dataset: Dataset, **overrides) -> "Parms":
        return cls.for_shape(dataset.num_examples, dataset.num_inputs, **overrides)

    def resolve(self, num_rows: int, num_inputs: int) -> "Parms":
        """Fill in the unset fields from the training set shape and validate the result."""
        if not isinstance(self.num_trees, (int, np.integer)) or self.num_trees < 1:
            raise ConfigurationError(f"num_trees must be a positive integer, got {self.num_trees}")
        method = Method.parse(self.method)
        num_features = self.num_features_per_node
        if num_features is None:
            middle = int(math.sqrt(num_inputs)) + 1
            minimum = num_inputs * FEATURE_SAMPLING_FACTOR // self.num_trees
            num_features = min(max(middle, minimum), num_inputs // 2)
        num_examples = self.num_examples_per_tree
        if num_examples is None:
            num_examples = max(1, num_rows // SAMPLE_SIZE_DIVISOR)
        max_depth = self.max_depth
        if max_depth is None:
            max_depth = MAX_DEPTH_FACTOR * num_inputs
        resolved = replace(
            self,
            num_features_per_node=num_features,
            num_examples_per_tree=num_examples,
            max_depth=max_depth,
            method=method
        )
        return resolved.validate(num_inputs)

    def validate(self, num_inputs: int) -> "Parms":
        """
        Check the hyperparameters for a training set with the specified number of inputs.

        Args:
            num_inputs: Number of feature columns.

        Returns:
            The hyperparameters, with the features per node clamped into range.

        Raises:
            ConfigurationError: If a hyperparameter is out of range.
        """
        for name in ('num_trees', 'leaf_limit', 'max_depth', 'num_examples_per_tree', 'num_features_per_node'):
            value = getattr(self, name)
            if value is None:
                raise ConfigurationError(f"{name} has not been resolved")
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ConfigurationError(f"{name} must be an integer, got {type(value).__name__}")
        if self.num_trees < 1:
            raise ConfigurationError(f"num_trees must be at least 1, got {self.num_trees}")
        if self.leaf_limit < 1:
            raise ConfigurationError(f"leaf_limit must be at least 1, got {self.leaf_limit}")
        if self.max_depth < 1:
            raise ConfigurationError(f"max_depth must be at least 1, got {self.max_depth}")
        if self.num_examples_per_tree < 1:
            raise ConfigurationError(f"num_examples_per_tree must be at least 1, got {self.num_examples_per_tree}")
        if not isinstance(self.method, Method):
            raise ConfigurationError(f"method must be a Method, got {self.method!r}")
        num_features = min(max(self.num_features_per_node, 1), num_inputs)
        if num_features != self.num_features_per_node:
            logger.warning(
                f"Features per node changed from {self.num_features_per_node} to {num_features} "
                f"for {num_inputs} inputs."
            )
            return replace(self, num_features_per_node=num_features)
        return self


def _build_tree(randomizer: Randomizer, seed: int, parms: Parms, factory: TreeFeatureSelectorFactory) -> DecisionTree:
    """Create a decision tree from the training subset selected by a seed."""
    sample = randomizer.get_data(seed)
    return DecisionTree(sample, parms, factory)


class RandomForest:
    """
    An ensemble of decision trees built in parallel from bootstrap samples.

    Each tree gets two independent seeds drawn from the forest seed: one for choosing
    its training rows and one for the feature selection inside the tree.  All seeds and
    feature selector factories are created before the parallel build, so the trees do
    not depend on scheduling.
    """

    def __init__(
        self,
        dataset: Dataset,
        parms: Optional[Parms] = None,
        selector_source: Optional[SelectorSource] = None,
        seed: Optional[int] = RANDOM_STATE,
        n_jobs: Optional[int] = N_JOBS,
        verbose: bool = False
    ):
        """
        Build a forest from the specified training set.

        Args:
            dataset: Training set.
            parms: Hyperparameters; unset fields are derived from the dataset.
            selector_source: Source of feature selector factories, one per tree;
                defaults to normal random feature selection.
            seed: Forest random seed.
            n_jobs: Number of parallel workers (joblib convention).
            verbose: Whether to display a progress bar.

        Raises:
            ConfigurationError: If the hyperparameters are invalid.
        """
        # Resolve the hyperparameters against the training set
        self.num_labels = dataset.num_outcomes
        self.num_features = dataset.num_inputs
        self.parms = (parms or Parms()).resolve(dataset.num_examples, dataset.num_inputs)

        # Set up feature selection and sampling
        if selector_source is None:
            selector_source = NormalSelectorSource(self.num_features, self.parms.num_features_per_node)
        randomizer = self.parms.method.create()
        randomizer.initialize_data(self.num_labels, self.parms.num_examples_per_tree, dataset)

        # Draw all seeds before building; the forest is the same for any n_jobs
        n_trees = self.parms.num_trees
        rng = np.random.default_rng(seed)
        sample_seeds = rng.integers(0, np.iinfo(np.int64).max, size=n_trees)
        tree_seeds = rng.integers(0, np.iinfo(np.int64).max, size=n_trees)
        factories = [selector_source.create(i, int(tree_seeds[i])) for i in range(n_trees)]
        logger.info(
            f"Building {n_trees} trees: {self.parms.method.description} "
            f"{randomizer.sample_size} examples per tree, {self.parms.num_features_per_node} features per node, "
            f"{type(selector_source).__name__}."
        )

        # Build the trees in parallel
        start = time.time()
        self._trees: List[DecisionTree] = Parallel(n_jobs=n_jobs)(
            delayed(_build_tree)(randomizer, int(sample_seeds[i]), self.parms, factories[i])
            for i in tqdm(range(n_trees), desc="Building trees", disable=not verbose)
        )
        logger.info(
            f"Forest of {len(self._trees)} trees with {sum(tree.size for tree in self._trees)} nodes "
            f"built in {time.time() - start:.2f} seconds."
        )

    @classmethod
    def _from_trees(cls, trees: List[DecisionTree], num_labels: int, num_features: int) -> "RandomForest":
        forest = cls.__new__(cls)
        forest._trees = trees
        forest.num_labels = num_labels
        forest.num_features = num_features
        forest.parms = None
        return forest

    @property
    def trees(self) -> List[DecisionTree]:
        return list(self._trees)

    @property
    def num_trees(self) -> int:
        return len(self._trees)

    def _check_features(self, features: np.ndarray) -> np.ndarray:
        features = np.asarray(features, dtype=np.float64)
        if features.ndim != 2:
            raise DataError(f"features must be a 2-D matrix, got {features.ndim} dimensions")
        if features.shape[1] != self.num_features:
            raise DataError(f"Expected {self.num_features} features, got {features.shape[1]}")
        return features

    def predict(self, features: np.ndarray) -> np.ndarray:
        """
        Predict the classifications for a set of feature rows.

        Args:
            features: Feature matrix to classify.

        Returns:
            Vote matrix (rows x classes) with the number of trees voting for each class.
        """
        features = self._check_features(features)
        votes = np.zeros((features.shape[0], self.num_labels))
        for tree in self._trees:
            tree.vote(features, votes)
        return votes

    def predict_classes(self, features: np.ndarray) -> np.ndarray:
        """Return the majority-vote class index for each row, ties going to the lowest index."""
        return np.argmax(self.predict(features), axis=1)

    def predict_proba(self, features: np.ndarray) -> np.ndarray:
        """Return the fraction of trees voting for each class."""
        return self.predict(features) / self.num_trees

    def accuracy(self, dataset: Dataset) -> float:
        """Return the fraction of rows in a testing set whose class is predicted correctly."""
        predicted = self.predict_classes(dataset.features)
        return float(np.mean(predicted == dataset.row_classes()))

    def compute_impact(self) -> np.ndarray:
        """Return the mean information gain attributable to each input across the trees."""
        impact = np.zeros(self.num_features)
        for tree in self._trees:
            tree.accumulate_impact(impact)
        return impact / self.num_trees

    def impact_ranking(self, feature_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """
        Rank the input columns by impact.

        Args:
            feature_names: Names of the input columns; positional names are used if omitted.

        Returns:
            DataFrame with columns col_name and info_gain, most impactful first.
        """
        if feature_names is None:
            feature_names = [f"feature_{i}" for i in range(self.num_features)]
        if len(feature_names) != self.num_features:
            raise DataError(f"Expected {self.num_features} feature names, got {len(feature_names)}")
        ranking = pd.DataFrame({'col_name': list(feature_names), 'info_gain': self.compute_impact()})
        return ranking.sort_values('info_gain', ascending=False, kind='mergesort').reset_index(drop=True)

    def save(self, path: str) -> None:
        """Save the tree topology of this forest to a model file."""
        write_forest(path, self._trees, self.num_labels, self.num_features)
        logger.info(f"Forest of {self.num_trees} trees saved to {path}.")

    @classmethod
    def load(cls, path: str) -> "RandomForest":
        """
        Load a forest from a model file.

        The hyperparameters are not stored in the file, so the loaded forest's parms is None.
        """
        trees, num_labels, num_features = read_forest(path)
        return cls._from_trees(trees, num_labels, num_features)

    @staticmethod
    def flatten_features(features: np.ndarray) -> np.ndarray:
        """
        Convert a feature array from the 4-dimensional shape used by neural nets to 2 dimensions.

        Args:
            features: Array of shape (rows, channels, 1, width).

        Returns:
            Matrix of shape (rows, channels * width).
        """
        features = np.asarray(features)
        if features.ndim == 2:
            return features
        if features.ndim != 4:
            raise DataError(f"Cannot flatten a feature array with {features.ndim} dimensions")
        return features.reshape(features.shape[0], features.shape[1] * features.shape[3])

    def __repr__(self) -> str:
        return (
            f"RandomForest(num_trees={self.num_trees}, num_features={self.num_features}, "
            f"num_labels={self.num_labels})"
        )
