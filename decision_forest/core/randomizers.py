"""
Strategies for choosing the training subset of each tree in a random forest.

A randomizer is initialized once per forest and then asked for the data of each tree.
The per-tree call runs in parallel, so it never modifies the randomizer's state: every
call builds its own generator from the seed it is given.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List

import numpy as np

from decision_forest.data.dataset import Dataset
from decision_forest.exceptions import ConfigurationError

logger = logging.getLogger('decision_forest')


class Randomizer(ABC):
    """Abstract base class for training subset selection."""

    def __init__(self):
        self.num_classes = 0
        self.sample_size = 0
        self.dataset = None

    def initialize_data(self, num_classes: int, sample_size: int, dataset: Dataset) -> None:
        """
        Prepare for building a random forest.

        Args:
            num_classes: Number of classifications.
            sample_size: Desired size of each training subset.
            dataset: Full training set.
        """
        self.num_classes = num_classes
        self.sample_size = sample_size
        self.dataset = dataset

    @abstractmethod
    def get_data(self, seed: int) -> Dataset:
        """
        Return the training subset for one tree.

        Args:
            seed: Seed for the random number generator.

        Returns:
            A dataset of copied rows.
        """
        pass


class ReplacingRandomizer(Randomizer):
    """Select rows at random with replacement."""

    def get_data(self, seed: int) -> Dataset:
        rng = np.random.default_rng(seed)
        indices = rng.integers(0, self.dataset.num_examples, size=self.sample_size)
        return self.dataset.subset(indices)


class NonReplacingRandomizer(Randomizer):
    """Select unique rows, at most half of the training set."""

    def initialize_data(self, num_classes: int, sample_size: int, dataset: Dataset) -> None:
        max_size = dataset.num_examples // 2
        if max_size < 1:
            raise ConfigurationError("Sampling without replacement needs at least 2 training rows")
        if sample_size > max_size:
            logger.warning(f"Sample size {sample_size} reduced to {max_size}, half the training set.")
            sample_size = max_size
        super().initialize_data(num_classes, sample_size, dataset)

    def get_data(self, seed: int) -> Dataset:
        # The shuffle works on a private index array, never on the shared rows.
        n = self.dataset.num_examples
        shuffler = np.arange(n)
        rng = np.random.default_rng(seed)
        for i in range(self.sample_size):
            j = i + int(rng.integers(n - i))
            shuffler[i], shuffler[j] = shuffler[j], shuffler[i]
        return self.dataset.subset(shuffler[:self.sample_size])


class BalancedRandomizer(Randomizer):
    """
    Select rows with an equal number of members of each class.

    Some classes may have fewer members than required to fill their slots, so rows are
    chosen with replacement.
    """

    def __init__(self):
        super().__init__()
        self.outcome_sets: List[np.ndarray] = []
        self.rows_per_class = 0

    def initialize_data(self, num_classes: int, sample_size: int, dataset: Dataset) -> None:
        super().initialize_data(num_classes, sample_size, dataset)
        self.outcome_sets = self.split_by_outcome(dataset)
        n_sets = len(self.outcome_sets)
        self.rows_per_class = (sample_size + n_sets - 1) // n_sets

    def split_by_outcome(self, dataset: Dataset) -> List[np.ndarray]:
        """Return the row indices of each nonempty class, in class order."""
        classes = dataset.row_classes()
        groups = [np.flatnonzero(classes == k) for k in range(self.num_classes)]
        return [group for group in groups if group.size > 0]

    def get_data(self, seed: int) -> Dataset:
        rng = np.random.default_rng(seed)
        chosen = [group[rng.integers(0, group.size, size=self.rows_per_class)] for group in self.outcome_sets]
        return self.dataset.subset(np.concatenate(chosen))


class Method(Enum):
    """
    Type of randomization.

    BALANCED-- random with replacement, equal numbers of each class
    UNIQUE-- random without replacement
    RANDOM-- random with replacement
    """

    BALANCED = "balanced"
    UNIQUE = "unique"
    RANDOM = "random"

    def create(self) -> Randomizer:
        """Return a randomizer of the appropriate type."""
        if self is Method.BALANCED:
            return BalancedRandomizer()
        if self is Method.UNIQUE:
            return NonReplacingRandomizer()
        return ReplacingRandomizer()

    @property
    def description(self) -> str:
        return {
            Method.BALANCED: "Class-balanced example sets with replacement.",
            Method.UNIQUE: "Random example sets without replacement.",
            Method.RANDOM: "Random example sets with replacement.",
        }[self]

    @classmethod
    def parse(cls, name) -> "Method":
        """Convert a method name (or a Method) to a Method."""
        if isinstance(name, Method):
            return name
        key = str(name).lower()
        if key == "replacing":
            key = "random"
        try:
            return cls(key)
        except ValueError:
            raise ConfigurationError(
                f"Unknown randomization method: {name}; expected one of "
                f"{', '.join(m.value for m in cls)}"
            ) from None
