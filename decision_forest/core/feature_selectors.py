"""
Feature selection strategies for decision tree nodes.

A feature selector names the features to examine at one node and the split point
finder to use on them.  Each tree owns a feature selector factory that produces a
selector for every node it builds, and a selector source produces one fresh factory
per tree of a forest.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Sequence

import numpy as np

from decision_forest.core.split_finders import (
    MeanSplitPointFinder, SequentialSplitPointFinder, SplitPointFinder
)
from decision_forest.exceptions import ConfigurationError

logger = logging.getLogger('decision_forest')


class FeatureSelector:
    """The features to examine at a node and the split point finder to use on them."""

    def __init__(self, features_to_use: Sequence[int], finder: SplitPointFinder):
        self.features_to_use = np.asarray(features_to_use, dtype=np.int64)
        self.finder = finder

    def __repr__(self) -> str:
        return f"{type(self).__name__}(features={self.features_to_use.tolist()})"


class SingleFeatureSelector(FeatureSelector):
    """Select one fixed feature, split with an exhaustive search."""

    def __init__(self, idx: int):
        super().__init__([idx], SequentialSplitPointFinder())


class MultipleFeatureSelector(FeatureSelector):
    """Select a random subset of the features, split at the mean."""

    def __init__(self, num_features: int, num_select: int, rng: np.random.Generator):
        """
        Choose the features with a partial Fisher-Yates shuffle.

        Args:
            num_features: Number of input features available.
            num_select: Number of features to select.
            rng: Random number generator of the tree being built.
        """
        num_select = min(num_select, num_features)
        pool = np.arange(num_features)
        for i in range(num_select):
            j = i + int(rng.integers(num_features - i))
            pool[i], pool[j] = pool[j], pool[i]
        super().__init__(pool[:num_select].copy(), MeanSplitPointFinder())


class TreeFeatureSelectorFactory(ABC):
    """
    Produces the feature selector for each node of a single decision tree.

    The factory owns the random number generator of its tree, so the whole tree is
    reproducible from the factory seed.
    """

    def __init__(self, seed: int):
        self.rng = np.random.default_rng(seed)

    @abstractmethod
    def get_selector(self, depth: int) -> FeatureSelector:
        """
        Compute the feature selector to use for a node.

        Args:
            depth: Depth of the node (0 = root).

        Returns:
            The feature selector for the node.
        """
        pass


class NormalTreeFeatureSelectorFactory(TreeFeatureSelectorFactory):
    """Every node examines a new random selection of features."""

    def __init__(self, seed: int, num_cols: int, num_select: int):
        super().__init__(seed)
        self.num_cols = num_cols
        self.num_select = num_select

    def get_selector(self, depth: int) -> FeatureSelector:
        return MultipleFeatureSelector(self.num_cols, self.num_select, self.rng)


class RootedTreeFeatureSelectorFactory(NormalTreeFeatureSelectorFactory):
    """The root node splits on a fixed feature; deeper nodes select randomly."""

    def __init__(self, seed: int, num_cols: int, num_select: int, root_idx: int):
        super().__init__(seed, num_cols, num_select)
        if not 0 <= root_idx < num_cols:
            raise ConfigurationError(f"Root feature index {root_idx} out of range for {num_cols} columns")
        self.root_idx = root_idx

    def get_selector(self, depth: int) -> FeatureSelector:
        if depth == 0:
            return SingleFeatureSelector(self.root_idx)
        return super().get_selector(depth)


class SelectorSource(ABC):
    """Creates the feature selector factory for each tree of a forest."""

    @abstractmethod
    def create(self, tree_index: int, seed: int) -> TreeFeatureSelectorFactory:
        """
        Create the factory for one tree.

        Args:
            tree_index: Position of the tree in the forest.
            seed: Seed for the tree's random number generator.

        Returns:
            A new factory, used by that tree only.
        """
        pass


class NormalSelectorSource(SelectorSource):
    """Source of normal (fully random) feature selector factories."""

    def __init__(self, num_cols: int, num_select: int):
        self.num_cols = num_cols
        self.num_select = num_select

    def create(self, tree_index: int, seed: int) -> TreeFeatureSelectorFactory:
        return NormalTreeFeatureSelectorFactory(seed, self.num_cols, self.num_select)


class RootedSelectorSource(SelectorSource):
    """
    Source of rooted feature selector factories.

    Each tree is rooted in one of the named impact columns, assigned round robin.
    Names that are not feature columns are skipped.
    """

    def __init__(self, feature_names: Sequence[str], impact_cols: Sequence[str], num_select: int):
        feature_names = list(feature_names)
        self.num_cols = len(feature_names)
        self.num_select = num_select
        positions = {name: i for i, name in enumerate(feature_names)}
        missing = [name for name in impact_cols if name not in positions]
        if missing:
            logger.warning(f"Impact columns not found in the input: {', '.join(missing)}")
        self.roots: List[int] = [positions[name] for name in impact_cols if name in positions]
        if not self.roots:
            raise ConfigurationError("None of the impact columns for a rooted forest are input features")

    def create(self, tree_index: int, seed: int) -> TreeFeatureSelectorFactory:
        root_idx = self.roots[tree_index % len(self.roots)]
        return RootedTreeFeatureSelectorFactory(seed, self.num_cols, self.num_select, root_idx)


class SelectorType(Enum):
    """Types of feature selection for a forest."""

    NORMAL = "normal"
    ROOTED = "rooted"

    @property
    def description(self) -> str:
        if self is SelectorType.ROOTED:
            return "Root each tree in a specified feature."
        return "Select features randomly."

    @classmethod
    def parse(cls, name: str) -> "SelectorType":
        try:
            return cls(name.lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown feature selector type: {name}; expected one of "
                f"{', '.join(t.value for t in cls)}"
            ) from None
