"""Tests for feature selectors, selector factories and selector sources."""

import logging

import numpy as np
import pytest

from decision_forest.core.feature_selectors import (
    MultipleFeatureSelector, NormalSelectorSource, NormalTreeFeatureSelectorFactory,
    RootedSelectorSource, RootedTreeFeatureSelectorFactory, SelectorType, SingleFeatureSelector
)
from decision_forest.core.split_finders import MeanSplitPointFinder, SequentialSplitPointFinder
from decision_forest.exceptions import ConfigurationError


class TestFeatureSelectors:
    """Test the per-node feature selectors."""

    def test_single_selector(self):
        """A single selector uses one feature and the exhaustive search."""
        selector = SingleFeatureSelector(3)
        assert selector.features_to_use.tolist() == [3]
        assert isinstance(selector.finder, SequentialSplitPointFinder)

    def test_multiple_selector_distinct(self):
        """A multiple selector picks distinct features split at the mean."""
        rng = np.random.default_rng(1)
        for _ in range(50):
            selector = MultipleFeatureSelector(10, 4, rng)
            chosen = selector.features_to_use.tolist()
            assert len(chosen) == 4
            assert len(set(chosen)) == 4
            assert all(0 <= i < 10 for i in chosen)
            assert isinstance(selector.finder, MeanSplitPointFinder)

    def test_multiple_selector_caps_at_feature_count(self):
        """Asking for more features than exist selects all of them."""
        selector = MultipleFeatureSelector(3, 8, np.random.default_rng(0))
        assert sorted(selector.features_to_use.tolist()) == [0, 1, 2]


class TestSelectorFactories:
    """Test the per-tree selector factories."""

    def test_normal_factory_is_reproducible(self):
        """Two factories with the same seed make the same selections."""
        a = NormalTreeFeatureSelectorFactory(99, 20, 5)
        b = NormalTreeFeatureSelectorFactory(99, 20, 5)
        for depth in range(10):
            assert a.get_selector(depth).features_to_use.tolist() == b.get_selector(depth).features_to_use.tolist()

    def test_rooted_factory(self):
        """The root uses the forced feature and deeper nodes select randomly."""
        factory = RootedTreeFeatureSelectorFactory(5, 6, 3, root_idx=4)
        root = factory.get_selector(0)
        assert isinstance(root, SingleFeatureSelector)
        assert root.features_to_use.tolist() == [4]
        deeper = factory.get_selector(1)
        assert isinstance(deeper, MultipleFeatureSelector)
        assert len(deeper.features_to_use) == 3

    @pytest.mark.parametrize("root_idx", [-1, 6, 100])
    def test_rooted_factory_range(self, root_idx):
        """A root feature outside the inputs is rejected."""
        with pytest.raises(ConfigurationError):
            RootedTreeFeatureSelectorFactory(5, 6, 3, root_idx=root_idx)


class TestSelectorSources:
    """Test the per-forest selector sources."""

    def test_normal_source(self):
        """Normal sources make independent normal factories."""
        source = NormalSelectorSource(8, 3)
        factory = source.create(0, 123)
        assert isinstance(factory, NormalTreeFeatureSelectorFactory)
        assert factory is not source.create(1, 123)

    def test_rooted_source_round_robin(self):
        """Roots are assigned to trees in rotation."""
        source = RootedSelectorSource(["a", "b", "c", "d"], ["c", "a"], 2)
        roots = [source.create(i, i).root_idx for i in range(5)]
        assert roots == [2, 0, 2, 0, 2]

    def test_rooted_source_skips_unknown_names(self, caplog):
        """Unknown impact columns are logged and skipped."""
        with caplog.at_level(logging.WARNING, logger='decision_forest'):
            source = RootedSelectorSource(["a", "b"], ["zz", "b"], 1)
        assert source.roots == [1]
        assert "zz" in caplog.text

    def test_rooted_source_requires_a_root(self):
        """At least one impact column must be an input feature."""
        with pytest.raises(ConfigurationError):
            RootedSelectorSource(["a", "b"], ["x", "y"], 1)


class TestSelectorType:
    """Test selector type parsing."""

    def test_parse(self):
        assert SelectorType.parse("Rooted") is SelectorType.ROOTED
        assert SelectorType.parse("normal") is SelectorType.NORMAL
        assert SelectorType.ROOTED.description

    def test_parse_unknown(self):
        with pytest.raises(ConfigurationError):
            SelectorType.parse("sideways")
