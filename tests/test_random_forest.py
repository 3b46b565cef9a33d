"""Tests for random forest building, prediction and persistence."""

import json
import logging

import numpy as np
import pandas as pd
import pytest

from decision_forest.core.decision_tree import ChoiceNode
from decision_forest.core.feature_selectors import (
    NormalTreeFeatureSelectorFactory, RootedSelectorSource, SelectorSource
)
from decision_forest.core.random_forest import Parms, RandomForest
from decision_forest.core.randomizers import Method
from decision_forest.exceptions import ConfigurationError, DataError, ModelFormatError, PersistenceError


class ExplodingFactory(NormalTreeFeatureSelectorFactory):
    def get_selector(self, depth):
        raise RuntimeError("selector failure")


class ExplodingSource(SelectorSource):
    def create(self, tree_index, seed):
        return ExplodingFactory(seed, 4, 2)


def assert_same_topology(forest_a, forest_b):
    assert forest_a.num_trees == forest_b.num_trees
    for tree_a, tree_b in zip(forest_a.trees, forest_b.trees):
        records_a, records_b = tree_a.to_records(), tree_b.to_records()
        for column in records_a:
            assert np.array_equal(records_a[column], records_b[column])


class TestParms:
    """Test hyperparameter defaults and validation."""

    def test_defaults_for_iris_shape(self):
        """Unset fields are derived from the training set shape."""
        parms = Parms.for_shape(102, 4)
        assert parms.num_trees == 50
        assert parms.num_features_per_node == 2
        assert parms.num_examples_per_tree == 20
        assert parms.max_depth == 8
        assert parms.leaf_limit == 1
        assert parms.method is Method.RANDOM

    def test_feature_floor_for_few_trees(self):
        """With few trees, each node examines more features."""
        parms = Parms.for_shape(1000, 100, num_trees=10)
        # min(max(sqrt(100) + 1, 100 * 4 / 10), 100 / 2)
        assert parms.num_features_per_node == 40

    def test_small_training_set(self):
        """At least one example is used per tree."""
        assert Parms.for_shape(3, 4).num_examples_per_tree == 1

    def test_features_clamped(self, caplog):
        """Features per node are clamped into range with a warning."""
        with caplog.at_level(logging.WARNING, logger='decision_forest'):
            parms = Parms.for_shape(100, 4, num_features_per_node=10)
        assert parms.num_features_per_node == 4
        assert "Features per node changed" in caplog.text
        assert Parms.for_shape(100, 1).num_features_per_node == 1

    @pytest.mark.parametrize("overrides", [
        {"num_trees": 0},
        {"leaf_limit": 0},
        {"max_depth": 0},
        {"num_examples_per_tree": 0},
        {"num_trees": 2.5},
        {"method": "stratified"},
    ])
    def test_invalid(self, overrides):
        """Out-of-range hyperparameters are configuration errors."""
        with pytest.raises(ConfigurationError):
            Parms.for_shape(100, 4, **overrides)

    def test_method_names(self):
        """The method can be given by name."""
        assert Parms.for_shape(100, 4, method="balanced").method is Method.BALANCED


class TestForestBuild:
    """Test building forests."""

    def test_iris_accuracy(self, iris_split):
        """A default 50-tree forest classifies the iris hold-out set well."""
        train_set, test_set = iris_split
        assert (train_set.num_examples, test_set.num_examples) == (102, 48)
        forest = RandomForest(train_set, Parms(num_trees=50), seed=42, n_jobs=1)
        assert forest.num_trees == 50
        assert forest.accuracy(test_set) >= 0.9

    def test_deterministic(self, iris_dataset):
        """The same seed builds the same forest."""
        parms = Parms(num_trees=10)
        a = RandomForest(iris_dataset, parms, seed=7, n_jobs=1)
        b = RandomForest(iris_dataset, parms, seed=7, n_jobs=1)
        assert_same_topology(a, b)
        assert np.array_equal(a.predict(iris_dataset.features), b.predict(iris_dataset.features))

    def test_independent_of_worker_count(self, iris_dataset):
        """Parallel and sequential builds produce the same forest."""
        parms = Parms(num_trees=8, method=Method.BALANCED)
        sequential = RandomForest(iris_dataset, parms, seed=3, n_jobs=1)
        parallel = RandomForest(iris_dataset, parms, seed=3, n_jobs=2)
        assert_same_topology(sequential, parallel)

    def test_different_seeds(self, iris_dataset):
        """Different seeds build different forests."""
        parms = Parms(num_trees=10)
        a = RandomForest(iris_dataset, parms, seed=1, n_jobs=1)
        b = RandomForest(iris_dataset, parms, seed=2, n_jobs=1)
        assert not all(
            np.array_equal(x.to_records()['threshold'], y.to_records()['threshold'])
            for x, y in zip(a.trees, b.trees)
        )

    @pytest.mark.parametrize("method", list(Method))
    def test_methods(self, iris_split, method):
        """Every randomization method builds a usable forest."""
        train_set, test_set = iris_split
        forest = RandomForest(train_set, Parms(num_trees=20, method=method), seed=42, n_jobs=1)
        assert forest.accuracy(test_set) >= 0.8

    def test_configuration_error_before_build(self, iris_dataset):
        """Invalid hyperparameters fail before any tree is built."""
        with pytest.raises(ConfigurationError):
            RandomForest(iris_dataset, Parms(num_trees=5, leaf_limit=0), selector_source=ExplodingSource(), n_jobs=1)

    def test_worker_failure_aborts_build(self, iris_dataset):
        """An error while building a tree aborts the forest."""
        with pytest.raises(RuntimeError, match="selector failure"):
            RandomForest(iris_dataset, Parms(num_trees=3), selector_source=ExplodingSource(), n_jobs=1)

    def test_rooted_forest(self, iris_dataset):
        """Every tree of a rooted forest splits its root on a forced feature."""
        names = iris_dataset.column_names()
        parms = Parms.for_dataset(iris_dataset, num_trees=6)
        source = RootedSelectorSource(names, [names[2], names[3]], parms.num_features_per_node)
        forest = RandomForest(iris_dataset, parms, selector_source=source, seed=42, n_jobs=1)
        for i, tree in enumerate(forest.trees):
            assert isinstance(tree.root, ChoiceNode)
            assert tree.root.feature == (2 if i % 2 == 0 else 3)


class TestForestOutputs:
    """Test prediction and impact."""

    @pytest.fixture
    def forest(self, iris_dataset):
        return RandomForest(iris_dataset, Parms(num_trees=12), seed=42, n_jobs=1)

    def test_votes(self, forest, iris_dataset):
        """Each row gets one vote per tree."""
        votes = forest.predict(iris_dataset.features)
        assert votes.shape == (150, 3)
        assert np.all(votes.sum(axis=1) == 12)
        assert np.array_equal(forest.predict_classes(iris_dataset.features), np.argmax(votes, axis=1))
        assert np.allclose(forest.predict_proba(iris_dataset.features).sum(axis=1), 1.0)

    def test_wrong_feature_count(self, forest):
        """Rows with the wrong number of features are rejected."""
        with pytest.raises(DataError):
            forest.predict(np.zeros((2, 3)))

    def test_impact(self, forest):
        """Forest impact is the mean of the tree impacts."""
        expected = np.mean([tree.compute_impact() for tree in forest.trees], axis=0)
        assert np.allclose(forest.compute_impact(), expected)
        assert np.all(forest.compute_impact() >= 0.0)

    def test_impact_ranking(self, forest, iris_dataset):
        """The ranking lists the most impactful columns first."""
        ranking = forest.impact_ranking(iris_dataset.column_names())
        assert isinstance(ranking, pd.DataFrame)
        assert list(ranking.columns) == ['col_name', 'info_gain']
        assert len(ranking) == 4
        assert ranking['info_gain'].is_monotonic_decreasing
        with pytest.raises(DataError):
            forest.impact_ranking(["only_one"])

    def test_flatten_features(self):
        """Neural-net shaped batches flatten to rows of features."""
        batch = np.arange(30.0).reshape(5, 2, 1, 3)
        assert RandomForest.flatten_features(batch).shape == (5, 6)
        matrix = np.zeros((4, 2))
        assert RandomForest.flatten_features(matrix) is matrix
        with pytest.raises(DataError):
            RandomForest.flatten_features(np.zeros((2, 3, 4)))


class TestForestPersistence:
    """Test saving and loading forests."""

    @pytest.fixture
    def forest(self, iris_dataset):
        return RandomForest(iris_dataset, Parms(num_trees=10), seed=42, n_jobs=1)

    def test_round_trip(self, forest, iris_dataset, tmp_path):
        """A loaded forest predicts and scores impact identically."""
        path = str(tmp_path / "model.npz")
        forest.save(path)
        loaded = RandomForest.load(path)
        assert loaded.parms is None
        assert (loaded.num_labels, loaded.num_features) == (3, 4)
        assert np.array_equal(loaded.predict(iris_dataset.features), forest.predict(iris_dataset.features))
        assert np.array_equal(loaded.compute_impact(), forest.compute_impact())
        assert_same_topology(forest, loaded)

    def test_corrupted_file(self, tmp_path):
        """Bytes that are not a model archive are a format error."""
        path = tmp_path / "junk.npz"
        path.write_bytes(b"this is not a model" * 10)
        with pytest.raises(ModelFormatError):
            RandomForest.load(str(path))

    def test_truncated_file(self, forest, tmp_path):
        """A truncated archive is a format error."""
        path = tmp_path / "model.npz"
        forest.save(str(path))
        data = path.read_bytes()
        path.write_bytes(data[:len(data) // 2])
        with pytest.raises(ModelFormatError):
            RandomForest.load(str(path))

    def test_plain_array_file(self, tmp_path):
        """A single saved array is not a model archive."""
        path = str(tmp_path / "array.npy")
        np.save(path, np.arange(5))
        with pytest.raises(ModelFormatError, match="not a model archive"):
            RandomForest.load(path)

    def test_wrong_column_type(self, forest, tmp_path):
        """A node column holding text is a format error."""
        path = str(tmp_path / "model.npz")
        forest.save(path)
        bad = str(tmp_path / "bad.npz")
        n_nodes = sum(tree.size for tree in forest.trees)
        self.rewrite(path, bad, threshold=np.full(n_nodes, "high"))
        with pytest.raises(ModelFormatError, match="threshold"):
            RandomForest.load(bad)

    def rewrite(self, source, target, **changes):
        with np.load(source, allow_pickle=False) as archive:
            arrays = {key: archive[key] for key in archive.files}
        header = json.loads(str(arrays['header'][()]))
        header.update(changes.pop('header', {}))
        arrays['header'] = np.array(json.dumps(header))
        arrays.update(changes)
        np.savez_compressed(target, **arrays)

    def test_version_mismatch(self, forest, tmp_path):
        """A model from another format version is rejected."""
        path = str(tmp_path / "model.npz")
        forest.save(path)
        bad = str(tmp_path / "bad.npz")
        self.rewrite(path, bad, header={'version': 99})
        with pytest.raises(ModelFormatError, match="version"):
            RandomForest.load(bad)

    def test_wrong_format_name(self, forest, tmp_path):
        path = str(tmp_path / "model.npz")
        forest.save(path)
        bad = str(tmp_path / "bad.npz")
        self.rewrite(path, bad, header={'format': 'something_else'})
        with pytest.raises(ModelFormatError):
            RandomForest.load(bad)

    def test_bad_offsets(self, forest, tmp_path):
        """Tree offsets must cover the node table."""
        path = str(tmp_path / "model.npz")
        forest.save(path)
        bad = str(tmp_path / "bad.npz")
        self.rewrite(path, bad, tree_offsets=np.array([0, 1], dtype=np.int64))
        with pytest.raises(ModelFormatError):
            RandomForest.load(bad)

    def test_missing_file(self, tmp_path):
        """An unreadable path is a persistence error."""
        with pytest.raises(PersistenceError):
            RandomForest.load(str(tmp_path / "absent.npz"))

    def test_unwritable_path(self, forest, tmp_path):
        with pytest.raises(PersistenceError):
            forest.save(str(tmp_path / "no_such_dir" / "model.npz"))
