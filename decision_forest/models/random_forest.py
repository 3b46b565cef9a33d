"""
Random forest classifier with a scikit-learn estimator interface.
"""

import os
import json
import logging
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.exceptions import NotFittedError
from sklearn.preprocessing import LabelEncoder

from decision_forest.config import MODEL_FILE_NAME, MODEL_META_FILE_NAME, N_JOBS, RF_PARAMS
from decision_forest.core.feature_selectors import RootedSelectorSource, SelectorType
from decision_forest.core.random_forest import Parms, RandomForest
from decision_forest.core.randomizers import Method
from decision_forest.data.dataset import Dataset
from decision_forest.exceptions import ConfigurationError, DataError, ModelFormatError, PersistenceError
from decision_forest.utils.helpers import load_results, save_results


class ForestClassifier(ClassifierMixin, BaseEstimator):
    """
    Random forest classifier over arbitrary class labels.

    The parameters keep the scikit-learn names, so the estimator can be used with
    cross_val_score and GridSearchCV.  Unset size parameters are derived from the
    training set shape when the forest is built.
    """

    model_name = "random_forest"

    def __init__(
        self,
        n_estimators: int = RF_PARAMS["n_estimators"],
        max_features: Optional[int] = RF_PARAMS["max_features"],
        leaf_limit: int = RF_PARAMS["leaf_limit"],
        sample_size: Optional[int] = RF_PARAMS["sample_size"],
        max_depth: Optional[int] = RF_PARAMS["max_depth"],
        method: str = RF_PARAMS["method"],
        selector: str = RF_PARAMS["selector"],
        impact_cols: Optional[Sequence[str]] = None,
        feature_names: Optional[Sequence[str]] = None,
        random_state: Optional[int] = RF_PARAMS["random_state"],
        n_jobs: Optional[int] = N_JOBS,
        verbose: bool = False
    ):
        """
        Initialize the classifier.

        Args:
            n_estimators: Number of trees.
            max_features: Number of features examined at each choice node.
            leaf_limit: Maximum number of rows in a leaf.
            sample_size: Number of training examples per tree.
            max_depth: Maximum tree depth.
            method: Example selection method (random, unique or balanced).
            selector: Feature selection type (normal or rooted).
            impact_cols: Feature names to root the trees in, for rooted selection.
            feature_names: Names of the input columns; taken from a DataFrame if omitted.
            random_state: Forest random seed.
            n_jobs: Number of parallel workers for the tree build.
            verbose: Whether to display a progress bar.
        """
        self.n_estimators = n_estimators
        self.max_features = max_features
        self.leaf_limit = leaf_limit
        self.sample_size = sample_size
        self.max_depth = max_depth
        self.method = method
        self.selector = selector
        self.impact_cols = impact_cols
        self.feature_names = feature_names
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.verbose = verbose

    def _check_fitted(self) -> None:
        if not hasattr(self, 'forest_'):
            raise NotFittedError(f"This {type(self).__name__} instance is not fitted yet.")

    def build_parms(self, num_rows: int, num_inputs: int) -> Parms:
        """Resolve the estimator parameters into forest hyperparameters for a training set shape."""
        return Parms.for_shape(
            num_rows, num_inputs,
            num_trees=self.n_estimators,
            num_features_per_node=self.max_features,
            leaf_limit=self.leaf_limit,
            num_examples_per_tree=self.sample_size,
            max_depth=self.max_depth,
            method=Method.parse(self.method)
        )

    def fit(self, X, y) -> "ForestClassifier":
        """
        Build the forest from training data.

        Args:
            X: Training features (array or DataFrame).
            y: Training class labels.

        Returns:
            The fitted classifier.
        """
        feature_names = self.feature_names
        if feature_names is None and isinstance(X, pd.DataFrame):
            feature_names = [str(col) for col in X.columns]
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y)
        if y.ndim != 1:
            raise DataError(f"y must be a vector, got {y.ndim} dimensions")
        if X.ndim != 2 or X.shape[0] != y.shape[0]:
            raise DataError(f"X of shape {X.shape} does not match {y.shape[0]} labels")

        encoder = LabelEncoder()
        classes = encoder.fit_transform(y)
        self.classes_ = encoder.classes_
        dataset = Dataset.from_class_indices(
            X, classes, len(self.classes_),
            feature_names=feature_names,
            label_names=[str(label) for label in self.classes_]
        )
        parms = self.build_parms(dataset.num_examples, dataset.num_inputs)

        selector_source = None
        if SelectorType.parse(self.selector) is SelectorType.ROOTED:
            if not self.impact_cols:
                raise ConfigurationError("A rooted forest requires impact columns")
            selector_source = RootedSelectorSource(
                dataset.column_names(), self.impact_cols, parms.num_features_per_node
            )

        self.forest_ = RandomForest(
            dataset, parms, selector_source,
            seed=self.random_state, n_jobs=self.n_jobs, verbose=self.verbose
        )
        self.feature_names_ = dataset.column_names()
        self.n_features_in_ = dataset.num_inputs
        return self

    def predict(self, X) -> np.ndarray:
        """
        Predict class labels by majority vote.

        Args:
            X: Input features.

        Returns:
            Predicted labels.
        """
        self._check_fitted()
        return self.classes_[self.forest_.predict_classes(np.asarray(X, dtype=np.float64))]

    def predict_proba(self, X) -> np.ndarray:
        """
        Return the fraction of trees voting for each class.

        Args:
            X: Input features.

        Returns:
            Matrix of vote fractions, columns in the order of classes_.
        """
        self._check_fitted()
        return self.forest_.predict_proba(np.asarray(X, dtype=np.float64))

    @property
    def feature_importances_(self) -> np.ndarray:
        """Mean information gain of each input across the trees."""
        self._check_fitted()
        return self.forest_.compute_impact()

    def get_feature_importance(self) -> Dict[int, float]:
        """
        Get feature importance from the model.

        Returns:
            Dictionary mapping feature indices to mean information gain.
        """
        importances = self.feature_importances_
        return {i: float(importance) for i, importance in enumerate(importances)}

    def impact_ranking(self) -> pd.DataFrame:
        """Return the input columns ranked by mean information gain."""
        self._check_fitted()
        return self.forest_.impact_ranking(self.feature_names_)

    def save(self, model_dir: str) -> str:
        """
        Save the model to disk.

        The forest goes to a model archive and the estimator parameters, class labels
        and feature names to a JSON file beside it.

        Args:
            model_dir: Directory to save the model.

        Returns:
            Path to saved model archive.
        """
        self._check_fitted()
        try:
            os.makedirs(model_dir, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create model directory {model_dir}: {e}") from e
        model_path = os.path.join(model_dir, MODEL_FILE_NAME)
        self.forest_.save(model_path)
        meta = {
            'params': self.get_params(),
            'classes': self.classes_,
            'feature_names': self.feature_names_
        }
        try:
            save_results(meta, os.path.join(model_dir, MODEL_META_FILE_NAME))
        except OSError as e:
            raise PersistenceError(f"Model save to {model_dir} failed: {e}") from e
        return model_path

    @classmethod
    def load(cls, model_dir: str) -> "ForestClassifier":
        """
        Load a model saved by save().

        Args:
            model_dir: Directory containing the saved model.

        Returns:
            Fitted classifier.
        """
        meta_path = os.path.join(model_dir, MODEL_META_FILE_NAME)
        try:
            meta = load_results(meta_path)
        except json.JSONDecodeError as e:
            raise ModelFormatError(f"Invalid model metadata in {meta_path}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Model load from {meta_path} failed: {e}") from e
        missing = [key for key in ('params', 'classes', 'feature_names') if key not in meta]
        if missing:
            raise ModelFormatError(f"Invalid model metadata in {meta_path}: missing {', '.join(missing)}")

        model = cls(**meta['params'])
        forest = RandomForest.load(os.path.join(model_dir, MODEL_FILE_NAME))
        if forest.num_labels != len(meta['classes']) or forest.num_features != len(meta['feature_names']):
            raise ModelFormatError(f"Model metadata in {meta_path} does not match the forest")
        model.forest_ = forest
        model.classes_ = np.array(meta['classes'])
        model.feature_names_ = list(meta['feature_names'])
        model.n_features_in_ = forest.num_features
        logging.getLogger('decision_forest').info(f"Model loaded from {model_dir}.")
        return model
