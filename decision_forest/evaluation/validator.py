"""
Cross-validation and model validation functionality.
"""

import logging
from typing import Any, Dict, List, Tuple

import numpy as np
from sklearn.base import clone
from sklearn.model_selection import GridSearchCV, StratifiedKFold, cross_val_score

from decision_forest.config import CV_FOLDS, N_JOBS, RANDOM_STATE
from decision_forest.data.data_splitter import DataSplitter
from decision_forest.models.random_forest import ForestClassifier


class ModelValidator:
    """Class for validating forests using cross-validation and hyperparameter tuning."""

    def __init__(self, n_folds: int = CV_FOLDS, random_state: int = RANDOM_STATE, n_jobs: int = N_JOBS):
        """
        Initialize the ModelValidator.

        Args:
            n_folds: Number of folds for cross-validation.
            random_state: Random seed for reproducibility.
            n_jobs: Number of parallel workers for the grid search.
        """
        self.n_folds = n_folds
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.splitter = DataSplitter(random_state=random_state)
        self.logger = logging.getLogger('decision_forest')

    def _folds(self) -> StratifiedKFold:
        return self.splitter.get_cv_folds(self.n_folds)

    def cross_validate(
        self,
        model: ForestClassifier,
        X: np.ndarray,
        y: np.ndarray,
        metric: str = 'accuracy'
    ) -> Dict[str, Any]:
        """
        Perform cross-validation on a model.

        Args:
            model: Model to validate.
            X: Feature matrix.
            y: Class labels.
            metric: Metric to use for evaluation.

        Returns:
            Dictionary with cross-validation results.
        """
        scores = cross_val_score(clone(model), X, y, cv=self._folds(), scoring=metric)
        self.logger.info(f"Cross-validation {metric}: {scores.mean():.4f} (+/- {scores.std():.4f})")
        return {
            'mean_score': float(scores.mean()),
            'std_score': float(scores.std()),
            'min_score': float(scores.min()),
            'max_score': float(scores.max()),
            'all_scores': scores.tolist()
        }

    def tune_hyperparameters(
        self,
        model: ForestClassifier,
        param_grid: Dict[str, List[Any]],
        X: np.ndarray,
        y: np.ndarray,
        metric: str = 'accuracy'
    ) -> Tuple[ForestClassifier, Dict[str, Any], float]:
        """
        Tune model hyperparameters using grid search.

        Args:
            model: Model to tune.
            param_grid: Grid of parameters to search.
            X: Feature matrix.
            y: Class labels.
            metric: Metric to optimize.

        Returns:
            Tuple of (refitted_best_model, best_params, best_score).
        """
        grid_search = GridSearchCV(
            model,
            param_grid,
            scoring=metric,
            cv=self._folds(),
            n_jobs=self.n_jobs,
            verbose=1
        )
        grid_search.fit(X, y)
        self.logger.info(f"Best parameters: {grid_search.best_params_}")
        self.logger.info(f"Best score: {grid_search.best_score_:.4f}")
        return grid_search.best_estimator_, grid_search.best_params_, float(grid_search.best_score_)
