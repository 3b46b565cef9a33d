#!/usr/bin/env python3
"""
Main script for the decision forest package.
Trains a random forest on a labelled file, evaluates it and reports feature impact.
"""

import os
import sys
import argparse
import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from decision_forest.config import (
    CV_FOLDS, DEFAULT_DELIMITER, DEFAULT_LEAF_LIMIT, DEFAULT_METHOD, DEFAULT_NUM_TREES,
    DEFAULT_SELECTOR, FIGURES_DIR, IMPACT_FILE_NAME, IMPACT_REPORT_SIZE, MODELS_DIR,
    N_JOBS, RANDOM_STATE, RESULTS_DIR, RF_GRID
)
from decision_forest.core.feature_selectors import SelectorType
from decision_forest.core.randomizers import Method
from decision_forest.data.data_loader import DataLoader
from decision_forest.data.data_splitter import DataSplitter
from decision_forest.data.dataset import Dataset
from decision_forest.evaluation.metrics import (
    calculate_metrics, get_classification_report, get_confusion_matrix
)
from decision_forest.evaluation.validator import ModelValidator
from decision_forest.models.random_forest import ForestClassifier
from decision_forest.utils.helpers import (
    create_output_dirs, format_metrics, save_results, setup_logging, timer
)
from decision_forest.visualization.visualizer import Visualizer


def _split_names(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [name.strip() for name in value.split(',') if name.strip()]


def _class_labels(dataset: Dataset) -> np.ndarray:
    return np.array(dataset.label_names)[dataset.row_classes()]


@timer
def load_datasets(
    loader: DataLoader,
    train_file: str,
    test_file: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> Tuple[Dataset, Dataset]:
    """
    Load the training set and the testing set.

    When no testing file is given, a stratified part of the training file is held out.

    Args:
        loader: Data loader configured with the label and metadata columns.
        train_file: Path to training data file.
        test_file: Optional path to testing data file.
        logger: Optional logger.

    Returns:
        Tuple of (training_set, testing_set).
    """
    dataset = loader.prepare_data(train_file)
    if test_file:
        return dataset, loader.prepare_data(test_file)
    train_set, test_set = DataSplitter(random_state=RANDOM_STATE).train_test_split(dataset)
    if logger:
        logger.info(
            f"Held out {test_set.num_examples} of {dataset.num_examples} rows for testing."
        )
    return train_set, test_set


@timer
def train_forest(
    model: ForestClassifier,
    train_set: Dataset,
    tune: bool = False,
    cross_validate: bool = False,
    logger: Optional[logging.Logger] = None
) -> Tuple[ForestClassifier, Dict[str, Any]]:
    """
    Train a forest, optionally tuning its hyperparameters first.

    Args:
        model: Unfitted classifier.
        train_set: Training set.
        tune: Whether to run a grid search over the forest hyperparameters.
        cross_validate: Whether to report cross-validated accuracy.
        logger: Optional logger.

    Returns:
        Tuple of (fitted_model, validation_results).
    """
    X = train_set.features
    y = _class_labels(train_set)
    validation: Dict[str, Any] = {}
    validator = ModelValidator(n_folds=CV_FOLDS, random_state=RANDOM_STATE)

    # Grid search refits the best model on the whole training set
    if tune:
        if logger:
            logger.info("Tuning forest hyperparameters...")
        model, best_params, best_score = validator.tune_hyperparameters(model, RF_GRID, X, y)
        validation['best_params'] = best_params
        validation['best_score'] = best_score
    else:
        model.fit(X, y)

    # Cross-validate the chosen parameters
    if cross_validate:
        validation['cross_validation'] = validator.cross_validate(model, X, y)
    return model, validation


def write_impact(ranking: pd.DataFrame, output_path: str) -> str:
    """Write the impact table as tab-delimited col_name and info_gain columns."""
    ranking.to_csv(output_path, sep='\t', index=False, columns=['col_name', 'info_gain'])
    return output_path


def report_results(
    logger: logging.Logger,
    y_true: np.ndarray,
    y_pred: np.ndarray,
    label_names: List[str],
    ranking: pd.DataFrame
) -> Dict[str, float]:
    """Log the accuracy report and the most impactful columns."""
    metrics = calculate_metrics(y_true, y_pred)
    correct = int(np.sum(y_true == y_pred))
    logger.info(f"{correct} of {len(y_true)} testing rows predicted correctly.")
    logger.info(f"Metrics: {format_metrics(metrics)}")
    logger.info(
        "Classification report:\n"
        + get_classification_report(y_true, y_pred, target_names=label_names, labels=label_names)
    )
    top = ranking.head(IMPACT_REPORT_SIZE)
    logger.info(
        f"Top {len(top)} columns by impact:\n"
        + "\n".join(f"{row.col_name:>30}  {row.info_gain:12.6f}" for row in top.itertuples())
    )
    return metrics


@timer
def create_visualizations(
    ranking: pd.DataFrame,
    cm: np.ndarray,
    label_names: List[str],
    model_name: str,
    output_dir: str = FIGURES_DIR
) -> None:
    """
    Create and save visualizations.

    Args:
        ranking: Feature impact ranking.
        cm: Confusion matrix of the testing set.
        label_names: Class names in confusion matrix order.
        model_name: Name of the model.
        output_dir: Directory to save figures.
    """
    visualizer = Visualizer(output_dir=output_dir)
    visualizer.plot_feature_impact(ranking, filename='feature_impact')
    visualizer.plot_confusion_matrix(cm, label_names, model_name, filename='confusion_matrix')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Random forest classification with feature impact")
    parser.add_argument("--train", required=True, help="Path to training data file")
    parser.add_argument("--test", help="Path to testing data file (default: hold out part of the training file)")
    parser.add_argument("--label-col", required=True, help="Name of the column containing the classification")
    parser.add_argument("--labels", help="Comma-delimited label values, in output order")
    parser.add_argument("--meta-cols", help="Comma-delimited names of columns to ignore")
    parser.add_argument("--delimiter", default=DEFAULT_DELIMITER, help="Field delimiter of the input files")
    parser.add_argument("--output", default="output", help="Output directory")
    parser.add_argument("--method", default=DEFAULT_METHOD, choices=[m.value for m in Method],
                        help="Example selection method for each tree")
    parser.add_argument("--max-features", type=int, help="Number of features to examine at each choice node")
    parser.add_argument("--n-estimators", type=int, default=DEFAULT_NUM_TREES, help="Number of trees")
    parser.add_argument("--min-split", type=int, default=DEFAULT_LEAF_LIMIT, help="Maximum number of rows in a leaf")
    parser.add_argument("--max-depth", type=int, help="Maximum tree depth")
    parser.add_argument("--sample-size", type=int, help="Number of training examples per tree")
    parser.add_argument("--selector", default=DEFAULT_SELECTOR, choices=[t.value for t in SelectorType],
                        help="Feature selection type")
    parser.add_argument("--impact-cols", help="Comma-delimited feature names to root the trees in (rooted selector)")
    parser.add_argument("--seed", type=int, default=RANDOM_STATE, help="Random seed")
    parser.add_argument("--n-jobs", type=int, default=N_JOBS, help="Number of parallel workers")
    parser.add_argument("--tune", action="store_true", help="Tune hyperparameters with a grid search")
    parser.add_argument("--cross-validate", action="store_true", help="Report cross-validated accuracy")
    parser.add_argument("--no-plots", action="store_true", help="Skip figure generation")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to run the forest pipeline."""
    args = build_parser().parse_args(argv)

    # Create output directories
    output_dirs = create_output_dirs(
        args.output,
        [MODELS_DIR, RESULTS_DIR, FIGURES_DIR, "logs"]
    )

    # Set up logging
    logger = setup_logging(
        log_dir=output_dirs["logs"],
        log_level=logging.DEBUG if args.verbose else logging.INFO
    )
    logger.info("Starting decision forest pipeline")
    logger.info(f"Using training data: {args.train}")
    if args.test:
        logger.info(f"Using testing data: {args.test}")

    try:
        # Load data
        loader = DataLoader(
            label_col=args.label_col,
            labels=_split_names(args.labels),
            meta_cols=_split_names(args.meta_cols),
            delimiter=args.delimiter
        )
        train_set, test_set = load_datasets(loader, args.train, args.test, logger=logger)
        label_names = list(loader.labels)

        # Configure and train the forest
        model = ForestClassifier(
            n_estimators=args.n_estimators,
            max_features=args.max_features,
            leaf_limit=args.min_split,
            sample_size=args.sample_size,
            max_depth=args.max_depth,
            method=args.method,
            selector=args.selector,
            impact_cols=_split_names(args.impact_cols),
            feature_names=train_set.column_names(),
            random_state=args.seed,
            n_jobs=args.n_jobs,
            verbose=args.verbose
        )
        logger.info("Training forest...")
        model, validation = train_forest(
            model, train_set, tune=args.tune, cross_validate=args.cross_validate, logger=logger
        )

        # Evaluate on the testing set
        logger.info("Evaluating on testing set...")
        y_true = _class_labels(test_set)
        y_pred = model.predict(test_set.features)
        ranking = model.impact_ranking()
        metrics = report_results(logger, y_true, y_pred, label_names, ranking)

        # Save the impact table and the model
        impact_path = write_impact(ranking, os.path.join(output_dirs[RESULTS_DIR], IMPACT_FILE_NAME))
        logger.info(f"Impact table saved to {impact_path}")

        model_path = model.save(output_dirs[MODELS_DIR])
        logger.info(f"Model saved to {model_path}")

        # Confusion matrix and figures
        cm = get_confusion_matrix(y_true, y_pred, labels=label_names)
        if not args.no_plots:
            logger.info("Creating visualizations...")
            create_visualizations(
                ranking, cm, label_names, model.model_name, output_dir=output_dirs[FIGURES_DIR]
            )

        # Save results summary
        results_summary = {
            "data": {
                "num_train_samples": train_set.num_examples,
                "num_test_samples": test_set.num_examples,
                "num_features": train_set.num_inputs,
                "labels": label_names
            },
            "parameters": model.get_params(),
            "validation": validation,
            "metrics": metrics,
            "confusion_matrix": cm,
            "top_impact": ranking.head(IMPACT_REPORT_SIZE),
            "model_path": model_path
        }
        results_path = os.path.join(output_dirs[RESULTS_DIR], "results_summary.json")
        save_results(results_summary, results_path)
        logger.info(f"Results summary saved to {results_path}")

        logger.info("Pipeline completed successfully")

    except Exception as e:
        logger.exception(f"Error in pipeline: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
