"""
Evaluation metrics for model assessment.
"""

from typing import Dict, List, Optional

import numpy as np
from sklearn.metrics import (
    accuracy_score, precision_score, recall_score, f1_score,
    confusion_matrix, classification_report
)


def votes_to_classes(votes: np.ndarray) -> np.ndarray:
    """
    Convert a vote matrix to the winning class index of each row.

    Ties go to the lowest class index.
    """
    return np.argmax(np.asarray(votes), axis=1)


def calculate_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    """
    Calculate classification metrics.

    Precision, recall and F1 are macro-averaged over the classes.

    Args:
        y_true: Ground truth labels.
        y_pred: Predicted labels.

    Returns:
        Dictionary of metric names and values.
    """
    return {
        'accuracy': float(accuracy_score(y_true, y_pred)),
        'precision': float(precision_score(y_true, y_pred, average='macro', zero_division=0)),
        'recall': float(recall_score(y_true, y_pred, average='macro', zero_division=0)),
        'f1': float(f1_score(y_true, y_pred, average='macro', zero_division=0))
    }


def get_confusion_matrix(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    labels: Optional[List] = None
) -> np.ndarray:
    """
    Calculate confusion matrix.

    Args:
        y_true: Ground truth labels.
        y_pred: Predicted labels.
        labels: Optional label order for the rows and columns.

    Returns:
        Confusion matrix.
    """
    return confusion_matrix(y_true, y_pred, labels=labels)


def get_classification_report(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    target_names: Optional[List[str]] = None,
    labels: Optional[List] = None
) -> str:
    """
    Generate a classification report.

    Args:
        y_true: Ground truth labels.
        y_pred: Predicted labels.
        target_names: Names of the target classes.
        labels: Optional label values matching target_names.

    Returns:
        Classification report as a string.
    """
    return classification_report(
        y_true, y_pred, labels=labels, target_names=target_names, zero_division=0
    )
