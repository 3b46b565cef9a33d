"""
Data loading module: converts a delimited training file into a Dataset.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from decision_forest.config import DEFAULT_DELIMITER
from decision_forest.data.dataset import Dataset
from decision_forest.exceptions import DataError


class DataLoader:
    """Class to load a tabular training file with one label column."""

    def __init__(
        self,
        label_col: str,
        labels: Optional[Sequence[str]] = None,
        meta_cols: Optional[Sequence[str]] = None,
        delimiter: str = DEFAULT_DELIMITER,
        verbose: bool = True
    ):
        """
        Initialize the DataLoader.

        Args:
            label_col: Name of the column containing the classification.
            labels: Label values in output order; if omitted, the sorted distinct values
                of the first file loaded are used.
            meta_cols: Columns to ignore (identifiers and other metadata).
            delimiter: Field delimiter of the input files.
            verbose: Whether to log processing information.
        """
        self.label_col = label_col
        self.labels = list(labels) if labels is not None else None
        self.meta_cols = list(meta_cols) if meta_cols else []
        self.delimiter = delimiter
        self.verbose = verbose
        self.feature_names: Optional[List[str]] = None
        self.logger = logging.getLogger('decision_forest')

    def load_data(self, file_path: str) -> pd.DataFrame:
        """
        Load data from a delimited file.

        Args:
            file_path: Path to the file.

        Returns:
            Loaded DataFrame.
        """
        if self.verbose:
            self.logger.info(f"Loading data from {file_path}...")
        df = pd.read_csv(file_path, sep=self.delimiter)
        if self.verbose:
            self.logger.info(f"Loaded {len(df)} rows and {len(df.columns)} columns.")
        return df

    def to_dataset(self, df: pd.DataFrame) -> Dataset:
        """
        Convert a DataFrame to a Dataset.

        The feature columns are all the columns other than the label and metadata columns.
        Once a file has been converted, later files must have the same feature columns.

        Args:
            df: Input DataFrame.

        Returns:
            Dataset with feature and label names.

        Raises:
            DataError: If a column is missing, a feature is not numeric or a label is unknown.
        """
        if self.label_col not in df.columns:
            raise DataError(f"Label column {self.label_col} not found")
        missing_meta = [col for col in self.meta_cols if col not in df.columns]
        if missing_meta:
            raise DataError(f"Metadata columns not found: {', '.join(missing_meta)}")
        excluded = set(self.meta_cols) | {self.label_col}
        feature_cols = [col for col in df.columns if col not in excluded]
        if self.feature_names is None:
            self.feature_names = feature_cols
        elif feature_cols != self.feature_names:
            raise DataError("Feature columns do not match the columns of the training file")
        if not feature_cols:
            raise DataError("Input has no feature columns")
        try:
            features = df[feature_cols].astype(np.float64).values
        except ValueError as e:
            raise DataError(f"Non-numeric feature value: {e}") from e
        label_values = df[self.label_col].astype(str)
        if self.labels is None:
            self.labels = sorted(label_values.unique())
        label_index = {label: i for i, label in enumerate(self.labels)}
        unknown = sorted(set(label_values) - set(label_index))
        if unknown:
            raise DataError(f"Unknown label values in column {self.label_col}: {', '.join(unknown)}")
        classes = label_values.map(label_index).values
        return Dataset.from_class_indices(
            features, classes, len(self.labels),
            feature_names=feature_cols, label_names=self.labels
        )

    def prepare_data(self, file_path: str) -> Dataset:
        """
        Load a file and convert it to a Dataset.

        Args:
            file_path: Path to the file.

        Returns:
            The dataset.
        """
        df = self.load_data(file_path)
        dataset = self.to_dataset(df)
        if self.verbose:
            counts = dict(zip(self.labels, dataset.label_sums().astype(int).tolist()))
            self.logger.info(f"Class distribution: {counts}")
        return dataset
