"""
On-disk format for random forest models.

A model file is a NumPy archive holding a JSON header and one flat node table for all
the trees.  Node child indices are relative to the start of their tree, and
tree_offsets gives the first node of each tree.  Only the tree topology is stored;
hyperparameters and random number state are construction-time only.
"""

import json
import logging
import pickle
import zipfile
import zlib
from typing import List, Tuple

import numpy as np

from decision_forest.config import MODEL_FORMAT_NAME, MODEL_FORMAT_VERSION
from decision_forest.core.decision_tree import DecisionTree
from decision_forest.exceptions import ModelFormatError, PersistenceError

logger = logging.getLogger('decision_forest')

NODE_COLUMNS = ('kind', 'feature', 'threshold', 'entropy', 'gain', 'predicted_class', 'left', 'right')
INTEGER_COLUMNS = ('kind', 'feature', 'predicted_class', 'left', 'right')


def write_forest(path: str, trees: List[DecisionTree], num_labels: int, num_features: int) -> None:
    """
    Write a list of trees to a model file.

    Args:
        path: Output file name.
        trees: Trees of the forest.
        num_labels: Number of classes predicted by the forest.
        num_features: Number of input features of the forest.

    Raises:
        PersistenceError: If the file cannot be written.
    """
    header = {
        'format': MODEL_FORMAT_NAME,
        'version': MODEL_FORMAT_VERSION,
        'num_labels': num_labels,
        'num_features': num_features,
        'num_trees': len(trees)
    }
    tables = [tree.to_records() for tree in trees]
    offsets = np.zeros(len(trees) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum([table['kind'].shape[0] for table in tables])
    arrays = {
        column: np.concatenate([table[column] for table in tables])
        for column in NODE_COLUMNS
    }
    try:
        with open(path, 'wb') as f:
            np.savez_compressed(
                f, header=np.array(json.dumps(header)), tree_offsets=offsets, **arrays
            )
    except OSError as e:
        raise PersistenceError(f"Model save to {path} failed: {e}") from e


def read_forest(path: str) -> Tuple[List[DecisionTree], int, int]:
    """
    Read the trees of a forest from a model file.

    Args:
        path: Input file name.

    Returns:
        Tuple of (trees, num_labels, num_features).

    Raises:
        PersistenceError: If the file cannot be read.
        ModelFormatError: If the file is not a valid model of the current version.
    """
    try:
        archive = np.load(path, allow_pickle=False)
        # a plain .npy file loads as a bare array
        if not isinstance(archive, np.lib.npyio.NpzFile):
            raise ModelFormatError(f"Invalid model format in {path}: not a model archive")
        with archive:
            missing = [key for key in ('header', 'tree_offsets') + NODE_COLUMNS if key not in archive.files]
            if missing:
                raise ModelFormatError(f"Invalid model format in {path}: missing {', '.join(missing)}")
            header = _parse_header(path, archive['header'])
            offsets = archive['tree_offsets']
            columns = {column: archive[column] for column in NODE_COLUMNS}
    except ModelFormatError:
        raise
    except (zipfile.BadZipFile, zlib.error, pickle.UnpicklingError, EOFError, ValueError, KeyError, TypeError) as e:
        raise ModelFormatError(f"Invalid model format in {path}: {e}") from e
    except OSError as e:
        raise PersistenceError(f"Model load from {path} failed: {e}") from e
    num_labels = header['num_labels']
    num_features = header['num_features']
    num_trees = header['num_trees']

    # Check the node table before building any tree from it.
    n_nodes = columns['kind'].shape[0]
    if any(columns[column].shape != (n_nodes,) for column in NODE_COLUMNS):
        raise ModelFormatError(f"Invalid model format in {path}: node columns differ in length")
    for column in NODE_COLUMNS:
        allowed = 'iu' if column in INTEGER_COLUMNS else 'iuf'
        if columns[column].dtype.kind not in allowed:
            raise ModelFormatError(
                f"Invalid model format in {path}: column {column} has type {columns[column].dtype}"
            )
    if (offsets.dtype.kind not in 'iu' or offsets.shape != (num_trees + 1,) or offsets[0] != 0
            or offsets[-1] != n_nodes or np.any(np.diff(offsets) <= 0)):
        raise ModelFormatError(f"Invalid model format in {path}: bad tree offsets")

    # Rebuild the trees one slice of the table at a time.
    trees = []
    for t in range(num_trees):
        start, end = int(offsets[t]), int(offsets[t + 1])
        records = {column: columns[column][start:end] for column in NODE_COLUMNS}
        trees.append(DecisionTree.from_records(records, num_features, num_labels))
    logger.info(f"Loaded {num_trees} trees from {path}.")
    return trees, num_labels, num_features


def _parse_header(path: str, raw: np.ndarray) -> dict:
    try:
        header = json.loads(str(raw[()]))
    except (json.JSONDecodeError, TypeError) as e:
        raise ModelFormatError(f"Invalid model format in {path}: unreadable header") from e
    if not isinstance(header, dict) or header.get('format') != MODEL_FORMAT_NAME:
        raise ModelFormatError(f"Invalid model format in {path}: not a {MODEL_FORMAT_NAME} model")
    if header.get('version') != MODEL_FORMAT_VERSION:
        raise ModelFormatError(
            f"Invalid model format in {path}: version {header.get('version')} is not "
            f"supported (expected {MODEL_FORMAT_VERSION})"
        )
    for key in ('num_labels', 'num_features', 'num_trees'):
        value = header.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ModelFormatError(f"Invalid model format in {path}: bad {key} {value!r}")
    return header
