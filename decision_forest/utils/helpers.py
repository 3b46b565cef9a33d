"""
Utility functions for the decision forest package.
"""

import os
import json
import time
import logging
from datetime import datetime
from typing import Dict, List, Any

import pandas as pd
import numpy as np


def setup_logging(log_dir: str = 'logs', log_level: int = logging.INFO) -> logging.Logger:
    """
    Set up logging.

    Args:
        log_dir: Directory to store log files.
        log_level: Logging level.

    Returns:
        Logger instance.
    """
    # Create the log directory if needed
    os.makedirs(log_dir, exist_ok=True)

    # The package logger; modules log through logging.getLogger('decision_forest')
    logger = logging.getLogger('decision_forest')
    logger.setLevel(log_level)

    # One format for both handlers
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # One log file per run
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    file_handler = logging.FileHandler(os.path.join(log_dir, f'run_{timestamp}.log'))
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    # Mirror the log on the console
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    # Attach handlers
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def to_serializable(obj: Any) -> Any:
    """Convert numpy and pandas objects to JSON-compatible values."""
    if isinstance(obj, (np.ndarray, np.generic)):
        return obj.tolist()
    elif isinstance(obj, pd.DataFrame):
        return obj.to_dict(orient='records')
    elif isinstance(obj, pd.Series):
        return obj.to_dict()
    elif isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def save_results(results: Dict[str, Any], output_path: str) -> None:
    """
    Save results to a JSON file.

    Args:
        results: Results dictionary.
        output_path: Path to save results.
    """
    # Create the parent directory if needed
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    # numpy and pandas values are converted by to_serializable
    with open(output_path, 'w') as f:
        json.dump(results, f, indent=4, default=to_serializable)


def load_results(input_path: str) -> Dict[str, Any]:
    """Load a JSON file written by save_results."""
    with open(input_path) as f:
        return json.load(f)


def timer(func):
    """
    Decorator to log function execution time.

    Args:
        func: Function to time.

    Returns:
        Wrapped function.
    """
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        end_time = time.time()
        logging.getLogger('decision_forest').info(
            f"Function {func.__name__} took {end_time - start_time:.2f} seconds to run."
        )
        return result
    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


def create_output_dirs(base_dir: str, subdirs: List[str]) -> Dict[str, str]:
    """
    Create output directories.

    Args:
        base_dir: Base directory.
        subdirs: List of subdirectories to create.

    Returns:
        Dictionary mapping subdirectory names to their paths.
    """
    paths = {}

    # Create the base directory, then one directory per output kind
    os.makedirs(base_dir, exist_ok=True)
    for subdir in subdirs:
        path = os.path.join(base_dir, subdir)
        os.makedirs(path, exist_ok=True)
        paths[subdir] = path
    return paths


def format_metrics(metrics: Dict[str, float], decimal_places: int = 4) -> Dict[str, str]:
    """
    Format metric values as strings with specified decimal places.

    Args:
        metrics: Dictionary of metric names and values.
        decimal_places: Number of decimal places to round to.

    Returns:
        Dictionary of formatted metric strings.
    """
    return {k: f"{v:.{decimal_places}f}" for k, v in metrics.items()}
