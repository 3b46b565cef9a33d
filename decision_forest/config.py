"""
Configuration parameters for the decision forest package.
"""

# Data processing parameters
DEFAULT_DELIMITER = "\t"
LABEL_TOLERANCE = 1e-9

# Training parameters
RANDOM_STATE = 42
TEST_SIZE = 0.2  # For train/test split when no test file is given
CV_FOLDS = 3     # Number of cross-validation folds
N_JOBS = -1      # Use all available processors for tree building

# Forest hyperparameter defaults
DEFAULT_NUM_TREES = 50
DEFAULT_LEAF_LIMIT = 1
DEFAULT_METHOD = "random"
DEFAULT_SELECTOR = "normal"
SAMPLE_SIZE_DIVISOR = 5        # examples per tree = rows / 5
MAX_DEPTH_FACTOR = 2           # max depth = 2 * inputs
FEATURE_SAMPLING_FACTOR = 4    # features per node >= inputs * 4 / trees

# Model hyperparameters - Random Forest estimator
RF_PARAMS = {
    "n_estimators": DEFAULT_NUM_TREES,
    "max_features": None,
    "leaf_limit": DEFAULT_LEAF_LIMIT,
    "sample_size": None,
    "max_depth": None,
    "method": DEFAULT_METHOD,
    "selector": DEFAULT_SELECTOR,
    "random_state": RANDOM_STATE
}

# Hyperparameter grid for tuning
RF_GRID = {
    "n_estimators": [25, 50, 100],
    "max_depth": [None, 4, 8],
    "leaf_limit": [1, 2, 4],
    "method": ["random", "unique", "balanced"]
}

# Model file format
MODEL_FORMAT_NAME = "decision_forest"
MODEL_FORMAT_VERSION = 1
MODEL_FILE_NAME = "model.npz"
MODEL_META_FILE_NAME = "model.json"  # estimator parameters and class labels

# Output parameters
RESULTS_DIR = "results"
MODELS_DIR = "saved_models"
FIGURES_DIR = "figures"
IMPACT_FILE_NAME = "impact.tbl"
IMPACT_REPORT_SIZE = 20
