"""
decision_forest: random forest classification with entropy-minimizing decision trees.
"""

from decision_forest.core import (
    DecisionTree, Method, NormalSelectorSource, Parms, RandomForest,
    RootedSelectorSource, SelectorType, SplitMethod
)
from decision_forest.data.dataset import Dataset
from decision_forest.exceptions import (
    ConfigurationError, DataError, ForestError, ModelFormatError, PersistenceError
)

__version__ = "0.1.0"
