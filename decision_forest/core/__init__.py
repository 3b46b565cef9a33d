"""
Random forest engine: impurity, split search, feature selection, trees and forests.
"""

from decision_forest.core.decision_tree import ChoiceNode, DecisionTree, LeafNode
from decision_forest.core.feature_selectors import (
    FeatureSelector, MultipleFeatureSelector, NormalSelectorSource,
    NormalTreeFeatureSelectorFactory, RootedSelectorSource,
    RootedTreeFeatureSelectorFactory, SelectorSource, SelectorType,
    SingleFeatureSelector, TreeFeatureSelectorFactory
)
from decision_forest.core.impurity import best_label, entropy, feature_mean, label_entropy
from decision_forest.core.random_forest import Parms, RandomForest
from decision_forest.core.randomizers import (
    BalancedRandomizer, Method, NonReplacingRandomizer, Randomizer, ReplacingRandomizer
)
from decision_forest.core.split_finders import (
    MeanSplitPointFinder, SequentialSplitPointFinder, SplitMethod, SplitPointFinder
)
from decision_forest.core.splitter import NULL_SPLITTER, Splitter, compute_splitter, split_rows
