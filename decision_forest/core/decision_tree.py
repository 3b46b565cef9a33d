"""
Decision trees for classification.

Each choice node of a tree specifies a feature and a threshold.  Rows whose value is
less than or equal to the threshold are classified on the left and those greater than
the threshold on the right.  Each leaf specifies an output class.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import numpy as np

from decision_forest.core.feature_selectors import TreeFeatureSelectorFactory
from decision_forest.core.impurity import best_label, entropy as label_matrix_entropy
from decision_forest.core.splitter import NULL_SPLITTER, Splitter
from decision_forest.data.dataset import Dataset
from decision_forest.exceptions import ModelFormatError

logger = logging.getLogger('decision_forest')

# node kinds in the flat record format
LEAF = 0
CHOICE = 1


@dataclass(frozen=True)
class LeafNode:
    """A terminal node that decides a class."""

    predicted_class: int
    entropy: float


@dataclass(frozen=True)
class ChoiceNode:
    """A decision node with two children."""

    feature: int
    threshold: float
    entropy: float
    gain: float
    left: "Node"
    right: "Node"

    def choose(self, row: np.ndarray) -> "Node":
        """Return the child relevant to the specified feature row."""
        return self.right if row[self.feature] > self.threshold else self.left

    @classmethod
    def from_splitter(cls, splitter: Splitter, entropy: float, left: "Node", right: "Node") -> "ChoiceNode":
        return cls(splitter.feature, splitter.threshold, entropy, splitter.gain, left, right)


Node = Union[ChoiceNode, LeafNode]


class DecisionTree:
    """
    A classification tree grown from a training set by entropy minimization.

    The tree is immutable once built.  The hyperparameters and the feature selector
    factory are only used during construction and are not kept.
    """

    def __init__(self, dataset: Dataset, parms, factory: TreeFeatureSelectorFactory):
        """
        Grow a decision tree for the specified dataset.

        Args:
            dataset: Training set for the tree.
            parms: Hyperparameters; only leaf_limit and max_depth are used.
            factory: Feature selector factory owned by this tree.
        """
        self.num_features = dataset.num_inputs
        self.num_classes = dataset.num_outcomes
        self._leaf_limit = parms.leaf_limit
        self._max_depth = parms.max_depth
        self._factory = factory
        features = dataset.features
        labels = dataset.labels
        self.root = self._compute_node(features, labels, 0, label_matrix_entropy(labels))
        # construction-only state
        self._factory = None
        self.size = self._count_nodes()
        self.depth = self._compute_depth()
        logger.debug(f"Built tree with {self.size} nodes and depth {self.depth} from {dataset.num_examples} rows.")

    @classmethod
    def _from_root(cls, root: Node, num_features: int, num_classes: int) -> "DecisionTree":
        tree = cls.__new__(cls)
        tree.num_features = num_features
        tree.num_classes = num_classes
        tree.root = root
        tree._factory = None
        tree.size = tree._count_nodes()
        tree.depth = tree._compute_depth()
        return tree

    def __getstate__(self):
        # Pickled as the flat record table; node nesting can exceed the pickle recursion limit.
        return {
            'records': self.to_records(),
            'num_features': self.num_features,
            'num_classes': self.num_classes
        }

    def __setstate__(self, state):
        tree = self.from_records(state['records'], state['num_features'], state['num_classes'])
        self.__dict__.update(tree.__dict__)

    def _compute_node(self, features: np.ndarray, labels: np.ndarray, depth: int, node_entropy: float) -> Node:
        """
        Compute the node that decides a set of rows.

        Nodes are grown in pre-order from an explicit stack, so the depth of a tree is
        not limited by the interpreter recursion limit.  Each node takes its feature
        selector before its left subtree and the left subtree is grown before the right.

        Args:
            features: Feature matrix of the rows to classify.
            labels: Label matrix of the rows to classify.
            depth: Depth of the node.
            node_entropy: Entropy of the rows.

        Returns:
            A leaf or choice node for the rows.
        """
        # pre-order entries of (leaf or splitter, entropy, child positions)
        pending = []
        stack = [(features, labels, depth, node_entropy, None)]
        while stack:
            rows, row_labels, level, rows_entropy, parent = stack.pop()
            if parent is not None:
                pending[parent][2].append(len(pending))
            best = self._find_split(rows, row_labels, level, rows_entropy)
            if best is None:
                pending.append((self._create_leaf(row_labels, rows_entropy), rows_entropy, []))
                continue
            mask = best.partition(rows)
            stack.append((rows[~mask], row_labels[~mask], level + 1, best.right_entropy, len(pending)))
            stack.append((rows[mask], row_labels[mask], level + 1, best.left_entropy, len(pending)))
            pending.append((best, rows_entropy, []))

        # Children follow their parent, so assemble from the end.
        built: List[Node] = [None] * len(pending)
        for i in range(len(pending) - 1, -1, -1):
            item, rows_entropy, children = pending[i]
            if isinstance(item, LeafNode):
                built[i] = item
            else:
                left, right = children
                built[i] = ChoiceNode.from_splitter(item, rows_entropy, built[left], built[right])
                built[left] = built[right] = None
        return built[0]

    def _find_split(self, features: np.ndarray, labels: np.ndarray, depth: int,
                    node_entropy: float) -> Optional[Splitter]:
        """Return the best useful split of a set of rows, or None if the rows form a leaf."""
        if features.shape[0] <= self._leaf_limit or node_entropy <= 0.0 or depth >= self._max_depth:
            return None
        # Look for the feature that creates the greatest entropy decrease.
        best = NULL_SPLITTER
        selector = self._factory.get_selector(depth)
        for i in selector.features_to_use:
            test = selector.finder.compute_split(int(i), self.num_classes, features, labels, node_entropy)
            if test < best:
                best = test
        if not best.is_useful:
            return None
        return best

    @staticmethod
    def _create_leaf(labels: np.ndarray, node_entropy: float) -> LeafNode:
        return LeafNode(best_label(labels.sum(axis=0)), node_entropy)

    def _iter_nodes(self):
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, ChoiceNode):
                stack.append(node.right)
                stack.append(node.left)

    def _count_nodes(self) -> int:
        return sum(1 for _ in self._iter_nodes())

    def _compute_depth(self) -> int:
        deepest = 0
        stack = [(self.root, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            if isinstance(node, ChoiceNode):
                stack.append((node.left, level + 1))
                stack.append((node.right, level + 1))
        return deepest

    def predict(self, row: np.ndarray) -> int:
        """Return the index of the predicted class for one feature row."""
        node = self.root
        while isinstance(node, ChoiceNode):
            node = node.choose(row)
        return node.predicted_class

    def predict_all(self, features: np.ndarray) -> np.ndarray:
        """Return the predicted class index for each row of a feature matrix."""
        return np.array([self.predict(row) for row in features], dtype=np.int64)

    def vote(self, features: np.ndarray, votes: np.ndarray) -> None:
        """
        Add this tree's vote to the predictions for a set of rows.

        Args:
            features: Feature matrix of the rows to classify.
            votes: Vote matrix (rows x classes) updated in place.
        """
        predictions = self.predict_all(features)
        votes[np.arange(features.shape[0]), predictions] += 1.0

    def compute_impact(self) -> np.ndarray:
        """Return the total information gain attributable to each input feature."""
        impact = np.zeros(self.num_features)
        self.accumulate_impact(impact)
        return impact

    def accumulate_impact(self, impact: np.ndarray) -> None:
        """Add this tree's impact into an impact vector."""
        for node in self._iter_nodes():
            if isinstance(node, ChoiceNode):
                impact[node.feature] += node.gain

    def to_records(self) -> Dict[str, np.ndarray]:
        """
        Flatten the tree into a table of node records in pre-order.

        Child indices are positions in the table, -1 for leaves.
        """
        nodes: List[Node] = list(self._iter_nodes())
        position = {id(node): i for i, node in enumerate(nodes)}
        n = len(nodes)
        records = {
            'kind': np.zeros(n, dtype=np.int8),
            'feature': np.full(n, -1, dtype=np.int32),
            'threshold': np.zeros(n, dtype=np.float64),
            'entropy': np.zeros(n, dtype=np.float64),
            'gain': np.zeros(n, dtype=np.float64),
            'predicted_class': np.full(n, -1, dtype=np.int32),
            'left': np.full(n, -1, dtype=np.int32),
            'right': np.full(n, -1, dtype=np.int32),
        }
        for i, node in enumerate(nodes):
            records['entropy'][i] = node.entropy
            if isinstance(node, ChoiceNode):
                records['kind'][i] = CHOICE
                records['feature'][i] = node.feature
                records['threshold'][i] = node.threshold
                records['gain'][i] = node.gain
                records['left'][i] = position[id(node.left)]
                records['right'][i] = position[id(node.right)]
            else:
                records['kind'][i] = LEAF
                records['predicted_class'][i] = node.predicted_class
        return records

    @classmethod
    def from_records(cls, records: Dict[str, np.ndarray], num_features: int, num_classes: int) -> "DecisionTree":
        """
        Rebuild a tree from a table of node records.

        Args:
            records: Node table, as produced by to_records.
            num_features: Number of input features of the model.
            num_classes: Number of classes of the model.

        Returns:
            The rebuilt tree.

        Raises:
            ModelFormatError: If the table does not describe a valid tree.
        """
        kind = records['kind']
        n = kind.shape[0]
        if n == 0:
            raise ModelFormatError("Tree has no nodes")
        built: List[Node] = [None] * n
        # In pre-order every child follows its parent, so build from the end.
        for i in range(n - 1, -1, -1):
            if kind[i] == LEAF:
                klass = int(records['predicted_class'][i])
                if not 0 <= klass < num_classes:
                    raise ModelFormatError(f"Leaf class {klass} out of range in node {i}")
                built[i] = LeafNode(klass, float(records['entropy'][i]))
            elif kind[i] == CHOICE:
                feature = int(records['feature'][i])
                left = int(records['left'][i])
                right = int(records['right'][i])
                if not 0 <= feature < num_features:
                    raise ModelFormatError(f"Feature index {feature} out of range in node {i}")
                if not (i < left < n and i < right < n) or left == right:
                    raise ModelFormatError(f"Invalid child indices {left}, {right} in node {i}")
                if built[left] is None or built[right] is None:
                    raise ModelFormatError(f"Node {i} refers to a node that is already in use")
                built[i] = ChoiceNode(
                    feature, float(records['threshold'][i]), float(records['entropy'][i]),
                    float(records['gain'][i]), built[left], built[right]
                )
                # each node has exactly one parent
                built[left] = None
                built[right] = None
            else:
                raise ModelFormatError(f"Unknown node kind {kind[i]} in node {i}")
        root = built[0]
        if any(node is not None for node in built[1:]):
            raise ModelFormatError("Node table contains nodes unreachable from the root")
        return cls._from_root(root, num_features, num_classes)
