from typing import Dict, List, Optional, Any, Sequence
import logging

import numpy as np

from nodes import TreeNode, ClassDistribution
from schema import DatasetSchema
from split_evaluator import SplitEvaluator
from hoeffding_bound import HoeffdingBoundDecider
from split_statistics import SplitStatisticsFactory
from tree_config import HoeffdingTreeConfig

logger = logging.getLogger(__name__)

# A batch-trained leaf holding at least this many examples is forced to
# split on its best candidate whenever that candidate has positive gain.
BATCH_MIN_FORCED_SAMPLES = 6


class HoeffdingTree:
    """
    Incrementally grown decision tree.

    Examples descend the committed split rules to exactly one leaf, whose
    statistics absorb them. A leaf is periodically evaluated and, when the
    Hoeffding bound approves, replaced by an internal node with fresh child
    leaves. Examples are never stored (apart from the bounded pre-binning
    buffer of the ``domingos`` numeric strategy).

    The tree does not validate its inputs; HoeffdingTreeModel checks every
    example against the schema before handing it over.
    """

    def __init__(self, schema: DatasetSchema, num_classes: int, config: HoeffdingTreeConfig,
                 root: Optional[TreeNode] = None):
        """
        Initialize the tree.

        Args:
            schema (DatasetSchema): Dataset schema
            num_classes (int): Number of classes K
            config (HoeffdingTreeConfig): Tree configuration
            root (TreeNode, optional): Existing root, e.g. from a saved model
        """
        self.schema = schema
        self.num_classes = num_classes
        self.config = config

        self.evaluator = SplitEvaluator(config.criterion)
        self.decider = HoeffdingBoundDecider.from_config(config, num_classes)

        if root is None:
            self._next_node_id = 0
            self.root = self._new_leaf(depth=0)
        else:
            self.root = root
            self._next_node_id = self._max_node_id(root) + 1

    def _new_leaf(self, depth: int, seed_counts: Optional[np.ndarray] = None) -> TreeNode:
        statistics = [
            SplitStatisticsFactory.create_for_dimension(self.schema, d, self.num_classes, self.config)
            for d in range(self.schema.num_dimensions)
        ]
        leaf = TreeNode(ClassDistribution(self.num_classes, seed_counts), statistics,
                        depth=depth, node_id=self._next_node_id)
        self._next_node_id += 1
        return leaf

    @staticmethod
    def _max_node_id(node: TreeNode) -> int:
        node_id = node.node_id if node.node_id is not None else -1
        if node.is_leaf:
            return node_id
        return max([node_id] + [HoeffdingTree._max_node_id(child) for child in node.children])

    def descend(self, example: Sequence[float], node: Optional[TreeNode] = None) -> TreeNode:
        """
        Route an example to its leaf.

        Args:
            example (Sequence[float]): Feature vector
            node (TreeNode, optional): Start node (default: root)

        Returns:
            TreeNode: Leaf reached by following the committed split rules
        """
        node = self.root if node is None else node
        while not node.is_leaf:
            node = node.child_for(example)
        return node

    def observe(self, leaf: TreeNode, example: Sequence[float], label: int,
                update_distribution: bool = True) -> None:
        """
        Add one example to a leaf's statistics.

        Args:
            leaf (TreeNode): Leaf the example was routed to
            example (Sequence[float]): Feature vector
            label (int): Class label
            update_distribution (bool): Also count the label in the leaf's
                class distribution (False when the distribution was already
                seeded with this example by the parent split)
        """
        for stats, value in zip(leaf.statistics, example):
            stats.observe(value, label)
        leaf.num_samples += 1
        if update_distribution:
            leaf.class_distribution.add(label)

    def maybe_split(self, leaf: TreeNode, max_samples: Optional[int] = None) -> bool:
        """
        Evaluate a leaf and split it if the Hoeffding bound approves.

        On a split the leaf is promoted in place to an internal node whose
        children are new leaves seeded with the class counts of their branch.

        Args:
            leaf (TreeNode): Leaf to check
            max_samples (int, optional): Overrides the configured forcing limit

        Returns:
            bool: True if the leaf was split
        """
        if not leaf.is_leaf:
            return False
        if leaf.num_samples < self.config.min_samples:
            return False

        evaluation = self.evaluator.evaluate(leaf)
        decision = self.decider.decide(evaluation, leaf.num_samples, max_samples)
        if not decision.split:
            logger.debug("Leaf %s not split after %d samples (%s, epsilon=%.4f, bound met after %s samples)",
                         leaf.node_id, leaf.num_samples, decision.reason.value, decision.epsilon,
                         self.decider.samples_needed(evaluation.best_gain - evaluation.second_best_gain))
            return False

        candidate = evaluation.best_candidate
        children = [self._new_leaf(leaf.depth + 1, seed_counts=counts)
                    for counts in candidate.branch_counts]
        leaf.promote(candidate.rule, children, evaluation.best_gain)

        logger.debug("Split leaf %s on %s after %d samples (%s, gain=%.4f, second=%.4f, epsilon=%.4f)",
                     leaf.node_id, candidate.rule.describe(self.schema.dimension_name(candidate.dimension)),
                     leaf.num_samples, decision.reason.value, evaluation.best_gain,
                     evaluation.second_best_gain, decision.epsilon)
        return True

    def train_one(self, example: Sequence[float], label: int) -> bool:
        """
        Stream one example into the tree.

        The reached leaf is checked for a split whenever its sample count is a
        multiple of ``check_interval``.

        Returns:
            bool: True if the example triggered a split
        """
        leaf = self.descend(example)
        self.observe(leaf, example, label)
        if leaf.num_samples % self.config.check_interval == 0:
            return self.maybe_split(leaf)
        return False

    def train_stream(self, examples: np.ndarray, labels: np.ndarray) -> int:
        """
        Stream examples one at a time, in input order.

        Args:
            examples (np.ndarray): Matrix of shape (n, dimensions)
            labels (np.ndarray): Labels of shape (n,)

        Returns:
            int: Number of splits committed
        """
        splits = 0
        for example, label in zip(examples, labels):
            if self.train_one(example, int(label)):
                splits += 1
        return splits

    def train_batch(self, examples: np.ndarray, labels: np.ndarray) -> int:
        """
        Batch-train on a full pass of examples.

        Every leaf of the current frontier sees all of its examples before a
        single split decision is made for it. When a leaf splits, its
        examples are partitioned by the new rule and each child is
        batch-trained on its share, so the tree keeps growing while the
        evidence supports it. Each new child's class distribution holds the
        exact class counts of its share.

        Args:
            examples (np.ndarray): Matrix of shape (n, dimensions)
            labels (np.ndarray): Labels of shape (n,)

        Returns:
            int: Number of splits committed
        """
        return self._train_batch(self.root, examples, labels, np.arange(len(labels)), seeded=False)

    def _train_batch(self, node: TreeNode, examples: np.ndarray, labels: np.ndarray,
                     indices: np.ndarray, seeded: bool) -> int:
        if len(indices) == 0:
            return 0

        if not node.is_leaf:
            return self._train_children(node, examples, labels, indices, seeded=False)

        for i in indices:
            self.observe(node, examples[i], int(labels[i]), update_distribution=not seeded)

        max_samples = max(len(indices), BATCH_MIN_FORCED_SAMPLES)
        if not self.maybe_split(node, max_samples=max_samples):
            return 0
        return 1 + self._train_children(node, examples, labels, indices, seeded=True)

    def _train_children(self, node: TreeNode, examples: np.ndarray, labels: np.ndarray,
                        indices: np.ndarray, seeded: bool) -> int:
        branches = np.array([node.split_rule.branch_for(examples[i][node.split_rule.dimension])
                             for i in indices], dtype=np.int64)
        splits = 0
        for branch, child in enumerate(node.children):
            child_indices = indices[branches == branch]
            if seeded:
                # Exact counts of the partition replace the approximate
                # branch counts of a merged numeric summary.
                counts = np.bincount(labels[child_indices].astype(np.int64), minlength=self.num_classes)
                child.class_distribution = ClassDistribution(self.num_classes, counts)
            if seeded and len(child_indices) == len(indices):
                # The rule did not separate these examples; recursing would
                # rebuild the same statistics and split the same way forever.
                for i in child_indices:
                    self.observe(child, examples[i], int(labels[i]), update_distribution=False)
                continue
            splits += self._train_batch(child, examples, labels, child_indices, seeded)
        return splits

    def classify_one(self, example: Sequence[float]) -> ClassDistribution:
        """
        Class distribution of the leaf an example reaches. Read-only.
        """
        return self.descend(example).class_distribution

    def leaves(self) -> List[TreeNode]:
        return list(self.root.iter_leaves())

    def num_nodes(self) -> int:
        return self.root.get_node_count()

    def num_leaves(self) -> int:
        return self.root.get_leaf_count()

    def max_depth(self) -> int:
        return self.root.get_max_depth()

    def print_tree(self) -> None:
        """
        Print a visual representation of the tree.
        """
        print(f"\nHoeffding Tree (criterion={self.config.criterion.value}, "
              f"numeric_split_strategy={self.config.numeric_split_strategy.value}, "
              f"confidence={self.config.confidence})")
        print(f"Nodes: {self.num_nodes()}, Leaves: {self.num_leaves()}, Max depth: {self.max_depth()}")
        print("-" * 80)
        self.root.print_tree(schema=self.schema)
        print("-" * 80)

    def to_json(self) -> Dict[str, Any]:
        """Readable JSON description of the tree structure."""
        return {
            'num_nodes': self.num_nodes(),
            'num_leaves': self.num_leaves(),
            'max_depth': self.max_depth(),
            'root': self.root.to_json(self.schema),
        }

    def __str__(self) -> str:
        return f"HoeffdingTree(nodes={self.num_nodes()}, leaves={self.num_leaves()}, classes={self.num_classes})"
