from typing import Optional, Dict, Any, List, Sequence
from enum import Enum

import numpy as np

from errors import ModelFormatError
from split_rule import SplitRule
from split_statistics import FeatureSplitStatistics, SplitStatisticsFactory


class ClassDistribution:
    """
    Class distribution information for tree nodes.

    Stores the count of each class at a node and derives the probabilities
    and majority class from them.
    """

    def __init__(self, num_classes: int, counts: Optional[Sequence[int]] = None):
        if counts is None:
            self.counts = np.zeros(num_classes, dtype=np.int64)
        else:
            self.counts = np.asarray(counts, dtype=np.int64).copy()
            if self.counts.shape != (num_classes,):
                raise ValueError(f"Expected {num_classes} class counts, got shape {self.counts.shape}")

    @property
    def num_classes(self) -> int:
        return len(self.counts)

    @property
    def total_count(self) -> int:
        """Total number of samples at this node."""
        return int(self.counts.sum())

    def add(self, label: int, count: int = 1) -> None:
        self.counts[label] += count

    def probabilities(self) -> np.ndarray:
        """
        Normalized class counts.

        Returns:
            np.ndarray: P(class=k) per class; all zeros for an empty node
        """
        total = self.total_count
        if total == 0:
            return np.zeros(self.num_classes, dtype=float)
        return self.counts / total

    def predicted_class(self) -> int:
        """Majority class (lowest class index on ties)."""
        return int(np.argmax(self.counts))

    @property
    def confidence(self) -> float:
        """Confidence of the prediction (proportion of majority class)."""
        if self.total_count == 0:
            return 0.0
        return float(self.counts.max() / self.total_count)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'counts': self.counts.tolist(),
            'total_count': self.total_count,
            'probabilities': [round(float(p), 4) for p in self.probabilities()],
            'confidence': round(self.confidence, 4),
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, ClassDistribution):
            return False
        return np.array_equal(self.counts, other.counts)

    def __str__(self) -> str:
        return f"ClassDist(counts={self.counts.tolist()}, pred={self.predicted_class()})"

    def __repr__(self) -> str:
        return self.__str__()


class NodeKind(Enum):
    """Tag of a tree node."""
    LEAF = "leaf"
    INTERNAL = "internal"


class TreeNode:
    """
    Node in a Hoeffding tree.

    A node is either a leaf, which owns one FeatureSplitStatistics per input
    dimension and classifies by its class distribution, or an internal node,
    which owns a committed split rule and one child per branch. A leaf turns
    into an internal node exactly once, through promote().
    """

    def __init__(self,
                 class_distribution: ClassDistribution,
                 statistics: Optional[List[FeatureSplitStatistics]] = None,
                 depth: int = 0,
                 node_id: Optional[int] = None):
        """
        Initialize a leaf node.

        Args:
            class_distribution (ClassDistribution): Class counts used for
                classification, possibly pre-seeded by the parent's split
            statistics (List[FeatureSplitStatistics], optional): One per dimension
            depth (int): Depth of this node in the tree (root = 0)
            node_id (int, optional): Unique identifier for this node
        """
        self.node_id = node_id
        self.depth = depth
        self.kind = NodeKind.LEAF

        self.class_distribution = class_distribution

        # Leaf information
        self.statistics: Optional[List[FeatureSplitStatistics]] = statistics if statistics is not None else []
        self.num_samples = 0

        # Split information (for internal nodes)
        self.split_rule: Optional[SplitRule] = None
        self.children: List['TreeNode'] = []
        self.split_gain: Optional[float] = None

    @property
    def is_leaf(self) -> bool:
        return self.kind == NodeKind.LEAF

    def promote(self, split_rule: SplitRule, children: List['TreeNode'], split_gain: Optional[float] = None):
        """
        Turn this leaf into an internal node.

        The per-dimension statistics are released; the class distribution is
        kept so the node still reports what it saw.

        Args:
            split_rule (SplitRule): Committed rule
            children (List[TreeNode]): One child per branch of the rule
            split_gain (float, optional): Gain of the committed split
        """
        if not self.is_leaf:
            raise ValueError(f"Node {self.node_id} has already been split")
        if len(children) != split_rule.num_branches:
            raise ValueError(f"Rule has {split_rule.num_branches} branches but {len(children)} children were given")

        self.kind = NodeKind.INTERNAL
        self.split_rule = split_rule
        self.children = list(children)
        self.split_gain = split_gain
        self.statistics = None

    def child_for(self, example: Sequence[float]) -> 'TreeNode':
        """
        Select the child an example is routed to.

        Args:
            example (Sequence[float]): Feature vector

        Returns:
            TreeNode: Child on the branch chosen by the split rule
        """
        if self.is_leaf:
            raise ValueError(f"Leaf node {self.node_id} has no children")
        return self.children[self.split_rule.branch_for(example[self.split_rule.dimension])]

    def get_data_count(self) -> int:
        """
        Number of examples reflected in this node's class distribution.
        """
        return self.class_distribution.total_count

    def get_leaf_count(self) -> int:
        """
        Count the number of leaf nodes in the subtree rooted at this node.
        """
        if self.is_leaf:
            return 1
        return sum(child.get_leaf_count() for child in self.children)

    def get_node_count(self) -> int:
        """
        Count all nodes in the subtree rooted at this node.
        """
        if self.is_leaf:
            return 1
        return 1 + sum(child.get_node_count() for child in self.children)

    def get_max_depth(self) -> int:
        """
        Get the maximum depth of the subtree rooted at this node.
        """
        if self.is_leaf:
            return self.depth
        return max(child.get_max_depth() for child in self.children)

    def iter_leaves(self):
        """Yield the leaves of this subtree, left to right."""
        if self.is_leaf:
            yield self
            return
        for child in self.children:
            yield from child.iter_leaves()

    def to_json(self, schema=None) -> Dict[str, Any]:
        """
        Convert node to a readable JSON-serializable dictionary.

        Leaf statistics are summarized rather than dumped; use to_dict() for
        a complete, reloadable form.

        Args:
            schema (DatasetSchema, optional): Used to name split dimensions

        Returns:
            Dict[str, Any]: JSON representation of the subtree
        """
        node_dict = {
            'node_id': self.node_id,
            'depth': self.depth,
            'type': self.kind.value,
            'samples': self.get_data_count(),
            'class_distribution': self.class_distribution.to_dict(),
            'predicted_class': self.class_distribution.predicted_class(),
        }

        if self.is_leaf:
            node_dict['observed_since_creation'] = self.num_samples
        else:
            name = schema.dimension_name(self.split_rule.dimension) if schema is not None else None
            node_dict['split'] = self.split_rule.describe(name)
            node_dict['split_rule'] = self.split_rule.to_dict()
            if self.split_gain is not None:
                node_dict['split_gain'] = round(self.split_gain, 4)
            node_dict['children'] = [child.to_json(schema) for child in self.children]

        return node_dict

    def to_dict(self) -> Dict[str, Any]:
        """
        Complete serialization of the subtree, including leaf statistics, so
        that training can resume after reloading.
        """
        data = {
            'node_id': self.node_id,
            'depth': self.depth,
            'kind': self.kind.value,
            'class_counts': self.class_distribution.counts.tolist(),
        }
        if self.is_leaf:
            data['num_samples'] = self.num_samples
            data['statistics'] = [stats.to_dict() for stats in self.statistics]
        else:
            data['split_rule'] = self.split_rule.to_dict()
            data['split_gain'] = self.split_gain
            data['children'] = [child.to_dict() for child in self.children]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], num_classes: int) -> 'TreeNode':
        """
        Rebuild a subtree from the output of to_dict().

        Raises:
            ModelFormatError: If the data is malformed
        """
        try:
            kind = NodeKind(data['kind'])
            node = cls(ClassDistribution(num_classes, data['class_counts']),
                       depth=data['depth'], node_id=data['node_id'])
            if kind == NodeKind.LEAF:
                node.num_samples = int(data['num_samples'])
                node.statistics = [SplitStatisticsFactory.from_dict(s) for s in data['statistics']]
            else:
                children = [cls.from_dict(child, num_classes) for child in data['children']]
                node.promote(SplitRule.from_dict(data['split_rule']), children, data.get('split_gain'))
        except ModelFormatError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ModelFormatError(f"Invalid tree node: {e}") from e
        return node

    def print_tree(self, indent: int = 0, prefix: str = "Root: ", schema=None) -> None:
        """
        Print a visual representation of the tree.

        Args:
            indent (int): Current indentation level
            prefix (str): Prefix for this node
            schema (DatasetSchema, optional): Used to name split dimensions
        """
        indent_str = "  " * indent

        if self.is_leaf:
            print(f"{indent_str}{prefix}LEAF: {self.class_distribution} (seen={self.num_samples})")
            return

        name = schema.dimension_name(self.split_rule.dimension) if schema is not None else None
        gain_str = f"{self.split_gain:.4f}" if self.split_gain is not None else "0.0000"
        print(f"{indent_str}{prefix}{self.split_rule.describe(name)} "
              f"(gain={gain_str}, samples={self.get_data_count()})")

        for branch, child in enumerate(self.children):
            connector = "└─" if branch == len(self.children) - 1 else "├─"
            child.print_tree(indent + 1, f"{connector} {self.split_rule.describe(name, branch)}: ", schema)

    def __str__(self) -> str:
        """String representation of the node."""
        if self.is_leaf:
            return f"LeafNode(depth={self.depth}, {self.class_distribution})"
        return (f"InternalNode(depth={self.depth}, rule={self.split_rule.describe()}, "
                f"children={len(self.children)})")

    def __repr__(self) -> str:
        return self.__str__()
