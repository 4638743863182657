import unittest
import io
from contextlib import redirect_stdout

import numpy as np

import sys
import os
# Add parent directory to path so we can import the tree modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import ModelFormatError
from nodes import ClassDistribution, NodeKind, TreeNode
from schema import DatasetSchema
from split_rule import SplitRule
from split_statistics import CategoricalSplitStatistics, BinaryNumericSplitStatistics


class TestClassDistribution(unittest.TestCase):
    """Test class count vectors."""

    def test_empty_distribution(self):
        dist = ClassDistribution(3)
        self.assertEqual(dist.total_count, 0)
        np.testing.assert_array_equal(dist.probabilities(), [0.0, 0.0, 0.0])
        self.assertEqual(dist.confidence, 0.0)
        self.assertEqual(dist.predicted_class(), 0)

    def test_add_and_probabilities(self):
        dist = ClassDistribution(3)
        for label in [2, 2, 1, 2]:
            dist.add(label)
        self.assertEqual(dist.total_count, 4)
        np.testing.assert_array_almost_equal(dist.probabilities(), [0.0, 0.25, 0.75])
        self.assertEqual(dist.predicted_class(), 2)
        self.assertAlmostEqual(dist.confidence, 0.75)

    def test_ties_predict_lowest_class(self):
        self.assertEqual(ClassDistribution(3, [0, 4, 4]).predicted_class(), 1)

    def test_seed_counts_are_copied(self):
        seed = np.array([1, 2])
        dist = ClassDistribution(2, seed)
        dist.add(0)
        np.testing.assert_array_equal(seed, [1, 2])
        self.assertEqual(dist, ClassDistribution(2, [2, 2]))

    def test_wrong_number_of_counts(self):
        with self.assertRaises(ValueError):
            ClassDistribution(3, [1, 2])

    def test_to_dict(self):
        data = ClassDistribution(2, [1, 3]).to_dict()
        self.assertEqual(data['counts'], [1, 3])
        self.assertEqual(data['total_count'], 4)
        self.assertEqual(data['probabilities'], [0.25, 0.75])


class TestSplitRule(unittest.TestCase):
    """Test routing of committed split rules."""

    def test_categorical_routing(self):
        rule = SplitRule.for_categories(1, [0, 2, 5], fallback_branch=2)
        self.assertEqual(rule.num_branches, 3)
        self.assertEqual([rule.branch_for(v) for v in [0, 2, 5, 1, 7]], [0, 1, 2, 2, 2])

    def test_numeric_routing(self):
        exclusive = SplitRule.for_threshold(0, 2.5)
        inclusive = SplitRule.for_threshold(0, 2.5, inclusive=True)
        self.assertEqual(exclusive.num_branches, 2)
        self.assertEqual((exclusive.branch_for(2.4), exclusive.branch_for(2.5)), (0, 1))
        self.assertEqual((inclusive.branch_for(2.5), inclusive.branch_for(2.6)), (0, 1))

    def test_describe(self):
        self.assertEqual(SplitRule.for_threshold(0, 2.5).describe('age'), 'age < 2.5')
        self.assertEqual(SplitRule.for_threshold(0, 2.5, inclusive=True).describe(branch=1), 'x0 > 2.5')
        rule = SplitRule.for_categories(3, [1, 4], fallback_branch=0)
        self.assertEqual(rule.describe('city'), 'city in [1, 4]')
        self.assertEqual(rule.describe('city', 0), 'city == 1 (or unseen)')
        self.assertEqual(rule.describe('city', 1), 'city == 4')

    def test_dict_round_trip(self):
        for rule in [SplitRule.for_categories(1, [0, 3], 1),
                     SplitRule.for_threshold(2, -0.75, inclusive=True)]:
            self.assertEqual(SplitRule.from_dict(rule.to_dict()), rule)


class TestTreeNode(unittest.TestCase):
    """Test leaf and internal nodes."""

    def make_leaf(self, counts=None, depth=0, node_id=0):
        return TreeNode(ClassDistribution(2, counts), [CategoricalSplitStatistics(0, 2, 2)],
                        depth=depth, node_id=node_id)

    def make_split(self):
        root = self.make_leaf([3, 3])
        children = [self.make_leaf([3, 0], 1, 1), self.make_leaf([0, 3], 1, 2)]
        root.promote(SplitRule.for_categories(0, [0, 1], 0), children, 0.5)
        return root

    def test_new_node_is_leaf(self):
        leaf = self.make_leaf()
        self.assertTrue(leaf.is_leaf)
        self.assertEqual(leaf.kind, NodeKind.LEAF)
        self.assertEqual(leaf.num_samples, 0)
        self.assertEqual(leaf.get_leaf_count(), 1)
        self.assertEqual(leaf.get_node_count(), 1)

    def test_promote(self):
        root = self.make_split()
        self.assertFalse(root.is_leaf)
        self.assertEqual(root.kind, NodeKind.INTERNAL)
        self.assertIsNone(root.statistics)
        self.assertEqual(root.split_gain, 0.5)
        self.assertEqual(root.get_node_count(), 3)
        self.assertEqual(root.get_leaf_count(), 2)
        self.assertEqual(root.get_max_depth(), 1)
        self.assertEqual(root.get_data_count(), 6)
        self.assertEqual([leaf.node_id for leaf in root.iter_leaves()], [1, 2])

    def test_promote_twice_fails(self):
        root = self.make_split()
        with self.assertRaises(ValueError):
            root.promote(SplitRule.for_categories(0, [0, 1], 0), [self.make_leaf(), self.make_leaf()])

    def test_promote_needs_one_child_per_branch(self):
        with self.assertRaises(ValueError):
            self.make_leaf().promote(SplitRule.for_threshold(0, 1.0), [self.make_leaf()])

    def test_child_for(self):
        root = self.make_split()
        self.assertEqual(root.child_for([1.0]).node_id, 2)
        self.assertEqual(root.child_for([0.0]).node_id, 1)
        with self.assertRaises(ValueError):
            self.make_leaf().child_for([0.0])

    def test_to_json(self):
        data = self.make_split().to_json(DatasetSchema.from_arities([2], names=['color']))
        self.assertEqual(data['type'], 'internal')
        self.assertEqual(data['split'], 'color in [0, 1]')
        self.assertEqual(len(data['children']), 2)
        self.assertEqual(data['children'][1]['predicted_class'], 1)

    def test_dict_round_trip(self):
        root = TreeNode(ClassDistribution(2, [2, 1]), [BinaryNumericSplitStatistics(0, 2)], node_id=0)
        root.statistics[0].observe(1.0, 0)
        root.num_samples = 1
        children = [self.make_leaf([2, 0], 1, 1), self.make_leaf([0, 1], 1, 2)]
        children[0].statistics[0].observe(1, 0)
        children[0].num_samples = 1
        root.promote(SplitRule.for_threshold(0, 0.5), children, 0.25)

        reloaded = TreeNode.from_dict(root.to_dict(), num_classes=2)
        self.assertEqual(reloaded.to_dict(), root.to_dict())
        self.assertEqual(reloaded.children[0].num_samples, 1)
        self.assertIsInstance(reloaded.children[0].statistics[0], CategoricalSplitStatistics)

    def test_from_dict_rejects_bad_data(self):
        with self.assertRaises(ModelFormatError):
            TreeNode.from_dict({'kind': 'leaf'}, num_classes=2)
        with self.assertRaises(ModelFormatError):
            TreeNode.from_dict({'kind': 'branch', 'class_counts': [0, 0], 'depth': 0, 'node_id': 0},
                               num_classes=2)

    def test_print_tree(self):
        output = io.StringIO()
        with redirect_stdout(output):
            self.make_split().print_tree(schema=DatasetSchema.from_arities([2], names=['color']))
        text = output.getvalue()
        self.assertIn('Root: color in [0, 1]', text)
        self.assertIn('color == 0 (or unseen)', text)
        self.assertIn('LEAF', text)

    def test_str(self):
        self.assertIn('LeafNode', str(self.make_leaf()))
        self.assertIn('InternalNode', str(self.make_split()))


if __name__ == '__main__':
    unittest.main(verbosity=2)
