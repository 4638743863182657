import unittest
import math

import numpy as np

import sys
import os
# Add parent directory to path so we can import the tree modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hoeffding_bound import HoeffdingBoundDecider, DecisionReason
from split_evaluator import SplitEvaluation
from split_rule import SplitRule
from split_statistics import CandidateSplit
from tree_config import HoeffdingTreeConfig


def evaluation(best, second):
    candidate = CandidateSplit(0, SplitRule.for_threshold(0, 1.0), np.array([[1, 0], [0, 1]]))
    return SplitEvaluation(best, candidate, second)


class TestHoeffdingBoundDecider(unittest.TestCase):
    """Test the split decision rules."""

    def setUp(self):
        self.decider = HoeffdingBoundDecider(confidence=0.95, min_samples=100, max_samples=5000,
                                             gain_range=1.0, tie_threshold=0.05)

    def test_epsilon_formula(self):
        expected = math.sqrt(math.log(1.0 / 0.05) / (2.0 * 100))
        self.assertAlmostEqual(self.decider.epsilon(100), expected, places=12)

    def test_epsilon_shrinks_with_samples(self):
        self.assertGreater(self.decider.epsilon(100), self.decider.epsilon(1000))
        self.assertEqual(self.decider.epsilon(0), math.inf)

    def test_epsilon_scales_with_range(self):
        wide = HoeffdingBoundDecider(0.95, 100, 5000, gain_range=2.0)
        self.assertAlmostEqual(wide.epsilon(100), 2.0 * self.decider.epsilon(100), places=12)

    def test_never_splits_before_min_samples(self):
        decision = self.decider.decide(evaluation(1.0, 0.0), 99)
        self.assertFalse(decision)
        self.assertEqual(decision.reason, DecisionReason.TOO_FEW_SAMPLES)

    def test_no_gain(self):
        decision = self.decider.decide(SplitEvaluation(0.0, None, 0.0), 10000)
        self.assertFalse(decision)
        self.assertEqual(decision.reason, DecisionReason.NO_GAIN)

    def test_split_when_difference_exceeds_bound(self):
        decision = self.decider.decide(evaluation(0.5, 0.0), 100)
        self.assertTrue(decision)
        self.assertEqual(decision.reason, DecisionReason.BOUND)

    def test_defer_when_not_confident(self):
        decision = self.decider.decide(evaluation(0.11, 0.10), 100)
        self.assertFalse(decision)
        self.assertEqual(decision.reason, DecisionReason.NOT_CONFIDENT)

    def test_forced_split_at_max_samples(self):
        decider = HoeffdingBoundDecider(0.95, 100, max_samples=200, gain_range=1.0)
        decision = decider.decide(evaluation(0.11, 0.10), 200)
        self.assertTrue(decision)
        self.assertEqual(decision.reason, DecisionReason.FORCED)

    def test_max_samples_override(self):
        decider = HoeffdingBoundDecider(0.95, 1, max_samples=5000, gain_range=1.0)
        self.assertFalse(decider.decide(evaluation(0.11, 0.10), 10))
        decision = decider.decide(evaluation(0.11, 0.10), 10, max_samples=10)
        self.assertEqual(decision.reason, DecisionReason.FORCED)

    def test_tie_split(self):
        decider = HoeffdingBoundDecider(0.95, 100, 5000, gain_range=1.0, tie_threshold=0.2)
        decision = decider.decide(evaluation(0.11, 0.11), 100)
        self.assertTrue(decision)
        self.assertEqual(decision.reason, DecisionReason.TIE)

    def test_samples_needed(self):
        n = self.decider.samples_needed(0.1)
        self.assertEqual(n, 150)
        self.assertLess(self.decider.epsilon(n), 0.1)
        self.assertGreaterEqual(self.decider.epsilon(n - 1), 0.1)
        self.assertEqual(self.decider.samples_needed(0.0), math.inf)

    def test_samples_needed_respects_min_samples(self):
        self.assertEqual(self.decider.samples_needed(0.9), 100)

    def test_from_config(self):
        config = HoeffdingTreeConfig(confidence=0.99, min_samples=10, max_samples=20,
                                     criterion='info_gain', tie_threshold=0.01)
        decider = HoeffdingBoundDecider.from_config(config, num_classes=4)
        self.assertEqual(decider.gain_range, 2.0)
        self.assertEqual((decider.min_samples, decider.max_samples), (10, 20))
        self.assertEqual(decider.tie_threshold, 0.01)

        gini = HoeffdingBoundDecider.from_config(HoeffdingTreeConfig(gini_range=0.5), num_classes=4)
        self.assertEqual(gini.gain_range, 0.5)


if __name__ == '__main__':
    unittest.main(verbosity=2)
