import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from impurity import ImpurityCalculator
from split_evaluator import SplitEvaluation


class DecisionReason(Enum):
    """Why a split was committed or deferred."""
    TOO_FEW_SAMPLES = "too_few_samples"
    NO_GAIN = "no_gain"
    BOUND = "bound"
    FORCED = "forced"
    TIE = "tie"
    NOT_CONFIDENT = "not_confident"


@dataclass
class SplitDecision:
    """Result of applying the Hoeffding bound to a split evaluation."""
    split: bool
    reason: DecisionReason
    epsilon: float

    def __bool__(self) -> bool:
        return self.split


class HoeffdingBoundDecider:
    """
    Decides whether a leaf has seen enough examples to commit to its best split.

    With n examples, the observed gain difference between the two best
    options is within

        epsilon = sqrt(R^2 * ln(1 / (1 - confidence)) / (2n))

    of the true difference with probability ``confidence``, where R is the
    range of the gain metric. A split is committed when the difference
    exceeds epsilon, when n has reached ``max_samples``, or when epsilon has
    shrunk below ``tie_threshold`` (the two options are then too close to
    matter). Nothing is ever committed before ``min_samples`` examples.
    """

    def __init__(self,
                 confidence: float,
                 min_samples: int,
                 max_samples: int,
                 gain_range: float,
                 tie_threshold: float = 0.05):
        """
        Args:
            confidence (float): Confidence level in (0, 1)
            min_samples (int): Examples required before any split
            max_samples (int): Examples after which the best split is forced
            gain_range (float): Range R of the gain metric
            tie_threshold (float): Epsilon below which the best split is taken
        """
        self.confidence = confidence
        self.min_samples = min_samples
        self.max_samples = max_samples
        self.gain_range = gain_range
        self.tie_threshold = tie_threshold

    @classmethod
    def from_config(cls, config, num_classes: int) -> 'HoeffdingBoundDecider':
        gain_range = ImpurityCalculator.gain_range(config.criterion, num_classes, config.gini_range)
        return cls(config.confidence, config.min_samples, config.max_samples,
                   gain_range, config.tie_threshold)

    def epsilon(self, num_samples: int) -> float:
        """
        Compute the Hoeffding bound for a sample count.

        Returns:
            float: epsilon, or infinity when no examples have been seen
        """
        if num_samples <= 0:
            return math.inf
        return math.sqrt(self.gain_range ** 2 * math.log(1.0 / (1.0 - self.confidence))
                         / (2.0 * num_samples))

    def decide(self, evaluation: SplitEvaluation, num_samples: int,
               max_samples: Optional[int] = None) -> SplitDecision:
        """
        Apply the bound to an evaluation.

        Args:
            evaluation (SplitEvaluation): Best and second-best gains of the leaf
            num_samples (int): Examples observed at the leaf
            max_samples (int, optional): Overrides the configured forcing limit

        Returns:
            SplitDecision: Whether to split and why
        """
        limit = self.max_samples if max_samples is None else max_samples
        epsilon = self.epsilon(num_samples)

        if num_samples < self.min_samples:
            return SplitDecision(False, DecisionReason.TOO_FEW_SAMPLES, epsilon)

        if evaluation.best_candidate is None or evaluation.best_gain <= 0.0:
            return SplitDecision(False, DecisionReason.NO_GAIN, epsilon)

        if evaluation.gain_difference > epsilon:
            return SplitDecision(True, DecisionReason.BOUND, epsilon)

        if num_samples >= limit:
            return SplitDecision(True, DecisionReason.FORCED, epsilon)

        if epsilon < self.tie_threshold:
            return SplitDecision(True, DecisionReason.TIE, epsilon)

        return SplitDecision(False, DecisionReason.NOT_CONFIDENT, epsilon)

    def samples_needed(self, gain_difference: float) -> float:
        """
        Smallest n for which epsilon drops below a given gain difference.

        A leaf whose best split leads the runner-up by ``gain_difference``
        splits by the bound after this many examples; ``math.inf`` when the
        difference is not positive.
        """
        if gain_difference <= 0:
            return math.inf
        n = self.gain_range ** 2 * math.log(1.0 / (1.0 - self.confidence)) / (2.0 * gain_difference ** 2)
        return max(int(math.floor(n)) + 1, self.min_samples)
