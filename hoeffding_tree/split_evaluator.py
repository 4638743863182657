import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from impurity import GainCriterion, ImpurityCalculator
from split_statistics import CandidateSplit, FeatureSplitStatistics

logger = logging.getLogger(__name__)


@dataclass
class SplitEvaluation:
    """
    Outcome of evaluating every candidate split of a leaf.

    ``best_candidate`` is None when no candidate beats the synthetic
    "no split" option (gain 0). ``second_best_gain`` is the best gain offered
    by any other dimension, or 0 for the "no split" option, so it is never
    negative.
    """
    best_gain: float
    best_candidate: Optional[CandidateSplit]
    second_best_gain: float

    @property
    def best_dimension(self) -> Optional[int]:
        return self.best_candidate.dimension if self.best_candidate is not None else None

    @property
    def gain_difference(self) -> float:
        return self.best_gain - self.second_best_gain


class SplitEvaluator:
    """
    Ranks the candidate splits of a leaf by gain.

    Each dimension contributes its best candidate; the best dimension wins and
    the runner-up dimension (or "no split") provides the second-best gain the
    Hoeffding bound is applied to. Candidates are scanned in dimension order
    and then ordinal order and only a strictly greater gain replaces the
    current best, so ties go to the lowest dimension, then lowest ordinal.
    """

    def __init__(self, criterion: GainCriterion = GainCriterion.GINI):
        self.criterion = GainCriterion.parse(criterion)

    def evaluate_statistics(self, statistics: Sequence[FeatureSplitStatistics]) -> SplitEvaluation:
        """
        Select the best candidate and the second-best gain.

        Args:
            statistics (Sequence[FeatureSplitStatistics]): Per-dimension statistics of a leaf

        Returns:
            SplitEvaluation: Best gain, best candidate and second-best gain
        """
        best_gain = 0.0
        best_candidate = None
        second_best_gain = 0.0

        for stats in statistics:
            dimension_gain = 0.0
            dimension_candidate = None
            for candidate in stats.candidate_splits():
                gain = ImpurityCalculator.calculate_gain(candidate.branch_counts, self.criterion)
                if gain > dimension_gain:
                    dimension_gain = gain
                    dimension_candidate = candidate

            if dimension_candidate is None:
                continue

            if dimension_gain > best_gain:
                second_best_gain = best_gain
                best_gain = dimension_gain
                best_candidate = dimension_candidate
            elif dimension_gain > second_best_gain:
                second_best_gain = dimension_gain

        return SplitEvaluation(best_gain, best_candidate, second_best_gain)

    def evaluate(self, leaf) -> SplitEvaluation:
        """
        Evaluate a leaf node.

        Args:
            leaf (TreeNode): Leaf whose statistics are evaluated

        Returns:
            SplitEvaluation: Best gain, best candidate and second-best gain
        """
        evaluation = self.evaluate_statistics(leaf.statistics)
        logger.debug("Leaf %s: best gain %.6f on dimension %s, second best %.6f",
                     leaf.node_id, evaluation.best_gain, evaluation.best_dimension,
                     evaluation.second_best_gain)
        return evaluation
