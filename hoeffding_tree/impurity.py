import math
from typing import Union
from enum import Enum

import numpy as np


class GainCriterion(Enum):
    """Enumeration of supported gain criteria."""
    GINI = "gini"
    INFO_GAIN = "info_gain"

    @classmethod
    def parse(cls, value: Union[str, 'GainCriterion']) -> 'GainCriterion':
        """
        Resolve a criterion from its name or one of its aliases.

        Args:
            value (str or GainCriterion): 'gini', 'giniImpurity', 'info_gain',
                'informationGain' or 'entropy'

        Returns:
            GainCriterion: Matching criterion

        Raises:
            ValueError: If the name is unknown
        """
        if isinstance(value, GainCriterion):
            return value
        key = str(value).strip().lower().replace('-', '_')
        aliases = {
            'gini': cls.GINI,
            'giniimpurity': cls.GINI,
            'gini_impurity': cls.GINI,
            'info_gain': cls.INFO_GAIN,
            'infogain': cls.INFO_GAIN,
            'informationgain': cls.INFO_GAIN,
            'information_gain': cls.INFO_GAIN,
            'entropy': cls.INFO_GAIN,
        }
        if key not in aliases:
            raise ValueError(f"Unsupported gain criterion: {value}. Use 'gini' or 'info_gain'")
        return aliases[key]


class ImpurityCalculator:
    """
    Calculator for impurity measures used to rank candidate splits.

    Works on per-class count vectors (one entry per class) and on branch count
    tables (one row per branch, one column per class), so it handles any
    number of classes.
    """

    @staticmethod
    def calculate_entropy(class_counts: np.ndarray) -> float:
        """
        Calculate entropy of a class count vector.

        Entropy = -Σ(p_i * log2(p_i)) where p_i is proportion of class i

        Args:
            class_counts (np.ndarray): Count per class

        Returns:
            float: Entropy value (0.0 = pure, log2(K) = uniform over K classes)
        """
        counts = np.asarray(class_counts, dtype=float)
        total = counts.sum()

        # Handle edge case of empty node
        if total <= 0:
            return 0.0

        proportions = counts[counts > 0] / total
        entropy = -float(np.sum(proportions * np.log2(proportions)))
        # Pure nodes may come out as -0.0
        return max(entropy, 0.0)

    @staticmethod
    def calculate_gini(class_counts: np.ndarray) -> float:
        """
        Calculate Gini impurity of a class count vector.

        Gini = 1 - Σ(p_i^2) where p_i is proportion of class i

        Args:
            class_counts (np.ndarray): Count per class

        Returns:
            float: Gini impurity (0.0 = pure, 1 - 1/K = uniform over K classes)
        """
        counts = np.asarray(class_counts, dtype=float)
        total = counts.sum()

        if total <= 0:
            return 0.0

        proportions = counts / total
        return float(1.0 - np.sum(proportions ** 2))

    @staticmethod
    def calculate_impurity(class_counts: np.ndarray, method: GainCriterion) -> float:
        """
        Calculate impurity using specified criterion.

        Raises:
            ValueError: If method is not supported
        """
        if method == GainCriterion.INFO_GAIN:
            return ImpurityCalculator.calculate_entropy(class_counts)
        elif method == GainCriterion.GINI:
            return ImpurityCalculator.calculate_gini(class_counts)
        else:
            raise ValueError(f"Unsupported gain criterion: {method}")

    @staticmethod
    def calculate_gain(branch_counts: np.ndarray, method: GainCriterion) -> float:
        """
        Calculate the gain of a split given its branch count table.

        Gain = Parent_Impurity - Σ(weight_i * Child_Impurity_i)

        The parent distribution is the column sum of the table, so the gain
        of a split depends only on how the parent's examples are divided.

        Args:
            branch_counts (np.ndarray): Table of shape (branches, classes)
            method (GainCriterion): Gain criterion

        Returns:
            float: Gain (higher is better, 0.0 for degenerate splits)
        """
        table = np.asarray(branch_counts, dtype=float)
        if table.ndim != 2 or table.shape[0] < 2:
            return 0.0

        branch_totals = table.sum(axis=1)
        total = branch_totals.sum()
        if total <= 0:
            return 0.0

        # All examples on one branch means the split does nothing
        if np.count_nonzero(branch_totals) < 2:
            return 0.0

        parent_impurity = ImpurityCalculator.calculate_impurity(table.sum(axis=0), method)

        weighted_child_impurity = 0.0
        for branch_total, counts in zip(branch_totals, table):
            if branch_total > 0:
                weighted_child_impurity += (branch_total / total) * \
                    ImpurityCalculator.calculate_impurity(counts, method)

        return parent_impurity - weighted_child_impurity

    @staticmethod
    def gain_range(method: GainCriterion, num_classes: int, gini_range: float = 1.0) -> float:
        """
        Range R of the gain metric, used by the Hoeffding bound.

        Args:
            method (GainCriterion): Gain criterion
            num_classes (int): Number of classes K
            gini_range (float): Range used for the Gini criterion

        Returns:
            float: log2(K) for information gain, gini_range for Gini
        """
        if method == GainCriterion.INFO_GAIN:
            return math.log2(num_classes) if num_classes > 1 else 0.0
        return gini_range
