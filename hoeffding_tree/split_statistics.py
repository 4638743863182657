from abc import ABC, abstractmethod
from bisect import bisect_left
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import numpy as np

from errors import ModelFormatError
from split_rule import SplitRule


@dataclass
class CandidateSplit:
    """
    One way of splitting a leaf on a single dimension.

    Attributes:
        ordinal (int): Position of the candidate within its dimension, used to
            break gain ties deterministically
        rule (SplitRule): Rule that would be committed
        branch_counts (np.ndarray): Table of shape (branches, classes) with the
            class counts each branch would receive
    """
    ordinal: int
    rule: SplitRule
    branch_counts: np.ndarray

    @property
    def dimension(self) -> int:
        return self.rule.dimension


class FeatureSplitStatistics(ABC):
    """
    Abstract base class for the per-leaf, per-dimension sufficient statistics.

    A leaf owns one instance per input dimension. Each observation adds a
    (value, label) pair without keeping the example itself, and the
    accumulated statistics can enumerate candidate splits together with the
    class counts each branch would receive.
    """

    def __init__(self, dimension: int, num_classes: int):
        self.dimension = dimension
        self.num_classes = num_classes

    @abstractmethod
    def observe(self, value: float, label: int) -> None:
        """
        Add one observation.

        Args:
            value (float): Value of this dimension in the example
            label (int): Class label of the example
        """
        pass

    @abstractmethod
    def candidate_splits(self) -> Iterator[CandidateSplit]:
        """
        Lazily enumerate the candidate splits supported by the statistics.

        Returns:
            Iterator[CandidateSplit]: Finite sequence of candidates, in
                ascending ordinal order
        """
        pass

    @abstractmethod
    def class_counts(self) -> np.ndarray:
        """
        Returns:
            np.ndarray: Count of observations per class
        """
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        pass

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FeatureSplitStatistics':
        """Rebuild statistics from the output of to_dict()."""
        pass

    def num_observations(self) -> int:
        return int(self.class_counts().sum())

    def __len__(self) -> int:
        return self.num_observations()

    def is_empty(self) -> bool:
        return self.num_observations() == 0


class CategoricalSplitStatistics(FeatureSplitStatistics):
    """
    Class counts per category of a categorical dimension.

    Offers a single multiway candidate with one branch per category seen so
    far. Categories never seen at this leaf are routed to the branch holding
    the most examples.
    """

    def __init__(self, dimension: int, num_classes: int, arity: int):
        super().__init__(dimension, num_classes)
        self.arity = arity
        self.counts = np.zeros((arity, num_classes), dtype=np.int64)

    def observe(self, value: float, label: int) -> None:
        self.counts[int(value), label] += 1

    def candidate_splits(self) -> Iterator[CandidateSplit]:
        observed = np.flatnonzero(self.counts.sum(axis=1))
        if len(observed) < 2:
            return

        branch_counts = self.counts[observed].copy()
        # np.argmax picks the lowest branch on ties
        fallback = int(np.argmax(branch_counts.sum(axis=1)))
        rule = SplitRule.for_categories(self.dimension, observed.tolist(), fallback)
        yield CandidateSplit(0, rule, branch_counts)

    def class_counts(self) -> np.ndarray:
        return self.counts.sum(axis=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'categorical',
            'dimension': self.dimension,
            'num_classes': self.num_classes,
            'arity': self.arity,
            'counts': self.counts.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CategoricalSplitStatistics':
        stats = cls(data['dimension'], data['num_classes'], data['arity'])
        stats.counts = np.asarray(data['counts'], dtype=np.int64).reshape(stats.arity, stats.num_classes)
        return stats

    def __repr__(self) -> str:
        return f"CategoricalSplitStatistics(dimension={self.dimension}, arity={self.arity}, n={self.num_observations()})"


class BinaryNumericSplitStatistics(FeatureSplitStatistics):
    """
    Bounded sorted summary of a numeric dimension for binary threshold splits.

    Keeps one entry per distinct value with its class counts. When the number
    of entries exceeds ``max_summary_points``, the two closest adjacent
    entries are merged into one placed at their count-weighted mean, so
    memory does not grow with the number of observations.

    Candidate thresholds are the midpoints between adjacent entries, skipping
    the boundaries where both neighbours are pure in the same class (those can
    never beat a neighbouring boundary).
    """

    def __init__(self, dimension: int, num_classes: int, max_summary_points: int = 1000):
        super().__init__(dimension, num_classes)
        self.max_summary_points = max_summary_points
        self.values: List[float] = []
        self.value_counts: List[np.ndarray] = []

    def observe(self, value: float, label: int) -> None:
        value = float(value)
        index = bisect_left(self.values, value)
        if index < len(self.values) and self.values[index] == value:
            self.value_counts[index][label] += 1
            return

        counts = np.zeros(self.num_classes, dtype=np.int64)
        counts[label] = 1
        self.values.insert(index, value)
        self.value_counts.insert(index, counts)

        if len(self.values) > self.max_summary_points:
            self._merge_closest()

    def _merge_closest(self) -> None:
        gaps = np.diff(self.values)
        j = int(np.argmin(gaps))
        left_weight = self.value_counts[j].sum()
        right_weight = self.value_counts[j + 1].sum()
        merged_value = (self.values[j] * left_weight + self.values[j + 1] * right_weight) / \
            (left_weight + right_weight)

        self.values[j] = float(merged_value)
        self.value_counts[j] = self.value_counts[j] + self.value_counts[j + 1]
        del self.values[j + 1]
        del self.value_counts[j + 1]

    def candidate_splits(self) -> Iterator[CandidateSplit]:
        if len(self.values) < 2:
            return

        total = self.class_counts()
        left = np.zeros(self.num_classes, dtype=np.int64)
        for i in range(len(self.values) - 1):
            left = left + self.value_counts[i]
            if self._same_pure_class(self.value_counts[i], self.value_counts[i + 1]):
                continue

            low, high = self.values[i], self.values[i + 1]
            threshold = (low + high) / 2.0
            if threshold <= low:
                threshold = high

            rule = SplitRule.for_threshold(self.dimension, threshold)
            yield CandidateSplit(i, rule, np.vstack([left, total - left]))

    @staticmethod
    def _same_pure_class(a: np.ndarray, b: np.ndarray) -> bool:
        return (np.count_nonzero(a) == 1 and np.count_nonzero(b) == 1
                and int(np.argmax(a)) == int(np.argmax(b)))

    def class_counts(self) -> np.ndarray:
        if not self.value_counts:
            return np.zeros(self.num_classes, dtype=np.int64)
        return np.sum(self.value_counts, axis=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'binary',
            'dimension': self.dimension,
            'num_classes': self.num_classes,
            'max_summary_points': self.max_summary_points,
            'values': list(self.values),
            'counts': [counts.tolist() for counts in self.value_counts],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BinaryNumericSplitStatistics':
        stats = cls(data['dimension'], data['num_classes'], data['max_summary_points'])
        stats.values = [float(v) for v in data['values']]
        stats.value_counts = [np.asarray(c, dtype=np.int64) for c in data['counts']]
        if len(stats.values) != len(stats.value_counts):
            raise ModelFormatError("Numeric summary has mismatched values and counts")
        return stats

    def __repr__(self) -> str:
        return (f"BinaryNumericSplitStatistics(dimension={self.dimension}, "
                f"points={len(self.values)}, n={self.num_observations()})")


class BinnedNumericSplitStatistics(FeatureSplitStatistics):
    """
    Fixed equal-width histogram of a numeric dimension.

    The first ``observations_before_binning`` values are buffered. Once that
    many have been seen, ``bins`` equal-width bins are laid over the range of
    the buffer, the buffer is folded into the histogram and released, and the
    bin edges never move again. Values outside the initial range fall into
    the first or last bin.

    No candidates are offered while values are still buffered; afterwards
    there is one candidate per interior bin edge.
    """

    def __init__(self, dimension: int, num_classes: int, bins: int = 10,
                 observations_before_binning: int = 100):
        super().__init__(dimension, num_classes)
        self.bins = bins
        self.observations_before_binning = observations_before_binning
        self.buffer_values: List[float] = []
        self.buffer_labels: List[int] = []
        self.edges: Optional[np.ndarray] = None
        self.counts: Optional[np.ndarray] = None

    @property
    def is_binned(self) -> bool:
        return self.edges is not None

    def observe(self, value: float, label: int) -> None:
        if self.is_binned:
            self.counts[self._bin_for(value), label] += 1
            return

        self.buffer_values.append(float(value))
        self.buffer_labels.append(int(label))
        if len(self.buffer_values) >= self.observations_before_binning:
            self._fix_bins()

    def _fix_bins(self) -> None:
        low = min(self.buffer_values)
        high = max(self.buffer_values)
        width = (high - low) / self.bins
        self.edges = low + width * np.arange(1, self.bins)
        self.counts = np.zeros((self.bins, self.num_classes), dtype=np.int64)

        for value, label in zip(self.buffer_values, self.buffer_labels):
            self.counts[self._bin_for(value), label] += 1

        self.buffer_values = []
        self.buffer_labels = []

    def _bin_for(self, value: float) -> int:
        # First bin whose upper edge is >= value
        return int(np.searchsorted(self.edges, value, side='left'))

    def candidate_splits(self) -> Iterator[CandidateSplit]:
        if not self.is_binned:
            return

        cumulative = np.cumsum(self.counts, axis=0)
        total = cumulative[-1]
        previous_edge = None
        for i, edge in enumerate(self.edges):
            # Zero-width ranges produce repeated edges
            if previous_edge is not None and edge == previous_edge:
                continue
            previous_edge = edge

            left = cumulative[i]
            rule = SplitRule.for_threshold(self.dimension, float(edge), inclusive=True)
            yield CandidateSplit(i, rule, np.vstack([left, total - left]))

    def class_counts(self) -> np.ndarray:
        if self.is_binned:
            return self.counts.sum(axis=0)
        return np.bincount(np.asarray(self.buffer_labels, dtype=np.int64),
                           minlength=self.num_classes).astype(np.int64)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'domingos',
            'dimension': self.dimension,
            'num_classes': self.num_classes,
            'bins': self.bins,
            'observations_before_binning': self.observations_before_binning,
            'buffer_values': list(self.buffer_values),
            'buffer_labels': list(self.buffer_labels),
            'edges': self.edges.tolist() if self.is_binned else None,
            'counts': self.counts.tolist() if self.is_binned else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BinnedNumericSplitStatistics':
        stats = cls(data['dimension'], data['num_classes'], data['bins'],
                    data['observations_before_binning'])
        stats.buffer_values = [float(v) for v in data.get('buffer_values', [])]
        stats.buffer_labels = [int(l) for l in data.get('buffer_labels', [])]
        if data.get('edges') is not None:
            stats.edges = np.asarray(data['edges'], dtype=float)
            stats.counts = np.asarray(data['counts'], dtype=np.int64).reshape(stats.bins, stats.num_classes)
        return stats

    def __repr__(self) -> str:
        state = "binned" if self.is_binned else f"buffering {len(self.buffer_values)}"
        return f"BinnedNumericSplitStatistics(dimension={self.dimension}, bins={self.bins}, {state})"


class SplitStatisticsFactory:
    """
    Factory class for creating FeatureSplitStatistics instances.

    The statistics type of a dimension follows from the schema (categorical
    dimensions) and the configured numeric split strategy (numeric ones).
    """

    STATISTICS_TYPES = {
        'categorical': CategoricalSplitStatistics,
        'binary': BinaryNumericSplitStatistics,
        'domingos': BinnedNumericSplitStatistics,
    }

    @classmethod
    def create(cls, statistics_type: str, dimension: int, num_classes: int, **kwargs) -> FeatureSplitStatistics:
        """
        Create new, empty statistics of the specified type.

        Args:
            statistics_type (str): 'categorical', 'binary' or 'domingos'
            dimension (int): Dimension index the statistics belong to
            num_classes (int): Number of classes
            **kwargs: Type-specific parameters (arity, max_summary_points,
                bins, observations_before_binning)

        Raises:
            ValueError: If statistics_type is not supported
        """
        statistics_type = statistics_type.lower()
        if statistics_type not in cls.STATISTICS_TYPES:
            raise ValueError(f"Unsupported statistics type: {statistics_type}. "
                             f"Supported types: {list(cls.STATISTICS_TYPES.keys())}")
        return cls.STATISTICS_TYPES[statistics_type](dimension, num_classes, **kwargs)

    @classmethod
    def create_for_dimension(cls, schema, dimension: int, num_classes: int, config) -> FeatureSplitStatistics:
        """
        Create the statistics a leaf needs for one dimension of the schema.

        Args:
            schema (DatasetSchema): Dataset schema
            dimension (int): Dimension index
            num_classes (int): Number of classes
            config (HoeffdingTreeConfig): Tree configuration
        """
        if schema.is_categorical(dimension):
            return cls.create('categorical', dimension, num_classes, arity=schema.arity(dimension))

        strategy = config.numeric_split_strategy.value
        if strategy == 'binary':
            return cls.create('binary', dimension, num_classes,
                              max_summary_points=config.max_summary_points)
        return cls.create('domingos', dimension, num_classes, bins=config.bins,
                          observations_before_binning=config.observations_before_binning)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FeatureSplitStatistics:
        """
        Rebuild statistics from a dictionary produced by to_dict().

        Raises:
            ModelFormatError: If the type is unknown or the data is malformed
        """
        statistics_type = str(data.get('type', '')).lower()
        if statistics_type not in cls.STATISTICS_TYPES:
            raise ModelFormatError(f"Unsupported statistics type: {statistics_type!r}")
        try:
            return cls.STATISTICS_TYPES[statistics_type].from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            if isinstance(e, ModelFormatError):
                raise
            raise ModelFormatError(f"Invalid {statistics_type} statistics: {e}") from e

