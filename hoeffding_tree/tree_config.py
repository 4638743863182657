import numbers
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Union

from errors import InvalidConfigurationError
from impurity import GainCriterion

INTEGER_FIELDS = ('max_samples', 'min_samples', 'bins', 'observations_before_binning',
                  'passes', 'check_interval', 'max_summary_points')
REAL_FIELDS = ('confidence', 'tie_threshold', 'gini_range')


class NumericSplitStrategy(Enum):
    """Enumeration of supported numeric split strategies."""
    BINARY = "binary"
    DOMINGOS = "domingos"

    @classmethod
    def parse(cls, value: Union[str, 'NumericSplitStrategy']) -> 'NumericSplitStrategy':
        """
        Resolve a strategy from its name or one of its aliases.

        'binary' / 'binaryThreshold' keep a bounded sorted summary and split on a
        single threshold; 'domingos' / 'binnedHistogram' bin the values after a
        fixed number of observations.
        """
        if isinstance(value, NumericSplitStrategy):
            return value
        key = str(value).strip().lower().replace('-', '_')
        aliases = {
            'binary': cls.BINARY,
            'binarythreshold': cls.BINARY,
            'binary_threshold': cls.BINARY,
            'domingos': cls.DOMINGOS,
            'binnedhistogram': cls.DOMINGOS,
            'binned_histogram': cls.DOMINGOS,
        }
        if key not in aliases:
            raise ValueError(f"Unsupported numeric split strategy: {value}. Use 'binary' or 'domingos'")
        return aliases[key]


@dataclass
class HoeffdingTreeConfig:
    """
    Hyper-parameters of a Hoeffding tree.

    Parameters
    ----------
    confidence:
        Probability that a committed split is the one that would be chosen
        with infinite data. Must lie in (0, 1).
    max_samples:
        A leaf that has seen this many examples splits on its best candidate
        even if the bound is not satisfied.
    min_samples:
        A leaf never splits before it has seen this many examples.
    numeric_split_strategy:
        ``"binary"`` or ``"domingos"``.
    criterion:
        ``"gini"`` or ``"info_gain"``.
    bins:
        Number of bins of the ``domingos`` strategy.
    observations_before_binning:
        Number of raw values buffered before ``domingos`` bins are fixed.
    batch_mode:
        Accumulate a whole pass before deciding splits.
    passes:
        Number of passes over the training data; more than one forces
        streaming mode.
    check_interval:
        In streaming mode a leaf is checked for a split whenever its sample
        count is a multiple of this value, so a stream shorter than the
        interval never splits. Batch mode checks each leaf once after its
        whole share, regardless of the interval.
    tie_threshold:
        Once the bound falls below this value the two best candidates are
        considered tied and the best one is committed.
    gini_range:
        Range R of Gini-derived gain used in the bound.
    max_summary_points:
        Maximum number of distinct values a ``binary`` numeric summary keeps.
    """
    confidence: float = 0.95
    max_samples: int = 5000
    min_samples: int = 100
    numeric_split_strategy: Union[str, NumericSplitStrategy] = NumericSplitStrategy.BINARY
    criterion: Union[str, GainCriterion] = GainCriterion.GINI
    bins: int = 10
    observations_before_binning: int = 100
    batch_mode: bool = False
    passes: int = 1
    check_interval: int = 100
    tie_threshold: float = 0.05
    gini_range: float = 1.0
    max_summary_points: int = 1000

    def __post_init__(self):
        try:
            self.numeric_split_strategy = NumericSplitStrategy.parse(self.numeric_split_strategy)
            self.criterion = GainCriterion.parse(self.criterion)
        except ValueError as e:
            raise InvalidConfigurationError(str(e)) from e
        self.validate()

    def validate(self) -> None:
        """
        Check every value; called eagerly at construction.

        Raises:
            InvalidConfigurationError: On the first value out of range
        """
        for name in INTEGER_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
        for name in REAL_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidConfigurationError(f"{name} must be a number, got {value!r}")
        if not isinstance(self.batch_mode, bool):
            raise InvalidConfigurationError(f"batch_mode must be a boolean, got {self.batch_mode!r}")

        if not 0.0 < self.confidence < 1.0:
            raise InvalidConfigurationError(f"confidence must be in (0, 1), got {self.confidence}")
        if self.min_samples < 1:
            raise InvalidConfigurationError(f"min_samples must be >= 1, got {self.min_samples}")
        if self.max_samples < self.min_samples:
            raise InvalidConfigurationError(
                f"max_samples ({self.max_samples}) must be >= min_samples ({self.min_samples})"
            )
        if self.bins < 2:
            raise InvalidConfigurationError(f"bins must be >= 2, got {self.bins}")
        if self.observations_before_binning < 1:
            raise InvalidConfigurationError(
                f"observations_before_binning must be >= 1, got {self.observations_before_binning}"
            )
        if self.passes < 1:
            raise InvalidConfigurationError(f"passes must be >= 1, got {self.passes}")
        if self.check_interval < 1:
            raise InvalidConfigurationError(f"check_interval must be >= 1, got {self.check_interval}")
        if self.tie_threshold < 0:
            raise InvalidConfigurationError(f"tie_threshold must be >= 0, got {self.tie_threshold}")
        if self.gini_range <= 0:
            raise InvalidConfigurationError(f"gini_range must be > 0, got {self.gini_range}")
        if self.max_summary_points < 2:
            raise InvalidConfigurationError(
                f"max_summary_points must be >= 2, got {self.max_summary_points}"
            )

    @property
    def effective_batch_mode(self) -> bool:
        """Batch mode only applies to single-pass training."""
        return self.batch_mode and self.passes == 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data['numeric_split_strategy'] = self.numeric_split_strategy.value
        data['criterion'] = self.criterion.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HoeffdingTreeConfig':
        known = cls.__dataclass_fields__.keys()
        unknown = set(data) - set(known)
        if unknown:
            raise InvalidConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)
