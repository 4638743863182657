from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class SplitRule:
    """
    Committed split of an internal node: a fixed function from the value of
    one dimension to a branch index.

    Categorical rules have one branch per category listed in ``categories``;
    any other category goes to ``fallback_branch``. Numeric rules have two
    branches: branch 0 takes values below ``threshold`` (or equal to it when
    ``inclusive``) and branch 1 takes the rest.
    """
    dimension: int
    categorical: bool
    categories: Tuple[int, ...] = field(default_factory=tuple)
    fallback_branch: int = 0
    threshold: Optional[float] = None
    inclusive: bool = False

    @classmethod
    def for_categories(cls, dimension: int, categories, fallback_branch: int) -> 'SplitRule':
        return cls(dimension=dimension, categorical=True,
                   categories=tuple(int(c) for c in categories),
                   fallback_branch=fallback_branch)

    @classmethod
    def for_threshold(cls, dimension: int, threshold: float, inclusive: bool = False) -> 'SplitRule':
        return cls(dimension=dimension, categorical=False,
                   threshold=float(threshold), inclusive=inclusive)

    @property
    def num_branches(self) -> int:
        return len(self.categories) if self.categorical else 2

    def branch_for(self, value: float) -> int:
        """
        Select the branch for one feature value.

        Args:
            value (float): Value of the rule's dimension

        Returns:
            int: Branch index in [0, num_branches)
        """
        if self.categorical:
            try:
                return self.categories.index(int(value))
            except ValueError:
                return self.fallback_branch

        if self.inclusive:
            return 0 if value <= self.threshold else 1
        return 0 if value < self.threshold else 1

    def describe(self, dimension_name: Optional[str] = None, branch: Optional[int] = None) -> str:
        """Human-readable condition, for the whole rule or a single branch."""
        name = dimension_name or f"x{self.dimension}"
        if self.categorical:
            if branch is None:
                return f"{name} in {list(self.categories)}"
            label = f"{name} == {self.categories[branch]}"
            if branch == self.fallback_branch:
                label += " (or unseen)"
            return label
        low_op, high_op = ("<=", ">") if self.inclusive else ("<", ">=")
        if branch is None:
            return f"{name} {low_op} {self.threshold:.6g}"
        op = low_op if branch == 0 else high_op
        return f"{name} {op} {self.threshold:.6g}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        if self.categorical:
            return {
                'dimension': self.dimension,
                'type': 'categorical',
                'categories': list(self.categories),
                'fallback_branch': self.fallback_branch,
            }
        return {
            'dimension': self.dimension,
            'type': 'numeric',
            'threshold': self.threshold,
            'inclusive': self.inclusive,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SplitRule':
        if data['type'] == 'categorical':
            return cls.for_categories(data['dimension'], data['categories'], data['fallback_branch'])
        return cls.for_threshold(data['dimension'], data['threshold'], data.get('inclusive', False))
