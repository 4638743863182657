import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Any

import numpy as np

from errors import SchemaMismatchError


class DimensionType(Enum):
    """Type tag of a single input dimension."""
    CATEGORICAL = "categorical"
    NUMERIC = "numeric"


@dataclass
class DimensionInfo:
    """
    Description of one input dimension.

    Categorical dimensions carry their arity (number of distinct categories)
    and, when they were loaded from text, the mapping from the original string
    value to the category index.
    """
    type: DimensionType
    arity: int = 0
    name: Optional[str] = None
    mapping: Dict[str, int] = field(default_factory=dict)

    @property
    def is_categorical(self) -> bool:
        return self.type == DimensionType.CATEGORICAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': self.type.value,
            'arity': self.arity,
            'name': self.name,
            'mapping': dict(self.mapping),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DimensionInfo':
        return cls(
            type=DimensionType(data['type']),
            arity=int(data.get('arity', 0)),
            name=data.get('name'),
            mapping={str(k): int(v) for k, v in data.get('mapping', {}).items()},
        )


class DatasetSchema:
    """
    Ordered sequence of dimensions that every example must match.

    The schema is fixed when a model is built and trusted for the lifetime of
    the model. Categorical values are category indices in [0, arity); numeric
    values are finite floats.
    """

    def __init__(self, dimensions: Sequence[DimensionInfo]):
        if not dimensions:
            raise SchemaMismatchError("A dataset schema needs at least one dimension")
        for index, dim in enumerate(dimensions):
            if dim.is_categorical and dim.arity < 1:
                raise SchemaMismatchError(
                    f"Categorical dimension {index} must have arity >= 1, got {dim.arity}"
                )
        self.dimensions: List[DimensionInfo] = list(dimensions)

    @classmethod
    def from_arities(cls, arities: Sequence[Optional[int]],
                     names: Optional[Sequence[str]] = None) -> 'DatasetSchema':
        """
        Build a schema from a list of arities.

        Args:
            arities (Sequence[Optional[int]]): Arity per dimension, None for numeric
            names (Sequence[str], optional): Column names

        Returns:
            DatasetSchema: New schema
        """
        dimensions = []
        for index, arity in enumerate(arities):
            name = names[index] if names is not None else None
            if arity is None:
                dimensions.append(DimensionInfo(DimensionType.NUMERIC, name=name))
            else:
                dimensions.append(DimensionInfo(DimensionType.CATEGORICAL, arity=int(arity), name=name))
        return cls(dimensions)

    @classmethod
    def all_numeric(cls, num_dimensions: int) -> 'DatasetSchema':
        return cls.from_arities([None] * num_dimensions)

    @property
    def num_dimensions(self) -> int:
        return len(self.dimensions)

    def is_categorical(self, dimension: int) -> bool:
        return self.dimensions[dimension].is_categorical

    def arity(self, dimension: int) -> int:
        return self.dimensions[dimension].arity

    def dimension_name(self, dimension: int) -> str:
        name = self.dimensions[dimension].name
        return name if name is not None else f"x{dimension}"

    def validate_example(self, example: np.ndarray, row: Optional[int] = None) -> None:
        """
        Check that one example matches this schema.

        Raises:
            SchemaMismatchError: On wrong dimensionality, a categorical value that
                is not an integer in [0, arity), or a non-finite numeric value
        """
        where = f"Example {row}" if row is not None else "Example"
        if len(example) != self.num_dimensions:
            raise SchemaMismatchError(
                f"{where} has {len(example)} dimensions, schema expects {self.num_dimensions}"
            )
        for index, value in enumerate(example):
            dim = self.dimensions[index]
            if not math.isfinite(value):
                raise SchemaMismatchError(f"{where}: dimension {index} has non-finite value {value}")
            if dim.is_categorical:
                if value != int(value) or not 0 <= value < dim.arity:
                    raise SchemaMismatchError(
                        f"{where}: category {value} out of range for dimension {index} "
                        f"(arity {dim.arity})"
                    )

    def validate_examples(self, examples: np.ndarray) -> None:
        """Validate every row of a 2-D example matrix."""
        if examples.ndim != 2:
            raise SchemaMismatchError(f"Examples must be a 2-D matrix, got {examples.ndim} dimensions")
        if examples.shape[0] > 0 and examples.shape[1] != self.num_dimensions:
            raise SchemaMismatchError(
                f"Examples have {examples.shape[1]} dimensions, schema expects {self.num_dimensions}"
            )
        for row, example in enumerate(examples):
            self.validate_example(example, row)

    def to_dict(self) -> Dict[str, Any]:
        return {'dimensions': [dim.to_dict() for dim in self.dimensions]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DatasetSchema':
        return cls([DimensionInfo.from_dict(d) for d in data['dimensions']])

    def __eq__(self, other) -> bool:
        if not isinstance(other, DatasetSchema):
            return False
        return self.to_dict() == other.to_dict()

    def __str__(self) -> str:
        parts = []
        for dim in self.dimensions:
            parts.append(f"categorical({dim.arity})" if dim.is_categorical else "numeric")
        return f"DatasetSchema([{', '.join(parts)}])"

    def __repr__(self) -> str:
        return self.__str__()
