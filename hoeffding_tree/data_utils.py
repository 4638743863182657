import os
import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from errors import SchemaMismatchError
from schema import DatasetSchema, DimensionInfo, DimensionType

logger = logging.getLogger(__name__)


def _read_raw_csv(csv_file_path: str, header: Optional[int]) -> pd.DataFrame:
    if not os.path.exists(csv_file_path):
        raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

    # Everything is read as text; column types are decided afterwards
    df = pd.read_csv(csv_file_path, header=header, dtype=str, skipinitialspace=True,
                     keep_default_na=False)
    df = df.apply(lambda column: column.str.strip())

    empty = df.eq('')
    if empty.values.any():
        row, col = np.argwhere(empty.values)[0]
        raise SchemaMismatchError(f"{csv_file_path}: missing value in row {row}, column {col}")
    return df


def _column_names(df: pd.DataFrame, header: Optional[int]) -> Optional[List[str]]:
    if header is None:
        return None
    return [str(name) for name in df.columns]


def _is_numeric_column(column: pd.Series) -> bool:
    return not pd.to_numeric(column, errors='coerce').isna().any()


def _first_appearance_mapping(column: pd.Series) -> Dict[str, int]:
    # pd.unique keeps the order in which values first appear
    return {value: index for index, value in enumerate(pd.unique(column))}


def _encode_column(column: pd.Series, dim: DimensionInfo, index: int, csv_file_path: str) -> np.ndarray:
    if dim.type == DimensionType.NUMERIC:
        values = pd.to_numeric(column, errors='coerce')
        if values.isna().any():
            bad = column[values.isna()].iloc[0]
            raise SchemaMismatchError(
                f"{csv_file_path}: column {index} is numeric but contains {bad!r}"
            )
        return values.to_numpy(dtype=float)

    if dim.mapping:
        encoded = column.map(dim.mapping)
        if encoded.isna().any():
            unseen = sorted(set(column[encoded.isna()]))
            raise SchemaMismatchError(
                f"{csv_file_path}: column {index} has categories not seen in training: {unseen}"
            )
        return encoded.to_numpy(dtype=float)

    # Categorical dimension without a string mapping: values are indices already
    values = pd.to_numeric(column, errors='coerce')
    if values.isna().any():
        raise SchemaMismatchError(f"{csv_file_path}: column {index} must hold category indices")
    return values.to_numpy(dtype=float)


def load_dataset(csv_file_path: str, schema: Optional[DatasetSchema] = None,
                 header: Optional[int] = None) -> Tuple[np.ndarray, DatasetSchema]:
    """
    Load a CSV file of examples into a numeric matrix.

    Without a schema, every column whose values all parse as numbers becomes a
    numeric dimension; any other column becomes a categorical dimension whose
    distinct strings are mapped to category indices in order of first
    appearance. With a schema (e.g. the one of a trained model), its types and
    mappings are reused so test data is encoded exactly like training data.

    Args:
        csv_file_path (str): Path to the CSV file
        schema (DatasetSchema, optional): Schema to encode the file with
        header (int, optional): Row number of the header, None for no header

    Returns:
        Tuple[np.ndarray, DatasetSchema]: Matrix of shape (n, dimensions) and
            the schema describing it

    Raises:
        FileNotFoundError: If the CSV file doesn't exist
        SchemaMismatchError: On missing values, a column count that differs
            from the schema, or a category the schema has never seen
    """
    df = _read_raw_csv(csv_file_path, header)
    names = _column_names(df, header)

    if schema is None:
        dimensions = []
        for index, column_name in enumerate(df.columns):
            column = df[column_name]
            name = names[index] if names is not None else None
            if _is_numeric_column(column):
                dimensions.append(DimensionInfo(DimensionType.NUMERIC, name=name))
            else:
                mapping = _first_appearance_mapping(column)
                dimensions.append(DimensionInfo(DimensionType.CATEGORICAL, arity=len(mapping),
                                                name=name, mapping=mapping))
        schema = DatasetSchema(dimensions)
    elif len(df.columns) != schema.num_dimensions:
        raise SchemaMismatchError(
            f"{csv_file_path} has {len(df.columns)} columns, schema expects {schema.num_dimensions}"
        )

    columns = [_encode_column(df[column_name], schema.dimensions[index], index, csv_file_path)
               for index, column_name in enumerate(df.columns)]
    matrix = np.column_stack(columns) if len(df) else np.zeros((0, schema.num_dimensions))

    logger.info("Loaded %d examples with %d dimensions from %s (%d categorical)",
                matrix.shape[0], schema.num_dimensions, csv_file_path,
                sum(1 for dim in schema.dimensions if dim.is_categorical))
    return matrix, schema


def split_label_column(matrix: np.ndarray, schema: DatasetSchema) -> Tuple[np.ndarray, np.ndarray, DatasetSchema]:
    """
    Use the last column of a loaded dataset as the labels.

    Returns:
        Tuple[np.ndarray, np.ndarray, DatasetSchema]: Examples without the last
            column, the labels, and the schema of the remaining dimensions

    Raises:
        SchemaMismatchError: If the dataset has a single column or the last
            column does not hold non-negative integers
    """
    if schema.num_dimensions < 2:
        raise SchemaMismatchError("Need at least one feature column besides the label column")
    labels = matrix[:, -1]
    if len(labels) and (np.any(labels < 0) or np.any(labels != np.floor(labels))):
        raise SchemaMismatchError("Label column must hold non-negative integers")
    return matrix[:, :-1], labels.astype(np.int64), DatasetSchema(schema.dimensions[:-1])


def load_labels(csv_file_path: str) -> np.ndarray:
    """
    Load one integer label per row from a CSV file.

    Raises:
        FileNotFoundError: If the CSV file doesn't exist
        SchemaMismatchError: If a row has more than one column or a label is
            not a non-negative integer
    """
    df = _read_raw_csv(csv_file_path, header=None)
    if len(df.columns) != 1:
        raise SchemaMismatchError(f"{csv_file_path}: labels must be a single column, found {len(df.columns)}")

    values = pd.to_numeric(df[df.columns[0]], errors='coerce')
    if values.isna().any() or (values < 0).any() or (values != values.round()).any():
        raise SchemaMismatchError(f"{csv_file_path}: labels must be non-negative integers")

    labels = values.to_numpy().astype(np.int64)
    logger.info("Loaded %d labels from %s", len(labels), csv_file_path)
    return labels


def accuracy(predictions: np.ndarray, labels: np.ndarray) -> Tuple[int, int, float]:
    """
    Compare predictions with the true labels.

    Returns:
        Tuple[int, int, float]: (correct, total, correct / total); the ratio is
            0.0 when there is nothing to compare
    """
    predictions = np.asarray(predictions)
    labels = np.asarray(labels)
    if predictions.shape != labels.shape:
        raise SchemaMismatchError(
            f"Got {len(predictions)} predictions for {len(labels)} labels"
        )
    correct = int(np.sum(predictions == labels))
    total = int(len(labels))
    return correct, total, (correct / total if total else 0.0)


def write_predictions(csv_file_path: str, predictions: np.ndarray) -> None:
    """Write one predicted label per row."""
    pd.DataFrame({'prediction': np.asarray(predictions, dtype=np.int64)}).to_csv(
        csv_file_path, header=False, index=False)
    logger.info("Wrote %d predictions to %s", len(predictions), csv_file_path)


def write_probabilities(csv_file_path: str, probabilities: np.ndarray) -> None:
    """Write one row of class probabilities per example."""
    pd.DataFrame(np.asarray(probabilities, dtype=float)).to_csv(
        csv_file_path, header=False, index=False, float_format='%.6g')
    logger.info("Wrote class probabilities for %d examples to %s", len(probabilities), csv_file_path)
