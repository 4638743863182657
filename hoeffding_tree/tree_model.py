import json
import logging
import threading
import time
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from errors import (ModelFormatError, ModelNotTrainedError, ModelStateError,
                    SchemaMismatchError)
from nodes import TreeNode
from schema import DatasetSchema
from tree import HoeffdingTree
from tree_config import HoeffdingTreeConfig

logger = logging.getLogger(__name__)

MODEL_FORMAT_VERSION = 1


class ModelState(Enum):
    """Lifecycle of a HoeffdingTreeModel."""
    UNINITIALIZED = "uninitialized"
    BUILT = "built"
    TRAINED = "trained"
    READY = "ready"


class HoeffdingTreeModel:
    """
    Hoeffding tree classifier: owns the tree, its schema and configuration,
    and drives training passes and classification.

    Lifecycle: UNINITIALIZED -> BUILT (first pass) -> TRAINED (more passes)
    -> READY (frozen for concurrent classification). build_model() may be
    called again, unless the model is frozen, to replace the tree wholesale.

    Training calls are serialized by an internal lock; classification never
    mutates the tree and may run from many threads at once, as long as no
    training is in flight (freeze() guarantees that).
    """

    def __init__(self, config: Optional[HoeffdingTreeConfig] = None, **kwargs):
        """
        Initialize an empty model.

        Args:
            config (HoeffdingTreeConfig, optional): Configuration
            **kwargs: Configuration values, used when config is None
                (e.g. confidence=0.99, criterion='info_gain')

        Raises:
            InvalidConfigurationError: If a configuration value is invalid
        """
        if config is not None and kwargs:
            raise TypeError("Pass either a config object or keyword values, not both")
        self.config = config if config is not None else HoeffdingTreeConfig(**kwargs)

        self.tree: Optional[HoeffdingTree] = None
        self.schema: Optional[DatasetSchema] = None
        self.num_classes: int = 0
        self.state = ModelState.UNINITIALIZED

        # Training metadata
        self.passes_completed: int = 0
        self.samples_seen: int = 0
        self.training_time: float = 0.0

        self._lock = threading.Lock()

    @staticmethod
    def _as_matrix(examples) -> np.ndarray:
        try:
            matrix = np.asarray(examples, dtype=float)
        except (TypeError, ValueError) as e:
            raise SchemaMismatchError(f"Examples are not numeric: {e}") from e
        if matrix.ndim == 1 and matrix.size > 0:
            matrix = matrix.reshape(1, -1)
        return matrix

    def _prepare_examples(self, examples, schema: Optional[DatasetSchema] = None) -> np.ndarray:
        schema = schema if schema is not None else self.schema
        matrix = self._as_matrix(examples)
        if matrix.size == 0:
            matrix = matrix.reshape(0, schema.num_dimensions)
        schema.validate_examples(matrix)
        return matrix

    def _prepare_labels(self, labels, num_examples: int, num_classes: int) -> np.ndarray:
        array = np.asarray(labels)
        if array.ndim != 1 or len(array) != num_examples:
            raise SchemaMismatchError(
                f"Expected {num_examples} labels, got array of shape {array.shape}"
            )
        try:
            integral = np.all(np.equal(np.mod(array, 1), 0))
        except TypeError as e:
            raise SchemaMismatchError(f"Labels are not numeric: {e}") from e
        if not integral:
            raise SchemaMismatchError("Labels must be integers")
        array = array.astype(np.int64)
        if len(array) and (array.min() < 0 or array.max() >= num_classes):
            raise SchemaMismatchError(f"Labels must lie in [0, {num_classes})")
        return array

    def build_model(self, examples, labels, schema: Optional[DatasetSchema] = None,
                    num_classes: Optional[int] = None, batch: Optional[bool] = None) -> 'HoeffdingTreeModel':
        """
        Create a new tree and train it with one pass over the examples.

        Args:
            examples: Matrix of shape (n, dimensions)
            labels: Integer labels of shape (n,)
            schema (DatasetSchema, optional): Dataset schema (default: all numeric)
            num_classes (int, optional): Number of classes (default: max label + 1)
            batch (bool, optional): Batch or streaming pass (default: config.batch_mode)

        Returns:
            HoeffdingTreeModel: self

        Raises:
            ModelStateError: If the model is frozen
            SchemaMismatchError: If examples or labels do not match the schema
        """
        # freeze() takes the same lock, so the state cannot change under us.
        with self._lock:
            if self.state == ModelState.READY:
                raise ModelStateError("Model is frozen for classification. Call thaw() before rebuilding.")
            self._build(examples, labels, schema, num_classes, batch)
        return self

    def _build(self, examples, labels, schema: Optional[DatasetSchema],
               num_classes: Optional[int], batch: Optional[bool]) -> None:
        matrix = self._as_matrix(examples)
        if schema is None:
            if matrix.ndim != 2:
                raise SchemaMismatchError("Cannot infer a schema without examples")
            schema = DatasetSchema.all_numeric(matrix.shape[1])
        matrix = self._prepare_examples(matrix, schema)

        raw_labels = np.asarray(labels)
        if num_classes is None:
            if raw_labels.size == 0:
                raise SchemaMismatchError("Cannot infer the number of classes without labels")
            num_classes = int(raw_labels.max()) + 1
        if num_classes < 1:
            raise SchemaMismatchError(f"num_classes must be >= 1, got {num_classes}")
        label_array = self._prepare_labels(raw_labels, len(matrix), num_classes)

        self.schema = schema
        self.num_classes = num_classes
        self.tree = HoeffdingTree(schema, num_classes, self.config)
        self.passes_completed = 0
        self.samples_seen = 0
        self.training_time = 0.0

        logger.info("Building Hoeffding tree: %d examples, %d dimensions, %d classes, %s",
                    len(matrix), schema.num_dimensions, num_classes, self.config)
        self._run_pass(matrix, label_array, self._resolve_batch(batch))
        self.state = ModelState.BUILT

    def train(self, examples, labels, batch: Optional[bool] = None) -> 'HoeffdingTreeModel':
        """
        Train the existing tree with one more pass over the examples.

        Args:
            examples: Matrix of shape (n, dimensions)
            labels: Integer labels of shape (n,)
            batch (bool, optional): Batch or streaming pass (default: config.batch_mode)

        Raises:
            ModelNotTrainedError: If build_model() has not been called
            ModelStateError: If the model is frozen
            SchemaMismatchError: If examples or labels do not match the schema
        """
        with self._lock:
            if self.state == ModelState.UNINITIALIZED:
                raise ModelNotTrainedError("Model has no tree. Call build_model() or fit() first.")
            if self.state == ModelState.READY:
                raise ModelStateError("Model is frozen for classification. Call thaw() before training.")

            matrix = self._prepare_examples(examples)
            label_array = self._prepare_labels(labels, len(matrix), self.num_classes)
            self._run_pass(matrix, label_array, self._resolve_batch(batch))
            self.state = ModelState.TRAINED
        return self

    def fit(self, examples, labels, schema: Optional[DatasetSchema] = None,
            num_classes: Optional[int] = None) -> 'HoeffdingTreeModel':
        """
        Build a model and run ``config.passes`` passes over the examples.

        More than one pass forces streaming mode; building the model counts
        as the first pass.
        """
        batch = self.config.batch_mode
        if batch and self.config.passes > 1:
            logger.warning("Batch mode ignored because %d passes were requested", self.config.passes)
            batch = False

        self.build_model(examples, labels, schema=schema, num_classes=num_classes, batch=batch)
        for _ in range(self.config.passes - 1):
            self.train(examples, labels, batch=False)
        return self

    def _resolve_batch(self, batch: Optional[bool]) -> bool:
        return self.config.effective_batch_mode if batch is None else batch

    def _run_pass(self, matrix: np.ndarray, labels: np.ndarray, batch: bool) -> None:
        start_time = time.time()
        nodes_before = self.tree.num_nodes()
        if batch:
            splits = self.tree.train_batch(matrix, labels)
        else:
            splits = self.tree.train_stream(matrix, labels)
        elapsed = time.time() - start_time

        self.passes_completed += 1
        self.samples_seen += len(labels)
        self.training_time += elapsed
        logger.info("Pass %d (%s): %d examples, %d splits, %d -> %d nodes in %.3fs",
                    self.passes_completed, "batch" if batch else "streaming", len(labels),
                    splits, nodes_before, self.tree.num_nodes(), elapsed)

    def classify(self, examples, return_probabilities: bool = False
                 ) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
        """
        Predict a label for every example. Does not modify the model.

        Args:
            examples: Matrix of shape (n, dimensions), or one feature vector
            return_probabilities (bool): Also return the class probabilities

        Returns:
            np.ndarray: Predicted labels of shape (n,), and if requested the
                probability matrix of shape (n, num_classes)

        Raises:
            ModelNotTrainedError: If the model has no tree
            SchemaMismatchError: If an example does not match the schema
        """
        if self.state == ModelState.UNINITIALIZED or self.tree is None:
            raise ModelNotTrainedError("Model not trained. Call build_model() or fit() first.")

        matrix = self._prepare_examples(examples)
        predictions = np.zeros(len(matrix), dtype=np.int64)
        probabilities = np.zeros((len(matrix), self.num_classes), dtype=float)
        for i, example in enumerate(matrix):
            distribution = self.tree.classify_one(example)
            predictions[i] = distribution.predicted_class()
            probabilities[i] = distribution.probabilities()

        if return_probabilities:
            return predictions, probabilities
        return predictions

    def predict(self, examples) -> np.ndarray:
        return self.classify(examples)

    def predict_proba(self, examples) -> np.ndarray:
        return self.classify(examples, return_probabilities=True)[1]

    def freeze(self) -> 'HoeffdingTreeModel':
        """
        Mark the model READY: training is refused until thaw(), so any number
        of threads may classify concurrently.
        """
        with self._lock:
            if self.state == ModelState.UNINITIALIZED:
                raise ModelNotTrainedError("Cannot freeze a model without a tree")
            self.state = ModelState.READY
        return self

    def thaw(self) -> 'HoeffdingTreeModel':
        """Allow training again after freeze()."""
        with self._lock:
            if self.state == ModelState.READY:
                self.state = ModelState.TRAINED
        return self

    @property
    def is_frozen(self) -> bool:
        return self.state == ModelState.READY

    def num_nodes(self) -> int:
        return self.tree.num_nodes() if self.tree is not None else 0

    def print_tree(self) -> None:
        if self.tree is None:
            print("Tree not trained.")
            return
        self.tree.print_tree()

    def summary(self) -> Dict[str, Any]:
        """Counts and settings describing the model, for reporting."""
        return {
            'state': self.state.value,
            'num_nodes': self.num_nodes(),
            'num_leaves': self.tree.num_leaves() if self.tree is not None else 0,
            'max_depth': self.tree.max_depth() if self.tree is not None else 0,
            'num_classes': self.num_classes,
            'num_dimensions': self.schema.num_dimensions if self.schema is not None else 0,
            'passes_completed': self.passes_completed,
            'samples_seen': self.samples_seen,
            'training_time': round(self.training_time, 4),
        }

    def to_dict(self) -> Dict[str, Any]:
        """
        Complete serialization of the model: configuration, schema, and the
        full tree including leaf statistics, so training can resume.
        """
        return {
            'format_version': MODEL_FORMAT_VERSION,
            'config': self.config.to_dict(),
            'state': self.state.value,
            'num_classes': self.num_classes,
            'schema': self.schema.to_dict() if self.schema is not None else None,
            'passes_completed': self.passes_completed,
            'samples_seen': self.samples_seen,
            'tree': self.tree.root.to_dict() if self.tree is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HoeffdingTreeModel':
        """
        Rebuild a model from the output of to_dict().

        Raises:
            ModelFormatError: If the data is malformed or from another format version
        """
        if not isinstance(data, dict):
            raise ModelFormatError("Model data must be a JSON object")
        version = data.get('format_version')
        if version != MODEL_FORMAT_VERSION:
            raise ModelFormatError(f"Unsupported model format version: {version}")

        try:
            model = cls(HoeffdingTreeConfig.from_dict(data['config']))
            model.state = ModelState(data['state'])
            model.num_classes = int(data['num_classes'])
            model.passes_completed = int(data.get('passes_completed', 0))
            model.samples_seen = int(data.get('samples_seen', 0))
            if data['tree'] is not None:
                model.schema = DatasetSchema.from_dict(data['schema'])
                root = TreeNode.from_dict(data['tree'], model.num_classes)
                model.tree = HoeffdingTree(model.schema, model.num_classes, model.config, root=root)
            elif model.state != ModelState.UNINITIALIZED:
                raise ModelFormatError(f"Model in state {model.state.value} has no tree")
        except ModelFormatError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ModelFormatError(f"Invalid model data: {e}") from e
        return model

    def save(self, path: str) -> None:
        """Write the model to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f)
        logger.info("Saved model with %d nodes to %s", self.num_nodes(), path)

    @classmethod
    def load(cls, path: str) -> 'HoeffdingTreeModel':
        """
        Read a model written by save().

        Raises:
            FileNotFoundError: If the file does not exist
            ModelFormatError: If the file is not a valid model
        """
        with open(path, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ModelFormatError(f"Model file {path} is not valid JSON: {e}") from e
        model = cls.from_dict(data)
        logger.info("Loaded model with %d nodes from %s", model.num_nodes(), path)
        return model

    def __str__(self) -> str:
        return (f"HoeffdingTreeModel(state={self.state.value}, nodes={self.num_nodes()}, "
                f"criterion={self.config.criterion.value}, "
                f"numeric_split_strategy={self.config.numeric_split_strategy.value})")

    def __repr__(self) -> str:
        return self.__str__()
