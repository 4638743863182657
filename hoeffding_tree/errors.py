"""
Exception types raised by the Hoeffding tree modules.

All errors derive from HoeffdingTreeError and also from the builtin exception
that best describes them, so callers that already catch ValueError or
RuntimeError keep working.
"""


class HoeffdingTreeError(Exception):
    """Base class for all Hoeffding tree errors."""


class SchemaMismatchError(HoeffdingTreeError, ValueError):
    """An example or label does not match the dataset schema of the model."""


class InvalidConfigurationError(HoeffdingTreeError, ValueError):
    """A configuration value is out of range or unknown."""


class ModelNotTrainedError(HoeffdingTreeError, RuntimeError):
    """The model has no tree yet, so it cannot classify."""


class ModelStateError(HoeffdingTreeError, RuntimeError):
    """The requested operation is not allowed in the current model state."""


class ModelFormatError(HoeffdingTreeError, ValueError):
    """A serialized model could not be decoded."""
