"""
Exceptions raised by the decision forest package.
"""


class ForestError(Exception):
    """Base class for all decision forest errors."""


class ConfigurationError(ForestError, ValueError):
    """Invalid hyperparameters or an unknown strategy name."""


class DataError(ForestError, ValueError):
    """A training or prediction dataset that cannot be used."""


class ModelFormatError(ForestError, ValueError):
    """A model file that is corrupt, foreign or from an unsupported version."""


class PersistenceError(ForestError, OSError):
    """An I/O failure while saving or loading a model."""
