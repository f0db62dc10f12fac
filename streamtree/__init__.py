"""streamtree: binary decision trees grown with stream-parallel split search."""

from .classifier import DecisionTreeClassifier
from .config import TreeConfig
from .errors import ConfigurationError, InvariantViolation, NotFittedError

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DecisionTreeClassifier",
    "InvariantViolation",
    "NotFittedError",
    "TreeConfig",
]
