"""Exception types raised by streamtree."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid hyper-parameters or inputs; nothing is built."""


class InvariantViolation(RuntimeError):
    """Internal consistency check failed (corrupt data or evaluator bug)."""


class NotFittedError(RuntimeError):
    """Raised when a model is queried before a tree has been built."""
