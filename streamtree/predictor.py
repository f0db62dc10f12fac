"""Single-row classification by tree traversal."""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np
import torch

from .data import ensure_numpy
from .errors import ConfigurationError, InvariantViolation, NotFittedError
from .tree import Node

logger = logging.getLogger(__name__)


class TreePredictor:
    """Lightweight predictor that depends only on a built tree."""

    def __init__(self, root: Node | None, n_features: int | None = None) -> None:
        self._root = root
        self._n_features = n_features

    @property
    def root(self) -> Node | None:
        return self._root

    def _coerce_row(self, row: np.ndarray | torch.Tensor | Sequence[float]) -> np.ndarray:
        row_np = ensure_numpy(row).astype(np.float32, copy=False).reshape(-1)
        if self._n_features is not None and row_np.shape[0] != self._n_features:
            raise ConfigurationError(
                f"row has {row_np.shape[0]} features, the tree was built on {self._n_features}"
            )
        return row_np

    def classify(self, row: np.ndarray | torch.Tensor | Sequence[float], verbose: bool = False) -> int:
        """Return the class label for ``row``.

        ``NaN`` never satisfies ``value <= threshold`` and is therefore routed
        to the right child. With ``verbose`` the visited path is logged at
        INFO level.
        """
        if self._root is None:
            raise NotFittedError("empty model: fit() must build a tree before predict()")
        row_np = self._coerce_row(row)
        node = self._root
        while not node.is_leaf:
            question = node.question
            value = float(row_np[question.column])
            if question.goes_left(value):
                child, branch = node.left, "left"
            else:
                child, branch = node.right, "right"
            if verbose:
                logger.info(
                    "depth %d: x[%d]=%s %s %.6g -> %s",
                    node.depth,
                    question.column,
                    "nan" if math.isnan(value) else f"{value:.6g}",
                    "<=" if branch == "left" else ">",
                    question.value,
                    branch,
                )
            if child is None:
                if node.class_predict is None:
                    raise InvariantViolation(f"internal node at depth {node.depth} lacks its {branch} child")
                return int(node.class_predict)
            node = child
        if verbose:
            logger.info("depth %d: leaf -> class %d", node.depth, node.class_predict)
        return int(node.class_predict)

    def classify_many(self, rows: np.ndarray | torch.Tensor) -> np.ndarray:
        rows_np = ensure_numpy(rows)
        if rows_np.ndim != 2:
            raise ConfigurationError("rows must be a 2D row-major array")
        out = np.empty(rows_np.shape[0], dtype=np.int64)
        for i in range(rows_np.shape[0]):
            out[i] = self.classify(rows_np[i])
        return out
