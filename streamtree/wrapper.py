"""scikit-learn wrapper for streamtree."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin

from .classifier import DecisionTreeClassifier
from .config import TreeConfig
from .data import as_column_major, ensure_numpy


class StreamTreeClassifier(ClassifierMixin, BaseEstimator):
    """scikit-learn compatible estimator wrapping :class:`DecisionTreeClassifier`.

    Accepts row-major ``X`` and arbitrary hashable labels, which are remapped
    to dense ids before the tree is grown.
    """

    def __init__(
        self,
        *,
        max_depth: int = -1,
        max_leaves: int = -1,
        column_fraction: float = 1.0,
        n_bins: int = 8,
        bin_batch_size: int = 0,
        n_streams: int = 1,
        random_state: Optional[int] = None,
        device: str = "cpu",
    ) -> None:
        self.max_depth = max_depth
        self.max_leaves = max_leaves
        self.column_fraction = column_fraction
        self.n_bins = n_bins
        self.bin_batch_size = bin_batch_size
        self.n_streams = n_streams
        self.random_state = random_state
        self.device = device

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        *,
        sample_rows: Optional[Sequence[int]] = None,
    ) -> "StreamTreeClassifier":
        """Fit the estimator.

        Parameters
        ----------
        X: np.ndarray
            Feature matrix of shape (n_samples, n_features).
        y: np.ndarray
            Labels of shape (n_samples,).
        sample_rows: Sequence[int] | None
            Optional row indices to train on (a bootstrap sample for instance).
        """
        data = as_column_major(X)
        classes, y_encoded = np.unique(ensure_numpy(y), return_inverse=True)
        config = TreeConfig(
            max_depth=self.max_depth,
            max_leaves=self.max_leaves,
            column_fraction=self.column_fraction,
            n_bins=self.n_bins,
            bin_batch_size=self.bin_batch_size,
            n_streams=self.n_streams,
            random_state=self.random_state,
            device=self.device,
        )
        tree = DecisionTreeClassifier(config)
        tree.fit(
            data,
            y_encoded.reshape(-1).astype(np.int64),
            sample_rows,
            n_unique_labels=int(classes.shape[0]),
        )
        self.tree_ = tree
        self.classes_ = classes
        self.n_features_in_ = int(data.shape[0])
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        if getattr(self, "tree_", None) is None:
            raise RuntimeError("Estimator has not been fitted")
        X_np = ensure_numpy(X)
        return self.classes_[self.tree_.predict_many(X_np)]

    def get_tree(self) -> DecisionTreeClassifier:
        if getattr(self, "tree_", None) is None:
            raise RuntimeError("Estimator has not been fitted")
        return self.tree_
