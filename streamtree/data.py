"""Input coercion and the column-major dataset view used during induction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import torch

from .errors import ConfigurationError


@dataclass(slots=True)
class Dataset:
    """Non-owning, read-only view of the training data for one ``fit`` call.

    ``features`` is column-major ``[ncols, nrows]`` float32 and ``labels`` holds
    dense integer ids in ``[0, n_classes)``.
    """

    features: torch.Tensor
    labels: torch.Tensor
    n_classes: int

    @property
    def ncols(self) -> int:
        return int(self.features.shape[0])

    @property
    def nrows(self) -> int:
        return int(self.features.shape[1])

    def column(self, index: int) -> torch.Tensor:
        return self.features[index]


def ensure_numpy(array: np.ndarray | torch.Tensor | Sequence[float]) -> np.ndarray:
    """Convert ``array`` (numpy, torch, pandas or sequence) to an ``np.ndarray``."""

    if isinstance(array, np.ndarray):
        return np.asarray(array)
    if isinstance(array, torch.Tensor):
        return array.detach().cpu().numpy()
    if hasattr(array, "to_numpy"):
        return np.asarray(array.to_numpy())
    return np.asarray(array)


def as_column_major(X: np.ndarray | torch.Tensor | Sequence[Sequence[float]]) -> np.ndarray:
    """Transpose a row-major ``[nrows, ncols]`` matrix into contiguous column-major storage."""

    X_np = ensure_numpy(X)
    if X_np.ndim != 2:
        raise ConfigurationError("X must be a 2D array")
    return np.ascontiguousarray(X_np.T, dtype=np.float32)


def build_dataset(
    data: np.ndarray | torch.Tensor,
    labels: np.ndarray | torch.Tensor | Sequence[int],
    n_classes: int | None,
    device: torch.device,
) -> Dataset:
    """Validate column-major ``data`` and dense ``labels`` and move them to ``device``."""

    data_np = ensure_numpy(data)
    if data_np.ndim != 2:
        raise ConfigurationError("data must be a 2D column-major array [ncols, nrows]")
    data_np = data_np.astype(np.float32, copy=False)
    if not np.all(np.isfinite(data_np)):
        raise ConfigurationError("data contains NaN or infinite values; missing values are not supported")

    labels_np = ensure_numpy(labels)
    if labels_np.ndim != 1:
        raise ConfigurationError("labels must be a 1D array")
    if labels_np.shape[0] != data_np.shape[1]:
        raise ConfigurationError(
            f"labels length ({labels_np.shape[0]}) does not match nrows ({data_np.shape[1]})"
        )
    if labels_np.size and not np.issubdtype(labels_np.dtype, np.integer):
        rounded = np.rint(labels_np)
        if not np.array_equal(rounded, labels_np):
            raise ConfigurationError("labels must be integer class ids")
        labels_np = rounded
    labels_np = labels_np.astype(np.int64, copy=False)

    observed = int(labels_np.max()) + 1 if labels_np.size else 0
    if n_classes is None:
        n_classes = max(observed, 1)
    n_classes = int(n_classes)
    if n_classes <= 0:
        raise ConfigurationError("n_unique_labels must be positive")
    if labels_np.size and (labels_np.min() < 0 or observed > n_classes):
        raise ConfigurationError(f"labels must be dense integers within [0, {n_classes})")

    features = torch.from_numpy(np.ascontiguousarray(data_np)).to(device=device)
    labels_t = torch.from_numpy(np.ascontiguousarray(labels_np)).to(device=device)
    return Dataset(features=features, labels=labels_t, n_classes=n_classes)


def build_row_index(
    row_ids: np.ndarray | torch.Tensor | Sequence[int] | None,
    nrows: int,
    n_sampled_rows: int | None,
    device: torch.device,
) -> torch.Tensor:
    """Allocate the single mutable row-index array shared by every node of a fit."""

    if row_ids is None:
        rows_np = np.arange(nrows, dtype=np.int64)
    else:
        rows_np = ensure_numpy(row_ids).astype(np.int64, copy=True).reshape(-1)
    if n_sampled_rows is not None:
        if n_sampled_rows < 0 or n_sampled_rows > rows_np.shape[0]:
            raise ConfigurationError(
                f"n_sampled_rows ({n_sampled_rows}) must lie within [0, {rows_np.shape[0]}]"
            )
        rows_np = rows_np[:n_sampled_rows]
    if rows_np.size == 0:
        raise ConfigurationError("at least one sampled row is required")
    if rows_np.min() < 0 or rows_np.max() >= nrows:
        raise ConfigurationError(f"row ids must lie within [0, {nrows})")
    return torch.from_numpy(rows_np).to(device=device)
