"""Binary decision tree classifier with stream-parallel split search."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from time import perf_counter
from typing import Sequence

import numpy as np
import torch

from .config import TreeConfig, apply_env_overrides
from .data import build_dataset, build_row_index
from .errors import NotFittedError
from .predictor import TreePredictor
from .resources import StreamPool
from .tree import BuildInstrumentation, Node, TreeBuilder


class DecisionTreeClassifier:
    """Grow a classification tree from column-major data and classify rows.

    One instance owns one stream pool; concurrent ``fit`` calls on the same
    instance are rejected.
    """

    def __init__(self, config: TreeConfig | None = None) -> None:
        self.config = apply_env_overrides(config or TreeConfig()).validate()
        self._device = torch.device(self.config.device)
        self._pool = StreamPool(self.config.n_streams, self._device)
        self._logger = logging.getLogger(__name__)

        # Runtime state
        self._root: Node | None = None
        self._n_features: int | None = None
        self._n_classes: int | None = None
        self._depth_reached = 0
        self._leaf_count = 0
        self._construction_seconds = 0.0
        self._instrumentation = BuildInstrumentation()

    # Public -------------------------------------------------------------

    @property
    def root(self) -> Node | None:
        return self._root

    @property
    def n_classes(self) -> int | None:
        return self._n_classes

    @property
    def node_count(self) -> int:
        if self._root is None:
            return 0
        return sum(1 for _ in self._root.walk())

    @property
    def instrumentation(self) -> BuildInstrumentation:
        return self._instrumentation

    def fit(
        self,
        data: np.ndarray | torch.Tensor,
        labels: np.ndarray | torch.Tensor | Sequence[int],
        row_ids: np.ndarray | torch.Tensor | Sequence[int] | None = None,
        *,
        n_sampled_rows: int | None = None,
        n_unique_labels: int | None = None,
        max_depth: int | None = None,
        max_leaves: int | None = None,
        column_fraction: float | None = None,
        n_bins: int | None = None,
    ) -> "DecisionTreeClassifier":
        """Build the tree.

        Parameters
        ----------
        data:
            Column-major feature matrix of shape ``(ncols, nrows)``. Values are
            stored as float32, so inputs that differ only beyond float32
            precision are indistinguishable to the split search.
        labels:
            Dense integer labels in ``[0, n_unique_labels)``, one per row.
        row_ids:
            Rows to train on (e.g. a bootstrap sample, duplicates allowed).
            Defaults to every row.
        n_sampled_rows:
            Use only the first ``n_sampled_rows`` entries of ``row_ids``.
        n_unique_labels:
            Number of classes; inferred from ``labels`` when omitted.
        max_depth, max_leaves, column_fraction, n_bins:
            Per-call overrides of the corresponding :class:`TreeConfig` fields.
        """
        overrides = {
            name: value
            for name, value in (
                ("max_depth", max_depth),
                ("max_leaves", max_leaves),
                ("column_fraction", column_fraction),
                ("n_bins", n_bins),
            )
            if value is not None
        }
        config = replace(self.config, **overrides).validate() if overrides else self.config

        dataset = build_dataset(data, labels, n_unique_labels, self._device)
        rows = build_row_index(row_ids, dataset.nrows, n_sampled_rows, self._device)

        start = perf_counter()
        builder = TreeBuilder(config, self._pool)
        with torch.no_grad():
            root, state = builder.build(dataset, rows)
        elapsed = perf_counter() - start

        self._root = root
        self._n_features = dataset.ncols
        self._n_classes = dataset.n_classes
        self._depth_reached = state.depth_reached
        self._leaf_count = state.leaf_count
        self._construction_seconds = elapsed
        self._instrumentation = builder.instrumentation

        if self._logger.isEnabledFor(logging.INFO):
            payload = self.summary()
            payload.update(self._instrumentation.to_dict())
            payload.update({
                "n_sampled_rows": int(rows.numel()),
                "ncols": dataset.ncols,
                "n_streams": self._pool.n_streams,
                "seed": config.random_state,
            })
            self._logger.info(json.dumps(payload))
        return self

    def predict(self, row: np.ndarray | torch.Tensor | Sequence[float], verbose: bool = False) -> int:
        return self._predictor().classify(row, verbose=verbose)

    def predict_many(self, rows: np.ndarray | torch.Tensor) -> np.ndarray:
        """Classify every row of a row-major ``(n, ncols)`` matrix."""
        return self._predictor().classify_many(rows)

    def summary(self) -> dict[str, int | float]:
        return {
            "depth_reached": self._depth_reached,
            "leaf_count": self._leaf_count,
            "peak_workspace_bytes": self._pool.peak_bytes,
            "construction_seconds": self._construction_seconds,
        }

    def render(self) -> str:
        """Indented dump, one node per line, left child before right."""
        if self._root is None:
            raise NotFittedError("empty model: nothing to render")
        return "\n".join("  " * node.depth + node.describe() for node in self._root.walk())

    # Internals ----------------------------------------------------------

    def _predictor(self) -> TreePredictor:
        return TreePredictor(self._root, self._n_features)
