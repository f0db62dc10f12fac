"""Gini impurity and per-bin class histograms for candidate splits."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import torch


@dataclass(slots=True)
class ImpurityInfo:
    """Class-count histogram of a row subset plus its Gini impurity (0 = pure)."""

    histogram: torch.Tensor  # int64 [n_classes]
    purity: float

    @classmethod
    def from_histogram(cls, histogram: torch.Tensor) -> "ImpurityInfo":
        hist = histogram.to(torch.int64)
        return cls(histogram=hist, purity=float(gini(hist).item()))

    @classmethod
    def from_labels(cls, labels: torch.Tensor, n_classes: int) -> "ImpurityInfo":
        return cls.from_histogram(class_histogram(labels, n_classes))

    @property
    def n_rows(self) -> int:
        return int(self.histogram.sum().item())

    def majority_class(self) -> int:
        # ties resolve to the lowest class id
        return int(np.argmax(self.histogram.detach().cpu().numpy()))


@dataclass(slots=True)
class SplitImpurity:
    """``{basis, left, right}`` impurity state of a node and its candidate children."""

    basis: ImpurityInfo
    left: ImpurityInfo | None = None
    right: ImpurityInfo | None = None


def class_histogram(labels: torch.Tensor, n_classes: int) -> torch.Tensor:
    if labels.numel() == 0:
        return torch.zeros(n_classes, dtype=torch.int64, device=labels.device)
    return torch.bincount(labels.to(torch.int64), minlength=n_classes)[:n_classes]


def gini(histogram: torch.Tensor) -> torch.Tensor:
    """Gini impurity along the last axis; empty histograms score 0."""
    counts = histogram.to(torch.float64)
    totals = counts.sum(dim=-1, keepdim=True)
    probs = counts / totals.clamp_min(1.0)
    impurity = 1.0 - (probs * probs).sum(dim=-1)
    return torch.where(totals.squeeze(-1) > 0, impurity, torch.zeros_like(impurity))


def candidate_thresholds(base: torch.Tensor, delta: torch.Tensor, n_bins: int) -> torch.Tensor:
    """Thresholds ``base + delta * (b + 1)`` for ``b`` in ``[0, n_bins)``."""
    steps = torch.arange(1, n_bins + 1, dtype=torch.float64, device=base.device)
    return steps * delta + base


def threshold_for_bin(base: float, delta: float, bin_index: int) -> float:
    """Host-side twin of :func:`candidate_thresholds` for one bin."""
    return base + delta * (bin_index + 1)


def score_bins(
    values: torch.Tensor,
    labels: torch.Tensor,
    thresholds: torch.Tensor,
    basis: ImpurityInfo,
    accumulator: torch.Tensor,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Score one batch of candidate thresholds for a single column.

    Parameters
    ----------
    values:
        Column values of the node's rows (float64).
    labels:
        Class ids of the same rows.
    thresholds:
        Batch of candidate thresholds; a row goes left when ``value <= threshold``.
    basis:
        Impurity of the node before splitting.
    accumulator:
        Scratch ``int64`` buffer of at least ``len(thresholds) * n_classes``
        elements. The returned left histograms are a view of it.

    Returns
    -------
    gains:
        ``basis.purity - weighted_avg(left_gini, right_gini)`` per threshold.
    left_hist:
        ``[n_thresholds, n_classes]`` class counts of the would-be left child.
    """
    n_rows = int(values.numel())
    n_thr = int(thresholds.numel())
    n_classes = int(basis.histogram.numel())
    device = values.device

    goes_left = values.view(n_rows, 1) <= thresholds.view(1, n_thr)
    key = torch.arange(n_thr, dtype=torch.int64, device=device).view(1, n_thr) * n_classes
    key = key + labels.to(torch.int64).view(n_rows, 1)

    acc = accumulator.narrow(0, 0, n_thr * n_classes)
    acc.zero_()
    acc.index_add_(0, key.reshape(-1), goes_left.reshape(-1).to(torch.int64))
    left_hist = acc.view(n_thr, n_classes)
    right_hist = basis.histogram.view(1, n_classes) - left_hist

    n_left = left_hist.sum(dim=1).to(torch.float64)
    n_right = float(n_rows) - n_left
    weighted = (n_left * gini(left_hist) + n_right * gini(right_hist)) / max(n_rows, 1)
    gains = basis.purity - weighted
    # a threshold that leaves one side empty does not split anything
    proper = (n_left > 0) & (n_right > 0)
    gains = torch.where(proper, gains, torch.zeros_like(gains))
    return gains, left_hist
