"""Best-split search across a column subsample using the stream pool."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from time import perf_counter
from typing import Sequence

import torch

from .data import Dataset
from .errors import InvariantViolation
from .impurity import (
    ImpurityInfo,
    SplitImpurity,
    candidate_thresholds,
    score_bins,
    threshold_for_bin,
)
from .resources import StreamPool, Workspace

GAIN_TOLERANCE = 1e-12

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Question:
    """Split test ``row[column] <= value`` (true goes left)."""

    column: int
    value: float

    def goes_left(self, value: float) -> bool:
        return value <= self.value


@dataclass(slots=True)
class SplitResult:
    """Outcome of :meth:`SplitFinder.find_best` for one node."""

    question: Question | None
    gain: float
    impurity: SplitImpurity
    n_columns: int = 0

    @property
    def found(self) -> bool:
        return self.question is not None and self.gain > 0.0


@dataclass(slots=True)
class _Candidate:
    position: int  # index into the column subsample
    column: int
    bin_index: int
    gain: float
    threshold: float
    impurity: SplitImpurity


def sample_columns(ncols: int, fraction: float, generator: torch.Generator) -> list[int]:
    """Uniform random permutation of ``range(ncols)`` truncated to ``fraction * ncols`` rounded half up."""
    k = min(int(math.floor(float(fraction) * ncols + 0.5)), ncols)
    perm = torch.randperm(ncols, generator=generator)
    return [int(c) for c in perm[:k].tolist()]


class SplitFinder:
    """Search the best ``(column, threshold)`` for a contiguous row range."""

    def __init__(
        self,
        dataset: Dataset,
        pool: StreamPool,
        *,
        n_bins: int,
        bin_batch_size: int,
        column_fraction: float,
    ) -> None:
        self.dataset = dataset
        self.pool = pool
        self.n_bins = int(n_bins)
        self.bin_batch_size = int(bin_batch_size)
        self.column_fraction = float(column_fraction)
        self.columns_evaluated = 0
        self.bin_batches = 0
        self.hist_ms = 0.0

    def basis(self, rows: torch.Tensor) -> ImpurityInfo:
        labels = self.dataset.labels.index_select(0, rows)
        return ImpurityInfo.from_labels(labels, self.dataset.n_classes)

    def find_best(
        self,
        rows: torch.Tensor,
        generator: torch.Generator,
        basis: ImpurityInfo | None = None,
    ) -> SplitResult:
        columns = sample_columns(self.dataset.ncols, self.column_fraction, generator)
        if basis is None:
            basis = self.basis(rows)
        no_split = SplitResult(question=None, gain=0.0, impurity=SplitImpurity(basis=basis), n_columns=len(columns))
        if not columns:
            return no_split

        n_rows = int(rows.numel())
        n_bins = min(n_rows + 1, self.n_bins)
        n_streams = self.pool.n_streams
        assignments: list[list[tuple[int, int]]] = [[] for _ in range(n_streams)]
        for position, column in enumerate(columns):
            assignments[position % n_streams].append((position, column))

        start = perf_counter()
        futures = [
            self.pool.submit(slot, self._scan_stream, items, rows, basis, n_bins)
            for slot, items in enumerate(assignments)
            if items
        ]
        stream_bests = [future.result() for future in futures]
        self.pool.synchronize()
        self.hist_ms += (perf_counter() - start) * 1000.0
        self.columns_evaluated += len(columns)
        self.bin_batches += len(columns) * -(-n_bins // self.bin_batch_size)

        best: _Candidate | None = None
        for cand in stream_bests:
            if cand is None:
                continue
            if best is None or cand.gain > best.gain or (
                cand.gain == best.gain and cand.position < best.position
            ):
                best = cand
        if best is None:
            return no_split
        return SplitResult(
            question=Question(column=best.column, value=best.threshold),
            gain=best.gain,
            impurity=best.impurity,
            n_columns=len(columns),
        )

    def _scan_stream(
        self,
        ws: Workspace,
        items: Sequence[tuple[int, int]],
        rows: torch.Tensor,
        basis: ImpurityInfo,
        n_bins: int,
    ) -> _Candidate | None:
        """Evaluate the columns assigned to one stream, keeping that stream's best."""
        n_rows = int(rows.numel())
        best: _Candidate | None = None
        best_gain = 0.0
        with ws.activate():
            labels = ws.labels.narrow(0, 0, n_rows)
            torch.index_select(self.dataset.labels, 0, rows, out=labels)
            values = ws.values.narrow(0, 0, n_rows)
            for position, column in items:
                torch.index_select(self.dataset.column(column), 0, rows, out=values)
                values64 = values.to(torch.float64)
                lo, hi = torch.aminmax(values64)
                ws.transfer[0] = (hi - lo) / n_bins
                ws.transfer[1] = lo
                thresholds = candidate_thresholds(ws.transfer[1], ws.transfer[0], n_bins)

                for first in range(0, n_bins, self.bin_batch_size):
                    last = min(first + self.bin_batch_size, n_bins)
                    gains, left_hist = score_bins(
                        values64, labels, thresholds[first:last], basis, ws.histogram
                    )
                    lowest = float(gains.min().item())
                    if lowest < -GAIN_TOLERANCE:
                        raise InvariantViolation(
                            f"negative gain {lowest:.3e} on column {column}; impurity evaluator or data is corrupt"
                        )
                    gains = torch.where(gains > GAIN_TOLERANCE, gains, torch.zeros_like(gains))
                    local = int(torch.argmax(gains).item())
                    gain = float(gains[local].item())
                    if gain <= best_gain:
                        continue
                    delta, base = ws.read_transfer()
                    bin_index = first + local
                    left = ImpurityInfo.from_histogram(left_hist[local].clone())
                    right = ImpurityInfo.from_histogram(basis.histogram - left.histogram)
                    best_gain = gain
                    best = _Candidate(
                        position=position,
                        column=column,
                        bin_index=bin_index,
                        gain=gain,
                        threshold=threshold_for_bin(base, delta, bin_index),
                        impurity=SplitImpurity(basis=basis, left=left, right=right),
                    )
        return best
