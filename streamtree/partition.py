"""In-place partition of a contiguous row range."""

from __future__ import annotations

import torch

from .data import Dataset
from .errors import InvariantViolation
from .splitter import Question


def partition_rows(dataset: Dataset, question: Question, rows: torch.Tensor) -> tuple[int, int]:
    """Reorder ``rows`` in place so rows going left (``value <= threshold``) come first.

    ``rows`` must be a view into the shared row-index array. Relative order on
    each side is kept, although callers must not rely on it. Returns
    ``(left_count, right_count)``.
    """
    n_rows = int(rows.numel())
    if n_rows == 0:
        return 0, 0
    values = dataset.column(question.column).index_select(0, rows).to(torch.float64)
    goes_left = values <= question.value
    left = rows[goes_left]
    right = rows[~goes_left]
    left_count = int(left.numel())
    right_count = int(right.numel())
    if left_count + right_count != n_rows:
        raise InvariantViolation(
            f"partition lost rows: {left_count} + {right_count} != {n_rows}"
        )
    rows.copy_(torch.cat((left, right)))
    return left_count, right_count
