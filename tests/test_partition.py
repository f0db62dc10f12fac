import numpy as np
import pytest
import torch

from streamtree.data import build_dataset
from streamtree.partition import partition_rows
from streamtree.splitter import Question


def _dataset(values: list[float]):
    data = np.asarray([values], dtype=np.float32)
    labels = np.zeros(len(values), dtype=np.int64)
    return build_dataset(data, labels, None, torch.device("cpu"))


def test_partition_conserves_rows_in_place() -> None:
    dataset = _dataset([0.9, 0.1, 0.5, 0.7, 0.2, 0.6])
    rows = torch.arange(6, dtype=torch.int64)
    left, right = partition_rows(dataset, Question(column=0, value=0.5), rows)

    assert (left, right) == (3, 3)
    assert sorted(rows.tolist()) == list(range(6))
    column = dataset.column(0)
    assert torch.all(column[rows[:left]].double() <= 0.5)
    assert torch.all(column[rows[left:]].double() > 0.5)


def test_partition_only_touches_its_sub_range() -> None:
    dataset = _dataset([0.3, 0.8, 0.1, 0.9, 0.2, 0.4])
    rows = torch.tensor([5, 4, 3, 2, 1, 0], dtype=torch.int64)
    view = rows[1:5]
    left, right = partition_rows(dataset, Question(column=0, value=0.25), view)

    assert left + right == 4
    assert rows[0].item() == 5 and rows[5].item() == 0
    assert sorted(rows[1:5].tolist()) == [1, 2, 3, 4]
    assert sorted(rows[1:1 + left].tolist()) == [2, 4]


@pytest.mark.parametrize("threshold, expected", [(-1.0, (0, 4)), (10.0, (4, 0))])
def test_partition_one_sided(threshold: float, expected: tuple[int, int]) -> None:
    dataset = _dataset([1.0, 2.0, 3.0, 4.0])
    rows = torch.arange(4, dtype=torch.int64)
    assert partition_rows(dataset, Question(column=0, value=threshold), rows) == expected
    assert sorted(rows.tolist()) == [0, 1, 2, 3]


def test_partition_keeps_duplicate_row_ids() -> None:
    dataset = _dataset([0.0, 1.0])
    rows = torch.tensor([1, 0, 1, 0], dtype=torch.int64)
    left, right = partition_rows(dataset, Question(column=0, value=0.5), rows)
    assert (left, right) == (2, 2)
    assert rows.tolist() == [0, 0, 1, 1]
