import numpy as np
import pytest
import torch

import streamtree.splitter as splitter_mod
from streamtree.data import build_dataset
from streamtree.errors import InvariantViolation
from streamtree.resources import StreamPool
from streamtree.splitter import SplitFinder, sample_columns


def _seeded(seed: int = 0) -> torch.Generator:
    gen = torch.Generator(device="cpu")
    gen.manual_seed(seed)
    return gen


def _finder(data: np.ndarray, labels: np.ndarray, *, n_streams: int = 1, n_bins: int = 8,
            bin_batch_size: int | None = None, column_fraction: float = 1.0):
    device = torch.device("cpu")
    dataset = build_dataset(data, labels, None, device)
    pool = StreamPool(n_streams, device)
    batch = bin_batch_size or n_bins
    pool.acquire(dataset.nrows, dataset.n_classes, batch)
    finder = SplitFinder(
        dataset, pool, n_bins=n_bins, bin_batch_size=batch, column_fraction=column_fraction
    )
    rows = torch.arange(dataset.nrows, dtype=torch.int64)
    return finder, pool, rows


def _informative_data(seed: int = 1) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    n = 120
    noise = rng.normal(size=(4, n)).astype(np.float32)
    signal = rng.uniform(0.0, 1.0, size=n).astype(np.float32)
    labels = (signal > 0.5).astype(np.int64)
    data = np.vstack([noise[:2], signal[None, :], noise[2:]])
    return data, labels


def test_sample_columns_is_seeded_permutation() -> None:
    a = sample_columns(10, 0.5, _seeded(3))
    b = sample_columns(10, 0.5, _seeded(3))
    assert a == b
    assert len(a) == 5
    assert len(set(a)) == 5
    assert all(0 <= c < 10 for c in a)
    assert sorted(sample_columns(6, 1.0, _seeded(1))) == list(range(6))
    assert sample_columns(6, 0.0, _seeded(1)) == []


@pytest.mark.parametrize(
    "ncols, fraction, expected",
    [(5, 0.5, 3), (3, 0.5, 2), (10, 0.25, 3), (7, 0.5, 4), (4, 0.1, 0), (4, 0.125, 1)],
)
def test_sample_columns_rounds_half_up(ncols: int, fraction: float, expected: int) -> None:
    assert len(sample_columns(ncols, fraction, _seeded(0))) == expected


def test_find_best_picks_informative_column() -> None:
    data, labels = _informative_data()
    finder, pool, rows = _finder(data, labels, n_bins=16)
    try:
        result = finder.find_best(rows, _seeded())
    finally:
        pool.release()

    assert result.found
    assert result.question.column == 2
    assert 0.3 < result.question.value < 0.7
    assert result.gain > 0.0
    imp = result.impurity
    assert imp.left.n_rows + imp.right.n_rows == imp.basis.n_rows == data.shape[1]
    assert result.gain == pytest.approx(
        imp.basis.purity
        - (imp.left.n_rows * imp.left.purity + imp.right.n_rows * imp.right.purity) / data.shape[1]
    )


def test_ties_keep_earliest_column_in_subsample_order() -> None:
    column = np.array([0.1, 0.2, 0.8, 0.9], dtype=np.float32)
    data = np.vstack([column, column, column])
    labels = np.array([0, 0, 1, 1])
    order = sample_columns(3, 1.0, _seeded(7))
    finder, pool, rows = _finder(data, labels, n_streams=2, n_bins=4)
    try:
        result = finder.find_best(rows, _seeded(7))
    finally:
        pool.release()
    assert result.question.column == order[0]


@pytest.mark.parametrize("n_streams", [2, 3, 5])
def test_stream_count_does_not_change_result(n_streams: int) -> None:
    data, labels = _informative_data(seed=4)
    reference, pool, rows = _finder(data, labels, n_streams=1, bin_batch_size=3)
    try:
        expected = reference.find_best(rows, _seeded(11))
    finally:
        pool.release()

    finder, pool, rows = _finder(data, labels, n_streams=n_streams, bin_batch_size=3)
    try:
        got = finder.find_best(rows, _seeded(11))
    finally:
        pool.release()

    assert got.question == expected.question
    assert got.gain == expected.gain
    assert got.impurity.left.histogram.tolist() == expected.impurity.left.histogram.tolist()


def test_empty_column_subsample_yields_zero_gain() -> None:
    data, labels = _informative_data()
    finder, pool, rows = _finder(data, labels, column_fraction=0.0)
    try:
        result = finder.find_best(rows, _seeded())
    finally:
        pool.release()
    assert not result.found
    assert result.gain == 0.0
    assert result.n_columns == 0
    assert result.impurity.basis.n_rows == data.shape[1]


def test_reuses_supplied_basis() -> None:
    data, labels = _informative_data()
    finder, pool, rows = _finder(data, labels)
    basis = finder.basis(rows)
    try:
        result = finder.find_best(rows, _seeded(), basis)
    finally:
        pool.release()
    assert result.impurity.basis is basis


def test_negative_gain_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    real_score = splitter_mod.score_bins

    def corrupt(*args, **kwargs):
        gains, left = real_score(*args, **kwargs)
        return gains - 1.0, left

    monkeypatch.setattr(splitter_mod, "score_bins", corrupt)
    data, labels = _informative_data()
    finder, pool, rows = _finder(data, labels, n_streams=2)
    try:
        with pytest.raises(InvariantViolation, match="negative gain"):
            finder.find_best(rows, _seeded())
    finally:
        pool.release()


def test_counters_track_columns_and_batches() -> None:
    data, labels = _informative_data()
    finder, pool, rows = _finder(data, labels, n_bins=8, bin_batch_size=3)
    try:
        finder.find_best(rows, _seeded())
    finally:
        pool.release()
    assert finder.columns_evaluated == data.shape[0]
    assert finder.bin_batches == data.shape[0] * 3
