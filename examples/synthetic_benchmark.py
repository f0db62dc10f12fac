"""Benchmark streamtree against scikit-learn's decision tree on synthetic data."""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

import numpy as np
import pandas as pd
from sklearn.datasets import make_classification
from sklearn.metrics import accuracy_score
from sklearn.model_selection import train_test_split
from sklearn.tree import DecisionTreeClassifier as SklearnTree

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from streamtree.classifier import DecisionTreeClassifier
from streamtree.config import TreeConfig
from streamtree.data import as_column_major


N_SAMPLES = 20000
N_FEATURES = 40
N_CLASSES = 4
SEED = 123

MAX_DEPTH = 10
N_BINS = 64
BIN_BATCH_SIZE = 16


@dataclass
class BenchmarkResult:
    name: str
    fit_time: float
    predict_time: float
    accuracy: float


def generate_data() -> tuple[np.ndarray, np.ndarray]:
    """Create a multi-class dataset with a handful of informative features."""
    X, y = make_classification(
        n_samples=N_SAMPLES,
        n_features=N_FEATURES,
        n_informative=12,
        n_redundant=8,
        n_classes=N_CLASSES,
        random_state=SEED,
    )
    return X.astype(np.float32), y.astype(np.int64)


def benchmark(
    name: str,
    fit_fn: Callable[[], None],
    predict_fn: Callable[[], np.ndarray],
    y_true: np.ndarray,
) -> BenchmarkResult:
    """Measure fit/predict time and compute accuracy."""
    t0 = time.perf_counter()
    fit_fn()
    fit_time = time.perf_counter() - t0

    t0 = time.perf_counter()
    preds = predict_fn()
    predict_time = time.perf_counter() - t0

    accuracy = float(accuracy_score(y_true, preds))
    return BenchmarkResult(name=name, fit_time=fit_time, predict_time=predict_time, accuracy=accuracy)


if __name__ == "__main__":
    X, y = generate_data()
    X_train, X_test, y_train, y_test = train_test_split(X, y, test_size=0.2, random_state=SEED)
    feature_names = [f"f{i}" for i in range(X_train.shape[1])]
    X_test_df = pd.DataFrame(X_test, columns=feature_names)
    data_train = as_column_major(X_train)

    results: List[BenchmarkResult] = []

    for n_streams in (1, 4):
        tree = DecisionTreeClassifier(
            TreeConfig(
                max_depth=MAX_DEPTH,
                n_bins=N_BINS,
                bin_batch_size=BIN_BATCH_SIZE,
                n_streams=n_streams,
                random_state=SEED,
            )
        )
        results.append(
            benchmark(
                f"streamtree/{n_streams}",
                lambda tree=tree: tree.fit(data_train, y_train),
                lambda tree=tree: tree.predict_many(X_test_df),
                y_test,
            )
        )
        print(tree.summary())

    sk_tree = SklearnTree(max_depth=MAX_DEPTH, random_state=SEED)
    results.append(
        benchmark(
            "sklearn",
            lambda: sk_tree.fit(X_train, y_train),
            lambda: sk_tree.predict(X_test),
            y_test,
        )
    )

    print("Model           Fit (s)   Predict (s)   Accuracy")
    print("-" * 50)
    for res in results:
        print(f"{res.name:<14} {res.fit_time:>8.3f} {res.predict_time:>12.3f} {res.accuracy:>9.4f}")
