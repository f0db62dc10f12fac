import unittest

import numpy as np
import pandas as pd
from sklearn.datasets import load_iris, make_classification

from streamtree.wrapper import StreamTreeClassifier


class SklearnWrapperTest(unittest.TestCase):
    def test_sklearn_wrapper_deterministic(self) -> None:
        X, y = make_classification(
            n_samples=300, n_features=8, n_informative=4, n_classes=3, random_state=123
        )

        est1 = StreamTreeClassifier(
            max_depth=5,
            column_fraction=0.6,
            n_bins=16,
            bin_batch_size=4,
            n_streams=1,
            random_state=7,
        )
        est1.fit(X, y)
        preds1 = est1.predict(X)

        est2 = StreamTreeClassifier(
            max_depth=5,
            column_fraction=0.6,
            n_bins=16,
            bin_batch_size=4,
            n_streams=4,
            random_state=7,
        )
        est2.fit(X, y)
        preds2 = est2.predict(X)

        self.assertEqual(preds1.shape, (X.shape[0],))
        self.assertTrue(np.array_equal(preds1, preds2))
        self.assertEqual(est1.get_tree().render(), est2.get_tree().render())

    def test_iris_training_accuracy(self) -> None:
        X, y = load_iris(return_X_y=True)
        est = StreamTreeClassifier(n_bins=32, random_state=0).fit(X, y)
        self.assertGreaterEqual(est.score(X, y), 0.95)
        self.assertEqual(est.n_features_in_, 4)

    def test_string_labels_and_dataframe_input(self) -> None:
        X, y = load_iris(return_X_y=True)
        names = np.array(["setosa", "versicolor", "virginica"])[y]
        frame = pd.DataFrame(X, columns=["sl", "sw", "pl", "pw"])
        est = StreamTreeClassifier(max_depth=3, random_state=1).fit(frame, pd.Series(names))
        self.assertEqual(list(est.classes_), ["setosa", "versicolor", "virginica"])
        preds = est.predict(frame)
        self.assertTrue(set(preds) <= set(est.classes_))
        self.assertGreater(np.mean(preds == names), 0.9)

    def test_sample_rows_restricts_training(self) -> None:
        X = np.array([[0.0], [1.0], [2.0], [3.0]])
        y = np.array([0, 0, 1, 1])
        est = StreamTreeClassifier(random_state=0).fit(X, y, sample_rows=[2, 3])
        self.assertTrue(est.get_tree().root.is_leaf)
        self.assertTrue(np.array_equal(est.predict(X), np.array([1, 1, 1, 1])))

    def test_predict_before_fit_raises(self) -> None:
        with self.assertRaises(RuntimeError):
            StreamTreeClassifier().predict(np.zeros((1, 2)))


if __name__ == "__main__":
    unittest.main()
