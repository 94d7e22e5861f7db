import unittest

import numpy as np

from smqtk_lsh.utils import metrics


class TestEuclideanDistance (unittest.TestCase):

    v1 = np.array([0., 0.])
    v2 = np.array([3., 4.])
    v3 = np.array([1., 1.])

    m1 = np.array([v1, v2, v3])

    def test_vectors(self) -> None:
        self.assertEqual(metrics.euclidean_distance(self.v1, self.v2), 5.)
        self.assertEqual(metrics.euclidean_distance(self.v2, self.v1), 5.)
        self.assertEqual(metrics.euclidean_distance(self.v3, self.v3), 0.)

    def test_input_format(self) -> None:
        # vector against each row of a matrix
        np.testing.assert_allclose(
            metrics.euclidean_distance(self.v1, self.m1),
            [0., 5., np.sqrt(2)]
        )
        np.testing.assert_allclose(
            metrics.euclidean_distance(self.m1, self.m1),
            [0., 0., 0.]
        )


class TestMinTableDistance (unittest.TestCase):

    def test_match_is_zero(self) -> None:
        self.assertEqual(metrics.min_table_distance([4., 1.], [2., 1.]), 0.0)
        self.assertEqual(metrics.min_table_distance([1.], [1.]), 0.0)

    def test_minimum(self) -> None:
        self.assertEqual(
            metrics.min_table_distance([0., 0., 0.], [-3., 2., 5.]), 4.0
        )

    def test_early_exit_same_as_full_scan(self) -> None:
        rng = np.random.default_rng(0)
        for _ in range(100):
            a = np.floor(rng.normal(size=4) * 2)
            b = np.floor(rng.normal(size=4) * 2)
            self.assertEqual(metrics.min_table_distance(a, b),
                             float(np.min((a - b) ** 2)))

    def test_empty(self) -> None:
        self.assertEqual(metrics.min_table_distance([], []), float('inf'))
