import json
import unittest
import unittest.mock as mock

import numpy as np

from smqtk_lsh.exceptions import InvalidArgument
from smqtk_lsh.impls.lsh_family.bucketed_rp import (
    BucketedRandomProjectionLSH,
    generate_random_unit_vectors,
    normalize_rows,
)
from smqtk_lsh.impls.lsh_model.bucketed_rp import (
    BucketedRandomProjectionLSHModel
)


class TestGenerateRandomUnitVectors (unittest.TestCase):

    def test_shape_and_unit_rows(self) -> None:
        m = generate_random_unit_vectors(16, 5, 0)
        self.assertEqual(m.shape, (5, 16))
        np.testing.assert_allclose(np.linalg.norm(m, axis=1), np.ones(5))

    def test_deterministic(self) -> None:
        m1 = generate_random_unit_vectors(8, 3, 12345)
        m2 = generate_random_unit_vectors(8, 3, 12345)
        np.testing.assert_array_equal(m1, m2)
        self.assertEqual(m1.tobytes(), m2.tobytes())

    def test_different_seeds(self) -> None:
        m1 = generate_random_unit_vectors(8, 3, 1)
        m2 = generate_random_unit_vectors(8, 3, 2)
        self.assertFalse(np.array_equal(m1, m2))

    def test_negative_and_large_seeds(self) -> None:
        # Any 64-bit signed integer is a valid seed.
        for seed in (-1, -2**63, 2**63 - 1):
            np.testing.assert_array_equal(
                generate_random_unit_vectors(4, 2, seed),
                generate_random_unit_vectors(4, 2, seed),
            )
        self.assertFalse(np.array_equal(
            generate_random_unit_vectors(4, 2, -1),
            generate_random_unit_vectors(4, 2, 1),
        ))

    def test_row_major_layout(self) -> None:
        # Rows are consecutive chunks of the drawn values.
        drawn = np.arange(1, 7, dtype=float)
        with mock.patch('smqtk_lsh.impls.lsh_family.bucketed_rp.np.random'
                        '.default_rng') as m_rng:
            m_rng.return_value.standard_normal.return_value = drawn.copy()
            m = generate_random_unit_vectors(3, 2, 0)
        m_rng.return_value.standard_normal.assert_called_once_with(6)
        np.testing.assert_allclose(
            m,
            [[1, 2, 3] / np.linalg.norm([1, 2, 3]),
             [4, 5, 6] / np.linalg.norm([4, 5, 6])]
        )

    def test_zero_norm_row_left_unnormalized(self) -> None:
        with mock.patch('smqtk_lsh.impls.lsh_family.bucketed_rp.np.random'
                        '.default_rng') as m_rng:
            m_rng.return_value.standard_normal.return_value = \
                np.array([0., 0., 3., 4.])
            m = generate_random_unit_vectors(2, 2, 0)
        np.testing.assert_array_equal(m[0], [0., 0.])
        np.testing.assert_allclose(m[1], [.6, .8])

    def test_read_only(self) -> None:
        m = generate_random_unit_vectors(4, 2, 0)
        self.assertRaises(ValueError, m.__setitem__, (0, 0), 1.0)

    def test_invalid_arguments(self) -> None:
        self.assertRaises(InvalidArgument, generate_random_unit_vectors, 0, 1, 0)
        self.assertRaises(InvalidArgument, generate_random_unit_vectors, -2, 1, 0)
        self.assertRaises(InvalidArgument, generate_random_unit_vectors, 3, 0, 0)
        self.assertRaises(InvalidArgument, generate_random_unit_vectors, 3, -1, 0)


class TestNormalizeRows (unittest.TestCase):

    def test_normalize(self) -> None:
        m = np.array([[3., 4.], [0., 0.], [0., -2.]])
        r = normalize_rows(m)
        self.assertIs(r, m)
        np.testing.assert_array_equal(r, [[.6, .8], [0., 0.], [0., -1.]])


class TestBucketedRandomProjectionLSH (unittest.TestCase):

    def test_invalid_parameters(self) -> None:
        self.assertRaises(InvalidArgument, BucketedRandomProjectionLSH,
                          num_hash_tables=0)
        self.assertRaises(InvalidArgument, BucketedRandomProjectionLSH,
                          num_hash_tables=-4)
        self.assertRaises(InvalidArgument, BucketedRandomProjectionLSH,
                          bucket_length=0)
        self.assertRaises(InvalidArgument, BucketedRandomProjectionLSH,
                          bucket_length=-1.0)
        self.assertRaises(InvalidArgument, BucketedRandomProjectionLSH,
                          bucket_length=float('inf'))
        self.assertRaises(InvalidArgument, BucketedRandomProjectionLSH,
                          bucket_length=float('nan'))
        self.assertRaises(InvalidArgument, BucketedRandomProjectionLSH,
                          random_seed=1.5)

    def test_config(self) -> None:
        f = BucketedRandomProjectionLSH(num_hash_tables=3, bucket_length=2.5,
                                        random_seed=7)
        c = f.get_config()
        self.assertEqual(c, {
            "num_hash_tables": 3,
            "bucket_length": 2.5,
            "random_seed": 7,
        })
        # JSON compliant
        json.dumps(c)
        f2 = BucketedRandomProjectionLSH.from_config(c)
        self.assertEqual(f2.get_config(), c)

    def test_fit(self) -> None:
        f = BucketedRandomProjectionLSH(num_hash_tables=4, bucket_length=0.5,
                                        random_seed=42)
        m = f.fit([('a', [1., 2., 3.]), ('b', [3., 2., 1.])])
        self.assertIsInstance(m, BucketedRandomProjectionLSHModel)
        self.assertEqual(m.num_hash_tables, 4)
        self.assertEqual(m.input_dim, 3)
        self.assertEqual(m.bucket_length, 0.5)
        self.assertTrue(m.uid.startswith("brp-lsh_"))
        np.testing.assert_array_equal(m.rand_unit_vectors,
                                      generate_random_unit_vectors(3, 4, 42))

    def test_fit_reproducible(self) -> None:
        f = BucketedRandomProjectionLSH(num_hash_tables=2, random_seed=3)
        m1 = f.fit_dim(10)
        m2 = f.fit_dim(10)
        self.assertEqual(m1, m2)
        # Each fitted stage still has its own identity.
        self.assertNotEqual(m1.uid, m2.uid)

    def test_default_seed(self) -> None:
        f1 = BucketedRandomProjectionLSH(num_hash_tables=2)
        f2 = BucketedRandomProjectionLSH(num_hash_tables=2)
        self.assertIsNone(f1.random_seed)
        self.assertEqual(f1.fit_dim(5), f2.fit_dim(5))
        np.testing.assert_array_equal(
            f1.fit_dim(5).rand_unit_vectors,
            generate_random_unit_vectors(
                5, 2, BucketedRandomProjectionLSH.default_seed()
            )
        )

    def test_fit_empty(self) -> None:
        f = BucketedRandomProjectionLSH()
        self.assertRaises(InvalidArgument, f.fit, [])

    def test_end_to_end_hash_length(self) -> None:
        f = BucketedRandomProjectionLSH(num_hash_tables=6, bucket_length=1.0,
                                        random_seed=0)
        rng = np.random.default_rng(0)
        data = rng.normal(size=(20, 12))
        m = f.fit(enumerate(data))
        for v in data:
            self.assertEqual(m.get_hash(v).shape, (6,))
