import logging
from typing import Any, Dict, Optional
import zlib

import numpy as np

from smqtk_lsh.exceptions import InvalidArgument
from smqtk_lsh.interfaces.lsh_family import LshFamily
from smqtk_lsh.impls.lsh_model.bucketed_rp import (
    BucketedRandomProjectionLSHModel,
    random_uid,
)
from smqtk_lsh.utils.validation import check_positive_float, check_positive_int


LOG = logging.getLogger(__name__)

# Seeds are 64-bit signed integers. numpy wants a non-negative seed, so
# negative values are taken as their unsigned two's complement.
UINT64_MASK = (1 << 64) - 1


def normalize_rows(values: np.ndarray) -> np.ndarray:
    """
    Scale each row of the given matrix, in place, to unit L2 norm.

    Rows whose norm is exactly zero are left untouched rather than divided by
    zero, so callers must tolerate such a row not being of unit length.

    :param values: 2D float matrix to normalize.

    :return: The same matrix instance.

    """
    norms = np.linalg.norm(values, axis=1)
    nz = norms != 0
    if not nz.all():
        LOG.debug("%d zero-norm projection row(s) left unnormalized",
                  np.count_nonzero(~nz))
    values[nz] /= norms[nz, np.newaxis]
    return values


def generate_random_unit_vectors(
    input_dim: int,
    num_hash_tables: int,
    seed: int
) -> np.ndarray:
    """
    Draw the hash function parameters for euclidean distance LSH.

    ``num_hash_tables * input_dim`` values are drawn from a standard normal
    distribution and laid out row-major into ``num_hash_tables`` rows of
    length ``input_dim``, each of which is then normalized to unit length.

    The same arguments always produce a bit-identical matrix.

    :param input_dim: Dimensionality of the vectors to be hashed.
    :param num_hash_tables: Number of hash functions (rows).
    :param seed: 64-bit integer random seed.

    :raises InvalidArgument: ``input_dim`` or ``num_hash_tables`` is not a
        positive integer.

    :return: Read-only ``(num_hash_tables, input_dim)`` float matrix.

    """
    input_dim = check_positive_int(input_dim, "input_dim")
    num_hash_tables = check_positive_int(num_hash_tables, "num_hash_tables")
    rng = np.random.default_rng(int(seed) & UINT64_MASK)
    values = rng.standard_normal(num_hash_tables * input_dim)
    m = normalize_rows(values.reshape(num_hash_tables, input_dim))
    m.setflags(write=False)
    return m


class BucketedRandomProjectionLSH (LshFamily):
    """
    Locality sensitive hashing family for euclidean distance.

    Input vectors are points in euclidean space. Each of the
    ``num_hash_tables`` hash functions projects a point onto a random unit
    direction and cuts that line into buckets of ``bucket_length``. Points
    close to each other fall in the same bucket of some table with high
    probability.

    References:

    1. https://en.wikipedia.org/wiki/Locality-sensitive_hashing#Stable_distributions

    2. Wang, Jingdong et al. "Hashing for similarity search: A survey." arXiv
       preprint arXiv:1408.2927 (2014).

    """

    @classmethod
    def is_usable(cls) -> bool:
        return True

    @classmethod
    def default_seed(cls) -> int:
        """
        Stable seed derived from the class name, used when none is given.
        """
        return zlib.crc32(cls.__name__.encode('utf-8'))

    def __init__(
        self,
        num_hash_tables: int = 1,
        bucket_length: float = 1.0,
        random_seed: Optional[int] = None
    ):
        """
        :param num_hash_tables: Number of hash tables. More tables lower the
            false negative rate at the cost of more candidates to check.
        :param bucket_length: Length of each hash bucket, a larger bucket
            lowers the false negative rate. If input vectors are normalized,
            1-10 times ``pow(numRecords, -1/inputDim)`` is a reasonable value.
        :param random_seed: Integer seed for drawing projections. ``None``
            uses ``default_seed()``.

        :raises InvalidArgument: Non-positive ``num_hash_tables`` or
            ``bucket_length``.

        """
        super(BucketedRandomProjectionLSH, self).__init__()
        self.num_hash_tables = check_positive_int(num_hash_tables,
                                                  "num_hash_tables")
        self.bucket_length = check_positive_float(bucket_length,
                                                  "bucket_length")
        if random_seed is not None and (
                isinstance(random_seed, bool) or int(random_seed) != random_seed):
            raise InvalidArgument("random_seed must be an integer, got %r."
                                  % (random_seed,))
        self.random_seed = random_seed

    def get_config(self) -> Dict[str, Any]:
        return {
            "num_hash_tables": self.num_hash_tables,
            "bucket_length": self.bucket_length,
            "random_seed": self.random_seed,
        }

    def _create_model(self, input_dim: int) -> BucketedRandomProjectionLSHModel:
        seed = self.random_seed
        if seed is None:
            seed = self.default_seed()
        LOG.debug("Generating %d random projection(s) of dimension %d "
                  "(seed=%d)", self.num_hash_tables, input_dim, seed)
        rm = generate_random_unit_vectors(input_dim, self.num_hash_tables, seed)
        return BucketedRandomProjectionLSHModel(rm, self.bucket_length,
                                                random_uid("brp-lsh"))
