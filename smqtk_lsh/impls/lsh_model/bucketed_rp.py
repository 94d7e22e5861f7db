from io import BytesIO
import logging
from typing import Any, Dict, Optional, Sequence, Union
import uuid

import numpy as np

from smqtk_dataprovider import DataElement
from smqtk_dataprovider.exceptions import ReadOnlyError
from smqtk_lsh.exceptions import InvalidArgument
from smqtk_lsh.interfaces.lsh_model import LshModel
from smqtk_lsh.utils import metrics
from smqtk_lsh.utils.validation import (
    as_vector,
    check_positive_float,
    check_signature,
)


LOG = logging.getLogger(__name__)


def random_uid(prefix: str) -> str:
    """
    Generate a unique identifier for a fitted stage, e.g.
    ``brp-lsh_8f0c2a7d4e1b``.
    """
    return "%s_%s" % (prefix, uuid.uuid4().hex[:12])


class BucketedRandomProjectionLSHModel (LshModel):
    """
    Model produced by ``BucketedRandomProjectionLSH``, holding multiple random
    unit vectors. Each vector ``r_i`` is used in one hash function:

        h_i(x) = floor(r_i . x / bucket_length)

    The number of distinct buckets a table produces over a dataset is about
    ``(max L2 norm of input vectors) / bucket_length``.

    The random vector matrix is copied on construction and marked read-only,
    so a model may be shared freely between threads and processes.
    """

    @classmethod
    def is_usable(cls) -> bool:
        return True

    def __init__(
        self,
        rand_unit_vectors: Union[np.ndarray, Sequence[Sequence[float]]],
        bucket_length: float = 1.0,
        uid: Optional[str] = None
    ):
        """
        Initialize a model around existing hash function parameters.

        :param rand_unit_vectors: Matrix of shape
            ``(num_hash_tables, input_dim)``, one projection direction per
            row.
        :param bucket_length: Length of each hash bucket along a projection
            direction. Larger buckets lower the false negative rate.
        :param uid: Identifier of this fitted model. A new one is generated
            when not given.

        :raises InvalidArgument: Non-positive bucket length, or a matrix that
            is not 2D with at least one row and one column of finite values.

        """
        super(BucketedRandomProjectionLSHModel, self).__init__()
        rm = np.array(rand_unit_vectors, dtype=np.float64)
        if rm.ndim != 2 or 0 in rm.shape:
            raise InvalidArgument("Random unit vector matrix must be 2D and "
                                  "non-empty, got shape %s." % (rm.shape,))
        if not np.isfinite(rm).all():
            raise InvalidArgument("Random unit vector matrix contains NaN or "
                                  "infinite values.")
        rm.setflags(write=False)
        self._rand_matrix = rm
        self._bucket_length = check_positive_float(bucket_length,
                                                   "bucket_length")
        self._uid = uid or random_uid("brp-lsh")

    def __repr__(self) -> str:
        return "BucketedRandomProjectionLSHModel: uid=%s, numHashTables=%d" \
            % (self._uid, self.num_hash_tables)

    @property
    def uid(self) -> str:
        return self._uid

    @property
    def bucket_length(self) -> float:
        return self._bucket_length

    @property
    def rand_unit_vectors(self) -> np.ndarray:
        """
        :return: Read-only ``(num_hash_tables, input_dim)`` matrix.
        """
        return self._rand_matrix

    @property
    def num_hash_tables(self) -> int:
        return self._rand_matrix.shape[0]

    @property
    def input_dim(self) -> int:
        return self._rand_matrix.shape[1]

    def get_config(self) -> Dict[str, Any]:
        return {
            "rand_unit_vectors": self._rand_matrix.tolist(),
            "bucket_length": self._bucket_length,
            "uid": self._uid,
        }

    def get_hash(self, v: Any) -> np.ndarray:
        v = as_vector(v, self.input_dim)
        return np.floor(self._rand_matrix.dot(v) / self._bucket_length)

    def key_distance(self, a: Any, b: Any) -> float:
        """
        Euclidean distance between the two vectors.
        """
        return float(metrics.euclidean_distance(
            as_vector(a, self.input_dim), as_vector(b, self.input_dim)
        ))

    def hash_distance(self, sig_a: np.ndarray, sig_b: np.ndarray) -> float:
        """
        Minimum squared difference between the signatures over all tables,
        or ``0.0`` as soon as one table matches.
        """
        return metrics.min_table_distance(
            check_signature(sig_a, self.num_hash_tables),
            check_signature(sig_b, self.num_hash_tables),
        )

    def save(self, data_element: DataElement) -> None:
        """
        Write this model's parameters to the given data element.

        Parameters are stored as ``.npz`` bytes: the row-major matrix, its
        dimensions, the bucket length and this model's uid.

        :raises ReadOnlyError: The data element is not writable.

        """
        if data_element.is_read_only():
            raise ReadOnlyError("Cannot save model to read-only data element "
                                "(%s)." % data_element)
        buff = BytesIO()
        # noinspection PyTypeChecker
        np.savez(buff,
                 rand_unit_vectors=self._rand_matrix,
                 num_hash_tables=self.num_hash_tables,
                 input_dim=self.input_dim,
                 bucket_length=self._bucket_length,
                 uid=np.array(self._uid))
        data_element.set_bytes(buff.getvalue())
        LOG.debug("Saved %r to %s", self, data_element)

    @classmethod
    def load(cls, data_element: DataElement) -> "BucketedRandomProjectionLSHModel":
        """
        Reconstruct a model from parameters previously written by ``save``.

        :raises InvalidArgument: The element is empty or does not hold
            consistent model parameters.

        """
        if data_element.is_empty():
            raise InvalidArgument("No model parameters in empty data element "
                                  "(%s)." % data_element)
        buff = BytesIO(data_element.get_bytes())
        try:
            with np.load(buff, allow_pickle=False) as npz:
                rm = npz['rand_unit_vectors']
                shape = (int(npz['num_hash_tables']), int(npz['input_dim']))
                bucket_length = float(npz['bucket_length'])
                uid = str(npz['uid'])
        except (AttributeError, KeyError, OSError, TypeError, ValueError) as ex:
            raise InvalidArgument("Data element (%s) does not hold model "
                                  "parameters: %s" % (data_element, ex))
        if rm.shape != shape:
            raise InvalidArgument("Stored matrix shape %s does not match "
                                  "stored dimensions %s."
                                  % (rm.shape, shape))
        return cls(rm, bucket_length, uid)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BucketedRandomProjectionLSHModel):
            return NotImplemented
        return (
            self._bucket_length == other._bucket_length and
            np.array_equal(self._rand_matrix, other._rand_matrix)
        )

    def __hash__(self) -> int:
        return hash((self._bucket_length, self._rand_matrix.tobytes()))
