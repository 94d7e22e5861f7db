"""
Interface for fitted locality-sensitive hashing models.
"""
import abc
from typing import Any, Hashable, Iterable, Iterator, Mapping, Tuple, Union

import numpy as np

from smqtk_core import Configurable, Pluggable
from smqtk_lsh.utils.validation import as_vector, iter_items


class LshModel (Configurable, Pluggable):
    """
    Fitted locality-sensitive hashing model interface.

    A model holds the immutable parameters of ``num_hash_tables`` hash
    functions drawn from one LSH family. Hashing a vector yields a signature
    with one value per table such that vectors close under the family's
    metric share values on some table with high probability.

    Each metric family provides its own implementation of this interface.
    Bucket indexing, approximate neighbor queries and similarity joins only
    rely on the methods below, so they work unchanged for any family.

    Models are read-only once constructed.
    """

    def __call__(self, v: Any) -> np.ndarray:
        return self.get_hash(v)

    @property
    @abc.abstractmethod
    def num_hash_tables(self) -> int:
        """
        :return: Number of hash tables (hash functions), which is also the
            length of every generated signature.
        """

    @property
    @abc.abstractmethod
    def input_dim(self) -> int:
        """
        :return: Dimensionality of the vectors this model hashes.
        """

    @abc.abstractmethod
    def get_hash(self, v: Any) -> np.ndarray:
        """
        Get the hash signature for the input vector.

        :param v: Vector to hash. Must be of ``input_dim`` length.

        :raises DimensionMismatch: Vector length differs from ``input_dim``.
        :raises InvalidArgument: Vector is not 1D or has non-finite values.

        :return: Signature as a numpy array of ``num_hash_tables`` values.

        """

    @abc.abstractmethod
    def key_distance(self, a: Any, b: Any) -> float:
        """
        Exact distance between two vectors under this family's metric.

        This is the ground truth used to rank and filter candidates.
        """

    @abc.abstractmethod
    def hash_distance(self, sig_a: np.ndarray, sig_b: np.ndarray) -> float:
        """
        Proxy distance between two hash signatures, used only to order
        candidates relative to each other. A value of 0 means the signatures
        collide on at least one table.
        """

    def transform(
        self,
        dataset: Union[Mapping[Hashable, Any], Iterable[Tuple[Hashable, Any]]]
    ) -> Iterator[Tuple[Hashable, np.ndarray, np.ndarray]]:
        """
        Augment each item of a dataset with its hash signature.

        :param dataset: Mapping of UIDs to vectors, or iterable of
            ``(uid, vector)`` pairs.

        :return: Iterator of ``(uid, vector, signature)`` triples in input
            order.

        """
        for uid, v in iter_items(dataset):
            v = as_vector(v, self.input_dim)
            yield uid, v, self.get_hash(v)
