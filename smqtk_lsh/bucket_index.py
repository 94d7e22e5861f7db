"""
Grouping of dataset items by hash bucket, per hash table.
"""
import collections
import logging
from types import MappingProxyType
from typing import (
    Any, Dict, Hashable, Iterable, Iterator, List, Mapping, Optional, Set,
    Tuple, Type, TypeVar, Union
)

import numpy as np

from smqtk_core import Configurable
from smqtk_core.configuration import (
    from_config_dict,
    make_default_config,
    to_config_dict
)
from smqtk_core.dict import merge_dict
from smqtk_dataprovider import KeyValueStore
from smqtk_dataprovider.exceptions import ReadOnlyError
from smqtk_dataprovider.impls.key_value_store.memory import MemoryKeyValueStore
from smqtk_descriptors.utils import parallel_map
from smqtk_lsh.exceptions import InvalidArgument
from smqtk_lsh.interfaces.lsh_model import LshModel
from smqtk_lsh.utils.validation import as_vector, check_signature, iter_items


LOG = logging.getLogger(__name__)
T_BI = TypeVar("T_BI", bound="BucketIndex")

# (table index, hash value on that table)
BucketKey = Tuple[int, int]


def bucket_keys(signature: np.ndarray) -> Iterator[BucketKey]:
    """
    Bucket keys of a hash signature, one per table.
    """
    return ((t, int(h)) for t, h in enumerate(signature))


class BucketIndex (Configurable):
    """
    Index of dataset items grouped by their hash value on every table of a
    fitted ``LshModel``.

    Items are hashed once when the index is built. Candidates for a query
    signature are the items sharing its bucket on *any* table
    (OR-amplification): more tables raise recall at the cost of more
    candidates to verify.

    Bucket membership is kept in a ``KeyValueStore`` mapping
    ``(table_index, hash_value)`` keys to sets of item UIDs. The index also
    keeps each item's vector and signature for exact distance refinement.

    An index is built exactly once and is read-only afterwards.
    """

    @classmethod
    def get_default_config(cls) -> Dict[str, Any]:
        default = super(BucketIndex, cls).get_default_config()
        default['bucket2uids_kvstore'] = \
            make_default_config(KeyValueStore.get_impls())
        return default

    @classmethod
    def from_config(
        cls: Type[T_BI],
        config_dict: Dict,
        merge_default: bool = True
    ) -> T_BI:
        if merge_default:
            config_dict = merge_dict(cls.get_default_config(), config_dict)

        kvs_conf = config_dict['bucket2uids_kvstore']
        if kvs_conf and kvs_conf['type']:
            config_dict['bucket2uids_kvstore'] = \
                from_config_dict(kvs_conf, KeyValueStore.get_impls())
        else:
            LOG.debug("No KeyValueStore impl given. Using in-memory store.")
            config_dict['bucket2uids_kvstore'] = None

        return super(BucketIndex, cls).from_config(config_dict, False)

    def __init__(self, bucket2uids_kvstore: Optional[KeyValueStore] = None):
        """
        :param bucket2uids_kvstore: KeyValueStore to hold bucket key to UID
            set relations. Its previous content is cleared on build. An
            in-memory store is used when not given.
        """
        super(BucketIndex, self).__init__()
        if bucket2uids_kvstore is None:
            bucket2uids_kvstore = MemoryKeyValueStore()
        self.bucket2uids_kvstore = bucket2uids_kvstore
        self._num_hash_tables: Optional[int] = None
        self._input_dim: Optional[int] = None
        self._vectors: Dict[Hashable, np.ndarray] = {}
        self._signatures: Dict[Hashable, np.ndarray] = {}

    def get_config(self) -> Dict[str, Any]:
        return {
            "bucket2uids_kvstore": to_config_dict(self.bucket2uids_kvstore),
        }

    @classmethod
    def build(
        cls: Type[T_BI],
        model: LshModel,
        items: Union[Mapping[Hashable, Any], Iterable[Tuple[Hashable, Any]]],
        bucket2uids_kvstore: Optional[KeyValueStore] = None,
        cores: Optional[int] = None,
        use_multiprocessing: bool = False
    ) -> T_BI:
        """
        Build a new index of the given items.

        See ``build_index`` for parameter and exception details.
        """
        index = cls(bucket2uids_kvstore)
        index.build_index(model, items, cores, use_multiprocessing)
        return index

    @classmethod
    def merge(
        cls: Type[T_BI],
        indices: Iterable["BucketIndex"],
        bucket2uids_kvstore: Optional[KeyValueStore] = None
    ) -> T_BI:
        """
        Merge partition-local indices into one.

        Input indices must have been built with the same model over disjoint
        sets of UIDs. Bucket UID sets sharing a key are unioned.

        :param indices: Built indices to merge.
        :param bucket2uids_kvstore: Optional store for the merged index.

        :raises InvalidArgument: No indices given, an index is not built,
            indices disagree on table count or input dimension, or a UID is
            present in more than one index.

        :return: New, merged index.

        """
        indices = list(indices)
        if not indices:
            raise InvalidArgument("No indices given to merge.")
        dims = {(i._num_hash_tables, i._input_dim) for i in indices}
        if None in {d[0] for d in dims}:
            raise InvalidArgument("Cannot merge an index that is not built.")
        if len(dims) > 1:
            raise InvalidArgument("Cannot merge indices built with different "
                                  "models: %s" % sorted(dims))

        merged = cls(bucket2uids_kvstore)
        merged._num_hash_tables, merged._input_dim = dims.pop()
        kvstore_update: Dict[Hashable, Set[Hashable]] = \
            collections.defaultdict(set)
        for idx in indices:
            overlap = merged._vectors.keys() & idx._vectors.keys()
            if overlap:
                raise InvalidArgument("UIDs present in more than one index: "
                                      "%s" % sorted(overlap, key=repr)[:10])
            merged._vectors.update(idx._vectors)
            merged._signatures.update(idx._signatures)
            for key, uids in idx.bucket_items():
                kvstore_update[key] |= uids
        LOG.debug("Merged %d indices into %d items over %d buckets",
                  len(indices), len(merged._vectors), len(kvstore_update))
        merged.bucket2uids_kvstore.clear()
        merged.bucket2uids_kvstore.add_many(kvstore_update)
        return merged

    def build_index(
        self,
        model: LshModel,
        items: Union[Mapping[Hashable, Any], Iterable[Tuple[Hashable, Any]]],
        cores: Optional[int] = None,
        use_multiprocessing: bool = False
    ) -> None:
        """
        Hash the given items with ``model`` and group their UIDs by bucket.

        Every item is validated before anything is hashed or stored. An empty
        collection of items yields an empty index.

        :param model: Fitted LSH model.
        :param items: Mapping of UIDs to vectors, or iterable of
            ``(uid, vector)`` pairs. UIDs must be hashable and comparable to
            each other.
        :param cores: Number of parallel workers for hashing. All available
            cores by default.
        :param use_multiprocessing: Hash in worker processes instead of
            threads.

        :raises ReadOnlyError: This index was already built.
        :raises InvalidArgument: Duplicate UID, or a vector that is not 1D or
            has non-finite values.
        :raises DimensionMismatch: A vector's length differs from the model's
            input dimension.

        """
        if self._num_hash_tables is not None:
            raise ReadOnlyError("BucketIndex is already built and cannot be "
                                "modified.")

        LOG.debug("Validating items")
        vectors: Dict[Hashable, np.ndarray] = {}
        for uid, v in iter_items(items):
            if uid in vectors:
                raise InvalidArgument("Duplicate UID in items: %r" % (uid,))
            vectors[uid] = as_vector(v, model.input_dim)
        uids: List[Hashable] = list(vectors)

        LOG.debug("Generating hash codes for %d items", len(uids))
        signatures: Dict[Hashable, np.ndarray] = {}
        if uids:
            signatures = dict(zip(uids, parallel_map(
                model.get_hash, [vectors[u] for u in uids],
                cores=cores, ordered=True,
                use_multiprocessing=use_multiprocessing,
            )))

        LOG.debug("Grouping UIDs by bucket")
        # Aggregate in ``kvstore_update`` for a single store update after the
        # loop.
        kvstore_update: Dict[Hashable, Set[Hashable]] = \
            collections.defaultdict(set)
        for uid in uids:
            for key in bucket_keys(signatures[uid]):
                kvstore_update[key].add(uid)
        LOG.debug("-- %d non-empty buckets over %d tables",
                  len(kvstore_update), model.num_hash_tables)

        self.bucket2uids_kvstore.clear()
        self.bucket2uids_kvstore.add_many(kvstore_update)
        self._vectors = vectors
        self._signatures = signatures
        self._input_dim = model.input_dim
        self._num_hash_tables = model.num_hash_tables

    def is_built(self) -> bool:
        return self._num_hash_tables is not None

    def check_model(self, model: LshModel) -> None:
        """
        :raises InvalidArgument: This index was built with a model of a
            different table count or input dimension than ``model``.
        """
        if self.is_built() and (
                self._num_hash_tables != model.num_hash_tables or
                self._input_dim != model.input_dim):
            raise InvalidArgument(
                "Index was built with %d table(s) over %d dimension(s), model "
                "has %d table(s) over %d dimension(s)."
                % (self._num_hash_tables, self._input_dim,
                   model.num_hash_tables, model.input_dim)
            )

    @property
    def num_hash_tables(self) -> Optional[int]:
        """
        :return: Table count of the model this index was built with, or
            ``None`` if not built yet.
        """
        return self._num_hash_tables

    @property
    def input_dim(self) -> Optional[int]:
        return self._input_dim

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, uid: Hashable) -> bool:
        return uid in self._vectors

    def count(self) -> int:
        """
        :return: Number of items in this index.
        """
        return len(self._vectors)

    def uids(self) -> List[Hashable]:
        return list(self._vectors)

    def vectors(self) -> Mapping[Hashable, np.ndarray]:
        """
        :return: Read-only mapping view of UIDs to indexed vectors.
        """
        return MappingProxyType(self._vectors)

    def vector(self, uid: Hashable) -> np.ndarray:
        """
        :raises KeyError: UID not in this index.
        """
        return self._vectors[uid]

    def signature(self, uid: Hashable) -> np.ndarray:
        """
        :raises KeyError: UID not in this index.
        """
        return self._signatures[uid]

    def signatures(self) -> Iterator[Tuple[Hashable, np.ndarray]]:
        return iter(self._signatures.items())

    def bucket(self, table_index: int, hash_value: int) -> Set[Hashable]:
        """
        :return: Set of UIDs in the bucket of the given table and hash value.
            Empty if there is no such bucket.
        """
        return set(self.bucket2uids_kvstore.get((table_index, int(hash_value)),
                                                set()))

    def bucket_items(self) -> Iterator[Tuple[BucketKey, Set[Hashable]]]:
        """
        :return: Iterator of ``((table_index, hash_value), uid_set)`` pairs
            over all non-empty buckets.
        """
        kvs = self.bucket2uids_kvstore
        return ((k, kvs.get(k)) for k in kvs.keys())

    def buckets(self, table_index: int) -> Dict[int, Set[Hashable]]:
        """
        :return: Mapping of hash values to UID sets for one table.
        """
        return {k[1]: set(v) for k, v in self.bucket_items()
                if k[0] == table_index}

    def candidates_for(self, signature: np.ndarray) -> Set[Hashable]:
        """
        Get the UIDs of items sharing the signature's bucket on at least one
        table.

        :param signature: Hash signature of the query, as generated by the
            model this index was built with.

        :raises DimensionMismatch: Signature length differs from the table
            count of this index.

        :return: Set of candidate UIDs, empty for an empty or unbuilt index.

        """
        if not self.is_built():
            return set()
        signature = check_signature(signature, self._num_hash_tables)
        candidates: Set[Hashable] = set()
        for key in bucket_keys(signature):
            candidates |= self.bucket2uids_kvstore.get(key, set())
        return candidates
