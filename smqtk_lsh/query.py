"""
Approximate k-nearest-neighbor queries against a ``BucketIndex``.
"""
import functools
import heapq
import itertools
import logging
from typing import (
    Any, Hashable, Iterable, List, Mapping, Optional, Sequence, Set, Tuple
)

import numpy as np

from smqtk_descriptors.utils import parallel_map
from smqtk_lsh.bucket_index import BucketIndex
from smqtk_lsh.interfaces.lsh_model import LshModel
from smqtk_lsh.utils.validation import (
    as_vector,
    check_distance_threshold,
    check_positive_int,
)


LOG = logging.getLogger(__name__)

Neighbor = Tuple[Hashable, float]


def _neighbor_order(n: Neighbor) -> Tuple[float, Hashable]:
    return n[1], n[0]


def merge_top_k(results: Iterable[Sequence[Neighbor]], k: int) -> List[Neighbor]:
    """
    Merge per-partition neighbor lists into a single top-``k`` list.

    Each input list must already be sorted by ascending distance then
    ascending UID, as returned by ``approx_nearest_neighbors``. The output
    order is the same regardless of how the dataset was partitioned.

    :param results: Sorted ``(uid, distance)`` lists.
    :param k: Maximum number of neighbors to return.

    :raises InvalidArgument: ``k`` is not a positive integer.

    """
    k = check_positive_int(k, "k")
    return list(itertools.islice(
        heapq.merge(*results, key=_neighbor_order), k
    ))


def _multi_probe_candidates(
    model: LshModel,
    index: BucketIndex,
    signature: np.ndarray,
    k: int
) -> Set[Hashable]:
    """
    Items whose hash distance to ``signature`` is at most the k-th smallest
    hash distance over the index. This also probes buckets neighboring the
    query's own buckets when those alone hold fewer than ``k`` items.
    """
    hd = [(model.hash_distance(signature, s), uid)
          for uid, s in index.signatures()]
    if not hd:
        return set()
    kth = heapq.nsmallest(k, (d for d, _ in hd))[-1]
    return {uid for d, uid in hd if d <= kth}


def approx_nearest_neighbors(
    model: LshModel,
    index: BucketIndex,
    dataset: Optional[Mapping[Hashable, Any]],
    query: Any,
    k: int,
    distance_threshold: Optional[float] = None,
    single_probe: bool = True,
    cores: Optional[int] = None
) -> List[Neighbor]:
    """
    Find approximately the ``k`` nearest neighbors of ``query``.

    Candidates are the indexed items colliding with the query in at least one
    hash table. If there are fewer than ``k`` of them, the whole dataset is
    scanned instead, so that ``k`` results are returned whenever the dataset
    holds that many. Candidates are ranked by their exact ``key_distance`` to
    the query.

    :param model: Fitted model ``index`` was built with.
    :param index: Bucket index of the dataset.
    :param dataset: Mapping of UIDs to vectors, used to look up candidate
        vectors and for the full scan fallback. ``None`` uses the vectors held
        by ``index``.
    :param query: Query vector.
    :param k: Maximum number of neighbors to return.
    :param distance_threshold: Optional maximum exact distance of returned
        neighbors.
    :param single_probe: If true, candidates are the items sharing a bucket
        with the query. If false, items in the nearest buckets by
        ``hash_distance`` are probed too, which takes longer but finds more
        candidates.
    :param cores: Number of parallel workers for distance computation.

    :raises InvalidArgument: ``k`` is not positive, ``distance_threshold`` is
        negative, the index was built with a different model, or the query is
        not a finite 1D vector.
    :raises DimensionMismatch: Query length differs from the model's input
        dimension.

    :return: List of at most ``k`` ``(uid, distance)`` pairs sorted by
        ascending distance, ties broken by ascending UID.

    """
    k = check_positive_int(k, "k")
    distance_threshold = check_distance_threshold(distance_threshold)
    index.check_model(model)
    q = as_vector(query, model.input_dim)
    if dataset is None:
        dataset = index.vectors()

    LOG.debug("generating hash for query")
    q_h = model.get_hash(q)

    LOG.debug("getting candidates (single_probe=%s)", single_probe)
    if single_probe:
        candidates = index.candidates_for(q_h)
    else:
        candidates = _multi_probe_candidates(model, index, q_h, k)
    candidates = {c for c in candidates if c in dataset}
    LOG.debug("-- %d candidate(s)", len(candidates))

    if len(candidates) < k:
        LOG.debug("Fewer candidates than k=%d, scanning all %d dataset items",
                  k, len(dataset))
        candidates = set(dataset.keys())
    if not candidates:
        return []

    LOG.debug("-- calculating distances")
    c_uids = list(candidates)
    distances = parallel_map(
        functools.partial(model.key_distance, q),
        [dataset[u] for u in c_uids],
        cores=cores, ordered=True,
    )
    neighbors: Iterable[Neighbor] = zip(c_uids, distances)
    if distance_threshold is not None:
        neighbors = (n for n in neighbors if n[1] <= distance_threshold)

    LOG.debug("-- ordering, slicing top k=%d", k)
    return heapq.nsmallest(k, neighbors, key=_neighbor_order)
