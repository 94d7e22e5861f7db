"""
Approximate similarity join between two ``BucketIndex`` instances.
"""
import logging
from typing import Hashable, List, Optional, Set, Tuple

from smqtk_descriptors.utils import parallel_map
from smqtk_lsh.bucket_index import BucketIndex
from smqtk_lsh.exceptions import InvalidArgument
from smqtk_lsh.interfaces.lsh_model import LshModel
from smqtk_lsh.utils.validation import check_distance_threshold


LOG = logging.getLogger(__name__)

JoinPair = Tuple[Hashable, Hashable, float]


def candidate_pairs(
    index_a: BucketIndex,
    index_b: BucketIndex
) -> Set[Tuple[Hashable, Hashable]]:
    """
    Collect the UID pairs colliding in at least one hash table.

    Only buckets present in both indices are visited, so the work is bounded
    by the colliding buckets instead of ``|A| x |B|``. A pair colliding in
    several tables is returned once.

    When ``index_a is index_b``, items are not paired with themselves and
    each undirected pair is returned once as ``(lesser_uid, greater_uid)``.

    """
    self_join = index_a is index_b
    pairs: Set[Tuple[Hashable, Hashable]] = set()
    for (t, h), uids_a in index_a.bucket_items():
        uids_b = uids_a if self_join else index_b.bucket(t, h)
        if not uids_b:
            continue
        for a in uids_a:
            for b in uids_b:
                if not self_join or a < b:
                    pairs.add((a, b))
    return pairs


def approx_similarity_join(
    model: LshModel,
    index_a: BucketIndex,
    index_b: BucketIndex,
    distance_threshold: float,
    cores: Optional[int] = None,
    use_multiprocessing: bool = False
) -> Set[JoinPair]:
    """
    Find all pairs of items, one from each index, within
    ``distance_threshold`` of each other, approximately.

    Pairs are proposed by bucket collision in any table and verified with the
    model's exact ``key_distance``. Passing the same index twice performs a
    self-join.

    :param model: Fitted model both indices were built with.
    :param index_a: Bucket index of dataset A.
    :param index_b: Bucket index of dataset B, or ``index_a`` itself.
    :param distance_threshold: Maximum exact distance of returned pairs.
    :param cores: Number of parallel workers for distance computation.
    :param use_multiprocessing: Compute distances in worker processes instead
        of threads.

    :raises InvalidArgument: Negative ``distance_threshold``, or an index was
        built with a different model.

    :return: Set of ``(uid_a, uid_b, distance)`` triples with
        ``distance <= distance_threshold``. For a self-join ``uid_a < uid_b``.

    """
    distance_threshold = check_distance_threshold(distance_threshold)
    if distance_threshold is None:
        raise InvalidArgument("A distance threshold is required for a "
                              "similarity join.")
    index_a.check_model(model)
    index_b.check_model(model)

    LOG.debug("Collecting candidate pairs from colliding buckets")
    pairs: List[Tuple[Hashable, Hashable]] = \
        list(candidate_pairs(index_a, index_b))
    LOG.debug("-- %d unique candidate pair(s)", len(pairs))
    if not pairs:
        return set()

    LOG.debug("-- calculating distances")
    distances = parallel_map(
        model.key_distance,
        [index_a.vector(a) for a, _ in pairs],
        [index_b.vector(b) for _, b in pairs],
        cores=cores, ordered=True,
        use_multiprocessing=use_multiprocessing,
    )
    result = {
        (a, b, d) for (a, b), d in zip(pairs, distances)
        if d <= distance_threshold
    }
    LOG.debug("-- %d pair(s) within distance %f", len(result),
              distance_threshold)
    return result
