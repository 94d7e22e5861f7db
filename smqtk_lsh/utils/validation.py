import math
from typing import Any, Hashable, Iterable, Iterator, Mapping, Optional, Tuple, Union

import numpy as np
import scipy.sparse

from smqtk_lsh.exceptions import DimensionMismatch, InvalidArgument


def as_vector(v: Any, dim: Optional[int] = None) -> np.ndarray:
    """
    Coerce the given value into a dense, 1D float vector.

    Sparse inputs (any ``scipy.sparse`` matrix with a single row or column)
    are densified.

    :param v: Vector-like value: numpy array, sequence of numbers or sparse
        matrix.
    :param dim: Optional expected vector length.

    :raises InvalidArgument: The value is not one-dimensional or contains NaN
        or infinite components.
    :raises DimensionMismatch: ``dim`` was given and the vector length
        differs from it.

    :return: Float64 numpy vector.

    """
    if scipy.sparse.issparse(v):
        v = v.toarray()
        if 1 not in v.shape:
            raise InvalidArgument("Sparse vector input must have a single row "
                                  "or column, got shape %s." % (v.shape,))
        v = v.ravel()
    try:
        v = np.asarray(v, dtype=np.float64)
    except (TypeError, ValueError) as ex:
        raise InvalidArgument("Value is not a numeric vector: %s" % ex)
    if v.ndim != 1:
        raise InvalidArgument("Expected a 1D vector, got an array of shape %s."
                              % (v.shape,))
    if not np.isfinite(v).all():
        raise InvalidArgument("Vector contains NaN or infinite components.")
    if dim is not None and v.shape[0] != dim:
        raise DimensionMismatch("Vector has dimension %d, expected %d."
                                % (v.shape[0], dim))
    return v


def check_signature(sig: Any, num_hash_tables: int) -> np.ndarray:
    """
    Coerce a hash signature into a float vector and check its length against
    the number of hash tables.

    :raises DimensionMismatch: Signature length is not ``num_hash_tables``.
    """
    sig = np.asarray(sig, dtype=np.float64).ravel()
    if sig.shape[0] != num_hash_tables:
        raise DimensionMismatch("Hash signature has %d entries, expected %d."
                                % (sig.shape[0], num_hash_tables))
    return sig


def check_positive_int(value: int, name: str) -> int:
    try:
        valid = (not isinstance(value, bool) and int(value) == value and
                 value > 0)
    except (TypeError, ValueError, OverflowError):
        valid = False
    if not valid:
        raise InvalidArgument("%s must be a positive integer, got %r."
                              % (name, value))
    return int(value)


def check_positive_float(value: float, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument("%s must be a positive, finite number, got %r."
                              % (name, value))
    if not math.isfinite(value) or value <= 0:
        raise InvalidArgument("%s must be a positive, finite number, got %r."
                              % (name, value))
    return value


def check_distance_threshold(value: Optional[float]) -> Optional[float]:
    """
    Distance thresholds may be omitted (``None``), otherwise must be a
    non-negative number. Infinity is allowed and accepts everything.
    """
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument("Distance threshold must be a number, got %r."
                              % (value,))
    if math.isnan(value) or value < 0:
        raise InvalidArgument("Distance threshold must be non-negative, got "
                              "%r." % value)
    return value


def iter_items(
    dataset: Union[Mapping[Hashable, Any], Iterable[Tuple[Hashable, Any]]]
) -> Iterator[Tuple[Hashable, Any]]:
    """
    Iterate ``(uid, vector)`` pairs out of either a mapping of UIDs to
    vectors or an iterable of pairs.
    """
    if isinstance(dataset, Mapping):
        return iter(dataset.items())
    return iter(dataset)


def is_item_pair(item: Any) -> bool:
    """
    Tell a ``(uid, vector)`` pair apart from a bare vector.

    A pair is a two element tuple or list whose second element is itself a
    vector (sequence, array or sparse row). A two element sequence of scalars
    is a bare 2D vector.
    """
    if isinstance(item, np.ndarray) or scipy.sparse.issparse(item):
        return False
    if not isinstance(item, (tuple, list)) or len(item) != 2:
        return False
    second = item[1]
    return scipy.sparse.issparse(second) or np.ndim(second) >= 1
