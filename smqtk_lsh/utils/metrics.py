import numpy as np


def euclidean_distance(i: np.ndarray, j: np.ndarray) -> np.ndarray:
    """
    Compute euclidean distance between two N-dimensional point vectors.

    If either input is a 2D matrix, a vector of distances between parallel
    rows (or between the 1D vector and each row) is returned.

    :param i: Vector i
    :param j: Vector j

    :return: Float distance.

    """
    sum_axis = 1
    if i.ndim == 1 and j.ndim == 1:
        sum_axis = 0
    return np.sqrt(np.square(i - j).sum(sum_axis))


def min_table_distance(sig_a: np.ndarray, sig_b: np.ndarray) -> float:
    """
    Minimum, over hash tables, of the squared difference between the two
    signatures' values for that table.

    Scanning stops at the first table where both signatures agree, as nothing
    can be smaller than zero.

    :param sig_a: Hash signature a, one value per table.
    :param sig_b: Hash signature b, same length as ``sig_a``.

    :return: Float distance, ``inf`` for zero-length signatures.

    """
    distance = float('inf')
    for a, b in zip(sig_a, sig_b):
        d = float(a - b) ** 2
        if d == 0:
            return 0.0
        if d < distance:
            distance = d
    return distance
