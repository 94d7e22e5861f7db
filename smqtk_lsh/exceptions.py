"""
Exception types raised by the LSH core.

Both types derive from ``ValueError`` so callers that already guard against
bad values keep working.
"""


class InvalidArgument (ValueError):
    """
    An argument was outside of its valid domain, e.g. a non-positive bucket
    length, table count or neighbor count, a negative distance threshold, or a
    vector containing NaN or infinite components.
    """


class DimensionMismatch (ValueError):
    """
    A vector or hash signature did not have the length expected by the model
    it was given to.
    """
