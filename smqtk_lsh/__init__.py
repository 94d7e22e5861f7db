from importlib.metadata import version

from .exceptions import DimensionMismatch, InvalidArgument  # noqa: F401
from .interfaces.lsh_model import LshModel  # noqa: F401
from .interfaces.lsh_family import LshFamily  # noqa: F401
from .bucket_index import BucketIndex  # noqa: F401
from .query import approx_nearest_neighbors, merge_top_k  # noqa: F401
from .join import approx_similarity_join  # noqa: F401


# It is known that this will fail if this package is not "installed" in the
# current environment. Additional support is pending defined use-case-driven
# requirements.
__version__ = version(__name__)
