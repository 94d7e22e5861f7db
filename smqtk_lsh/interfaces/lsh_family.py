"""
Interface and plugin getter for LSH families, the estimators that produce
fitted ``LshModel`` instances.
"""
import abc
import logging
from typing import Any, Hashable, Iterable, Mapping, Tuple, Union

from smqtk_core import Configurable, Pluggable
from smqtk_lsh.exceptions import InvalidArgument
from smqtk_lsh.interfaces.lsh_model import LshModel
from smqtk_lsh.utils.validation import (
    as_vector, check_positive_int, is_item_pair, iter_items
)


LOG = logging.getLogger(__name__)


class LshFamily (Configurable, Pluggable):
    """
    Locality-sensitive hash family interface.

    A family knows how to draw the random parameters of its hash functions
    for a given input dimensionality. Drawing parameters is the only place
    randomness enters the LSH core: everything downstream of the returned
    model is deterministic.

    **Fitting**

    Families are data independent, so fitting only looks at a dataset to find
    the input dimensionality. ``fit_dim`` can be used when the dimensionality
    is already known.

    """

    def fit(
        self,
        dataset: Union[Mapping[Hashable, Any], Iterable[Tuple[Hashable, Any]],
                       Iterable[Any]]
    ) -> LshModel:
        """
        Fit a model to the given dataset.

        :param dataset: Mapping of UIDs to vectors, iterable of
            ``(uid, vector)`` pairs or iterable of bare vectors. Only the first
            item is inspected.

        :raises InvalidArgument: The dataset is empty, so no dimensionality
            can be inferred.

        :return: New fitted model.

        """
        if isinstance(dataset, Mapping):
            dataset = iter_items(dataset)
        try:
            first = next(iter(dataset))
        except StopIteration:
            raise InvalidArgument("Cannot fit an LSH model to an empty "
                                  "dataset: no input dimension to infer.")
        if is_item_pair(first):
            first = first[1]
        input_dim = as_vector(first).shape[0]
        LOG.info("Fitting %s to input dimension %d",
                 type(self).__name__, input_dim)
        return self.fit_dim(input_dim)

    def fit_dim(self, input_dim: int) -> LshModel:
        """
        Fit a model for vectors of the given dimensionality.

        :raises InvalidArgument: ``input_dim`` is not a positive integer.
        """
        return self._create_model(check_positive_int(input_dim, "input_dim"))

    @abc.abstractmethod
    def _create_model(self, input_dim: int) -> LshModel:
        """
        Internal method to be implemented by sub-classes to draw hash function
        parameters and wrap them in a new model.

        :param input_dim: Validated, positive input dimensionality.

        """

