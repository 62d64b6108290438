"""Bootstrap resampling of observations."""

from typing import Tuple

import numpy as np

from .collaborators import MatrixLike
from .exceptions import InvalidInputError


def bootstrap_resample(data: MatrixLike, rng: np.random.Generator) -> Tuple[MatrixLike, np.ndarray]:
    """
    Draw a bootstrap replicate of the rows of ``data``.

    N row indices are drawn independently and uniformly with replacement,
    where N is the number of rows. Feature vectors are copied unchanged.

    Parameters
    ----------
    data : np.ndarray or scipy.sparse matrix
        Original dataset, cells as rows.
    rng : np.random.Generator
        Source of randomness; the only state consumed by this function.

    Returns
    -------
    replicate : np.ndarray or scipy.sparse matrix
        Resampled dataset with the same shape and type as ``data``.
    indices : np.ndarray
        Original row index of every replicate row.
    """
    n_obs = data.shape[0]
    if n_obs == 0:
        raise InvalidInputError("Cannot resample an empty dataset")

    indices = rng.integers(0, n_obs, size=n_obs)
    return data[indices], indices
