"""Re-identification of replicate clusters in terms of original clusters."""

from typing import Callable, Dict, Hashable, Union

import numpy as np
import scipy.sparse as sp
from sklearn.neighbors import NearestNeighbors

from .collaborators import MatrixLike


def _as_dense(X: MatrixLike) -> np.ndarray:
    """Densify sparse matrices for neighbor search."""
    if sp.issparse(X):
        return X.toarray()
    return np.asarray(X)


def nearest_original(original: MatrixLike,
                     replicate: MatrixLike,
                     metric: Union[str, Callable] = 'euclidean') -> np.ndarray:
    """
    Find the nearest original observation of every replicate observation.

    Parameters
    ----------
    original : np.ndarray or scipy.sparse matrix
        Original dataset (or its embedding), cells as rows.
    replicate : np.ndarray or scipy.sparse matrix
        Replicate dataset in the same feature space.
    metric : str or callable, default='euclidean'
        Any metric supported by ``sklearn.neighbors.NearestNeighbors``.

    Returns
    -------
    correspondence : np.ndarray
        Integer array with one original row index per replicate row.
    """
    original = _as_dense(original)
    replicate = _as_dense(replicate)

    if original.shape[1] != replicate.shape[1]:
        raise ValueError(
            f"Feature dimensions differ: original has {original.shape[1]}, "
            f"replicate has {replicate.shape[1]}"
        )

    knn = NearestNeighbors(n_neighbors=1, metric=metric)
    knn.fit(original)
    indices = knn.kneighbors(replicate, return_distance=False)

    return indices[:, 0].astype(np.intp)


def match_clusters(replicate_labels: np.ndarray,
                   inferred_codes: np.ndarray,
                   n_original: int) -> Dict[Hashable, int]:
    """
    Match every replicate cluster to the original cluster most of its members come from.

    Parameters
    ----------
    replicate_labels : np.ndarray
        Cluster label of every replicate observation.
    inferred_codes : np.ndarray
        Original cluster ordinal inferred for every replicate observation.
    n_original : int
        Number of original clusters.

    Returns
    -------
    matches : dict
        Replicate label -> matched original ordinal. Ties go to the smallest
        ordinal. Original clusters that win no replicate cluster are absent.
    """
    rep_categories, rep_codes = np.unique(replicate_labels, return_inverse=True)
    rep_codes = rep_codes.ravel()

    matches = {}
    for rep_idx, rep_label in enumerate(rep_categories):
        members = inferred_codes[rep_codes == rep_idx]
        counts = np.bincount(members, minlength=n_original)
        # argmax returns the first maximum, i.e. the smallest ordinal
        key = rep_label.item() if isinstance(rep_label, np.generic) else rep_label
        matches[key] = int(np.argmax(counts))

    return matches
