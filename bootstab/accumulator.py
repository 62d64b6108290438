"""Pairwise co-assignment tallies of original clusters."""

from typing import Iterable

import numpy as np


def coassignment(replicate_labels: np.ndarray,
                 inferred_codes: np.ndarray,
                 n_original: int) -> np.ndarray:
    """
    Mark the original cluster pairs that one bootstrap iteration failed to separate.

    Two original clusters A and B are marked when some replicate cluster
    contains re-identified members of both. Each pair is marked at most
    once, however many members or replicate clusters support it.

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
    local_tally : np.ndarray
        Symmetric boolean matrix of shape (n_original, n_original) with a
        False diagonal.
    """
    _, rep_codes = np.unique(replicate_labels, return_inverse=True)
    rep_codes = rep_codes.ravel()

    # Membership table: replicate cluster x original cluster
    membership = np.zeros((rep_codes.max() + 1, n_original), dtype=bool)
    membership[rep_codes, inferred_codes] = True

    together = (membership.T.astype(np.int64) @ membership.astype(np.int64)) > 0
    np.fill_diagonal(together, False)

    return together


def merge_tallies(local_tallies: Iterable[np.ndarray], n_original: int) -> np.ndarray:
    """Sum per-iteration boolean tallies into a count matrix."""
    tally = np.zeros((n_original, n_original), dtype=np.int64)
    for local in local_tallies:
        tally += local
    return tally
