"""Stability report: merge probabilities derived from co-assignment tallies."""

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True, eq=False)
class StabilityReport:
    """
    Result of a bootstrap cluster-stability run.

    The merge probability of clusters A and B is the fraction of completed
    iterations in which some replicate cluster held re-identified members of
    both. Values near 0 mean A and B are stably separated; values near 1 mean
    they are indistinguishable under resampling and are candidates for merging.

    Attributes
    ----------
    labels : tuple
        Original cluster labels, in ordinal order.
    tally : np.ndarray
        Symmetric (K, K) count matrix with a zero diagonal.
    presence_counts : np.ndarray
        Number of completed iterations in which each original cluster was
        the matched original cluster of at least one replicate cluster.
    n_requested : int
        Iterations requested.
    n_completed : int
        Iterations that finished and contributed to the tally.
    n_failed : int
        Iterations discarded because the clusterer failed.
    timed_out : bool
        Whether the run stopped launching iterations because of the timeout.
    elapsed_seconds : float
        Wall-clock duration of the run.
    """

    labels: Tuple[Hashable, ...]
    tally: np.ndarray
    presence_counts: np.ndarray
    n_requested: int
    n_completed: int
    n_failed: int = 0
    timed_out: bool = False
    elapsed_seconds: float = 0.0
    _index: Dict[Hashable, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.n_completed < 1:
            raise ValueError("A stability report needs at least one completed iteration")

        n_clusters = len(self.labels)
        tally = np.array(self.tally, dtype=np.int64)
        presence = np.array(self.presence_counts, dtype=np.int64)

        if tally.shape != (n_clusters, n_clusters):
            raise ValueError(
                f"Tally shape {tally.shape} does not match {n_clusters} labels"
            )
        if presence.shape != (n_clusters,):
            raise ValueError(
                f"Presence shape {presence.shape} does not match {n_clusters} labels"
            )

        tally.setflags(write=False)
        presence.setflags(write=False)

        object.__setattr__(self, 'labels', tuple(self.labels))
        object.__setattr__(self, 'tally', tally)
        object.__setattr__(self, 'presence_counts', presence)
        object.__setattr__(self, '_index', {label: i for i, label in enumerate(self.labels)})

    @property
    def n_clusters(self) -> int:
        return len(self.labels)

    def merge_probabilities(self) -> pd.DataFrame:
        """
        Pairwise merge probabilities as a square DataFrame.

        Returns
        -------
        probabilities : pd.DataFrame
            Symmetric matrix indexed by original cluster labels on both axes.
            The diagonal is NaN since self-pairs are not meaningful.
        """
        probs = self.tally / self.n_completed
        np.fill_diagonal(probs, np.nan)

        index = pd.Index(self.labels, name='cluster')
        return pd.DataFrame(probs, index=index, columns=index.rename(None))

    def probability(self, a: Hashable, b: Hashable) -> float:
        """Merge probability of clusters ``a`` and ``b``."""
        if a == b:
            raise ValueError(f"Merge probability of cluster {a!r} with itself is undefined")
        try:
            i, j = self._index[a], self._index[b]
        except KeyError as e:
            raise KeyError(f"Unknown cluster label {e.args[0]!r}") from None
        return float(self.tally[i, j] / self.n_completed)

    def pairs(self) -> pd.DataFrame:
        """
        One row per unordered pair of original clusters.

        Returns
        -------
        pairs : pd.DataFrame
            Columns: ['cluster_a', 'cluster_b', 'merge_count', 'merge_probability'],
            sorted by decreasing merge probability.
        """
        rows, cols = np.triu_indices(self.n_clusters, k=1)
        counts = self.tally[rows, cols]

        pairs_df = pd.DataFrame({
            'cluster_a': [self.labels[i] for i in rows],
            'cluster_b': [self.labels[j] for j in cols],
            'merge_count': counts,
            'merge_probability': counts / self.n_completed,
        })

        return pairs_df.sort_values('merge_probability', ascending=False, kind='stable').reset_index(drop=True)

    def merge_candidates(self, threshold: float = 0.5) -> pd.DataFrame:
        """Pairs whose merge probability is at least ``threshold``."""
        if not 0 <= threshold <= 1:
            raise ValueError("threshold must be between 0 and 1")
        pairs_df = self.pairs()
        return pairs_df[pairs_df['merge_probability'] >= threshold].reset_index(drop=True)

    def presence(self) -> pd.Series:
        """Fraction of completed iterations in which each original cluster was recovered."""
        return pd.Series(
            self.presence_counts / self.n_completed,
            index=pd.Index(self.labels, name='cluster'),
            name='presence',
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain-python summary, suitable for ``adata.uns``."""
        return {
            'labels': [str(label) for label in self.labels],
            'merge_probabilities': self.merge_probabilities().to_numpy(),
            'tally': np.array(self.tally),
            'presence_counts': np.array(self.presence_counts),
            'n_requested': self.n_requested,
            'n_completed': self.n_completed,
            'n_failed': self.n_failed,
            'timed_out': self.timed_out,
            'elapsed_seconds': self.elapsed_seconds,
        }
