"""Core bootstrap cluster-stability implementation."""

import logging
import time
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import scipy.sparse as sp
from anndata import AnnData
from joblib import Parallel, delayed, effective_n_jobs

from .accumulator import coassignment, merge_tallies
from .collaborators import Clusterer, Embedding, MatrixLike, as_clusterer
from .config import StabilityConfig
from .exceptions import InsufficientIterationsError, InvalidInputError
from .matching import match_clusters, nearest_original
from .report import StabilityReport
from .resample import bootstrap_resample

logger = logging.getLogger(__name__)


@dataclass
class IterationOutcome:
    """Local result of one bootstrap iteration."""

    iteration: int
    local_tally: Optional[np.ndarray] = None
    matches: Optional[Dict[Hashable, int]] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def run_iteration(iteration: int,
                  data: MatrixLike,
                  features: MatrixLike,
                  codes: np.ndarray,
                  n_original: int,
                  clusterer: Clusterer,
                  seed: np.random.SeedSequence,
                  metric: Union[str, Callable] = 'euclidean') -> IterationOutcome:
    """
    Run one bootstrap iteration: resample, recluster, re-identify, tally.

    Failures of the clusterer, including partitions that cannot be used,
    are returned as a failed outcome instead of being raised, so one bad
    iteration does not abort the run.

    Parameters
    ----------
    iteration : int
        Iteration number, for bookkeeping and log messages.
    data : np.ndarray or scipy.sparse matrix
        Original dataset handed to the clusterer.
    features : np.ndarray or scipy.sparse matrix
        Original coordinates used for nearest-neighbor lookup. Replicate
        coordinates are the rows of ``features`` picked by the resample, so
        both sides of the lookup share one coordinate system.
    codes : np.ndarray
        Original cluster ordinal of every observation.
    n_original : int
        Number of original clusters.
    clusterer : Clusterer
        External clustering function.
    seed : np.random.SeedSequence
        Seed of this iteration's random generator.
    metric : str or callable, default='euclidean'
        Nearest-neighbor metric.

    Returns
    -------
    outcome : IterationOutcome
        Local tally and cluster matches, or the error that discarded it.
    """
    rng = np.random.default_rng(seed)
    replicate, indices = bootstrap_resample(data, rng)

    try:
        replicate_labels = np.asarray(clusterer(replicate))
        if replicate_labels.shape != (replicate.shape[0],):
            raise ValueError(
                f"Clusterer returned {replicate_labels.shape[0] if replicate_labels.ndim else 0} labels "
                f"for {replicate.shape[0]} observations"
            )
        if pd.isna(replicate_labels).any():
            raise ValueError("Clusterer left observations unassigned")
        try:
            np.unique(replicate_labels)
        except TypeError as e:
            raise ValueError(f"Clusterer returned labels that cannot be ordered: {e}") from e
    except Exception as e:
        return IterationOutcome(iteration=iteration, error=f"{type(e).__name__}: {e}")

    correspondence = nearest_original(features, features[indices], metric)
    inferred_codes = codes[correspondence]

    matches = match_clusters(replicate_labels, inferred_codes, n_original)
    local_tally = coassignment(replicate_labels, inferred_codes, n_original)

    return IterationOutcome(iteration=iteration, local_tally=local_tally, matches=matches)


class ClusterStability:
    """
    Bootstrap estimate of how reliably clusters are separated.

    Each iteration resamples the cells with replacement, reclusters the
    replicate with the supplied clusterer, re-identifies every replicate cell
    by its nearest original cell, and records which original clusters ended
    up together in one replicate cluster. The report gives, for every pair
    of original clusters, the fraction of iterations in which they merged.

    Parameters
    ----------
    data : AnnData, np.ndarray or scipy.sparse matrix
        Cells as rows. For AnnData the matrix is chosen by
        ``config.use_rep`` or ``config.expression_layer``.
    clusterer : callable or estimator
        ``cluster(data) -> labels`` or an object with ``fit_predict``.
    config : StabilityConfig, optional
        Configuration object with algorithm parameters.
    embedding : callable, optional
        ``embed(data) -> coordinates`` applied once to the original dataset.
        Replicate cells are looked up by their rows of that embedding, so
        data-dependent embeddings (PCA, scaling) are never refitted.

    Examples
    --------
    >>> import bootstab as bst
    >>>
    >>> config = bst.StabilityConfig(n_iterations=100, random_state=0)
    >>> stability = bst.ClusterStability(adata, bst.KMeansClusterer(8), config)
    >>> report = stability.run(groupby='leiden')
    >>> report.merge_candidates(threshold=0.5)
    """

    def __init__(self,
                 data: Union[AnnData, MatrixLike],
                 clusterer: Any,
                 config: Optional[StabilityConfig] = None,
                 embedding: Optional[Embedding] = None) -> None:
        """Initialize with a dataset and an external clusterer."""
        self.config = config or StabilityConfig()
        self.clusterer = as_clusterer(clusterer)

        if embedding is not None and not callable(embedding):
            raise TypeError(f"embedding must be callable, got {type(embedding)}")
        self.embedding = embedding

        if isinstance(data, AnnData):
            self.adata = data
            self._validate_expression_layer()
            matrix = self._get_expression_matrix()
        else:
            self.adata = None
            matrix = data

        self.data = self._prepare_matrix(matrix)

    def _validate_expression_layer(self) -> None:
        """Validate that the configured representation exists."""
        use_rep = self.config.use_rep
        layer = self.config.expression_layer

        if use_rep is not None:
            if use_rep not in self.adata.obsm:
                available = list(self.adata.obsm.keys())
                raise InvalidInputError(
                    f"Representation '{use_rep}' not found in adata.obsm. Available: {available}"
                )
        elif layer == 'X':
            if self.adata.X is None:
                raise InvalidInputError("AnnData object must contain expression matrix")
        elif layer == 'raw':
            if self.adata.raw is None:
                raise InvalidInputError("expression_layer='raw' but adata.raw is None")
        elif layer not in self.adata.layers:
            available = list(self.adata.layers.keys())
            raise InvalidInputError(
                f"Layer '{layer}' not found. Available layers: {available}"
            )

    def _get_expression_matrix(self) -> MatrixLike:
        """Get the matrix selected by the config."""
        if self.config.use_rep is not None:
            return self.adata.obsm[self.config.use_rep]

        layer = self.config.expression_layer
        if layer == 'X':
            return self.adata.X
        elif layer == 'raw':
            return self.adata.raw.X
        else:
            return self.adata.layers[layer]

    @staticmethod
    def _prepare_matrix(matrix: Any) -> MatrixLike:
        """Check shape and normalize the container type of the dataset."""
        if sp.issparse(matrix):
            matrix = sp.csr_matrix(matrix)
        elif isinstance(matrix, pd.DataFrame):
            matrix = matrix.to_numpy()
        else:
            matrix = np.asarray(matrix)

        if matrix.ndim != 2:
            raise InvalidInputError(
                f"Dataset must be a 2-D (cells x features) matrix, got {matrix.ndim} dimension(s)"
            )
        if matrix.shape[0] == 0:
            raise InvalidInputError("Dataset contains no observations")
        if matrix.shape[1] == 0:
            raise InvalidInputError("Dataset contains no features")

        return matrix

    @property
    def n_obs(self) -> int:
        return self.data.shape[0]

    def _encode_labels(self, labels: Any) -> Tuple[Tuple[Hashable, ...], np.ndarray]:
        """
        Convert a partition into label ordinals.

        Categorical labels keep their category order (unused categories are
        dropped); other labels are sorted.

        Returns
        -------
        categories : tuple
            Distinct labels, in ordinal order.
        codes : np.ndarray
            Ordinal of every observation.
        """
        if isinstance(labels, pd.Series):
            labels = labels.array

        if isinstance(getattr(labels, 'dtype', None), pd.CategoricalDtype):
            cat = pd.Categorical(labels).remove_unused_categories()
            if len(cat) != self.n_obs:
                raise InvalidInputError(
                    f"Partition has {len(cat)} labels for {self.n_obs} observations"
                )
            if (cat.codes < 0).any():
                raise InvalidInputError("Partition leaves observations unassigned")
            return tuple(cat.categories), np.asarray(cat.codes, dtype=np.intp)

        arr = np.asarray(labels)
        if arr.ndim != 1 or arr.shape[0] != self.n_obs:
            raise InvalidInputError(
                f"Partition must hold one label per observation ({self.n_obs}), got shape {arr.shape}"
            )
        if pd.isna(arr).any():
            raise InvalidInputError("Partition leaves observations unassigned")

        try:
            categories, codes = np.unique(arr, return_inverse=True)
        except TypeError as e:
            raise InvalidInputError(f"Cluster labels must be mutually comparable: {e}") from e

        categories = tuple(c.item() if isinstance(c, np.generic) else c for c in categories)
        return categories, codes.ravel().astype(np.intp)

    def _resolve_partition(self, labels: Any, groupby: Optional[str]) -> Any:
        """Return the original partition from labels, an obs column, or the clusterer."""
        if labels is not None and groupby is not None:
            raise InvalidInputError("Pass either labels or groupby, not both")

        if labels is not None:
            return labels

        if groupby is not None:
            if self.adata is None:
                raise InvalidInputError("groupby requires AnnData input")
            if groupby not in self.adata.obs:
                raise InvalidInputError(
                    f"Column '{groupby}' not found in adata.obs. "
                    f"Available: {list(self.adata.obs.columns)}"
                )
            return self.adata.obs[groupby]

        logger.debug("Clustering original dataset with %r", self.clusterer)
        return self.clusterer(self.data)

    def _iteration_seeds(self) -> List[np.random.SeedSequence]:
        """Derive one independent seed per iteration from the configured random source."""
        random_state = self.config.random_state

        if isinstance(random_state, np.random.Generator):
            root = np.random.SeedSequence(int(random_state.integers(0, np.iinfo(np.int64).max)))
        elif isinstance(random_state, np.random.SeedSequence):
            root = random_state
        else:
            root = np.random.SeedSequence(random_state)

        return root.spawn(self.config.n_iterations)

    def _batch_size(self) -> int:
        """Iterations dispatched between timeout checks."""
        if self.config.batch_size is not None:
            return self.config.batch_size
        if self.config.n_jobs == 1:
            return 1
        return 4 * effective_n_jobs(self.config.n_jobs)

    def _execute(self,
                 features: MatrixLike,
                 codes: np.ndarray,
                 n_original: int,
                 seeds: Sequence[np.random.SeedSequence],
                 start: float) -> Tuple[List[IterationOutcome], bool]:
        """Run iterations in batches until done or out of time."""
        timeout = self.config.timeout
        batch_size = self._batch_size()
        outcomes: List[IterationOutcome] = []
        timed_out = False

        def _tasks(batch_start):
            for i in range(batch_start, min(batch_start + batch_size, len(seeds))):
                yield delayed(run_iteration)(
                    i, self.data, features, codes, n_original,
                    self.clusterer, seeds[i], self.config.metric,
                )

        with Parallel(n_jobs=self.config.n_jobs) as parallel:
            for batch_start in range(0, len(seeds), batch_size):
                if timeout is not None and time.monotonic() - start >= timeout:
                    timed_out = True
                    logger.warning(
                        "Timeout of %.1fs reached after %d of %d iterations",
                        timeout, len(outcomes), len(seeds),
                    )
                    break

                for outcome in parallel(_tasks(batch_start)):
                    if outcome.failed:
                        logger.warning("Iteration %d discarded: %s", outcome.iteration, outcome.error)
                    else:
                        logger.debug("Iteration %d matched %s", outcome.iteration, outcome.matches)
                    outcomes.append(outcome)

        return outcomes, timed_out

    def run(self,
            labels: Optional[Any] = None,
            groupby: Optional[str] = None,
            inplace: bool = True,
            key_added: str = 'bootstab') -> StabilityReport:
        """
        Estimate pairwise merge probabilities of the original clusters.

        This is the main method that orchestrates the procedure:
        1. Fix the original partition and validate the input
        2. Derive one seed per bootstrap iteration
        3. Resample, recluster and re-identify in every iteration
        4. Merge per-iteration tallies
        5. Normalize by the number of completed iterations

        Parameters
        ----------
        labels : array-like, optional
            Original partition, one label per observation. If omitted and no
            ``groupby`` is given, the clusterer is run on the original data.
        groupby : str, optional
            Column of ``adata.obs`` holding the original partition.
        inplace : bool, default=True
            With AnnData input, store ``report.to_dict()`` in ``adata.uns``.
        key_added : str, default='bootstab'
            Key in ``adata.uns`` used when ``inplace=True``.

        Returns
        -------
        report : StabilityReport
            Merge probabilities and iteration accounting.

        Raises
        ------
        InvalidInputError
            If the partition is malformed or has fewer than two clusters.
        InsufficientIterationsError
            If no iteration completed, or the fraction of failed iterations
            exceeds ``config.max_failure_fraction``.
        """
        start = time.monotonic()

        # Step 1: Fix the original partition
        partition = self._resolve_partition(labels, groupby)
        categories, codes = self._encode_labels(partition)
        n_original = len(categories)

        if n_original < 2:
            raise InvalidInputError(
                f"Cluster stability needs at least 2 clusters, partition has {n_original}"
            )

        features = self.data
        if self.embedding is not None:
            features = self.embedding(self.data)
            features = sp.csr_matrix(features) if sp.issparse(features) else np.asarray(features)
            if features.ndim != 2 or features.shape[0] != self.n_obs:
                raise InvalidInputError(
                    f"Embedding must return one row per observation ({self.n_obs}), "
                    f"got shape {features.shape}"
                )

        # Step 2: Seeds
        seeds = self._iteration_seeds()
        logger.info(
            "Running %d bootstrap iterations on %d cells, %d clusters (n_jobs=%d)",
            len(seeds), self.n_obs, n_original, self.config.n_jobs,
        )

        # Step 3: Iterations
        outcomes, timed_out = self._execute(features, codes, n_original, seeds, start)

        completed = [o for o in outcomes if not o.failed]
        n_failed = len(outcomes) - len(completed)
        n_attempted = len(outcomes)

        if not completed:
            raise InsufficientIterationsError(
                f"No bootstrap iteration completed ({n_failed} failed, "
                f"{len(seeds)} requested)",
                n_requested=len(seeds), n_completed=0, n_failed=n_failed,
            )

        if n_failed / n_attempted > self.config.max_failure_fraction:
            raise InsufficientIterationsError(
                f"{n_failed} of {n_attempted} bootstrap iterations failed, "
                f"more than the allowed fraction {self.config.max_failure_fraction}",
                n_requested=len(seeds), n_completed=len(completed), n_failed=n_failed,
            )

        # Step 4: Merge local tallies
        tally = merge_tallies((o.local_tally for o in completed), n_original)

        presence_counts = np.zeros(n_original, dtype=np.int64)
        for outcome in completed:
            presence_counts[list(set(outcome.matches.values()))] += 1

        never_matched = [categories[i] for i in np.flatnonzero(presence_counts == 0)]
        if never_matched:
            warnings.warn(
                f"{len(never_matched)} original clusters were never recovered by any replicate cluster: "
                f"{never_matched[:5]}{'...' if len(never_matched) > 5 else ''}"
            )

        # Step 5: Report
        report = StabilityReport(
            labels=categories,
            tally=tally,
            presence_counts=presence_counts,
            n_requested=len(seeds),
            n_completed=len(completed),
            n_failed=n_failed,
            timed_out=timed_out,
            elapsed_seconds=time.monotonic() - start,
        )

        logger.info(
            "Completed %d of %d iterations (%d failed) in %.2fs",
            report.n_completed, report.n_requested, report.n_failed, report.elapsed_seconds,
        )

        if inplace and self.adata is not None:
            self.adata.uns[key_added] = report.to_dict()

        return report
