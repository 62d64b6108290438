"""Configuration classes for bootstrap cluster stability."""

from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np


@dataclass
class StabilityConfig:
    """
    Configuration for the bootstrap cluster-stability estimator.

    Parameters
    ----------
    n_iterations : int, default=100
        Number of bootstrap iterations to run.
    metric : str or callable, default='euclidean'
        Distance used to find each replicate cell's nearest original cell.
        Any metric accepted by ``sklearn.neighbors.NearestNeighbors``,
        including a callable ``distance(u, v) -> float``.
    max_failure_fraction : float, default=0.25
        Largest tolerated fraction of attempted iterations whose clusterer
        call failed. Above it the run raises InsufficientIterationsError.
    timeout : float, optional
        Wall-clock budget in seconds. Once exceeded no further iterations
        are launched and the report covers the completed ones.
    n_jobs : int, default=1
        Number of joblib workers. 1 runs sequentially, -1 uses all cores.
    batch_size : int, optional
        Iterations dispatched per parallel batch. The timeout is checked
        between batches. Defaults to four iterations per worker.
    random_state : int, SeedSequence or Generator, optional
        Random source for reproducible results.
    expression_layer : str, default='X'
        Expression layer to use for AnnData input ('X', 'raw', or layer name).
    use_rep : str, optional
        Key in ``adata.obsm`` to use instead of an expression layer,
        e.g. 'X_pca'.
    """

    n_iterations: int = 100
    metric: Union[str, Callable] = 'euclidean'
    max_failure_fraction: float = 0.25
    timeout: Optional[float] = None
    n_jobs: int = 1
    batch_size: Optional[int] = None
    random_state: Optional[Union[int, np.random.SeedSequence, np.random.Generator]] = None
    expression_layer: str = 'X'
    use_rep: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.n_iterations < 1:
            raise ValueError("n_iterations must be positive")

        if not 0 <= self.max_failure_fraction <= 1:
            raise ValueError("max_failure_fraction must be between 0 and 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero")

        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError("batch_size must be positive")

        if not (isinstance(self.metric, str) or callable(self.metric)):
            raise ValueError(f"metric must be a string or callable, got {type(self.metric)}")
