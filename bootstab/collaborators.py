"""
Capability interfaces for the external collaborators of the estimator.

The clusterer and the embedding are treated as black boxes: any callable
with the right shape can be plugged in, and scikit-learn style estimators
exposing ``fit_predict`` are adapted automatically.
"""

from typing import Any, Optional, Protocol, Union, runtime_checkable

import numpy as np
import scipy.sparse as sp
from sklearn.cluster import KMeans


MatrixLike = Union[np.ndarray, sp.spmatrix]


@runtime_checkable
class Clusterer(Protocol):
    """Maps a dataset (cells x features) to one cluster label per cell."""

    def __call__(self, data: MatrixLike) -> Any:
        ...


@runtime_checkable
class Embedding(Protocol):
    """Maps a dataset to the coordinates used for nearest-neighbor lookup."""

    def __call__(self, data: MatrixLike) -> np.ndarray:
        ...


class _FitPredictClusterer:
    """Adapter for estimators following the scikit-learn ``fit_predict`` API."""

    def __init__(self, estimator: Any) -> None:
        self.estimator = estimator

    def __call__(self, data: MatrixLike) -> np.ndarray:
        return np.asarray(self.estimator.fit_predict(data))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.estimator!r})"


def as_clusterer(obj: Any) -> Clusterer:
    """
    Coerce ``obj`` into a clusterer callable.

    Parameters
    ----------
    obj : callable or estimator
        Either a function ``cluster(data) -> labels`` or an object exposing
        ``fit_predict(data)``.

    Returns
    -------
    clusterer : Clusterer
        Callable returning one label per row of ``data``.

    Raises
    ------
    TypeError
        If ``obj`` is neither callable nor has ``fit_predict``.
    """
    if hasattr(obj, 'fit_predict'):
        return _FitPredictClusterer(obj)
    if callable(obj):
        return obj
    raise TypeError(
        f"Clusterer must be callable or expose fit_predict(), got {type(obj)}"
    )


class KMeansClusterer:
    """
    k-means clusterer backed by ``sklearn.cluster.KMeans``.

    A fresh estimator is fitted on every call, so the same instance can be
    reused across bootstrap iterations and joblib workers.

    Parameters
    ----------
    n_clusters : int
        Number of clusters to form.
    random_state : int, optional
        Seed forwarded to KMeans for reproducible centroids.
    n_init : int, default=10
        Number of centroid initializations.
    """

    def __init__(self, n_clusters: int, random_state: Optional[int] = None, n_init: int = 10) -> None:
        if n_clusters < 1:
            raise ValueError("n_clusters must be positive")
        self.n_clusters = n_clusters
        self.random_state = random_state
        self.n_init = n_init

    def __call__(self, data: MatrixLike) -> np.ndarray:
        km = KMeans(n_clusters=self.n_clusters, random_state=self.random_state, n_init=self.n_init)
        return km.fit_predict(data)

    def __repr__(self) -> str:
        return (
            f"KMeansClusterer(n_clusters={self.n_clusters}, "
            f"random_state={self.random_state}, n_init={self.n_init})"
        )
