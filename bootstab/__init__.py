"""
bootstab: Bootstrap Cluster Stability

Estimates how reliably the clusters of a single-cell dataset are separated.
Cells are resampled with replacement, reclustered with a user-supplied
clusterer, mapped back to the original clusters through their nearest
original cell, and every pair of original clusters that lands in the same
replicate cluster is tallied. The result is a pairwise merge probability:
near 0 for stably separated clusters, near 1 for clusters that resampling
noise cannot tell apart.

Clustering and embedding are treated as black boxes: any function
``cluster(data) -> labels`` or scikit-learn style estimator can be used.

Examples
--------
>>> import scanpy as sc
>>> import bootstab as bst
>>>
>>> # User handles preprocessing and the reference clustering
>>> sc.pp.pca(adata, n_comps=30)
>>> sc.pp.neighbors(adata)
>>> sc.tl.leiden(adata)
>>>
# bootstab handles the resampling
>>> config = bst.StabilityConfig(
>>>     n_iterations=100,
>>>     use_rep='X_pca',
>>>     random_state=0,
>>> )
>>> n_clusters = adata.obs['leiden'].nunique()
>>> stability = bst.ClusterStability(adata, bst.KMeansClusterer(n_clusters), config)
>>> report = stability.run(groupby='leiden')
>>> report.merge_candidates(threshold=0.5)
"""

from .accumulator import coassignment, merge_tallies
from .collaborators import Clusterer, Embedding, KMeansClusterer, as_clusterer
from .config import StabilityConfig
from .core import ClusterStability
from .exceptions import BootstabError, InsufficientIterationsError, InvalidInputError
from .matching import match_clusters, nearest_original
from .report import StabilityReport
from .resample import bootstrap_resample

__version__ = "0.1.0"

__all__ = [
    "ClusterStability",
    "StabilityConfig",
    "StabilityReport",
    "KMeansClusterer",
    "Clusterer",
    "Embedding",
    "as_clusterer",
    "bootstrap_resample",
    "nearest_original",
    "match_clusters",
    "coassignment",
    "merge_tallies",
    "BootstabError",
    "InvalidInputError",
    "InsufficientIterationsError",
]
