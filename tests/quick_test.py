"""
Quick test script for bootstab - minimal example to verify installation.
"""

import logging

import numpy as np
import pandas as pd
import anndata as ad

# Import bootstab
import bootstab as bst
from bootstab.logging_config import configure_logging

configure_logging(level=logging.INFO, force_format="plain")

# Create minimal test data
rng = np.random.default_rng(42)
n_features = 10

# Two well separated populations and two that overlap
means = {'T_cell': -8.0, 'B_cell': 8.0, 'NK_cell': 0.0, 'NKT_cell': 0.3}
sizes = {'T_cell': 80, 'B_cell': 80, 'NK_cell': 40, 'NKT_cell': 40}

blocks, cell_types = [], []
for cell_type, mean in means.items():
    block = rng.normal(size=(sizes[cell_type], n_features))
    block[:, 0] += mean
    blocks.append(block)
    cell_types.extend([cell_type] * sizes[cell_type])

adata = ad.AnnData(X=np.vstack(blocks).astype(np.float32))
adata.obs_names = [f'CELL_{i:03d}' for i in range(adata.n_obs)]
adata.obs['cell_type'] = pd.Categorical(cell_types)

print(f"Created test data: {adata.shape[0]} cells × {adata.shape[1]} features")
print(f"Cell types: {adata.obs['cell_type'].value_counts().to_dict()}")

# Run bootstab
config = bst.StabilityConfig(n_iterations=50, random_state=0)
stability = bst.ClusterStability(adata, bst.KMeansClusterer(4, random_state=0), config)

print("Running bootstrap stability...")
report = stability.run(groupby='cell_type')

# Show results
print("\n=== MERGE PROBABILITIES ===")
print(report.merge_probabilities().round(2))

print("\n=== PAIRS ===")
print(report.pairs())

print("\n=== MERGE CANDIDATES (>= 0.5) ===")
print(report.merge_candidates(threshold=0.5))

print(f"\nCompleted {report.n_completed}/{report.n_requested} iterations "
      f"in {report.elapsed_seconds:.2f}s")
print(f"Stored in adata.uns: {'bootstab' in adata.uns}")
