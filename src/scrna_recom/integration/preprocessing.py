"""
Preprocessing stages shared by the integration strategies.

Every function returns a new AnnData (or list of them) and leaves its inputs
untouched, so stages can be chained as ``samples = stage(samples)``.
"""

import logging
from typing import List, Optional, Sequence

import anndata as ad
import numpy as np
import pandas as pd
import scanpy as sc
from scipy import sparse

from scrna_recom.errors import PreprocessingError

logger = logging.getLogger(__name__)

MIN_SAMPLES = 2


def require_samples(samples: Sequence[ad.AnnData], minimum: int = MIN_SAMPLES) -> None:
    """Fail unless there are enough samples to integrate."""
    if len(samples) < minimum:
        raise PreprocessingError(
            f"Integration needs at least {minimum} samples, got {len(samples)}",
            stage="preprocess",
        )


def clamp_n_top(n_top: int, adata: ad.AnnData, what: str = "variable features") -> int:
    """Limit a requested feature count to the number of genes available."""
    if n_top > adata.n_vars:
        logger.warning(f"Requested {n_top} {what} but only {adata.n_vars} genes are present; using {adata.n_vars}")
        return adata.n_vars
    return n_top


def clamp_n_comps(n_comps: int, adata: ad.AnnData) -> int:
    """Limit a component count to what a PCA of ``adata`` can return."""
    limit = min(adata.n_obs, adata.n_vars) - 1
    if limit < 1:
        raise PreprocessingError(
            f"Cannot compute a reduction of {adata.n_obs} cells x {adata.n_vars} genes",
            stage="reduce",
        )
    if n_comps > limit:
        logger.warning(f"Requested {n_comps} components but only {limit} can be computed; using {limit}")
        return limit
    return n_comps


def log_normalize(adata: ad.AnnData, target_sum: float = 1e4) -> ad.AnnData:
    """Store counts in ``layers['counts']`` and log-normalize ``X``."""
    adata = adata.copy()
    adata.layers["counts"] = adata.X.copy()
    sc.pp.normalize_total(adata, target_sum=target_sum)
    sc.pp.log1p(adata)
    return adata


def find_variable_features(adata: ad.AnnData, n_top: int = 2000, flavor: str = "seurat") -> ad.AnnData:
    """Annotate the top ``n_top`` variable genes of log-normalized data."""
    adata = adata.copy()
    sc.pp.highly_variable_genes(adata, n_top_genes=clamp_n_top(n_top, adata), flavor=flavor)
    if not adata.var["highly_variable"].any():
        raise PreprocessingError("No variable features found", stage="feature-select")
    return adata


def normalize_and_select(samples: Sequence[ad.AnnData], n_top: int = 2000,
                         target_sum: float = 1e4, flavor: str = "seurat") -> List[ad.AnnData]:
    """Log-normalize every sample and select its variable features."""
    processed = []
    for adata in samples:
        adata = log_normalize(adata, target_sum=target_sum)
        processed.append(find_variable_features(adata, n_top=n_top, flavor=flavor))
    return processed


def variable_feature_ranking(adata: ad.AnnData) -> pd.Series:
    """
    Rank of each variable gene within one sample (1 = most variable).

    Uses ``highly_variable_rank`` when the selection flavor provides it, and
    otherwise orders the variable genes by normalized dispersion.
    """
    var = adata.var
    if "highly_variable" not in var:
        raise PreprocessingError("Sample has no variable feature annotation", stage="feature-select")

    variable = var.loc[var["highly_variable"].astype(bool)]
    if "highly_variable_rank" in variable and variable["highly_variable_rank"].notna().all():
        ranking = variable["highly_variable_rank"].rank(method="first")
    else:
        score = variable["dispersions_norm"] if "dispersions_norm" in variable else variable["variances_norm"]
        ranking = score.rank(ascending=False, method="first")
    return ranking.astype(float)


def select_integration_features(samples: Sequence[ad.AnnData], n_features: int = 2000) -> List[str]:
    """
    Choose the features shared across samples for integration.

    Genes are ordered by the number of samples in which they are variable,
    then by their median rank across those samples, then by name. Only genes
    measured in every sample are eligible.

    Parameters
    ----------
    samples : sequence of AnnData
        Samples annotated by :func:`find_variable_features`.
    n_features : int
        Maximum number of features to return.

    Returns
    -------
    list of str
        Ordered shared feature set.
    """
    ranks = pd.concat(
        [variable_feature_ranking(adata) for adata in samples], axis=1, keys=list(range(len(samples)))
    )
    measured = set(samples[0].var_names)
    for adata in samples[1:]:
        measured &= set(adata.var_names)

    stats = pd.DataFrame({
        "n_samples": ranks.notna().sum(axis=1),
        "median_rank": ranks.median(axis=1, skipna=True),
        "gene": ranks.index.astype(str),
    }, index=ranks.index)
    stats = stats.loc[stats.index.isin(measured) & (stats["n_samples"] > 0)]
    stats = stats.sort_values(["n_samples", "median_rank", "gene"], ascending=[False, True, True])

    features = stats.index[:n_features].tolist()
    if not features:
        raise PreprocessingError("No variable features are shared by all samples", stage="feature-select")

    logger.info(f"Selected {len(features)} integration features across {len(samples)} samples")
    return features


def subset_features(adata: ad.AnnData, features: Sequence[str], layer: Optional[str] = None,
                    keep_obsm: bool = True) -> ad.AnnData:
    """Copy of ``adata`` restricted to ``features``, dropping stale ``var`` annotations."""
    view = adata[:, list(features)]
    X = view.layers[layer] if layer is not None else view.X
    return ad.AnnData(
        X=X.copy(),
        obs=view.obs.copy(),
        var=pd.DataFrame(index=pd.Index(features, dtype=str)),
        obsm={key: value.copy() for key, value in view.obsm.items()} if keep_obsm else None,
    )


def scale_data(adata: ad.AnnData, features: Optional[Sequence[str]] = None,
               max_value: float = 10, zero_center: bool = True) -> ad.AnnData:
    """Scale genes to unit variance, optionally restricted to ``features``."""
    adata = subset_features(adata, features) if features is not None else adata.copy()
    sc.pp.scale(adata, zero_center=zero_center, max_value=max_value)
    return adata


def run_pca(adata: ad.AnnData, n_comps: int = 50, seed: int = 0) -> ad.AnnData:
    """Linear reduction stored in ``obsm['X_pca']``."""
    adata = adata.copy()
    sc.tl.pca(adata, n_comps=clamp_n_comps(n_comps, adata), random_state=seed)
    return adata


def run_umap(adata: ad.AnnData, use_rep: str = "X_pca", n_dims: Optional[int] = None, seed: int = 0) -> ad.AnnData:
    """Neighbor graph on the first ``n_dims`` columns of ``use_rep`` followed by UMAP."""
    adata = adata.copy()
    width = adata.obsm[use_rep].shape[1]
    n_dims = width if n_dims is None else min(n_dims, width)
    sc.pp.neighbors(adata, use_rep=use_rep, n_pcs=n_dims, random_state=seed)
    sc.tl.umap(adata, random_state=seed)
    return adata


def scale_and_reduce(samples: Sequence[ad.AnnData], features: Sequence[str],
                     n_comps: int = 50, seed: int = 0) -> List[ad.AnnData]:
    """
    Scale every sample on the shared ``features`` and reduce it on its own.

    Each returned sample holds its scaled matrix in ``X`` and its own PCA in
    ``obsm['X_pca']``.
    """
    reduced = []
    for adata in samples:
        adata = run_pca(scale_data(adata, features), n_comps=n_comps, seed=seed)
        logger.info(
            f"Sample {adata.obs['sample'].iloc[0]}: {adata.obsm['X_pca'].shape[1]} components on {adata.n_vars} features"
        )
        reduced.append(adata)
    return reduced


def merge_samples(samples: Sequence[ad.AnnData]) -> ad.AnnData:
    """Concatenate samples cell-wise on the union of their genes."""
    merged = ad.concat(list(samples), join="outer", fill_value=0)
    if sparse.issparse(merged.X):
        merged.X = merged.X.tocsr()
    merged.obs["dataset"] = merged.obs["dataset"].astype(str).astype("category")
    merged.obs["sample"] = merged.obs["sample"].astype(str).astype("category")
    logger.info(f"Merged {len(samples)} samples: {merged.n_obs} cells, {merged.n_vars} genes")
    return merged


def sct_transform(adata: ad.AnnData, n_top: int = 5000, seed: int = 0) -> ad.AnnData:
    """
    Variance-stabilizing transform using analytic Pearson residuals.

    Replaces log-normalization and variable feature selection: the top
    ``n_top`` genes by residual variance are flagged in ``var`` and ``X`` is
    replaced by the residuals of every gene. Raw counts move to
    ``layers['counts']``.
    """
    adata = adata.copy()
    adata.layers["counts"] = adata.X.copy()
    sc.experimental.pp.highly_variable_genes(
        adata, flavor="pearson_residuals", n_top_genes=clamp_n_top(n_top, adata)
    )
    sc.experimental.pp.normalize_pearson_residuals(adata)
    if sparse.issparse(adata.X):
        adata.X = adata.X.toarray()
    adata.X = np.asarray(adata.X, dtype=np.float32)
    return adata


def prep_sct_integration(samples: Sequence[ad.AnnData], features: Sequence[str]) -> List[ad.AnnData]:
    """Restrict residual matrices to the shared anchor features."""
    prepped = []
    for adata in samples:
        missing = [gene for gene in features if gene not in adata.var_names]
        if missing:
            raise PreprocessingError(
                f"Sample {adata.obs['sample'].iloc[0]} lacks residuals for {len(missing)} anchor features",
                stage="prep-sct",
            )
        prepped.append(subset_features(adata, features))
    return prepped
