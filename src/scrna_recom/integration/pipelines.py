"""
Integration pipelines, one per strategy.

Each pipeline takes the loaded per-sample objects and returns a single
combined AnnData carrying ``obs['dataset']``, a linear embedding and a UMAP.
The heavy lifting is delegated to scanpy, scanorama, harmonypy and pyliger.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Dict, List, Sequence, Type

import anndata as ad
import numpy as np
import pandas as pd
import scanorama
import scanpy as sc
from scipy import sparse

from scrna_recom.errors import IntegrationError, IntegrationRunError, PreprocessingError
from scrna_recom.integration import preprocessing as pp
from scrna_recom.integration.strategy import IntegrationParams, Strategy

logger = logging.getLogger(__name__)

CCA_DIMS = 30
LARGEDATA_DIMS = 50
SCT_DIMS = 30
DEFAULT_PCS = 50


@contextmanager
def stage(name: str, error_cls: Type[IntegrationRunError] = IntegrationError):
    """Label failures inside the block with the stage they came from."""
    logger.info(f"Stage: {name}")
    try:
        yield
    except IntegrationRunError as e:
        if e.stage is None:
            e.stage = name
        raise
    except Exception as e:
        raise error_cls(f"{type(e).__name__}: {e}", stage=name) from e


def anchor_integrate(samples: Sequence[ad.AnnData], features: Sequence[str],
                     dims: int, seed: int = 0) -> List[ad.AnnData]:
    """
    Anchor-based correction of ``samples`` on ``features`` with scanorama.

    Anchors are mutual nearest neighbors found in a joint ``dims``-wide
    reduction; returns corrected copies sharing one gene order.
    """
    subsets = [pp.subset_features(adata, features, keep_obsm=False) for adata in samples]
    dims = min(dims, len(features) - 1, min(adata.n_obs for adata in subsets) - 1)
    corrected = scanorama.correct_scanpy(
        subsets, return_dimred=True, return_dense=True, dimred=dims, seed=seed, verbose=False
    )
    return [pp.subset_features(adata, list(adata.var_names)) for adata in corrected]


def _combine(corrected: Sequence[ad.AnnData]) -> ad.AnnData:
    combined = ad.concat(list(corrected), join="inner")
    combined.X = np.asarray(combined.X.toarray() if sparse.issparse(combined.X) else combined.X, dtype=np.float32)
    combined.obs["dataset"] = combined.obs["dataset"].astype(str).astype("category")
    return combined


def integrate_cca(samples: Sequence[ad.AnnData], params: IntegrationParams) -> ad.AnnData:
    """Normalize, select shared features, anchor-correct, then PCA and UMAP on 30 dims."""
    with stage("preprocess", PreprocessingError):
        pp.require_samples(samples)
        samples = pp.normalize_and_select(samples, params.n_features, params.target_sum, params.hvg_flavor)
    with stage("feature-select", PreprocessingError):
        features = pp.select_integration_features(samples, params.n_features)
    with stage("integrate"):
        combined = _combine(anchor_integrate(samples, features, CCA_DIMS, params.seed))
    with stage("reduce"):
        combined = pp.scale_data(combined)
        combined = pp.run_pca(combined, n_comps=CCA_DIMS, seed=params.seed)
        combined = pp.run_umap(combined, use_rep="X_pca", n_dims=CCA_DIMS, seed=params.seed)
    return combined


def validate_reference(reference: Sequence[int], n_samples: int) -> List[int]:
    """Reference sample indices must be distinct and inside the manifest."""
    reference = list(reference)
    if not reference:
        raise IntegrationError("At least one reference sample is required", stage="reference")
    if len(set(reference)) != len(reference):
        raise IntegrationError(f"Duplicate reference indices: {reference}", stage="reference")
    invalid = [index for index in reference if index < 0 or index >= n_samples]
    if invalid:
        raise IntegrationError(
            f"Reference indices {invalid} are out of range for {n_samples} samples",
            stage="reference",
        )
    return reference


def integrate_largedata(samples: Sequence[ad.AnnData], params: IntegrationParams) -> ad.AnnData:
    """
    Reference-based integration for large collections.

    Every sample is scaled on the shared features and reduced with its own
    PCA. The reference samples are then anchor-corrected together, within
    the width of their smallest per-sample reduction, and reduced with a
    joint PCA. Every other sample is projected from its own scaled matrix into
    the reference reduction and placed on the reference UMAP.
    """
    with stage("preprocess", PreprocessingError):
        pp.require_samples(samples)
    reference = validate_reference(params.reference, len(samples))

    with stage("preprocess", PreprocessingError):
        samples = pp.normalize_and_select(samples, params.n_features, params.target_sum, params.hvg_flavor)
    with stage("feature-select", PreprocessingError):
        features = pp.select_integration_features(samples, params.n_features)
    with stage("scale-reduce"):
        samples = pp.scale_and_reduce(samples, features, LARGEDATA_DIMS, params.seed)

    refs = [samples[index] for index in reference]
    queries = [adata for index, adata in enumerate(samples) if index not in reference]

    with stage("integrate"):
        # Anchor space is bounded by the smallest per-sample reduction
        anchor_dims = min(adata.obsm["X_pca"].shape[1] for adata in refs)
        if len(refs) > 1:
            ref = _combine(anchor_integrate(refs, features, anchor_dims, params.seed))
        else:
            ref = _combine(refs)
        ref = pp.scale_data(ref)
        ref = pp.run_pca(ref, n_comps=LARGEDATA_DIMS, seed=params.seed)
        ref = pp.run_umap(ref, use_rep="X_pca", n_dims=LARGEDATA_DIMS, seed=params.seed)
        logger.info(f"Reference built from {len(refs)} sample(s): {ref.n_obs} cells")

        mapped = [ref]
        for query in queries:
            query = query[:, ref.var_names].copy()
            sc.tl.ingest(query, ref, embedding_method=("pca", "umap"))
            mapped.append(query)

    with stage("reduce"):
        combined = ad.concat(mapped, join="inner")
        combined.obs["dataset"] = combined.obs["dataset"].astype(str).astype("category")
        combined.obs["reference"] = combined.obs_names.isin(ref.obs_names)
        combined.uns["pca"] = ref.uns["pca"]
        combined.varm["PCs"] = ref.varm["PCs"]
    return combined


def integrate_sctransform(samples: Sequence[ad.AnnData], params: IntegrationParams) -> ad.AnnData:
    """Pearson-residual transform per sample, anchor-correct on shared features, PCA and UMAP."""
    with stage("preprocess", PreprocessingError):
        pp.require_samples(samples)
        samples = [pp.sct_transform(adata, params.sct_n_features, params.seed) for adata in samples]
    with stage("feature-select", PreprocessingError):
        features = pp.select_integration_features(samples, params.sct_n_features)
        samples = pp.prep_sct_integration(samples, features)
    with stage("integrate"):
        combined = _combine(anchor_integrate(samples, features, SCT_DIMS, params.seed))
    with stage("reduce"):
        combined = pp.run_pca(combined, n_comps=DEFAULT_PCS, seed=params.seed)
        combined = pp.run_umap(combined, use_rep="X_pca", n_dims=SCT_DIMS, seed=params.seed)
    return combined


def integrate_harmony(samples: Sequence[ad.AnnData], params: IntegrationParams) -> ad.AnnData:
    """Merge, normalize, PCA, then correct the PCA with Harmony keyed on ``dataset``."""
    with stage("preprocess", PreprocessingError):
        pp.require_samples(samples)
        merged = pp.merge_samples(samples)
        merged = pp.log_normalize(merged, target_sum=params.target_sum)
        merged = pp.find_variable_features(merged, params.n_features, params.hvg_flavor)
    with stage("reduce"):
        combined = pp.scale_data(merged)
        combined = pp.run_pca(combined, n_comps=DEFAULT_PCS, seed=params.seed)
    with stage("integrate"):
        if combined.obs["dataset"].nunique() < 2:
            raise IntegrationError("Harmony needs at least two distinct dataset labels")
        sc.external.pp.harmony_integrate(
            combined, "dataset", basis="X_pca", adjusted_basis="X_pca_harmony"
        )
    with stage("embed"):
        combined = pp.run_umap(combined, use_rep="X_pca_harmony", seed=params.seed)
    return combined


def integrate_liger(samples: Sequence[ad.AnnData], params: IntegrationParams) -> ad.AnnData:
    """
    Integrative NMF with pyliger.

    Samples are merged and split again by ``dataset``; each dataset is scaled
    without centering, factorized jointly (rank ``liger_k``, regularization
    ``liger_lambda``) and quantile normalized. Neighbors, Leiden clusters and
    UMAP are then computed on the normalized factor loadings.
    """
    pp.require_samples(samples)
    try:
        import pyliger
    except ImportError as e:
        raise IntegrationError(
            "pyliger is required for the liger strategy (pip install scrna-recom[liger])",
            stage="integrate",
        ) from e

    with stage("preprocess", PreprocessingError):
        merged = pp.merge_samples(samples)
        datasets = list(merged.obs["dataset"].cat.categories)
        if len(datasets) < 2:
            raise PreprocessingError("Liger needs at least two distinct dataset labels")

        adata_list = []
        for name in datasets:
            part = merged[(merged.obs["dataset"] == name).to_numpy()]
            split = ad.AnnData(
                X=sparse.csr_matrix(part.X),
                obs=pd.DataFrame(index=part.obs_names),
                var=pd.DataFrame(index=part.var_names),
            )
            split.uns["sample_name"] = name
            adata_list.append(split)

        liger = pyliger.create_liger(adata_list)
        pyliger.normalize(liger)
        pyliger.select_genes(liger, num_genes=params.n_features)
        pyliger.scale_not_center(liger)

    with stage("integrate"):
        pyliger.optimize_ALS(liger, k=params.liger_k, value_lambda=params.liger_lambda, rand_seed=params.seed)
        pyliger.quantile_norm(liger, rand_seed=params.seed)
        loadings = pd.concat(
            [pd.DataFrame(adata.obsm["H_norm"], index=adata.obs_names) for adata in liger.adata_list]
        )

    with stage("cluster"):
        combined = pp.log_normalize(merged[loadings.index], target_sum=params.target_sum)
        combined.obsm["X_inmf"] = loadings.to_numpy(dtype=np.float32)
        combined = pp.run_umap(combined, use_rep="X_inmf", n_dims=params.liger_k, seed=params.seed)
        sc.tl.leiden(combined, resolution=params.liger_resolution, key_added="cluster", random_state=params.seed)
    return combined


PIPELINES: Dict[Strategy, Callable[[Sequence[ad.AnnData], IntegrationParams], ad.AnnData]] = {
    Strategy.CCA: integrate_cca,
    Strategy.LARGEDATA: integrate_largedata,
    Strategy.SCTRANSFORM: integrate_sctransform,
    Strategy.HARMONY: integrate_harmony,
    Strategy.LIGER: integrate_liger,
}

_unhandled = set(Strategy) - set(PIPELINES)
if _unhandled:
    raise RuntimeError(f"No pipeline registered for: {sorted(s.value for s in _unhandled)}")


def run_pipeline(strategy: Strategy, samples: Sequence[ad.AnnData], params: IntegrationParams) -> ad.AnnData:
    """Run the pipeline registered for ``strategy``."""
    logger.info(f"Running {strategy.stem} integration on {len(samples)} samples")
    return PIPELINES[strategy](samples, params)
