"""Diagnostic report pages for each integration strategy."""

from scrna_recom.integration.strategy import Strategy
from scrna_recom.utils.plot_manager import plot_component_violin, plot_embedding


def _pca_umap_pages(report, adata):
    with report.page() as (ax,):
        plot_embedding(ax, adata, "X_pca", "dataset", title="PCA")
    with report.page() as (ax,):
        plot_embedding(ax, adata, "X_umap", "dataset", title="UMAP")


def _harmony_pages(report, adata):
    with report.page(ncols=2) as (left, right):
        plot_embedding(left, adata, "X_pca", "dataset", title="PCA")
        plot_component_violin(right, adata, "X_pca", 0, "dataset", label="PC_1")
    with report.page(ncols=2) as (left, right):
        plot_embedding(left, adata, "X_pca_harmony", "dataset", title="Harmony")
        plot_component_violin(right, adata, "X_pca_harmony", 0, "dataset", label="harmony_1")


def _liger_pages(report, adata):
    with report.page(ncols=2) as (left, right):
        plot_embedding(left, adata, "X_umap", "dataset", title="UMAP by dataset")
        plot_embedding(right, adata, "X_umap", "cluster", title="UMAP by cluster")
    with report.page(ncols=2) as (left, right):
        plot_embedding(left, adata, "X_inmf", "dataset", title="iNMF by dataset")
        plot_embedding(right, adata, "X_inmf", "cluster", title="iNMF by cluster")
    with report.page() as (ax,):
        plot_component_violin(ax, adata, "X_inmf", 0, "dataset", label="iNMF_1")


REPORT_LAYOUTS = {
    Strategy.CCA: _pca_umap_pages,
    Strategy.LARGEDATA: _pca_umap_pages,
    Strategy.SCTRANSFORM: _pca_umap_pages,
    Strategy.HARMONY: _harmony_pages,
    Strategy.LIGER: _liger_pages,
}


def render_report(report, adata, strategy: Strategy) -> int:
    """Render the diagnostic pages for ``strategy``; returns the page count."""
    REPORT_LAYOUTS[strategy](report, adata)
    return report.n_pages
