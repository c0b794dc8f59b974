#!/usr/bin/env python3
"""
Plot management for integration reports.
Multi-page PDF writing plus the scatter and violin panels used in reports.
"""

import logging
from contextlib import contextmanager
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.backends.backend_pdf import PdfPages

logger = logging.getLogger(__name__)


class ReportWriter:
    """Multi-page PDF report, one figure per page"""

    def __init__(self, path, dpi=150, figsize=(6, 5)):
        self.path = Path(path)
        self.dpi = dpi
        self.figsize = figsize
        self.n_pages = 0
        self._pdf = None

        # Configure matplotlib to not show plots
        plt.ioff()

    def __enter__(self):
        self._pdf = PdfPages(self.path)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Flush and release the PDF handle"""
        if self._pdf is not None:
            self._pdf.close()
            self._pdf = None
            logger.info(f"Wrote {self.n_pages} report page(s) to {self.path}")

    @contextmanager
    def page(self, ncols=1, title=None):
        """
        Create one report page with ``ncols`` side-by-side panels.

        Yields
        ------
        list of matplotlib.axes.Axes
            One axis per panel. The page is saved when the block exits
            cleanly; the figure is closed on every path.
        """
        if self._pdf is None:
            raise RuntimeError("ReportWriter is not open")

        width, height = self.figsize
        fig, axes = plt.subplots(1, ncols, figsize=(width * ncols, height), squeeze=False)
        try:
            yield list(axes[0])
            if title:
                fig.suptitle(title)
            fig.tight_layout()
            self._pdf.savefig(fig, dpi=self.dpi)
            self.n_pages += 1
        finally:
            plt.close(fig)


def embedding_frame(adata, basis, groupby, dims=(0, 1)):
    """Two embedding columns plus the grouping label as a DataFrame"""
    coords = np.asarray(adata.obsm[basis])
    label = basis[2:] if basis.startswith("X_") else basis
    columns = [f"{label}_{dim + 1}" for dim in dims]
    frame = pd.DataFrame(coords[:, list(dims)], columns=columns, index=adata.obs_names)
    frame[groupby] = adata.obs[groupby].astype(str).to_numpy()
    return frame


def plot_embedding(ax, adata, basis, color="dataset", title=None, point_size=None):
    """Scatter of the first two embedding components colored by an obs column"""
    frame = embedding_frame(adata, basis, color)
    x, y = frame.columns[:2]
    if point_size is None:
        point_size = max(1.0, 120000 / max(len(frame), 1) ** 1.3)

    sns.scatterplot(data=frame, x=x, y=y, hue=color, s=point_size, linewidth=0,
                    rasterized=True, ax=ax)
    ax.set_title(title or f"{basis} by {color}")
    ax.set_xticks([])
    ax.set_yticks([])
    if ax.get_legend() is not None:
        ax.legend(loc="center left", bbox_to_anchor=(1, 0.5), fontsize=7, frameon=False,
                  title=color, title_fontsize=8, markerscale=2)
    return ax


def plot_component_violin(ax, adata, basis, component=0, groupby="dataset", label=None):
    """Violin plot of one embedding component grouped by an obs column"""
    if label is None:
        prefix = basis[2:] if basis.startswith("X_") else basis
        label = f"{prefix}_{component + 1}"

    frame = pd.DataFrame({
        label: np.asarray(adata.obsm[basis])[:, component],
        groupby: adata.obs[groupby].astype(str).to_numpy(),
    })
    sns.violinplot(data=frame, x=groupby, y=label, cut=0, inner="quartile", ax=ax)
    ax.set_title(label)
    ax.tick_params(axis="x", rotation=45)
    return ax
