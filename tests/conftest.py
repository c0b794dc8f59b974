"""
Pytest configuration and fixtures for scrna-recom tests.
"""

import pytest
from pathlib import Path
import sys

import anndata as ad
import numpy as np
import pandas as pd

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

N_GENES = 300
N_CELLS = 120
DATASET_LABELS = ["batchA", "batchB", "batchC", "batchD"]


def make_counts(n_cells=N_CELLS, n_genes=N_GENES, batch_index=0, seed=0):
    """Poisson counts with two cell types and a sample-specific gene effect."""
    gene_rng = np.random.default_rng(42)
    base = np.clip(gene_rng.lognormal(mean=0.5, sigma=0.6, size=n_genes), 0.3, None)
    programme = np.ones((2, n_genes))
    programme[0, :30] = 4.0
    programme[1, 30:60] = 4.0
    batch_rng = np.random.default_rng(100 + batch_index)
    batch_effect = np.exp(0.3 * batch_rng.normal(size=n_genes))

    rng = np.random.default_rng(seed)
    cell_type = rng.integers(0, 2, size=n_cells)
    size = rng.uniform(0.5, 1.5, size=n_cells)
    mu = size[:, None] * base[None, :] * programme[cell_type] * batch_effect[None, :]
    counts = rng.poisson(mu).astype(np.float32)

    return ad.AnnData(
        X=counts,
        obs=pd.DataFrame({"cell_type": cell_type.astype(str)}, index=[f"cell{i:04d}" for i in range(n_cells)]),
        var=pd.DataFrame(index=[f"GENE{j:04d}" for j in range(n_genes)]),
    )


def write_manifest(directory, n_samples=3, fmt="h5ad", n_cells=N_CELLS, extra_columns=None):
    """Write ``n_samples`` sample files plus a manifest listing them."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    rows = []
    for i in range(n_samples):
        sample = f"S{i + 1}"
        adata = make_counts(n_cells=n_cells, batch_index=i, seed=i)
        if fmt == "h5ad":
            path = directory / f"{sample}.h5ad"
            adata.write_h5ad(path)
        else:
            path = directory / f"{sample}.csv"
            pd.DataFrame(adata.X.T, index=adata.var_names, columns=adata.obs_names).to_csv(path)
        row = {"sample": sample, "dataset": DATASET_LABELS[i % len(DATASET_LABELS)], "path": path.name}
        row.update(extra_columns or {})
        rows.append(row)

    manifest = directory / "manifest.csv"
    pd.DataFrame(rows).to_csv(manifest, index=False)
    return manifest


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Each test reads settings from a clean environment."""
    from scrna_recom.config import reset_settings

    for name in ("LARGEDATA_REFERENCE", "LIGER_K", "INTEGRATION_STRATEGY", "N_VARIABLE_FEATURES"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def project_root():
    """Return project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def counts():
    """A single synthetic sample."""
    return make_counts()


@pytest.fixture
def manifest_factory(tmp_path):
    """Build sample files and a manifest inside ``tmp_path``."""
    def _factory(n_samples=3, fmt="h5ad", subdir="data", **kwargs):
        return write_manifest(tmp_path / subdir, n_samples=n_samples, fmt=fmt, **kwargs)
    return _factory


@pytest.fixture(scope="module")
def shared_manifest(tmp_path_factory):
    """A three-sample manifest shared by the tests of one module."""
    return write_manifest(tmp_path_factory.mktemp("samples"), n_samples=3)
