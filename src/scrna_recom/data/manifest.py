"""
Sample manifest loading.

A manifest is a CSV file with one row per sample. The ``sample`` and ``path``
columns are required; ``dataset`` is optional and defaults to the sample id.
Any other column is copied onto every cell of that sample as metadata.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union

import anndata as ad
import pandas as pd
import scanpy as sc

from scrna_recom.errors import ManifestLoadError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("sample", "path")
DELIMITED_SUFFIXES = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


@dataclass(frozen=True)
class ManifestEntry:
    """One row of the sample manifest."""

    sample: str
    dataset: str
    path: Path
    metadata: Dict[str, str] = field(default_factory=dict)


def read_manifest(manifest: Union[str, Path]) -> List[ManifestEntry]:
    """
    Parse a sample manifest.

    Parameters
    ----------
    manifest : str or Path
        CSV file listing the samples to integrate.

    Returns
    -------
    list of ManifestEntry
        Entries in manifest order, with relative paths resolved against the
        manifest's directory.
    """
    manifest = Path(manifest)
    if not manifest.is_file():
        raise ManifestLoadError(f"Manifest not found: {manifest}", stage="load")

    try:
        table = pd.read_csv(manifest, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ManifestLoadError(f"Could not parse manifest {manifest}: {e}", stage="load") from e

    table.columns = [str(col).strip() for col in table.columns]
    missing = [col for col in REQUIRED_COLUMNS if col not in table.columns]
    if missing:
        raise ManifestLoadError(
            f"Manifest {manifest} is missing required column(s): {', '.join(missing)}",
            stage="load",
        )
    if table.empty:
        raise ManifestLoadError(f"Manifest {manifest} lists no samples", stage="load")

    table = table.apply(lambda col: col.str.strip())
    if (table["sample"] == "").any() or (table["path"] == "").any():
        raise ManifestLoadError(f"Manifest {manifest} has rows with an empty sample or path", stage="load")

    duplicated = table.loc[table["sample"].duplicated(), "sample"].unique()
    if len(duplicated):
        raise ManifestLoadError(
            f"Duplicate sample id(s) in manifest: {', '.join(duplicated)}",
            stage="load",
        )

    metadata_columns = [col for col in table.columns if col not in ("sample", "dataset", "path")]
    entries = []
    for row in table.to_dict(orient="records"):
        path = Path(row["path"]).expanduser()
        if not path.is_absolute():
            path = manifest.parent / path
        entries.append(
            ManifestEntry(
                sample=row["sample"],
                dataset=row.get("dataset") or row["sample"],
                path=path,
                metadata={col: row[col] for col in metadata_columns},
            )
        )
    return entries


def read_sample_file(path: Union[str, Path]) -> ad.AnnData:
    """
    Read one sample's count matrix as cells x genes.

    Supports ``.h5ad``, 10x ``.h5``, 10x matrix directories and delimited
    genes x cells count tables (optionally gzipped).
    """
    path = Path(path)
    if not path.exists():
        raise ManifestLoadError(f"Sample file not found: {path}", stage="load")

    name = path.name.lower()
    suffix = Path(name[:-3]).suffix if name.endswith(".gz") else path.suffix.lower()

    try:
        if path.is_dir():
            if not list(path.glob("*matrix.mtx*")):
                raise ManifestLoadError(f"No matrix.mtx file in directory: {path}", stage="load")
            adata = sc.read_10x_mtx(path, var_names="gene_symbols")
        elif suffix == ".h5ad":
            adata = sc.read_h5ad(path)
        elif suffix == ".h5":
            adata = sc.read_10x_h5(path)
        elif suffix in DELIMITED_SUFFIXES:
            # Count tables are stored genes x cells
            table = pd.read_csv(path, index_col=0, sep=DELIMITED_SUFFIXES[suffix])
            table = table.apply(pd.to_numeric, errors="coerce").fillna(0)
            adata = ad.AnnData(
                X=table.T.to_numpy(dtype="float32"),
                obs=pd.DataFrame(index=table.columns.astype(str)),
                var=pd.DataFrame(index=table.index.astype(str)),
            )
        else:
            raise ManifestLoadError(f"Unsupported sample file format: {path}", stage="load")
    except ManifestLoadError:
        raise
    except Exception as e:
        raise ManifestLoadError(f"Error loading {path}: {e}", stage="load") from e

    adata.var_names_make_unique()
    return adata


def load_sample(entry: ManifestEntry) -> ad.AnnData:
    """Load the sample described by ``entry`` and tag its cells."""
    adata = read_sample_file(entry.path)
    if adata.n_obs == 0 or adata.n_vars == 0:
        raise ManifestLoadError(f"Sample {entry.sample} at {entry.path} is empty", stage="load")

    adata.obs_names = [f"{entry.sample}_{barcode}" for barcode in adata.obs_names]
    adata.obs["sample"] = entry.sample
    adata.obs["dataset"] = entry.dataset
    for key, value in entry.metadata.items():
        adata.obs[key] = value

    logger.info(f"Loaded sample {entry.sample}: {adata.n_obs} cells, {adata.n_vars} genes")
    return adata


def merge_file_data(manifest: Union[str, Path]) -> List[ad.AnnData]:
    """
    Load every sample listed in a manifest.

    Parameters
    ----------
    manifest : str or Path
        CSV manifest file.

    Returns
    -------
    list of AnnData
        One object per manifest row, in manifest order, each carrying
        ``obs['sample']`` and ``obs['dataset']``.
    """
    entries = read_manifest(manifest)
    logger.info(f"Loading {len(entries)} sample(s) from {manifest}")
    return [load_sample(entry) for entry in entries]
