"""
Integration strategy dispatcher.

Loads the samples listed in a manifest, runs the selected strategy and writes
``integration.<strategy>.h5ad`` and ``integration.<strategy>.pdf`` into the
output directory.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import anndata as ad

from scrna_recom.config import get_settings
from scrna_recom.data.manifest import merge_file_data
from scrna_recom.errors import PersistenceError
from scrna_recom.integration.pipelines import run_pipeline, stage
from scrna_recom.integration.reporting import render_report
from scrna_recom.integration.strategy import IntegrationParams, Strategy
from scrna_recom.utils.artifacts import ArtifactWriter, RunArtifacts, prepare_output_dir

logger = logging.getLogger(__name__)


@dataclass
class IntegrationRun:
    """Result of one successful integration run."""

    strategy: Strategy
    combined: ad.AnnData
    artifacts: RunArtifacts
    n_report_pages: int


def integrate(manifest: Union[str, Path], outdir: Union[str, Path],
              strategy: Union[Strategy, str], params: Optional[IntegrationParams] = None) -> IntegrationRun:
    """
    Run one integration strategy over the samples of a manifest.

    Parameters
    ----------
    manifest : str or Path
        CSV manifest of sample files.
    outdir : str or Path
        Directory receiving the serialized object and the report.
    strategy : Strategy or str
        Strategy member, artifact stem (e.g. ``"harmony"``) or member name.
    params : IntegrationParams, optional
        Run tunables. Defaults to values from settings.

    Returns
    -------
    IntegrationRun
        The combined object and the paths of its artifacts.

    Raises
    ------
    UnsupportedStrategy
        Before any file is touched, if ``strategy`` is unknown.
    ManifestLoadError, PreprocessingError, IntegrationError, PersistenceError
        If the corresponding stage fails. No artifacts are left behind.
    """
    strategy = Strategy.parse(strategy)
    settings = get_settings()
    if params is None:
        params = IntegrationParams.from_settings(settings)

    outdir = prepare_output_dir(outdir)
    artifacts = RunArtifacts.for_strategy(outdir, strategy)

    samples = merge_file_data(manifest)
    combined = run_pipeline(strategy, samples, params)
    combined.uns["integration"] = {
        "strategy": strategy.stem,
        "n_samples": len(samples),
        "params": params.to_dict(strategy),
    }

    with stage("persist", PersistenceError):
        with ArtifactWriter(artifacts, dpi=settings.PLOT_DPI, figsize=settings.PLOT_FIGSIZE) as writer:
            writer.write_object(combined)
            with writer.report() as report:
                n_pages = render_report(report, combined, strategy)

    logger.info(f"Integration {strategy.stem} finished: {combined.n_obs} cells from {len(samples)} samples")
    return IntegrationRun(strategy=strategy, combined=combined, artifacts=artifacts, n_report_pages=n_pages)
