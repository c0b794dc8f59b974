"""Report and artifact helpers."""

from scrna_recom.utils.artifacts import ArtifactWriter, RunArtifacts, prepare_output_dir
from scrna_recom.utils.plot_manager import ReportWriter

__all__ = ["ArtifactWriter", "ReportWriter", "RunArtifacts", "prepare_output_dir"]
