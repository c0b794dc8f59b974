"""
Run artifacts: the serialized combined object and its PDF report.

Both files are written under ``.partial`` names and only renamed to their
final names once the whole run has succeeded, so a failed run never leaves
files that look like a finished one.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from scrna_recom.errors import PersistenceError
from scrna_recom.utils.plot_manager import ReportWriter

logger = logging.getLogger(__name__)

OBJECT_SUFFIX = ".h5ad"
REPORT_SUFFIX = ".pdf"


@dataclass(frozen=True)
class RunArtifacts:
    """Output paths of one integration run."""

    outdir: Path
    stem: str

    @classmethod
    def for_strategy(cls, outdir: Union[str, Path], strategy) -> "RunArtifacts":
        return cls(outdir=Path(outdir), stem=f"integration.{strategy.stem}")

    @property
    def object_path(self) -> Path:
        return self.outdir / f"{self.stem}{OBJECT_SUFFIX}"

    @property
    def report_path(self) -> Path:
        return self.outdir / f"{self.stem}{REPORT_SUFFIX}"

    @property
    def partial_object_path(self) -> Path:
        return self.outdir / f"{self.stem}.partial{OBJECT_SUFFIX}"

    @property
    def partial_report_path(self) -> Path:
        return self.outdir / f"{self.stem}.partial{REPORT_SUFFIX}"

    def exists(self) -> bool:
        return self.object_path.is_file() and self.report_path.is_file()


def prepare_output_dir(outdir: Union[str, Path]) -> Path:
    """Create ``outdir`` if needed and check that it is writable."""
    outdir = Path(outdir)
    try:
        outdir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PersistenceError(f"Cannot create output directory {outdir}: {e}", stage="persist") from e
    if not outdir.is_dir() or not os.access(outdir, os.W_OK):
        raise PersistenceError(f"Output directory is not writable: {outdir}", stage="persist")
    return outdir


class ArtifactWriter:
    """
    Write both run artifacts all-or-nothing.

    Example
    -------
    >>> with ArtifactWriter(artifacts) as writer:
    ...     writer.write_object(adata)
    ...     with writer.report() as report:
    ...         with report.page(ncols=2) as axes:
    ...             ...
    """

    def __init__(self, artifacts: RunArtifacts, dpi: int = 150, figsize=(6, 5)):
        self.artifacts = artifacts
        self.dpi = dpi
        self.figsize = figsize

    def __enter__(self):
        self._discard_partials()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self._discard_partials()
            return False
        self._commit()
        return False

    def write_object(self, adata) -> Path:
        """Serialize the combined object to its partial path."""
        path = self.artifacts.partial_object_path
        try:
            adata.write_h5ad(path)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}", stage="persist") from e
        return path

    def report(self) -> ReportWriter:
        """Report writer targeting the partial report path."""
        return ReportWriter(self.artifacts.partial_report_path, dpi=self.dpi, figsize=self.figsize)

    def _commit(self):
        artifacts = self.artifacts
        # Report is renamed first; a failure rolls back whatever was already renamed
        pending = [
            (artifacts.partial_report_path, artifacts.report_path),
            (artifacts.partial_object_path, artifacts.object_path),
        ]
        missing = [str(partial) for partial, _ in pending if not partial.is_file()]
        if missing:
            self._discard_partials()
            raise PersistenceError(f"Run finished without writing: {', '.join(missing)}", stage="persist")

        committed = []
        try:
            for partial, final in pending:
                os.replace(partial, final)
                committed.append(final)
        except OSError as e:
            for final in committed:
                final.unlink()
            self._discard_partials()
            raise PersistenceError(f"Could not finalize artifacts in {artifacts.outdir}: {e}", stage="persist") from e

        logger.info(f"Saved {artifacts.object_path}")
        logger.info(f"Saved {artifacts.report_path}")

    def _discard_partials(self):
        for path in (self.artifacts.partial_object_path, self.artifacts.partial_report_path):
            if path.exists():
                path.unlink()
