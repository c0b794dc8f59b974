"""
Centralized configuration settings for scRNA-seq integration runs.
"""

from pathlib import Path
from typing import Optional, Tuple
import os


def _parse_indices(value: str) -> Tuple[int, ...]:
    return tuple(int(item) for item in value.replace(" ", "").split(",") if item)


class Settings:
    """Global settings for the integration dispatcher."""

    def __init__(self, base_dir: Optional[Path] = None):
        """
        Initialize settings.

        Parameters
        ----------
        base_dir : Path, optional
            Base directory for relative output paths. Defaults to the
            current working directory.
        """
        self.BASE_DIR = Path(base_dir) if base_dir is not None else Path.cwd()

        # Default output location used by the command line runner
        self.OUTPUT_DIR = Path(os.getenv("INTEGRATION_OUTPUT_DIR", str(self.BASE_DIR / "results" / "integration")))

        # Strategy selection
        self.DEFAULT_STRATEGY = os.getenv("INTEGRATION_STRATEGY", "seurat-cca")

        # Normalization parameters
        self.NORM_TARGET_SUM = float(os.getenv("NORM_TARGET_SUM", "10000"))

        # Feature selection parameters
        self.N_VARIABLE_FEATURES = int(os.getenv("N_VARIABLE_FEATURES", "2000"))
        self.SCT_N_VARIABLE_FEATURES = int(os.getenv("SCT_N_VARIABLE_FEATURES", "5000"))
        self.HVG_FLAVOR = os.getenv("HVG_FLAVOR", "seurat")

        # Large data (reference-based) parameters, 0-based sample indices
        self.LARGEDATA_REFERENCE = _parse_indices(os.getenv("LARGEDATA_REFERENCE", "0,1"))

        # Liger parameters
        self.LIGER_K = int(os.getenv("LIGER_K", "20"))
        self.LIGER_LAMBDA = float(os.getenv("LIGER_LAMBDA", "5"))
        self.LIGER_RESOLUTION = float(os.getenv("LIGER_RESOLUTION", "0.55"))

        # Reproducibility
        self.RANDOM_SEED = int(os.getenv("RANDOM_SEED", "0"))

        # Plotting parameters
        self.PLOT_DPI = int(os.getenv("PLOT_DPI", "150"))
        self.PLOT_FIGSIZE = (6.0, 5.0)

        # Logging
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    def get_output_dir(self, outdir: Optional[Path] = None) -> Path:
        """Resolve an output directory, falling back to ``OUTPUT_DIR``."""
        if outdir is None:
            return self.OUTPUT_DIR
        outdir = Path(outdir)
        return outdir if outdir.is_absolute() else self.BASE_DIR / outdir


# Global settings instance
_settings: Optional[Settings] = None


def get_settings(base_dir: Optional[Path] = None) -> Settings:
    """
    Get global settings instance (singleton pattern).

    Parameters
    ----------
    base_dir : Path, optional
        Base directory for the project. Only used on first call.

    Returns
    -------
    Settings
        Global settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings(base_dir)
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next ``get_settings`` re-reads the environment."""
    global _settings
    _settings = None
