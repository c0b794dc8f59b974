"""
scRNA-seq Dataset Integration

Runs one of five dataset-integration strategies (CCA, large-data reference
mapping, SCTransform, Harmony, Liger) over the samples listed in a CSV
manifest, and saves the combined dataset with a diagnostic PDF report.
"""

__version__ = "0.1.0"
__author__ = "scrna-recom developers"

# Import key components for easy access
from scrna_recom.data.manifest import merge_file_data
from scrna_recom.errors import (
    IntegrationError,
    IntegrationRunError,
    ManifestLoadError,
    PersistenceError,
    PreprocessingError,
    UnsupportedStrategy,
)
from scrna_recom.integration import IntegrationParams, IntegrationRun, Strategy, integrate

__all__ = [
    "IntegrationError",
    "IntegrationParams",
    "IntegrationRun",
    "IntegrationRunError",
    "ManifestLoadError",
    "PersistenceError",
    "PreprocessingError",
    "Strategy",
    "UnsupportedStrategy",
    "integrate",
    "merge_file_data",
]
