"""
Exception hierarchy for integration runs.

Every error raised by a run derives from ``IntegrationRunError`` and may carry
the name of the pipeline stage it originated from.
"""

from typing import Optional


class IntegrationRunError(Exception):
    """Base class for all errors raised while running an integration."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self):
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ManifestLoadError(IntegrationRunError):
    """The sample manifest or one of the files it lists could not be loaded."""


class UnsupportedStrategy(IntegrationRunError, ValueError):
    """The requested integration strategy is not one of the known variants."""


class PreprocessingError(IntegrationRunError):
    """Normalization or feature selection could not produce usable input."""


class IntegrationError(IntegrationRunError):
    """Anchor finding, batch correction or factorization failed."""


class PersistenceError(IntegrationRunError):
    """Run artifacts could not be written to the output directory."""
