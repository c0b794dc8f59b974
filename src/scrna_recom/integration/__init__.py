"""Integration strategies, pipelines and the dispatcher."""

from scrna_recom.integration.dispatcher import IntegrationRun, integrate
from scrna_recom.integration.pipelines import PIPELINES, run_pipeline
from scrna_recom.integration.strategy import IntegrationParams, Strategy

__all__ = [
    "IntegrationParams",
    "IntegrationRun",
    "PIPELINES",
    "Strategy",
    "integrate",
    "run_pipeline",
]
