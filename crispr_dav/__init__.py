"""
CRISPR-DAV - CRISPR Data Analysis and Visualization.

Validates an amplicon experiment, runs one job per sample locally or on an
SGE cluster, and aggregates the results per CRISPR target site.
"""

__version__ = "2.3.0"

from .config import PipelineConfig
from .core.models import Amplicon, ExperimentDesign, HdrEdit, Sample, TargetSite
from .exceptions import (
    AggregationError,
    ConfigurationError,
    CrisprDavError,
    JobFailure,
    SubmissionError,
    TimeoutFailure,
    ValidationError,
    WatchdogFailure,
)
from .pipeline import CrisprPipeline, run_pipeline

__all__ = [
    "PipelineConfig",
    "Amplicon",
    "TargetSite",
    "HdrEdit",
    "Sample",
    "ExperimentDesign",
    "CrisprPipeline",
    "run_pipeline",
    "CrisprDavError",
    "ConfigurationError",
    "ValidationError",
    "SubmissionError",
    "JobFailure",
    "TimeoutFailure",
    "WatchdogFailure",
    "AggregationError",
    "__version__",
]
