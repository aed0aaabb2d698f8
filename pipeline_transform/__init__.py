"""Lazy, chainable async pipelines over sync, async and byte sources."""

from .lazy import PipelineTransform, classify_source, pipeline
from .models import (
    OperationSpec, PipelineDescription, PipelineSettings, RunMetrics, SourceKind, StageInfo,
    configure, get_settings, reset_settings,
)
from .runner import apply_operations, measure_pipeline
from .stages import Stage
from .utils import PipelineArgumentError, PipelineError, setup_logging

__version__ = "0.1.0"

__all__ = [
    "PipelineTransform",
    "pipeline",
    "classify_source",
    "Stage",
    "SourceKind",
    "StageInfo",
    "PipelineDescription",
    "PipelineSettings",
    "OperationSpec",
    "RunMetrics",
    "configure",
    "get_settings",
    "reset_settings",
    "apply_operations",
    "measure_pipeline",
    "PipelineError",
    "PipelineArgumentError",
    "setup_logging",
]
