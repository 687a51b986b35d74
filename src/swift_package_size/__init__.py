"""Estimate the binary size a Swift Package adds to an app."""

from .config import settings
from .exceptions import (
    ArtifactNotFound,
    BuildError,
    BuildTimeout,
    FetchError,
    InjectionError,
    PackageSizeError,
    ProbeError,
    StageFailure,
)
from .measurement import MeasurementPipeline, MeasurementRequest, MeasurementResult, PipelineStage
from .providers import build_pipeline

__all__ = [
    "settings",
    "build_pipeline",
    "MeasurementPipeline",
    "MeasurementRequest",
    "MeasurementResult",
    "PipelineStage",
    "PackageSizeError",
    "FetchError",
    "BuildError",
    "BuildTimeout",
    "ProbeError",
    "ArtifactNotFound",
    "InjectionError",
    "StageFailure",
]
