"""Differential build measurement of a package's binary size.

The reference app is archived twice, once as-is and once with the package
declared as a dependency, and the two archived app bundles are diffed.
Toolchain specifics live behind the collaborator protocols in ``interfaces``.
"""

from .git import GitSourceFetcher
from .interfaces import BuildExecutor, DependencyInjector, ProgressCallback, Reporter, SizeProber, SourceFetcher
from .machine import MeasurementPipeline, StageTracker
from .models import (
    BuildConfiguration,
    BuildResult,
    DependencySpec,
    LinkingMode,
    MeasurementRequest,
    MeasurementResult,
    MeasurementStatus,
    PipelineStage,
    SizeDelta,
    SizeKind,
    SizeMeasurement,
    TemplateReference,
    WorkingEnvironment,
)
from .prober import ArtifactSizeProber
from .reporters import CompositeReporter, ConsoleReporter, JsonReporter
from .xcodebuild import XcodeBuildExecutor
from .xcodeproj import XcodeProjInjector

__all__ = [
    "ArtifactSizeProber",
    "BuildConfiguration",
    "BuildExecutor",
    "BuildResult",
    "CompositeReporter",
    "ConsoleReporter",
    "DependencyInjector",
    "DependencySpec",
    "GitSourceFetcher",
    "JsonReporter",
    "LinkingMode",
    "MeasurementPipeline",
    "MeasurementRequest",
    "MeasurementResult",
    "MeasurementStatus",
    "PipelineStage",
    "ProgressCallback",
    "Reporter",
    "SizeDelta",
    "SizeKind",
    "SizeMeasurement",
    "SizeProber",
    "SourceFetcher",
    "StageTracker",
    "TemplateReference",
    "WorkingEnvironment",
    "XcodeBuildExecutor",
    "XcodeProjInjector",
]
