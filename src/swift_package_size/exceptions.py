"""Custom exceptions for swift-package-size.

Every stage of the measurement pipeline fails with exactly one of the
errors below. ``StageFailure`` tags that cause with the stage it happened in.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .measurement.models import PipelineStage


class PackageSizeError(Exception):
    """Base exception for swift-package-size errors."""

    kind = "error"


class FetchError(PackageSizeError):
    """Raised when the reference application cannot be retrieved."""

    kind = "fetch_error"


class BuildError(PackageSizeError):
    """Raised when archiving the reference application fails."""

    kind = "build_error"

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class BuildTimeout(BuildError):
    """Raised when an archive build exceeds its time budget."""

    kind = "timeout"


class ProbeError(PackageSizeError):
    """Raised when the size of a built artifact cannot be computed."""

    kind = "probe_error"

    def __init__(self, message: str, path: Path | str):
        super().__init__(message)
        self.path = Path(path)


class ArtifactNotFound(ProbeError):
    """Raised when the artifact to measure does not exist."""

    kind = "artifact_not_found"

    def __init__(self, path: Path | str):
        super().__init__(f"Artifact not found at {path}", path)


class InjectionError(PackageSizeError):
    """Raised when the dependency cannot be added to the project descriptor."""

    kind = "injection_error"


class StageOrderError(PackageSizeError):
    """Raised when a pipeline stage would be revisited or skipped backwards."""

    kind = "stage_order_error"


class StageFailure(PackageSizeError):
    """Terminal pipeline failure: the stage it happened in plus its cause."""

    kind = "stage_failure"

    def __init__(self, stage: "PipelineStage", cause: PackageSizeError):
        super().__init__(f"{stage.label} failed: {cause}")
        self.stage = stage
        self.cause = cause
