"""Collaborator contracts consumed by the measurement pipeline.

The pipeline only talks to these protocols, so tests can swap in fakes and
the toolchain-specific pieces (git, xcodebuild, pbxproj editing) stay in
their own modules.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import (
        BuildConfiguration,
        BuildResult,
        DependencySpec,
        MeasurementResult,
        PipelineStage,
        SizeKind,
        SizeMeasurement,
        TemplateReference,
    )


@runtime_checkable
class SourceFetcher(Protocol):
    """Retrieves the reference application into a fresh working directory."""

    async def fetch(self, ref: TemplateReference) -> Path:
        """Return the working directory root; the checkout lives in ``root / "source"``.

        Raises:
            FetchError: The template could not be retrieved. Nothing is left on disk.
        """
        ...


@runtime_checkable
class DependencyInjector(Protocol):
    """Declares a package dependency in the reference app's project descriptor."""

    def inject(self, project_path: Path, spec: DependencySpec) -> None:
        """Mutate and persist the descriptor at ``project_path``.

        Raises:
            InjectionError: The descriptor is missing or malformed.
        """
        ...


@runtime_checkable
class BuildExecutor(Protocol):
    """Produces a release archive of the reference application."""

    async def build(
        self,
        project_path: Path,
        config: BuildConfiguration,
        timeout: float | None = None,
    ) -> BuildResult:
        """Run the build and report the outcome without raising on tool failure."""
        ...


@runtime_checkable
class SizeProber(Protocol):
    def measure(self, path: Path, kind: SizeKind) -> SizeMeasurement: ...


@runtime_checkable
class Reporter(Protocol):
    """Presents a finished measurement. Side effect only."""

    def report(self, result: MeasurementResult) -> None: ...


class ProgressCallback(Protocol):
    def __call__(self, stage: PipelineStage, index: int, total: int) -> None: ...
