"""Pipeline factory wiring the concrete collaborators from configuration."""

from .config import AppSettings, settings
from .measurement.git import GitSourceFetcher
from .measurement.interfaces import ProgressCallback, Reporter
from .measurement.machine import MeasurementPipeline
from .measurement.models import BuildConfiguration, TemplateReference
from .measurement.prober import ArtifactSizeProber
from .measurement.xcodebuild import XcodeBuildExecutor
from .measurement.xcodeproj import XcodeProjInjector


def get_template(app_settings: AppSettings | None = None) -> TemplateReference:
    """Reference app pinned by configuration."""
    template = (app_settings or settings).template
    return TemplateReference(
        repository_url=template.repository_url,
        revision=template.revision,
        app_name=template.app_name,
        project_file=template.get_project_file(),
    )


def get_build_configuration(app_settings: AppSettings | None = None) -> BuildConfiguration:
    app_settings = app_settings or settings
    return BuildConfiguration(
        scheme=app_settings.template.app_name,
        configuration=app_settings.build.configuration,
        arch=app_settings.build.arch,
        extra_settings=dict(app_settings.build.extra_settings),
    )


def build_pipeline(
    app_settings: AppSettings | None = None,
    reporter: Reporter | None = None,
    progress: ProgressCallback | None = None,
    timeout: float | None = None,
    verbose: bool = False,
) -> MeasurementPipeline:
    """Create a measurement pipeline backed by git, xcodebuild and the pbxproj editor.

    Args:
        app_settings: Settings to use (defaults to the global settings).
        reporter: Receives the finished result.
        progress: Called when each stage starts.
        timeout: Per-archive timeout in seconds; overrides the configured one.
        verbose: Log the archive commands and their failures.

    Returns:
        Ready to run pipeline.
    """
    app_settings = app_settings or settings
    return MeasurementPipeline(
        fetcher=GitSourceFetcher(
            work_dir=app_settings.get_work_dir(),
            git=app_settings.workspace.git,
            timeout=app_settings.workspace.clone_timeout,
        ),
        injector=XcodeProjInjector(),
        executor=XcodeBuildExecutor(xcodebuild=app_settings.build.xcodebuild, verbose=verbose),
        template=get_template(app_settings),
        build_configuration=get_build_configuration(app_settings),
        prober=ArtifactSizeProber(),
        reporter=reporter,
        timeout=timeout if timeout is not None else app_settings.build.timeout,
        progress=progress,
    )
