"""Measurement state machine: archive the empty app, add the package, archive again, diff.

Stages run strictly in order and never repeat:

    fetching -> building_baseline -> measuring_baseline -> injecting_dependency
    -> building_updated -> measuring_updated -> cleaning_up -> done

Any stage failure stops forward progress and is reported as a single
``StageFailure``. Once the reference app has been fetched, cleanup runs on
every path (success, failure, cancellation) and a cleanup problem is only
attached as a warning.
"""

import asyncio
import logging
import shutil
import uuid
from datetime import UTC, datetime
from pathlib import Path

from ..exceptions import (
    BuildError,
    BuildTimeout,
    FetchError,
    InjectionError,
    ProbeError,
    StageFailure,
    StageOrderError,
)
from ..observability import bind_run_context, clear_run_context, get_run_logger
from .interfaces import BuildExecutor, DependencyInjector, ProgressCallback, Reporter, SizeProber, SourceFetcher
from .models import (
    PROGRESS_STAGES,
    BuildConfiguration,
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

logger = logging.getLogger(__name__)

STAGE_MESSAGES = {
    PipelineStage.FETCHING: "Cloning empty app...",
    PipelineStage.BUILDING_BASELINE: "Generating archive for empty app...",
    PipelineStage.MEASURING_BASELINE: "Calculating binary size...",
    PipelineStage.INJECTING_DEPENDENCY: "Adding {product} as dependency...",
    PipelineStage.BUILDING_UPDATED: "Generating archive for updated app...",
    PipelineStage.MEASURING_UPDATED: "Calculating updated binary size...",
    PipelineStage.CLEANING_UP: "Resetting app...",
}


def _tail(text: str, lines: int = 20) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


class StageTracker:
    """Enforces that stages only move forward."""

    def __init__(self) -> None:
        self.current: PipelineStage | None = None
        self.visited: list[PipelineStage] = []

    def advance(self, stage: PipelineStage) -> None:
        if self.current is not None and stage <= self.current:
            raise StageOrderError(f"Cannot move from {self.current.value} to {stage.value}")
        self.current = stage
        self.visited.append(stage)


class MeasurementPipeline:
    """Differential build measurement with cleanup on every exit path."""

    def __init__(
        self,
        fetcher: SourceFetcher,
        injector: DependencyInjector,
        executor: BuildExecutor,
        template: TemplateReference,
        build_configuration: BuildConfiguration,
        prober: SizeProber | None = None,
        reporter: Reporter | None = None,
        timeout: float | None = None,
        progress: ProgressCallback | None = None,
    ):
        self.fetcher = fetcher
        self.injector = injector
        self.executor = executor
        self.template = template
        self.build_configuration = build_configuration
        self.prober = prober or ArtifactSizeProber()
        self.reporter = reporter
        self.timeout = timeout
        self.progress = progress

    async def run(self, request: MeasurementRequest) -> MeasurementResult:
        """Measure the size ``request``'s package adds to the reference app.

        Returns a result whose status is ``succeeded`` or ``failed``.
        Cancellation cleans up the working environment, reports a
        ``cancelled`` result and re-raises.
        """
        tracker = StageTracker()
        result = MeasurementResult(request=request, run_id=uuid.uuid4().hex[:12])
        bind_run_context(result.run_id, request.repository_url)

        try:
            try:
                env = await self._fetch(tracker, result)
            except StageFailure as failure:
                # Nothing on disk yet, so there is nothing to clean up
                self._record_failure(result, failure)
                return self._finish(tracker, result)
            except asyncio.CancelledError:
                self._cancel(None, tracker, result)
                raise

            try:
                await self._measure(env, tracker, result)
            except StageFailure as failure:
                self._record_failure(result, failure)
            except asyncio.CancelledError:
                self._cancel(env, tracker, result)
                raise

            self._cleanup(env, tracker, result)
            return self._finish(tracker, result)
        finally:
            clear_run_context()

    async def _measure(self, env: WorkingEnvironment, tracker: StageTracker, result: MeasurementResult) -> None:
        """Stages between fetching and cleanup."""
        await self._build(tracker, result, PipelineStage.BUILDING_BASELINE, env, env.baseline_archive)
        result.baseline = self._probe(
            tracker, result, PipelineStage.MEASURING_BASELINE, SizeKind.BASELINE, env.product_path(env.baseline_archive)
        )

        self._inject(tracker, result, env)

        await self._build(tracker, result, PipelineStage.BUILDING_UPDATED, env, env.updated_archive)
        result.updated = self._probe(
            tracker, result, PipelineStage.MEASURING_UPDATED, SizeKind.UPDATED, env.product_path(env.updated_archive)
        )

    # --- stages ---

    async def _fetch(self, tracker: StageTracker, result: MeasurementResult) -> WorkingEnvironment:
        stage = PipelineStage.FETCHING
        self._enter(tracker, result, stage)
        try:
            root = await self.fetcher.fetch(self.template)
        except FetchError as e:
            raise StageFailure(stage, e) from e
        except Exception as e:
            raise StageFailure(stage, FetchError(f"Unable to clone empty app: {e}")) from e
        return WorkingEnvironment(root=Path(root), template=self.template)

    async def _build(
        self,
        tracker: StageTracker,
        result: MeasurementResult,
        stage: PipelineStage,
        env: WorkingEnvironment,
        archive: Path,
    ) -> None:
        self._enter(tracker, result, stage)
        config = self.build_configuration.for_archive(archive, env.derived_data_dir)
        try:
            build = await self.executor.build(env.project_path, config, timeout=self.timeout)
        except Exception as e:
            raise StageFailure(stage, BuildError(f"Unable to generate archive: {e}")) from e

        if build.timed_out:
            cause: BuildError = BuildTimeout(
                f"Archive did not finish within {self.timeout} seconds", build.stdout, build.stderr
            )
            raise StageFailure(stage, cause)
        if not build.succeeded:
            detail = _tail(build.stderr) or f"exit code {build.exit_code}"
            raise StageFailure(stage, BuildError(f"Unable to generate archive: {detail}", build.stdout, build.stderr))

    def _probe(
        self,
        tracker: StageTracker,
        result: MeasurementResult,
        stage: PipelineStage,
        kind: SizeKind,
        path: Path,
    ) -> SizeMeasurement:
        self._enter(tracker, result, stage)
        try:
            measurement = self.prober.measure(path, kind)
        except ProbeError as e:
            raise StageFailure(stage, e) from e
        except Exception as e:
            raise StageFailure(stage, ProbeError(f"Unable to get binary size on disk: {e}", path)) from e

        get_run_logger().info("size_measured", kind=kind.value, bytes=measurement.bytes, display=measurement.display)
        return measurement

    def _inject(self, tracker: StageTracker, result: MeasurementResult, env: WorkingEnvironment) -> None:
        stage = PipelineStage.INJECTING_DEPENDENCY
        self._enter(tracker, result, stage)
        try:
            self.injector.inject(env.project_path, result.request.dependency_spec())
        except InjectionError as e:
            raise StageFailure(stage, e) from e
        except Exception as e:
            raise StageFailure(stage, InjectionError(f"Unable to add dependency: {e}")) from e

    def _cleanup(self, env: WorkingEnvironment, tracker: StageTracker, result: MeasurementResult) -> None:
        """Remove the whole working environment (checkout, derived data, both archives)."""
        self._enter(tracker, result, PipelineStage.CLEANING_UP)
        try:
            shutil.rmtree(env.root)
        except FileNotFoundError:
            pass
        except OSError as e:
            result.cleanup_warning = f"Unable to remove working directory {env.root}: {e}"
            get_run_logger().warning("cleanup_failed", root=str(env.root), error=str(e))

    # --- bookkeeping ---

    def _enter(self, tracker: StageTracker, result: MeasurementResult, stage: PipelineStage) -> None:
        tracker.advance(stage)
        result.stage = stage
        result.stages = list(tracker.visited)

        if stage not in PROGRESS_STAGES:
            return

        message = STAGE_MESSAGES[stage].format(product=result.request.product_name)
        logger.info(message)
        get_run_logger().debug("stage_started", stage=stage.value)

        if self.progress:
            try:
                self.progress(stage, PROGRESS_STAGES.index(stage) + 1, len(PROGRESS_STAGES))
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    def _record_failure(self, result: MeasurementResult, failure: StageFailure) -> None:
        result.failure = failure
        get_run_logger().error(
            "stage_failed",
            stage=failure.stage.value,
            kind=failure.cause.kind,
            error=str(failure.cause),
        )

    def _finish(self, tracker: StageTracker, result: MeasurementResult) -> MeasurementResult:
        if result.failure is not None:
            result.status = MeasurementStatus.FAILED
            result.stage = result.failure.stage
        else:
            self._enter(tracker, result, PipelineStage.DONE)
            assert result.baseline is not None and result.updated is not None
            result.delta = SizeDelta(baseline=result.baseline, updated=result.updated)
            result.status = MeasurementStatus.SUCCEEDED
            get_run_logger().info(
                "measurement_completed",
                delta_bytes=result.delta.bytes,
                delta=result.delta.display,
                cleanup_warning=result.cleanup_warning,
            )
        result.completed_at = datetime.now(UTC)
        self._report(result)
        return result

    def _cancel(self, env: WorkingEnvironment | None, tracker: StageTracker, result: MeasurementResult) -> None:
        """Clean up after cancellation and report the interrupted stage."""
        interrupted = result.stage
        result.status = MeasurementStatus.CANCELLED
        if env is not None:
            self._cleanup(env, tracker, result)
        result.stage = interrupted
        result.completed_at = datetime.now(UTC)
        get_run_logger().info("measurement_cancelled", stage=interrupted.value)
        self._report(result)

    def _report(self, result: MeasurementResult) -> None:
        if self.reporter:
            try:
                self.reporter.report(result)
            except Exception as e:
                logger.warning(f"Reporter failed: {e}")
