"""Pytest configuration and fixtures for swift-package-size tests."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from swift_package_size.exceptions import InjectionError
from swift_package_size.measurement.machine import MeasurementPipeline
from swift_package_size.measurement.models import BuildConfiguration, BuildResult, TemplateReference

BASELINE_BYTES = 10_485_760
UPDATED_BYTES = 10_747_904


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "e2e: End-to-end tests requiring git, xcodebuild and network access")
    config.addinivalue_line("markers", "slow: Tests that take longer to run")


class FakeFetcher:
    """Creates a working directory with an empty project, like a fresh clone."""

    def __init__(self, base: Path, events: list[str], error: Exception | None = None):
        self.base = base
        self.events = events
        self.error = error
        self.roots: list[Path] = []

    async def fetch(self, ref: TemplateReference) -> Path:
        self.events.append("fetch")
        if self.error:
            raise self.error
        root = Path(tempfile.mkdtemp(prefix="run-", dir=self.base))
        (root / "source" / ref.project_file).mkdir(parents=True)
        self.roots.append(root)
        return root


class FakeExecutor:
    """Writes an app bundle of a given size into the requested archive.

    Each entry of ``outcomes`` is used for one build: an int is the product
    size to write, a BuildResult is returned as-is, "missing" reports success
    without writing a product and "hang" blocks until cancelled.
    """

    def __init__(self, template: TemplateReference, events: list[str], outcomes: list):
        self.template = template
        self.events = events
        self.outcomes = list(outcomes)
        self.configs: list[BuildConfiguration] = []
        self.timeouts: list[float | None] = []
        self.started = asyncio.Event()

    async def build(self, project_path: Path, config: BuildConfiguration, timeout: float | None = None) -> BuildResult:
        self.events.append(f"build:{config.archive_path.name}")
        self.configs.append(config)
        self.timeouts.append(timeout)
        outcome = self.outcomes.pop(0)

        if isinstance(outcome, BuildResult):
            return outcome
        if outcome == "hang":
            self.started.set()
            await asyncio.Event().wait()
        if isinstance(outcome, Exception):
            raise outcome
        if outcome == "missing":
            return BuildResult(succeeded=True, exit_code=0)

        product = config.archive_path / self.template.product_path
        product.mkdir(parents=True)
        # Sparse file: apparent size without writing the bytes
        with open(product / self.template.app_name, "wb") as f:
            f.truncate(outcome)
        return BuildResult(succeeded=True, stdout="** ARCHIVE SUCCEEDED **", exit_code=0)


class FakeInjector:
    def __init__(self, events: list[str], error: Exception | None = None):
        self.events = events
        self.error = error
        self.calls = []

    def inject(self, project_path, spec) -> None:
        self.events.append("inject")
        self.calls.append((project_path, spec))
        if self.error:
            raise self.error
        (project_path / "project.pbxproj").write_text(f"// {spec.product} {spec.version}\n", encoding="utf-8")


class RecordingReporter:
    def __init__(self):
        self.results = []

    def report(self, result) -> None:
        self.results.append(result)


@pytest.fixture
def template():
    return TemplateReference(
        repository_url="https://example.com/marinofelipe/swift-package-info.git",
        revision="main",
        app_name="MeasurementApp",
        project_file="MeasurementApp.xcodeproj",
    )


@pytest.fixture
def build_configuration():
    return BuildConfiguration(scheme="MeasurementApp")


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def make_pipeline(template, build_configuration, workspace):
    """Factory for a pipeline wired to fakes; returns (pipeline, fakes)."""

    def _make(
        outcomes=None,
        fetch_error: Exception | None = None,
        inject_error: Exception | None = None,
        reporter=None,
        progress=None,
        timeout: float | None = None,
    ):
        events: list[str] = []
        fakes = {
            "events": events,
            "fetcher": FakeFetcher(workspace, events, fetch_error),
            "executor": FakeExecutor(template, events, outcomes if outcomes is not None else [BASELINE_BYTES, UPDATED_BYTES]),
            "injector": FakeInjector(events, inject_error),
            "reporter": reporter if reporter is not None else RecordingReporter(),
        }
        pipeline = MeasurementPipeline(
            fetcher=fakes["fetcher"],
            injector=fakes["injector"],
            executor=fakes["executor"],
            template=template,
            build_configuration=build_configuration,
            reporter=fakes["reporter"],
            timeout=timeout,
            progress=progress,
        )
        return pipeline, fakes

    return _make


@pytest.fixture
def injection_error():
    return InjectionError("Unable to retrieve app project")
