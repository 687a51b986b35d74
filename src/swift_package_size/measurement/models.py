"""Data models for binary size measurements."""

import re
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import BuildError, StageFailure
from ..utils import format_bytes

# https://, ssh://, git://, file:// or scp-like git@host:owner/repo
_GIT_URL_RE = re.compile(r"^(?:(?:https?|ssh|git|file)://\S+|[\w.-]+@[\w.-]+:\S+)$")
_VERSION_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?([-+][0-9A-Za-z.+-]+)?$")


class LinkingMode(str, Enum):
    """How the injected library is linked into the app."""

    STATIC = "static"
    DYNAMIC = "dynamic"


class PipelineStage(str, Enum):
    """Measurement pipeline stages, in execution order."""

    FETCHING = "fetching"
    BUILDING_BASELINE = "building_baseline"
    MEASURING_BASELINE = "measuring_baseline"
    INJECTING_DEPENDENCY = "injecting_dependency"
    BUILDING_UPDATED = "building_updated"
    MEASURING_UPDATED = "measuring_updated"
    CLEANING_UP = "cleaning_up"
    DONE = "done"

    @property
    def order(self) -> int:
        return _STAGE_ORDER[self]

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PipelineStage):
            return NotImplemented
        return self.order < other.order

    def __le__(self, other: object) -> bool:
        if not isinstance(other, PipelineStage):
            return NotImplemented
        return self.order <= other.order

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, PipelineStage):
            return NotImplemented
        return self.order > other.order

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, PipelineStage):
            return NotImplemented
        return self.order >= other.order


_STAGE_ORDER = {stage: index for index, stage in enumerate(PipelineStage)}

# Stages that report progress (Done is terminal, not a step)
PROGRESS_STAGES: tuple[PipelineStage, ...] = tuple(s for s in PipelineStage if s is not PipelineStage.DONE)


class MeasurementStatus(str, Enum):
    """Terminal outcome of a measurement run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SizeKind(str, Enum):
    BASELINE = "baseline"
    UPDATED = "updated"


def repository_name(url: str) -> str:
    """Last path component of a git URL without the .git suffix."""
    tail = re.split(r"[/:]", url.rstrip("/"))[-1]
    return tail[:-4] if tail.endswith(".git") else tail


# --- Request ---


@dataclass(frozen=True)
class DependencySpec:
    """What the dependency injector adds to the reference app."""

    repository_url: str
    version: str
    product: str
    linking: LinkingMode = LinkingMode.STATIC

    @property
    def is_dynamic(self) -> bool:
        return self.linking is LinkingMode.DYNAMIC


class MeasurementRequest(BaseModel):
    """Input for one measurement run. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    repository_url: str
    version: str
    product: str | None = None
    linking: LinkingMode = LinkingMode.STATIC
    verbose: bool = False

    @field_validator("repository_url")
    @classmethod
    def _validate_repository_url(cls, value: str) -> str:
        value = value.strip()
        if not _GIT_URL_RE.match(value):
            raise ValueError(
                "The URL must be a valid git repository URL that contains a `Package.swift`, "
                "e.g. `https://github.com/Alamofire/Alamofire`."
            )
        return value

    @field_validator("version")
    @classmethod
    def _validate_version(cls, value: str) -> str:
        value = value.strip()
        if not _VERSION_RE.match(value):
            raise ValueError(f"'{value}' is not a semantic version, e.g. 5.4.0")
        return value

    @field_validator("product")
    @classmethod
    def _normalize_product(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @property
    def product_name(self) -> str:
        """Explicit product, or the repository name when none was given."""
        return self.product or repository_name(self.repository_url)

    @property
    def minimum_version(self) -> str:
        """Version as a full MAJOR.MINOR.PATCH string (a leading 'v' is dropped)."""
        match = _VERSION_RE.match(self.version)
        assert match is not None
        major, minor, patch, suffix = match.groups()
        return f"{major}.{minor or 0}.{patch or 0}{suffix or ''}"

    def dependency_spec(self) -> DependencySpec:
        return DependencySpec(
            repository_url=self.repository_url,
            version=self.minimum_version,
            product=self.product_name,
            linking=self.linking,
        )


# --- Reference app and working environment ---


@dataclass(frozen=True)
class TemplateReference:
    """Pinned reference application used for every measurement."""

    repository_url: str
    revision: str
    app_name: str
    project_file: str

    @property
    def product_path(self) -> str:
        """Location of the app bundle inside an archive."""
        return f"Products/Applications/{self.app_name}.app"


@dataclass(frozen=True)
class WorkingEnvironment:
    """On-disk state of one measurement run. Everything lives under ``root``."""

    root: Path
    template: TemplateReference

    @property
    def source_dir(self) -> Path:
        return self.root / "source"

    @property
    def project_path(self) -> Path:
        return self.source_dir / self.template.project_file

    @property
    def derived_data_dir(self) -> Path:
        return self.root / "DerivedData"

    @property
    def baseline_archive(self) -> Path:
        return self.root / "baseline.xcarchive"

    @property
    def updated_archive(self) -> Path:
        return self.root / "updated.xcarchive"

    def product_path(self, archive: Path) -> Path:
        return archive / self.template.product_path


# --- Build ---


@dataclass(frozen=True)
class BuildConfiguration:
    """Release archive settings shared by the baseline and updated builds."""

    scheme: str
    configuration: str = "Release"
    arch: str = "arm64"
    archive_path: Path | None = None
    derived_data_path: Path | None = None
    extra_settings: dict[str, str] = field(default_factory=dict)

    def for_archive(self, archive_path: Path, derived_data_path: Path) -> "BuildConfiguration":
        return replace(self, archive_path=archive_path, derived_data_path=derived_data_path)

    def build_settings(self) -> dict[str, str]:
        """Signing and bitcode are always disabled."""
        return {
            "CODE_SIGNING_REQUIRED": "NO",
            "CODE_SIGNING_ALLOWED": "NO",
            "ENABLE_BITCODE": "NO",
            **self.extra_settings,
        }


@dataclass(frozen=True)
class BuildResult:
    """Outcome of one build executor invocation."""

    succeeded: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    timed_out: bool = False


# --- Sizes ---


@dataclass(frozen=True)
class SizeMeasurement:
    """Size on disk of an archived product."""

    kind: SizeKind
    bytes: int
    display: str

    @classmethod
    def of(cls, kind: SizeKind, size: int) -> "SizeMeasurement":
        return cls(kind=kind, bytes=size, display=format_bytes(size))

    def to_dict(self) -> dict[str, Any]:
        return {"bytes": self.bytes, "display": self.display}


@dataclass(frozen=True)
class SizeDelta:
    """Difference between the updated and baseline measurements."""

    baseline: SizeMeasurement
    updated: SizeMeasurement

    def __post_init__(self) -> None:
        if self.baseline.kind is not SizeKind.BASELINE or self.updated.kind is not SizeKind.UPDATED:
            raise ValueError("SizeDelta needs one baseline and one updated measurement")

    @property
    def bytes(self) -> int:
        return self.updated.bytes - self.baseline.bytes

    @property
    def display(self) -> str:
        return format_bytes(self.bytes, signed=True)

    def to_dict(self) -> dict[str, Any]:
        return {"bytes": self.bytes, "display": self.display}


# --- Result ---


class MeasurementResult(BaseModel):
    """Structured outcome of one pipeline run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    request: MeasurementRequest
    run_id: str
    status: MeasurementStatus = MeasurementStatus.FAILED
    stage: PipelineStage = PipelineStage.FETCHING
    stages: list[PipelineStage] = Field(default_factory=list)

    baseline: SizeMeasurement | None = None
    updated: SizeMeasurement | None = None
    delta: SizeDelta | None = None
    failure: StageFailure | None = None
    cleanup_warning: str | None = None

    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == MeasurementStatus.SUCCEEDED

    def raise_for_failure(self) -> None:
        """Raise the StageFailure of a failed run."""
        if self.failure is not None:
            raise self.failure

    @property
    def duration_seconds(self) -> float | None:
        """Run duration in seconds."""
        end = self.completed_at or datetime.now(UTC)
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Machine-readable representation."""
        data: dict[str, Any] = {
            "package": {
                "url": self.request.repository_url,
                "version": self.request.version,
                "product": self.request.product_name,
                "linking": self.request.linking.value,
            },
            "status": self.status.value,
            "stage": self.stage.value,
            "baseline": self.baseline.to_dict() if self.baseline else None,
            "updated": self.updated.to_dict() if self.updated else None,
            "delta": self.delta.to_dict() if self.delta else None,
            "error": None,
            "cleanup_warning": self.cleanup_warning,
            "duration_seconds": self.duration_seconds,
        }
        if self.failure is not None:
            cause = self.failure.cause
            error: dict[str, Any] = {
                "stage": self.failure.stage.value,
                "kind": cause.kind,
                "message": str(cause),
            }
            if isinstance(cause, BuildError):
                error["stderr"] = cause.stderr
            data["error"] = error
        return data
