"""Build executor that archives the reference app with xcodebuild."""

import logging
from pathlib import Path

from .models import BuildConfiguration, BuildResult
from .shell import run_process

logger = logging.getLogger(__name__)


class XcodeBuildExecutor:
    """Runs ``xcodebuild archive`` and maps its exit status to a BuildResult."""

    def __init__(self, xcodebuild: str = "xcodebuild", verbose: bool = False):
        self.xcodebuild = xcodebuild
        self.verbose = verbose

    def command(self, project_path: Path, config: BuildConfiguration) -> list[str]:
        """Build the archive command line for ``config``."""
        if config.archive_path is None or config.derived_data_path is None:
            raise ValueError("BuildConfiguration needs archive_path and derived_data_path")

        args = [
            self.xcodebuild,
            "archive",
            "-project",
            str(project_path),
            "-scheme",
            config.scheme,
            "-archivePath",
            str(config.archive_path),
            "-derivedDataPath",
            str(config.derived_data_path),
            "-configuration",
            config.configuration,
            "-arch",
            config.arch,
        ]
        args.extend(f"{key}={value}" for key, value in config.build_settings().items())
        return args

    async def build(
        self,
        project_path: Path,
        config: BuildConfiguration,
        timeout: float | None = None,
    ) -> BuildResult:
        args = self.command(project_path, config)
        if self.verbose:
            logger.info(" ".join(args))

        result = await run_process(args, cwd=project_path.parent, timeout=timeout)

        if not result.succeeded and self.verbose:
            logger.error(f"Command failed with exit code {result.exit_code}")

        return BuildResult(
            succeeded=result.succeeded,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
        )
