"""Source fetcher that shallow-clones the reference application."""

import logging
import shutil
import tempfile
from pathlib import Path

from ..exceptions import FetchError
from .models import TemplateReference
from .shell import run_process

logger = logging.getLogger(__name__)

WORKDIR_PREFIX = "swift-package-size-"


class GitSourceFetcher:
    """Clones the reference app into a new, uniquely named working directory."""

    def __init__(self, work_dir: Path | None = None, git: str = "git", timeout: float | None = 300.0):
        self.work_dir = work_dir
        self.git = git
        self.timeout = timeout

    def clone_command(self, ref: TemplateReference, destination: Path) -> list[str]:
        return [
            self.git,
            "clone",
            "--depth",
            "1",
            "--branch",
            ref.revision,
            "--quiet",
            ref.repository_url,
            str(destination),
        ]

    async def fetch(self, ref: TemplateReference) -> Path:
        """Clone ``ref`` and return the working directory root.

        The checkout is placed in ``root / "source"``. On failure the root is
        removed before ``FetchError`` is raised.
        """
        root = Path(tempfile.mkdtemp(prefix=WORKDIR_PREFIX, dir=self.work_dir))
        try:
            result = await run_process(self.clone_command(ref, root / "source"), timeout=self.timeout)
        except BaseException:
            shutil.rmtree(root, ignore_errors=True)
            raise

        if not result.succeeded:
            shutil.rmtree(root, ignore_errors=True)
            reason = result.stderr.strip() or f"exit code {result.exit_code}"
            raise FetchError(f"Unable to clone empty app from {ref.repository_url}@{ref.revision}: {reason}")

        logger.info(f"Cloned {ref.repository_url}@{ref.revision} into {root}")
        return root
