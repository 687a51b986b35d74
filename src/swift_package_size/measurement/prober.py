"""Size on disk of archived products."""

import logging
import os
import stat
from pathlib import Path

from ..exceptions import ArtifactNotFound, ProbeError
from .models import SizeKind, SizeMeasurement

logger = logging.getLogger(__name__)


class ArtifactSizeProber:
    """Computes the apparent size of a file or bundle directory."""

    def measure(self, path: Path, kind: SizeKind) -> SizeMeasurement:
        """Measure ``path`` recursively.

        Args:
            path: App bundle directory or single file.
            kind: Whether this is the baseline or the updated product.

        Returns:
            Total size with its display string.

        Raises:
            ArtifactNotFound: ``path`` does not exist.
            ProbeError: An entry under ``path`` could not be read.
        """
        path = Path(path)
        if not os.path.lexists(path):
            raise ArtifactNotFound(path)

        total = self._size_of(path)
        measurement = SizeMeasurement.of(kind, total)
        logger.debug(f"{kind.value} size of {path}: {total} bytes ({measurement.display})")
        return measurement

    def _size_of(self, path: Path) -> int:
        try:
            info = path.lstat()
        except OSError as e:
            raise ProbeError(f"Unable to read {path}: {e}", path) from e

        if not stat.S_ISDIR(info.st_mode):
            return info.st_size

        total = 0

        def _raise(error: OSError) -> None:
            raise ProbeError(f"Unable to read {error.filename}: {error.strerror}", error.filename or path) from error

        # Symlinks are counted as links, never followed
        for root, dirs, files in os.walk(path, onerror=_raise, followlinks=False):
            links = [name for name in dirs if (Path(root) / name).is_symlink()]
            for name in [*files, *links]:
                file_path = Path(root) / name
                try:
                    total += file_path.lstat().st_size
                except OSError as e:
                    raise ProbeError(f"Unable to read {file_path}: {e}", file_path) from e
        return total
