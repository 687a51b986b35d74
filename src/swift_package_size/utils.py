"""Utilities for size formatting and result persistence."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import settings

logger = logging.getLogger(__name__)

# Decimal (1000-based) units, the convention used for file sizes on macOS.
_UNITS = (
    ("GB", 1000**3, 2),
    ("MB", 1000**2, 1),
    ("KB", 1000, 0),
)


def format_bytes(size: int, signed: bool = False) -> str:
    """Format a byte count for display, e.g. 10485760 -> '10.5 MB'.

    Args:
        size: Number of bytes (may be negative for deltas).
        signed: Prefix positive values with '+'.

    Returns:
        Human readable size string.
    """
    if size < 0:
        sign = "-"
    elif signed and size > 0:
        sign = "+"
    else:
        sign = ""

    magnitude = abs(size)
    for index, (unit, factor, digits) in enumerate(_UNITS):
        if magnitude >= factor:
            value = magnitude / factor
            # 999,999 bytes would otherwise read "1000 KB"
            if round(value, digits) >= 1000 and index > 0:
                unit, factor, digits = _UNITS[index - 1]
                value = magnitude / factor
            return f"{sign}{value:.{digits}f} {unit}"
    return f"{sign}{magnitude} bytes"


def save_measurement_result(
    data: dict[str, Any],
    prefix: str = "measurement",
    results_dir: Path | None = None,
) -> Path:
    """Save a machine-readable measurement result as JSON.

    Args:
        data: The result payload to save.
        prefix: Filename prefix (usually the product name).
        results_dir: Target directory (defaults to the configured results directory).

    Returns:
        Path to the saved file.
    """
    results_dir = results_dir or settings.get_results_dir()
    results_dir.mkdir(parents=True, exist_ok=True)
    # Include microseconds to avoid collisions when called multiple times per second.
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")

    # Sanitize prefix for filesystem
    safe_prefix = re.sub(r"[^\w\-]", "_", prefix)[:30]
    base = f"{timestamp}_{safe_prefix}"
    file_path = results_dir / f"{base}.json"
    if file_path.exists():
        for i in range(1, 10_000):
            candidate = results_dir / f"{base}_{i}.json"
            if not candidate.exists():
                file_path = candidate
                break
        else:
            raise RuntimeError("Failed to allocate a unique result filename after 10,000 attempts")

    payload = {"timestamp": datetime.now().isoformat(), **data}
    file_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    logger.info(f"Saved result to {file_path}")
    return file_path
