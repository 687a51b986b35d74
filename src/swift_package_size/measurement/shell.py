"""Async subprocess runner returning typed results."""

import asyncio
import logging
import os
import signal
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured output of a finished process."""

    args: tuple[str, ...]
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill the process and, on POSIX, every child it spawned."""
    if proc.returncode is not None:
        return
    try:
        if _POSIX:
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass


async def run_process(
    args: Sequence[str],
    cwd: Path | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcessResult:
    """Run a command to completion, capturing stdout and stderr.

    Never raises for a failing command: a missing executable yields exit code
    127 and a timeout yields ``timed_out=True``. Cancelling the caller kills
    the process before the cancellation propagates.
    """
    argv = tuple(str(a) for a in args)
    logger.debug(f"Running: {' '.join(argv)}")

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=_POSIX,
        )
    except (FileNotFoundError, PermissionError) as e:
        return ProcessResult(args=argv, exit_code=127, stderr=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        _kill(proc)
        await proc.wait()
        logger.warning(f"Timed out after {timeout}s: {argv[0]}")
        return ProcessResult(
            args=argv,
            exit_code=proc.returncode,
            stderr=f"{argv[0]} timed out after {timeout} seconds",
            timed_out=True,
        )
    except asyncio.CancelledError:
        _kill(proc)
        await proc.wait()
        logger.info(f"Cancelled: {argv[0]}")
        raise

    return ProcessResult(args=argv, exit_code=proc.returncode, stdout=_decode(stdout), stderr=_decode(stderr))
