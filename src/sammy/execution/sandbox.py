"""Runs generated code segments as throwaway child processes."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from sammy.shell.base import normalize_output

LOGGER = logging.getLogger(__name__)

DEFAULT_SANDBOX_TIMEOUT = 60.0


@dataclass(slots=True)
class SandboxResult:
    """Outcome of one segment execution."""

    succeeded: bool
    output: str
    reason: str | None = None
    returncode: int | None = None
    duration_seconds: float = 0.0


class ExecutionSandbox:
    """Executes a code segment with a fresh interpreter and a hard timeout.

    The segment is written to a uniquely named file inside ``working_directory``
    so relative paths in generated code resolve against the user's project.
    The file is removed on every exit path.
    """

    def __init__(
        self,
        *,
        working_directory: str | Path,
        timeout: float = DEFAULT_SANDBOX_TIMEOUT,
        interpreter: str | None = None,
    ) -> None:
        self.working_directory = Path(working_directory)
        self.timeout = timeout
        self.interpreter = interpreter or sys.executable

    def run(self, segment: str) -> SandboxResult:
        fd, temp_name = tempfile.mkstemp(
            prefix="temp_exec_", suffix=".py", dir=self.working_directory
        )
        temp_path = Path(temp_name)
        started = time.monotonic()
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(segment)
            try:
                process = subprocess.run(
                    [self.interpreter, str(temp_path)],
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    cwd=self.working_directory,
                    timeout=self.timeout,
                    check=False,
                )
            except subprocess.TimeoutExpired as exc:
                partial = normalize_output(exc.stdout).rstrip()
                message = f"Execution timed out ({self.timeout:g}s limit)."
                result = SandboxResult(
                    succeeded=False,
                    output=f"{message}\n{partial}" if partial else message,
                    reason="timeout",
                    duration_seconds=time.monotonic() - started,
                )
            except OSError as exc:
                result = SandboxResult(
                    succeeded=False,
                    output=f"Failed to start {self.interpreter}: {exc}",
                    reason="spawn_failed",
                    duration_seconds=time.monotonic() - started,
                )
            else:
                succeeded = process.returncode == 0
                result = SandboxResult(
                    succeeded=succeeded,
                    output=normalize_output(process.stdout),
                    reason=None if succeeded else "non_zero_exit",
                    returncode=process.returncode,
                    duration_seconds=time.monotonic() - started,
                )
        finally:
            temp_path.unlink(missing_ok=True)

        LOGGER.info(
            "segment_executed",
            extra={
                "succeeded": result.succeeded,
                "reason": result.reason,
                "returncode": result.returncode,
                "duration_seconds": round(result.duration_seconds, 4),
                "output_length": len(result.output),
            },
        )
        return result
