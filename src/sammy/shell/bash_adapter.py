"""Bash shell adapter implementation."""

from __future__ import annotations

import shutil
import subprocess

from .base import CommandResult, PolicyHook, ShellAdapter, normalize_output


class BashAdapter(ShellAdapter):
    """Runs commands through ``bash -c`` (or ``sh -c`` when bash is absent)."""

    def __init__(
        self,
        executable: str | None = None,
        *,
        allowlist_hook: PolicyHook | None = None,
        denylist_hook: PolicyHook | None = None,
        fallback_to_sh: bool = True,
    ) -> None:
        super().__init__(allowlist_hook=allowlist_hook, denylist_hook=denylist_hook)
        self.executable = executable or _default_executable(fallback_to_sh=fallback_to_sh)

    @property
    def name(self) -> str:
        return "bash"

    def execute(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        self.log_request(command, timeout=timeout)
        blocked_reason = self.enforce_guardrails(command)
        if blocked_reason:
            result = self.blocked_result(command, blocked_reason)
        else:
            result = self._spawn(command, cwd=cwd, timeout=timeout)
        self.log_result(result)
        return result

    def _spawn(self, command: str, *, cwd: str | None, timeout: float | None) -> CommandResult:
        started = self.monotonic_now()
        try:
            process = subprocess.run(
                [self.executable, "-c", command],
                capture_output=True,
                cwd=cwd,
                timeout=timeout,
                check=False,
                text=False,
            )
        except subprocess.TimeoutExpired as exc:
            return CommandResult(
                command=command,
                shell=self.name,
                returncode=124,
                stdout=normalize_output(exc.stdout),
                stderr=normalize_output(exc.stderr),
                timed_out=True,
                duration_seconds=self.monotonic_now() - started,
            )
        except OSError as exc:
            # missing interpreter or bad cwd
            return CommandResult(
                command=command,
                shell=self.name,
                returncode=127,
                stdout="",
                stderr=f"Failed to start {self.executable}: {exc}",
                executed=False,
                duration_seconds=self.monotonic_now() - started,
            )
        return CommandResult(
            command=command,
            shell=self.name,
            returncode=process.returncode,
            stdout=normalize_output(process.stdout),
            stderr=normalize_output(process.stderr),
            duration_seconds=self.monotonic_now() - started,
        )


def _default_executable(*, fallback_to_sh: bool) -> str:
    if shutil.which("bash"):
        return "bash"
    if fallback_to_sh and shutil.which("sh"):
        return "sh"
    return "bash"
