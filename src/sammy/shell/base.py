"""Base shell adapter primitives with catastrophic-command guardrails."""

from __future__ import annotations

import abc
import locale
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

PolicyHook = Callable[[str, str], bool]

# Commands that would wreck the host or hang the loop forever.
_CATASTROPHIC_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\brm\s+-[a-z]*r[a-z]*f[a-z]*\s+(--no-preserve-root\s+)?(/|~|\$HOME)(\s|/?\*?$)",
        r"\brm\s+-[a-z]*f[a-z]*r[a-z]*\s+(--no-preserve-root\s+)?(/|~|\$HOME)(\s|/?\*?$)",
        r"\bmkfs(\.\w+)?\b",
        r"\bdd\s+.*\bof=/dev/(sd|hd|nvme|disk|mmcblk)",
        r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:",
        r"\b(shutdown|reboot|halt|poweroff)\b",
        r">\s*/dev/(sd|hd|nvme|disk)[a-z0-9]*",
        r"\bchmod\s+-R\s+[0-7]{3,4}\s+/(\s|$)",
    )
]

_SECRET_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(--?(?:password|token|secret|api[-_]?key)\s+)([^\s]+)",
        r"((?:password|token|secret|api[-_]?key)\s*=\s*)([^\s]+)",
    )
]


@dataclass(slots=True)
class CommandResult:
    """Result of a command execution."""

    command: str
    shell: str
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    duration_seconds: float = 0.0
    executed: bool = True
    blocked: bool = False
    block_reason: str | None = None


class ShellAdapter(abc.ABC):
    """Abstract adapter for shell-specific command execution."""

    def __init__(
        self,
        *,
        allowlist_hook: PolicyHook | None = None,
        denylist_hook: PolicyHook | None = None,
    ) -> None:
        self.allowlist_hook = allowlist_hook
        self.denylist_hook = denylist_hook

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Friendly shell adapter name."""

    @abc.abstractmethod
    def execute(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Execute a shell command and return a normalized result."""

    def enforce_guardrails(self, command: str) -> str | None:
        """Run policy checks and return a block reason when rejected."""
        if self.is_catastrophic_command(command):
            return "command matches a catastrophic pattern and was not run"
        if self.denylist_hook and self.denylist_hook(command, self.name):
            return "command blocked by denylist policy"
        if self.allowlist_hook and not self.allowlist_hook(command, self.name):
            return "command rejected by allowlist policy"
        return None

    def blocked_result(self, command: str, reason: str) -> CommandResult:
        """Result for a command that guardrails refused to run."""
        return CommandResult(
            command=command,
            shell=self.name,
            returncode=126,
            stdout="",
            stderr=reason,
            executed=False,
            blocked=True,
            block_reason=reason,
        )

    @staticmethod
    def is_catastrophic_command(command: str) -> bool:
        return any(pattern.search(command) for pattern in _CATASTROPHIC_PATTERNS)

    def log_request(self, command: str, *, timeout: float | None) -> None:
        LOGGER.info(
            "command_request",
            extra={
                "shell": self.name,
                "command": sanitize_command(command),
                "timeout": timeout,
            },
        )

    def log_result(self, result: CommandResult) -> None:
        LOGGER.info(
            "command_result",
            extra={
                "shell": result.shell,
                "returncode": result.returncode,
                "timed_out": result.timed_out,
                "duration_seconds": round(result.duration_seconds, 4),
                "executed": result.executed,
                "blocked": result.blocked,
                "stdout_length": len(result.stdout),
                "stderr_length": len(result.stderr),
            },
        )

    @staticmethod
    def monotonic_now() -> float:
        return time.monotonic()


def sanitize_command(command: str) -> str:
    """Mask obvious credentials before a command reaches the logs."""
    sanitized = command
    for pattern in _SECRET_PATTERNS:
        sanitized = pattern.sub(r"\1***", sanitized)
    return sanitized


def normalize_output(payload: bytes | str | None) -> str:
    """Decode captured process output, trying the common encodings in turn."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload

    for encoding in ("utf-8", "utf-8-sig", locale.getpreferredencoding(False), "cp1252"):
        try:
            return payload.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            continue
    return payload.decode("utf-8", errors="replace")
