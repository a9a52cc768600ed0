"""Built-in file and shell tools operating on the user's working directory."""

from __future__ import annotations

import logging
from pathlib import Path

from sammy.agent.models import ToolResult
from sammy.shell import ShellAdapter

from .calls import (
    BuiltinCall,
    ReadFileCall,
    RunTerminalCommandCall,
    SearchAndReplaceCall,
    WriteFileCall,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 30.0
NO_OUTPUT_TEXT = "Command executed (no output)."

BUILTIN_TOOL_SCHEMAS: list[dict[str, object]] = [
    {
        "type": "function",
        "function": {
            "name": "read_file",
            "description": "Read the contents of a file from the local filesystem",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "The path to the file"}},
                "required": ["path"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "write_file",
            "description": "Write or append text to a file",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"},
                    "text": {"type": "string", "description": "Content to write"},
                    "append": {
                        "type": "boolean",
                        "description": "Append instead of overwriting (default false)",
                    },
                },
                "required": ["path", "text"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_and_replace",
            "description": "Replace every occurrence of a literal string in a file",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"},
                    "search": {"type": "string"},
                    "replace": {"type": "string"},
                },
                "required": ["path", "search", "replace"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "run_terminal_command",
            "description": "Execute a shell command",
            "parameters": {
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "The full shell command"}
                },
                "required": ["command"],
            },
        },
    },
]


class BuiltinTools:
    """Executes validated built-in tool payloads relative to ``root``."""

    def __init__(
        self,
        *,
        root: str | Path,
        shell: ShellAdapter,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self.root = Path(root)
        self.shell = shell
        self.command_timeout = command_timeout

    def run(self, call: BuiltinCall) -> ToolResult:
        if isinstance(call, ReadFileCall):
            return self.read_file(call)
        if isinstance(call, WriteFileCall):
            return self.write_file(call)
        if isinstance(call, SearchAndReplaceCall):
            return self.search_and_replace(call)
        return self.run_terminal_command(call)

    def resolve(self, path: str) -> Path:
        return (self.root / Path(path).expanduser()).resolve()

    def read_file(self, call: ReadFileCall) -> ToolResult:
        target = self.resolve(call.path)
        try:
            return ToolResult.success(target.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            return ToolResult.failure("read_failed", f"Cannot read {call.path}: {exc}")

    def write_file(self, call: WriteFileCall) -> ToolResult:
        target = self.resolve(call.path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("a" if call.append else "w", encoding="utf-8") as handle:
                handle.write(call.text)
        except OSError as exc:
            return ToolResult.failure("write_failed", f"Cannot write {call.path}: {exc}")
        verb = "appended to" if call.append else "wrote to"
        return ToolResult.success(f"Successfully {verb} {call.path}")

    def search_and_replace(self, call: SearchAndReplaceCall) -> ToolResult:
        target = self.resolve(call.path)
        try:
            # newline="" keeps line endings byte-for-byte on the way back out
            with target.open("r", encoding="utf-8", newline="") as handle:
                data = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            return ToolResult.failure("read_failed", f"Cannot read {call.path}: {exc}")

        if not call.search or call.search not in data:
            return ToolResult.failure(
                "search_not_found", f'String "{call.search}" not found in {call.path}.'
            )

        occurrences = data.count(call.search)
        try:
            with target.open("w", encoding="utf-8", newline="") as handle:
                handle.write(data.replace(call.search, call.replace))
        except OSError as exc:
            return ToolResult.failure("write_failed", f"Cannot write {call.path}: {exc}")
        return ToolResult.success(
            f"Successfully replaced {occurrences} occurrence(s) in {call.path}"
        )

    def run_terminal_command(self, call: RunTerminalCommandCall) -> ToolResult:
        result = self.shell.execute(
            call.command,
            cwd=str(self.root),
            timeout=self.command_timeout,
        )
        if result.blocked:
            return ToolResult.failure("blocked", result.block_reason or result.stderr)
        if result.timed_out:
            return ToolResult.failure(
                "timeout",
                _join_streams(
                    f"Command timed out after {self.command_timeout:g}s.",
                    result.stdout,
                    result.stderr,
                ),
            )
        if result.returncode != 0:
            return ToolResult.failure(
                "non_zero_exit",
                _join_streams(
                    f"Command exited with code {result.returncode}.",
                    result.stdout,
                    result.stderr,
                ),
            )
        return ToolResult.success(result.stdout or result.stderr or NO_OUTPUT_TEXT)


def _join_streams(headline: str, stdout: str, stderr: str) -> str:
    parts = [headline]
    if stdout.strip():
        parts.append(f"stdout:\n{stdout.rstrip()}")
    if stderr.strip():
        parts.append(f"stderr:\n{stderr.rstrip()}")
    return "\n".join(parts)
