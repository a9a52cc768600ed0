"""Data models used by the agent control loop."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Literal

Role = Literal["system", "user", "assistant", "tool"]
LoopStatus = Literal["completed", "chat", "gave_up"]

NO_ACTIVE_TASK_SUMMARY = "No active task."


class Route(enum.Enum):
    """Task classification returned by the router."""

    CHAT = "CHAT"
    ACTION = "ACTION"


@dataclass(frozen=True, slots=True)
class ToolCallRequest:
    """A tool invocation requested by the model backend."""

    name: str
    arguments: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Message:
    """One role-tagged entry of a backend request."""

    role: Role
    content: str
    tool_name: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"role": self.role, "content": self.content}
        if self.tool_name is not None:
            payload["tool_name"] = self.tool_name
        if self.tool_calls:
            payload["tool_calls"] = [
                {"function": {"name": call.name, "arguments": dict(call.arguments)}}
                for call in self.tool_calls
            ]
        return payload


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Structured outcome of a tool dispatch.

    ``ok`` results carry ``output``; failed results carry a short machine
    ``reason`` and a human readable ``detail``.
    """

    ok: bool
    output: str = ""
    reason: str | None = None
    detail: str = ""

    @classmethod
    def success(cls, output: str) -> ToolResult:
        return cls(ok=True, output=output)

    @classmethod
    def failure(cls, reason: str, detail: str) -> ToolResult:
        return cls(ok=False, reason=reason, detail=detail)

    def to_message_text(self) -> str:
        if self.ok:
            return self.output
        return f"Error ({self.reason}): {self.detail}"


@dataclass(frozen=True, slots=True)
class ToolExchange:
    """A dispatched tool call paired with its result."""

    request: ToolCallRequest
    result: ToolResult


@dataclass(frozen=True, slots=True)
class GenerationTurn:
    """Resolved output of one generation turn, after any tool rounds."""

    content: str
    exchanges: tuple[ToolExchange, ...] = ()
    tool_rounds: int = 0
    sentinel: bool = False
    round_limit_reached: bool = False


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    """Classified result of the EXECUTE step."""

    ok: bool
    action: str
    output: str
    reason: str | None = None
    completes: bool = False


@dataclass(frozen=True, slots=True)
class LoopState:
    """Accumulators threaded through every control-loop transition."""

    task: str
    progress_log: str = ""
    error_log: str = ""
    summary: str = NO_ACTIVE_TASK_SUMMARY
    iteration: int = 0
    consecutive_failures: int = 0

    @property
    def has_pending_error(self) -> bool:
        return bool(self.error_log)

    def with_summary(self, summary: str) -> LoopState:
        return replace(self, summary=summary)


@dataclass(slots=True)
class IterationRecord:
    """What happened during one outer iteration, for the operator and the log."""

    iteration: int
    action: str
    output: str
    ok: bool
    reason: str | None = None
    tool_calls: list[str] = field(default_factory=list)
    complete: bool = False


@dataclass(slots=True)
class LoopOutcome:
    """Final result of handling one task."""

    status: LoopStatus
    state: LoopState
    iterations: list[IterationRecord] = field(default_factory=list)
    reply: str | None = None
    detail: str | None = None
