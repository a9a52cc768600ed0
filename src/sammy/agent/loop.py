"""Agent control loop: summarize, generate, execute, check, repeat."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from sammy.agent.models import (
    ActionOutcome,
    GenerationTurn,
    IterationRecord,
    LoopOutcome,
    LoopState,
    Message,
    Route,
    ToolExchange,
)
from sammy.agent.prompts import (
    CODE_GENERATION_PROMPT,
    COMPLETION_CHECK_PROMPT,
    COMPLETION_SENTINEL,
    TOOL_GENERATION_PROMPT,
    completion_request,
    generation_request,
)
from sammy.agent.router import TaskRouter
from sammy.agent.summarizer import ContextSummarizer, summary_limit, tail, tail_length
from sammy.config import Strategy
from sammy.execution.sandbox import ExecutionSandbox
from sammy.llm.client import ChatBackend
from sammy.tools.registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

OnIteration = Callable[[IterationRecord], None]

_CODE_FENCE = re.compile(r"^```[\w+-]*\s*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)
_YES = re.compile(r"\byes\b", re.IGNORECASE)
_REJECTED_PREFIX = "Completion was claimed while an error is unresolved: "


class AgentLoop:
    """Drives one task at a time through the model backend until it is done.

    Every transition takes the current :class:`LoopState` and hands back a new
    one, so ``summarize``, ``generate``, ``execute``, ``apply_outcome`` and
    ``check_complete`` can each be exercised on their own.
    """

    def __init__(
        self,
        *,
        backend: ChatBackend,
        registry: ToolRegistry,
        sandbox: ExecutionSandbox | None = None,
        strategy: Strategy = "code",
        context_length: int = 42000,
        max_tool_rounds: int = 25,
        max_consecutive_failures: int = 10,
        max_iterations: int = 0,
        log_dir: str | Path | None = None,
        working_directory: str | None = None,
        model: str | None = None,
        on_iteration: OnIteration | None = None,
        router: TaskRouter | None = None,
        summarizer: ContextSummarizer | None = None,
    ) -> None:
        if strategy == "code" and sandbox is None:
            raise ValueError("the code strategy needs an execution sandbox")
        self.backend = backend
        self.registry = registry
        self.sandbox = sandbox
        self.strategy = strategy
        self.context_length = context_length
        self.max_tool_rounds = max_tool_rounds
        self.max_consecutive_failures = max_consecutive_failures
        self.max_iterations = max_iterations
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.working_directory = working_directory
        self.model = model
        self.on_iteration = on_iteration
        self.router = router or TaskRouter(backend)
        self.summarizer = summarizer or ContextSummarizer(
            backend, max_chars=summary_limit(context_length)
        )

    async def handle(self, task: str) -> LoopOutcome:
        """Route ``task`` and either answer it directly or run the loop on it."""
        route = await self.router.route(task)
        if route is Route.CHAT:
            reply = await self.router.reply(task)
            return LoopOutcome(status="chat", state=LoopState(task=task), reply=reply)
        return await self.run(task)

    async def run(self, task: str) -> LoopOutcome:
        state = LoopState(task=task)
        records: list[IterationRecord] = []
        while True:
            if self.max_iterations and state.iteration >= self.max_iterations:
                return self._give_up(
                    state,
                    records,
                    f"Stopped after {state.iteration} iterations without finishing.",
                )

            state = await self.summarize(state)
            turn = await self.generate(state)
            outcome = await self.execute(state, turn)
            state = self.apply_outcome(state, outcome)

            complete = outcome.completes
            if outcome.ok and not complete:
                complete = await self.check_complete(state)

            record = IterationRecord(
                iteration=state.iteration,
                action=outcome.action,
                output=outcome.output,
                ok=outcome.ok,
                reason=outcome.reason,
                tool_calls=[exchange.request.name for exchange in turn.exchanges],
                complete=complete,
            )
            records.append(record)
            self._report(record, state)

            if complete:
                return LoopOutcome(status="completed", state=state, iterations=records)
            if (
                self.max_consecutive_failures
                and state.consecutive_failures >= self.max_consecutive_failures
            ):
                return self._give_up(
                    state,
                    records,
                    f"Gave up after {state.consecutive_failures} consecutive failures. "
                    f"Last error: {state.error_log}",
                )

    async def summarize(self, state: LoopState) -> LoopState:
        length = tail_length(self.context_length)
        summary = await self.summarizer.summarize(
            tail(state.progress_log, length),
            tail(state.error_log, length),
            state.summary,
        )
        return state.with_summary(summary)

    async def generate(self, state: LoopState) -> GenerationTurn:
        system_prompt = (
            TOOL_GENERATION_PROMPT if self.strategy == "tools" else CODE_GENERATION_PROMPT
        )
        messages = [
            Message(role="system", content=system_prompt),
            Message(
                role="user",
                content=generation_request(
                    state.task, state.summary, state.error_log, strategy=self.strategy
                ),
            ),
        ]
        tools = self.registry.catalogue()
        exchanges: list[ToolExchange] = []
        rounds = 0
        while True:
            reply = await self.backend.chat(messages, tools=tools)
            content = reply.content.strip()
            if COMPLETION_SENTINEL in content:
                if reply.tool_calls:
                    LOGGER.info(
                        "tool_calls_suppressed",
                        extra={"tools": [call.name for call in reply.tool_calls]},
                    )
                return GenerationTurn(
                    content=content, exchanges=tuple(exchanges), tool_rounds=rounds, sentinel=True
                )
            if not reply.tool_calls:
                return GenerationTurn(
                    content=content, exchanges=tuple(exchanges), tool_rounds=rounds
                )
            if rounds >= self.max_tool_rounds:
                LOGGER.warning("tool_round_limit_reached", extra={"rounds": rounds})
                return GenerationTurn(
                    content=content,
                    exchanges=tuple(exchanges),
                    tool_rounds=rounds,
                    round_limit_reached=True,
                )

            rounds += 1
            messages.append(reply.as_message())
            for call in reply.tool_calls:
                result = await self.registry.dispatch(call.name, call.arguments)
                exchanges.append(ToolExchange(request=call, result=result))
                messages.append(
                    Message(role="tool", content=result.to_message_text(), tool_name=call.name)
                )

    async def execute(self, state: LoopState, turn: GenerationTurn) -> ActionOutcome:
        if turn.round_limit_reached:
            return ActionOutcome(
                ok=False,
                action=_describe_exchanges(turn.exchanges),
                output=(
                    f"Stopped after {turn.tool_rounds} tool rounds without a final answer. "
                    "Use fewer tool calls per step."
                ),
                reason="tool_round_limit",
            )

        last_failure = _last_failed_exchange(turn.exchanges)
        if turn.sentinel:
            if state.has_pending_error:
                output = state.error_log
                if not output.startswith(_REJECTED_PREFIX):
                    output = f"{_REJECTED_PREFIX}{output}"
                return ActionOutcome(
                    ok=False,
                    action=COMPLETION_SENTINEL,
                    output=output,
                    reason="completion_rejected",
                )
            if last_failure is not None:
                return ActionOutcome(
                    ok=False,
                    action=COMPLETION_SENTINEL,
                    output=(
                        "Completion was claimed after a failed tool call: "
                        f"{last_failure.result.to_message_text()}"
                    ),
                    reason="completion_rejected",
                )
            return ActionOutcome(ok=True, action=COMPLETION_SENTINEL, output="", completes=True)

        if self.strategy == "tools":
            return self._tool_outcome(turn)
        return await self._run_segment(turn.content)

    @staticmethod
    def apply_outcome(state: LoopState, outcome: ActionOutcome) -> LoopState:
        iteration = state.iteration + 1
        if outcome.ok:
            progress = state.progress_log
            if not outcome.completes:
                progress = f"{progress}\nAction: {outcome.action}\nOutput: {outcome.output}"
            return replace(
                state,
                progress_log=progress,
                error_log="",
                iteration=iteration,
                consecutive_failures=0,
            )

        error = outcome.output.strip() or (
            f"Action failed ({outcome.reason or 'unknown reason'}) without any output."
        )
        return replace(
            state,
            error_log=error,
            iteration=iteration,
            consecutive_failures=state.consecutive_failures + 1,
        )

    async def check_complete(self, state: LoopState) -> bool:
        reply = await self.backend.chat(
            [
                Message(role="system", content=COMPLETION_CHECK_PROMPT),
                Message(
                    role="user",
                    content=completion_request(
                        state.task, tail(state.progress_log, tail_length(self.context_length))
                    ),
                ),
            ]
        )
        return bool(_YES.search(reply.content))

    def _tool_outcome(self, turn: GenerationTurn) -> ActionOutcome:
        if not turn.exchanges:
            return ActionOutcome(
                ok=True, action="report", output=turn.content or "(no tool calls)"
            )

        action = _describe_exchanges(turn.exchanges)
        last = turn.exchanges[-1]
        if not last.result.ok:
            return ActionOutcome(
                ok=False,
                action=action,
                output=last.result.to_message_text(),
                reason=last.result.reason,
            )
        outputs = [
            f"{exchange.request.name}: {exchange.result.to_message_text()}"
            for exchange in turn.exchanges
        ]
        if turn.content:
            outputs.append(turn.content)
        return ActionOutcome(ok=True, action=action, output="\n".join(outputs))

    async def _run_segment(self, content: str) -> ActionOutcome:
        if self.sandbox is None:
            raise RuntimeError("the code strategy needs an execution sandbox")
        segment = strip_code_fences(content)
        if not segment:
            return ActionOutcome(
                ok=False,
                action="",
                output="No code segment was produced. Output the next Python segment.",
                reason="empty_segment",
            )
        result = await asyncio.to_thread(self.sandbox.run, segment)
        return ActionOutcome(
            ok=result.succeeded,
            action=segment,
            output=result.output,
            reason=result.reason,
        )

    def _give_up(
        self, state: LoopState, records: list[IterationRecord], detail: str
    ) -> LoopOutcome:
        LOGGER.warning(
            "loop_gave_up",
            extra={"iteration": state.iteration, "failures": state.consecutive_failures},
        )
        return LoopOutcome(status="gave_up", state=state, iterations=records, detail=detail)

    def _report(self, record: IterationRecord, state: LoopState) -> None:
        LOGGER.info(
            "iteration_finished",
            extra={
                "iteration": record.iteration,
                "ok": record.ok,
                "reason": record.reason,
                "complete": record.complete,
                "tool_calls": len(record.tool_calls),
            },
        )
        if self.log_dir is not None:
            self._append_log(self.log_dir, record, task=state.task)
        if self.on_iteration is not None:
            self.on_iteration(record)

    def _append_log(self, log_dir: Path, record: IterationRecord, *, task: str) -> None:
        log_dir.mkdir(parents=True, exist_ok=True)
        day_file = log_dir / f"session-{datetime.now(timezone.utc).date().isoformat()}.log"
        entry = {
            "log_version": 1,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "task": task,
            "model": self.model,
            "strategy": self.strategy,
            "working_directory": self.working_directory,
            "iteration": record.iteration,
            "action": record.action,
            "output": record.output,
            "ok": record.ok,
            "reason": record.reason,
            "tool_calls": record.tool_calls,
            "complete": record.complete,
        }
        with day_file.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry) + "\n")


def strip_code_fences(content: str) -> str:
    text = content.strip()
    match = _CODE_FENCE.match(text)
    if match:
        return match.group("body").strip()
    return text


def _last_failed_exchange(exchanges: tuple[ToolExchange, ...]) -> ToolExchange | None:
    if exchanges and not exchanges[-1].result.ok:
        return exchanges[-1]
    return None


def _describe_exchanges(exchanges: tuple[ToolExchange, ...]) -> str:
    calls = []
    for exchange in exchanges:
        arguments = ", ".join(
            f"{key}={_short(value)}" for key, value in exchange.request.arguments.items()
        )
        calls.append(f"{exchange.request.name}({arguments})")
    return "; ".join(calls) or "(no tool calls)"


def _short(value: object, limit: int = 60) -> str:
    text = repr(value)
    return text if len(text) <= limit else f"{text[: limit - 3]}..."
