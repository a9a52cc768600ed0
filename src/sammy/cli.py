"""Command-line interface for sammy."""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import cast

from .agent.loop import AgentLoop, OnIteration
from .agent.models import IterationRecord, LoopOutcome
from .config import VALID_LOG_LEVELS, AppConfig, Strategy
from .errors import BackendError
from .execution.sandbox import ExecutionSandbox
from .llm.client import LLMClient
from .shell import create_shell_adapter
from .tools import BuiltinTools, ToolProvider, ToolProviderPool, ToolRegistry

LOGGER = logging.getLogger(__name__)

REPL_PROMPT = "\n[Sammy] > "
EXIT_WORDS = {"exit", "quit"}


class CLIArgs(argparse.Namespace):
    task: list[str]
    model: str | None
    host: str | None
    context_length: int | None
    mcp: list[str] | None
    strategy: Strategy | None
    working_directory: str | None
    max_tool_rounds: int | None
    max_failures: int | None
    max_iterations: int | None
    log_level: str | None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sammy", description="Autonomous task agent")
    parser.add_argument("--model", help="Model name served by the backend")
    parser.add_argument("--host", help="Backend URL, e.g. http://localhost:11434")
    parser.add_argument(
        "--context-length",
        dest="context_length",
        type=int,
        help="Context window budget sent with every request",
    )
    parser.add_argument(
        "--mcp",
        action="append",
        metavar="PROVIDER",
        help="External tool provider to start (repeatable)",
    )
    parser.add_argument(
        "--strategy",
        choices=["code", "tools"],
        help="code: run generated Python segments; tools: act only through tools",
    )
    parser.add_argument(
        "--cwd",
        dest="working_directory",
        help=(
            "Directory the agent works in. "
            "Takes precedence over config/env cwd values."
        ),
    )
    parser.add_argument("--max-tool-rounds", dest="max_tool_rounds", type=int)
    parser.add_argument("--max-failures", dest="max_failures", type=int)
    parser.add_argument(
        "--max-iterations",
        dest="max_iterations",
        type=int,
        help="Stop after this many iterations (0 means no limit)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str.upper,
        choices=sorted(VALID_LOG_LEVELS),
    )
    parser.add_argument(
        "task",
        nargs="*",
        help="Task text, or a path to a file containing the task. Omit for interactive mode.",
    )
    return parser


def apply_overrides(config: AppConfig, args: CLIArgs) -> AppConfig:
    if args.model:
        config.model = args.model
    if args.host:
        config.host = args.host
    if args.context_length and args.context_length > 0:
        config.context_length = args.context_length
    if args.mcp:
        config.mcp_providers = [*config.mcp_providers, *args.mcp]
    if args.strategy:
        config.strategy = args.strategy
    if args.working_directory is not None:
        config.working_directory = args.working_directory
    if args.max_tool_rounds and args.max_tool_rounds > 0:
        config.max_tool_rounds = args.max_tool_rounds
    if args.max_failures and args.max_failures > 0:
        config.max_consecutive_failures = args.max_failures
    if args.max_iterations is not None and args.max_iterations >= 0:
        config.max_iterations = args.max_iterations
    if args.log_level:
        config.log_level = args.log_level
    return config


def read_task(words: Sequence[str]) -> str:
    """Return the task text; a first argument naming a file means "read that file"."""
    if not words:
        return ""
    candidate = Path(words[0])
    try:
        is_file = candidate.is_file()
    except OSError:
        # e.g. ENAMETOOLONG for a long task typed inline
        is_file = False
    if is_file:
        return candidate.read_text(encoding="utf-8")
    return " ".join(words)


def build_loop(
    config: AppConfig,
    working_directory: str,
    providers: Sequence[ToolProvider],
    *,
    on_iteration: OnIteration | None = None,
) -> AgentLoop:
    shell = create_shell_adapter(config.shell)
    registry = ToolRegistry(
        BuiltinTools(root=working_directory, shell=shell, command_timeout=config.command_timeout),
        providers=providers,
    )
    sandbox = ExecutionSandbox(working_directory=working_directory, timeout=config.sandbox_timeout)
    client = LLMClient(
        model=config.model,
        host=config.host,
        context_length=config.context_length,
    )
    return AgentLoop(
        backend=client,
        registry=registry,
        sandbox=sandbox,
        strategy=config.strategy,
        context_length=config.context_length,
        max_tool_rounds=config.max_tool_rounds,
        max_consecutive_failures=config.max_consecutive_failures,
        max_iterations=config.max_iterations,
        log_dir=config.log_dir,
        working_directory=working_directory,
        model=config.model,
        on_iteration=on_iteration,
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = cast(CLIArgs, parser.parse_args(argv))
    config = apply_overrides(AppConfig.from_env(), args)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    working_directory = str(Path.cwd())
    if config.working_directory is not None:
        resolved_working_directory = Path(config.working_directory).expanduser().resolve()
        if not resolved_working_directory.exists() or not resolved_working_directory.is_dir():
            print(f"Invalid configured cwd directory: {config.working_directory}")
            return 1
        working_directory = str(resolved_working_directory)

    try:
        create_shell_adapter(config.shell)
    except ValueError as exc:
        print(str(exc))
        return 1

    task = read_task(args.task).strip()
    return asyncio.run(_serve(config, working_directory, task))


async def _serve(config: AppConfig, working_directory: str, task: str) -> int:
    async with ToolProviderPool(config.mcp_providers) as pool:
        for spec, error in pool.failed.items():
            print(f"Failed to load tool provider {spec}: {error}")
        loop = build_loop(
            config, working_directory, pool.providers, on_iteration=_print_iteration
        )
        LOGGER.debug(
            "session_started",
            extra={
                "model": config.model,
                "strategy": config.strategy,
                "tools": loop.registry.names,
                "interactive": not task,
            },
        )
        if task:
            exit_code = await _run_once(loop, task)
        else:
            exit_code = await _repl(loop)
    print("Session closed.")
    return exit_code


async def _run_once(loop: AgentLoop, task: str) -> int:
    try:
        outcome = await loop.handle(task)
    except BackendError as exc:
        print(f"Backend error: {exc}")
        return 1
    print(_render_outcome(outcome))
    return 1 if outcome.status == "gave_up" else 0


async def _repl(loop: AgentLoop) -> int:
    while True:
        try:
            task = (await asyncio.to_thread(input, REPL_PROMPT)).strip()
        except EOFError:
            return 0
        if task.lower() in EXIT_WORDS:
            return 0
        if not task:
            continue
        try:
            outcome = await loop.handle(task)
        except BackendError as exc:
            print(f"Backend error: {exc}")
            continue
        print(_render_outcome(outcome))


def _print_iteration(record: IterationRecord) -> None:
    print(_render_iteration(record))


def _render_iteration(record: IterationRecord) -> str:
    status = "ok" if record.ok else f"failed: {record.reason or 'error'}"
    lines = [f"=== Iteration {record.iteration} ({status}) ==="]
    if record.tool_calls:
        lines.append("[tools]")
        lines.append(", ".join(record.tool_calls))
    if record.action:
        lines.append("[action]")
        lines.append(record.action)
    output = record.output.rstrip()
    if output:
        lines.append("[output]" if record.ok else "[error]")
        lines.append(output)
    return "\n".join(lines)


def _render_outcome(outcome: LoopOutcome) -> str:
    if outcome.status == "chat":
        return f"\n{outcome.reply or ''}"
    if outcome.status == "gave_up":
        return f"Giving up: {outcome.detail}"
    return f"Task complete after {outcome.state.iteration} iteration(s)."


if __name__ == "__main__":
    raise SystemExit(main())
