"""External tool providers reached over the Model Context Protocol (stdio)."""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys
from collections.abc import Mapping, Sequence
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client

from sammy.agent.models import ToolResult
from sammy.errors import ProviderStartupError

LOGGER = logging.getLogger(__name__)

DEFAULT_PROVIDER_INIT_TIMEOUT = 30.0


def parse_provider_command(spec: str) -> tuple[str, list[str]]:
    """Turn a ``--mcp`` value into the command that launches the provider.

    A bare package name runs through ``npx``; local ``.py``/``.js`` scripts run
    with the matching interpreter; anything with arguments is used verbatim.
    """
    parts = shlex.split(spec)
    if not parts:
        raise ProviderStartupError("empty tool provider specification")
    if len(parts) > 1:
        return parts[0], parts[1:]
    target = parts[0]
    if target.endswith(".py"):
        return sys.executable, [target]
    if target.endswith(".js"):
        return "node", [target]
    return "npx", [target]


def mcp_tool_to_schema(tool: Any) -> dict[str, object]:
    """Convert an MCP tool description into the Ollama function-tool shape."""
    parameters = tool.inputSchema if isinstance(tool.inputSchema, dict) else {}
    parameters = {"type": "object", "properties": {}, **parameters}
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description or "",
            "parameters": parameters,
        },
    }


def flatten_content(content: Sequence[Any] | None) -> str:
    parts: list[str] = []
    for item in content or []:
        text = getattr(item, "text", None)
        if isinstance(text, str):
            parts.append(text)
        elif hasattr(item, "model_dump_json"):
            parts.append(item.model_dump_json())
        else:
            parts.append(str(item))
    return "\n".join(parts)


@dataclass(slots=True)
class ConnectedProvider:
    """A live provider session and the tools it advertised."""

    spec: str
    session: Any
    schemas: list[dict[str, object]] = field(default_factory=list)

    @property
    def tool_names(self) -> list[str]:
        return [str(schema["function"]["name"]) for schema in self.schemas]  # type: ignore[index]

    async def call(self, name: str, arguments: Mapping[str, object]) -> ToolResult:
        try:
            result = await self.session.call_tool(name, dict(arguments))
        except Exception as exc:  # noqa: BLE001 - provider failures are reported to the model
            LOGGER.warning(
                "provider_call_failed",
                extra={"provider": self.spec, "tool": name, "error": str(exc)},
            )
            return ToolResult.failure("provider_error", f"{name} failed: {exc}")

        text = flatten_content(result.content)
        if result.isError:
            return ToolResult.failure("provider_error", text or f"{name} reported an error")
        if not text:
            return ToolResult.failure("empty_result", f"{name} returned no content")
        return ToolResult.success(text)


class ToolProviderPool:
    """Owns every provider connection opened at startup.

    Usage::

        async with ToolProviderPool(["@modelcontextprotocol/server-everything"]) as pool:
            registry = ToolRegistry(builtins, providers=pool.providers)

    A provider that fails to start is logged and skipped. All connections are
    closed when the ``async with`` block exits, however it exits.
    """

    def __init__(
        self,
        specs: Sequence[str],
        *,
        init_timeout: float = DEFAULT_PROVIDER_INIT_TIMEOUT,
    ) -> None:
        self.specs = list(specs)
        self.init_timeout = init_timeout
        self.providers: list[ConnectedProvider] = []
        self.failed: dict[str, str] = {}
        self._stack: AsyncExitStack | None = None

    async def __aenter__(self) -> ToolProviderPool:
        self._stack = AsyncExitStack()
        await self._stack.__aenter__()
        for spec in self.specs:
            try:
                provider = await self._connect(spec, self._stack)
            except Exception as exc:  # noqa: BLE001 - a broken provider must not stop startup
                self.failed[spec] = str(exc) or exc.__class__.__name__
                LOGGER.error(
                    "provider_startup_failed",
                    extra={"provider": spec, "error": self.failed[spec]},
                )
                continue
            self.providers.append(provider)
            LOGGER.info(
                "provider_connected",
                extra={"provider": spec, "tools": provider.tool_names},
            )
        return self

    async def __aexit__(self, *exc: object) -> None:
        stack, self._stack = self._stack, None
        self.providers = []
        if stack is not None:
            await stack.aclose()

    async def _connect(self, spec: str, stack: AsyncExitStack) -> ConnectedProvider:
        command, args = parse_provider_command(spec)
        # Each provider gets its own stack so a failed start unwinds only itself.
        provider_stack = AsyncExitStack()
        try:
            params = StdioServerParameters(command=command, args=args)
            read_stream, write_stream = await provider_stack.enter_async_context(
                stdio_client(params)
            )
            session = await provider_stack.enter_async_context(
                ClientSession(read_stream, write_stream)
            )
            await asyncio.wait_for(session.initialize(), timeout=self.init_timeout)
            listed = await asyncio.wait_for(session.list_tools(), timeout=self.init_timeout)
        except BaseException:
            await provider_stack.aclose()
            raise
        await stack.enter_async_context(provider_stack)
        return ConnectedProvider(
            spec=spec,
            session=session,
            schemas=[mcp_tool_to_schema(tool) for tool in listed.tools],
        )
