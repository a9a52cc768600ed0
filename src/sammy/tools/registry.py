"""Flat tool catalogue with a single dispatch entry point."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from sammy.agent.models import ToolResult
from sammy.errors import ToolCallValidationError

from .builtin import BUILTIN_TOOL_SCHEMAS, BuiltinTools
from .calls import CALL_TYPES, parse_builtin_call

LOGGER = logging.getLogger(__name__)


class ToolProvider(Protocol):
    spec: str
    schemas: list[dict[str, object]]

    async def call(self, name: str, arguments: Mapping[str, object]) -> ToolResult: ...


class ToolRegistry:
    """Merges built-in tools with the tools advertised by external providers."""

    def __init__(
        self,
        builtins: BuiltinTools,
        *,
        providers: Sequence[ToolProvider] = (),
    ) -> None:
        self.builtins = builtins
        self._schemas: list[dict[str, object]] = list(BUILTIN_TOOL_SCHEMAS)
        self._routes: dict[str, ToolProvider] = {}
        for provider in providers:
            for schema in provider.schemas:
                name = _schema_name(schema)
                if name in CALL_TYPES or name in self._routes:
                    LOGGER.warning(
                        "duplicate_tool_ignored",
                        extra={"tool": name, "provider": provider.spec},
                    )
                    continue
                self._routes[name] = provider
                self._schemas.append(schema)

    @property
    def names(self) -> list[str]:
        return [_schema_name(schema) for schema in self._schemas]

    def catalogue(self) -> list[dict[str, object]]:
        return list(self._schemas)

    async def dispatch(self, name: str, arguments: Mapping[str, object]) -> ToolResult:
        if name in CALL_TYPES:
            try:
                call = parse_builtin_call(name, arguments)
            except ToolCallValidationError as exc:
                result = ToolResult.failure("invalid_arguments", str(exc))
            else:
                result = await asyncio.to_thread(self.builtins.run, call)
        elif name in self._routes:
            result = await self._routes[name].call(name, arguments)
        else:
            result = ToolResult.failure(
                "tool_not_found",
                f"Tool '{name}' is not available. Choose one of: {', '.join(self.names)}.",
            )

        LOGGER.info(
            "tool_dispatched",
            extra={
                "tool": name,
                "ok": result.ok,
                "reason": result.reason,
                "output_length": len(result.output or result.detail),
            },
        )
        return result


def _schema_name(schema: Mapping[str, object]) -> str:
    function = schema.get("function")
    if isinstance(function, Mapping):
        return str(function.get("name", ""))
    return ""
