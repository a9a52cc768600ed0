"""Typed payloads for the built-in tools.

Every built-in tool has exactly one payload shape. ``parse_builtin_call``
turns the untyped argument mapping sent by the model into that shape, or
raises :class:`ToolCallValidationError` naming what is wrong.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import MISSING, dataclass, fields
from typing import Union

from sammy.errors import ToolCallValidationError


@dataclass(frozen=True, slots=True)
class ReadFileCall:
    path: str


@dataclass(frozen=True, slots=True)
class WriteFileCall:
    path: str
    text: str
    append: bool = False


@dataclass(frozen=True, slots=True)
class SearchAndReplaceCall:
    path: str
    search: str
    replace: str


@dataclass(frozen=True, slots=True)
class RunTerminalCommandCall:
    command: str


BuiltinCall = Union[ReadFileCall, WriteFileCall, SearchAndReplaceCall, RunTerminalCommandCall]

CALL_TYPES: dict[str, type[BuiltinCall]] = {
    "read_file": ReadFileCall,
    "write_file": WriteFileCall,
    "search_and_replace": SearchAndReplaceCall,
    "run_terminal_command": RunTerminalCommandCall,
}

_FIELD_TYPES: dict[str, type] = {"append": bool}


def parse_builtin_call(name: str, arguments: Mapping[str, object]) -> BuiltinCall:
    call_type = CALL_TYPES.get(name)
    if call_type is None:
        raise ToolCallValidationError(name, "not a built-in tool")
    if not isinstance(arguments, Mapping):
        raise ToolCallValidationError(name, "arguments must be an object")

    known = {item.name: item for item in fields(call_type)}
    unexpected = sorted(set(arguments) - set(known))
    if unexpected:
        raise ToolCallValidationError(
            name,
            f"unexpected argument(s) {', '.join(unexpected)}; expected {', '.join(known)}",
        )

    values: dict[str, object] = {}
    for field_name, field_def in known.items():
        if field_name not in arguments:
            if field_def.default is MISSING:
                raise ToolCallValidationError(name, f"missing required argument '{field_name}'")
            continue
        value = arguments[field_name]
        expected = _FIELD_TYPES.get(field_name, str)
        if expected is bool and isinstance(value, str):
            value = _parse_bool_string(name, field_name, value)
        if not isinstance(value, expected):
            raise ToolCallValidationError(
                name,
                f"argument '{field_name}' must be a {expected.__name__}, "
                f"got {type(value).__name__}",
            )
        values[field_def.name] = value

    return call_type(**values)


def _parse_bool_string(tool: str, field_name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"true", "1", "yes"}:
        return True
    if normalized in {"false", "0", "no"}:
        return False
    raise ToolCallValidationError(tool, f"argument '{field_name}' must be a bool, got '{value}'")
