"""Tool registry, built-in tools and external tool providers."""

from .builtin import BUILTIN_TOOL_SCHEMAS, BuiltinTools
from .calls import BuiltinCall, parse_builtin_call
from .providers import ConnectedProvider, ToolProviderPool, parse_provider_command
from .registry import ToolProvider, ToolRegistry

__all__ = [
    "BUILTIN_TOOL_SCHEMAS",
    "BuiltinCall",
    "BuiltinTools",
    "ConnectedProvider",
    "ToolProvider",
    "ToolProviderPool",
    "ToolRegistry",
    "parse_builtin_call",
    "parse_provider_command",
]
