"""Exceptions that cross component boundaries."""

from __future__ import annotations


class SammyError(Exception):
    """Base class for all sammy errors."""


class BackendError(SammyError):
    """The model backend could not be reached or returned an unusable response."""


class ToolCallValidationError(SammyError):
    """A tool call payload does not match the shape its tool requires."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool


class ProviderStartupError(SammyError):
    """An external tool provider failed to connect or list its tools."""
