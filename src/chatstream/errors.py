"""Exception hierarchy for chatstream."""

from __future__ import annotations


class ChatStreamError(Exception):
    """Base class for all chatstream errors."""


class ConfigError(ChatStreamError):
    """Configuration file could not be read or is malformed."""


class TransportError(ChatStreamError):
    """The model transport failed to deliver a response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolError(ChatStreamError):
    """Base for failures while dispatching a tool call."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotRegisteredError(ToolError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f"Tool '{tool_name}' is not registered")


class ToolExecutionError(ToolError):
    """A handler raised, or its arguments could not be decoded."""
