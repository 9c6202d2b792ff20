"""Tool system for chatstream."""

from chatstream.tools.dispatcher import DispatchOutcome, DispatchStatus, ToolDispatcher
from chatstream.tools.registry import ToolRegistration, ToolRegistry

__all__ = [
    "DispatchOutcome",
    "DispatchStatus",
    "ToolDispatcher",
    "ToolRegistration",
    "ToolRegistry",
]
