"""Core tool loop for chatstream."""

from chatstream.core.orchestrator import ToolLoop, max_iterations_notice

__all__ = ["ToolLoop", "max_iterations_notice"]
