"""Tool registry for chatstream."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from chatstream.types import ToolMode

_logger = logging.getLogger(__name__)

Handler = Callable[..., Any]

_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass(frozen=True)
class ToolRegistration:
    """A named tool: how to run it and how to describe it to the model.

    ``schema`` is the JSON schema of the tool's parameters, declared
    explicitly at registration time.
    """

    name: str
    mode: ToolMode = ToolMode.AUTO_EXECUTE
    handler: Handler | None = None
    schema: dict[str, Any] = field(default_factory=lambda: dict(_EMPTY_SCHEMA))
    description: str = ""
    raw_arguments: bool = False

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.schema,
            },
        }


class ToolRegistry:
    """Name-to-registration lookup.

    Populate before a run starts; orchestrators only read from it, so a
    single registry can be shared by concurrent runs.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolRegistration] = {}

    def register(
        self,
        name: str,
        handler: Handler | None = None,
        *,
        description: str = "",
        schema: dict[str, Any] | None = None,
        mode: ToolMode = ToolMode.AUTO_EXECUTE,
        raw_arguments: bool = False,
    ) -> ToolRegistration:
        """Register a tool and return its registration.

        Auto-executed tools need a handler; client-side tools never have
        one invoked.
        """
        if mode == ToolMode.AUTO_EXECUTE and handler is None:
            raise ValueError(f"Auto-executed tool '{name}' needs a handler")
        registration = ToolRegistration(
            name=name,
            mode=mode,
            handler=handler,
            schema=schema if schema is not None else dict(_EMPTY_SCHEMA),
            description=description,
            raw_arguments=raw_arguments,
        )
        if name in self._tools:
            _logger.warning("Replacing registration for tool %s", name)
        self._tools[name] = registration
        return registration

    def add(self, registration: ToolRegistration) -> None:
        """Register a pre-built registration."""
        self._tools[registration.name] = registration

    def get(self, name: str) -> ToolRegistration | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    def names(self) -> list[str]:
        """Return list of registered tool names."""
        return list(self._tools.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        """Return OpenAI function-calling schemas for all registered tools."""
        return [t.to_openai_schema() for t in self._tools.values()]
