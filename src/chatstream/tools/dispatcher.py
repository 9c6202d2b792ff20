"""Tool dispatch: argument repair, handler invocation and timing."""

from __future__ import annotations

import enum
import inspect
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from chatstream.errors import ToolError, ToolExecutionError, ToolNotRegisteredError
from chatstream.tools.registry import ToolRegistration, ToolRegistry
from chatstream.types import ToolMode

_logger = logging.getLogger(__name__)


def normalize_arguments(raw: str | None) -> str:
    """Coerce raw argument text into something that should be JSON.

    Empty input becomes ``{}``; bare ``"k": v`` pairs are wrapped in braces.
    """
    if not raw:
        return "{}"
    trimmed = raw.strip()
    if not trimmed:
        return "{}"
    if not trimmed.startswith(("{", "[")):
        trimmed = "{" + trimmed + "}"
    return trimmed


def repair_json(text: str) -> str:
    """Append missing closing braces.

    Only balances a plain ``{``/``}`` count.  Missing opening braces,
    brackets and trailing commas are left alone.
    """
    missing = text.count("{") - text.count("}")
    if missing > 0:
        return text + "}" * missing
    return text


def validate_arguments(raw: str | None) -> str:
    """Normalize *raw* and repair it if it does not parse."""
    normalized = normalize_arguments(raw)
    try:
        json.loads(normalized)
        return normalized
    except json.JSONDecodeError:
        repaired = repair_json(normalized)
        if repaired != normalized:
            _logger.warning("Repaired malformed tool arguments: %r", normalized[:200])
        return repaired


def stringify_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


class DispatchStatus(enum.Enum):
    COMPLETED = "completed"
    ERROR = "error"
    DEFERRED = "deferred"


@dataclass
class DispatchOutcome:
    """What happened to one tool call."""

    status: DispatchStatus
    arguments: str = ""
    result: str | None = None
    error: ToolError | None = None
    duration_ms: float = 0.0

    @property
    def error_text(self) -> str:
        return str(self.error) if self.error is not None else ""

    def to_message_content(self) -> str:
        """Content of the tool-role message fed back to the model."""
        if self.status == DispatchStatus.COMPLETED:
            return self.result or ""
        return self.error_text


class ToolDispatcher:
    """Runs tool calls against a :class:`ToolRegistry`.

    Never raises for tool problems: unknown tools, bad arguments and handler
    exceptions all come back as an ``ERROR`` outcome.

    Usage::

        dispatcher = ToolDispatcher(registry)
        outcome = await dispatcher.execute("add", '{"a": 1, "b": 2}')
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    def lookup(self, name: str) -> ToolRegistration:
        registration = self._registry.get(name)
        if registration is None:
            raise ToolNotRegisteredError(name)
        return registration

    async def execute(self, name: str, raw_arguments: str | None) -> DispatchOutcome:
        arguments = validate_arguments(raw_arguments)

        try:
            registration = self.lookup(name)
        except ToolNotRegisteredError as e:
            _logger.warning("Tool not registered: %s", name)
            return DispatchOutcome(DispatchStatus.ERROR, arguments=arguments, error=e)

        if registration.mode == ToolMode.CLIENT_SIDE:
            _logger.info("Deferring client-side tool %s", name)
            return DispatchOutcome(DispatchStatus.DEFERRED, arguments=arguments)

        _logger.info("Calling %s with %s", name, arguments)
        start = time.monotonic()
        try:
            result = await self._invoke(registration, arguments)
        except Exception as e:
            duration = (time.monotonic() - start) * 1000
            _logger.error("Tool %s raised: %s", name, e)
            error = e if isinstance(e, ToolExecutionError) else ToolExecutionError(
                name, f"Error executing tool: {e}",
            )
            return DispatchOutcome(
                DispatchStatus.ERROR,
                arguments=arguments,
                error=error,
                duration_ms=duration,
            )

        duration = (time.monotonic() - start) * 1000
        return DispatchOutcome(
            DispatchStatus.COMPLETED,
            arguments=arguments,
            result=stringify_result(result),
            duration_ms=duration,
        )

    @staticmethod
    async def _invoke(registration: ToolRegistration, arguments: str) -> Any:
        handler = registration.handler
        if handler is None:
            raise ToolExecutionError(
                registration.name, f"Tool '{registration.name}' has no handler",
            )

        if registration.raw_arguments:
            result = handler(arguments)
        else:
            try:
                params = json.loads(arguments)
            except json.JSONDecodeError as e:
                raise ToolExecutionError(
                    registration.name, f"Error executing tool: invalid arguments: {e}",
                ) from e
            if isinstance(params, dict):
                result = handler(**params)
            else:
                result = handler(params)

        if inspect.isawaitable(result):
            result = await result
        return result
