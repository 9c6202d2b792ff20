"""Shared fixtures: a scripted transport and turn builders."""

from __future__ import annotations

from typing import Any

import pytest

from chatstream.llm.transport import TransportChunk
from chatstream.tools.registry import ToolRegistry
from chatstream.types import ToolCallFragment, ToolMode


class FakeTransport:
    """Transport that replays pre-scripted turns. No network calls.

    Each turn is a list of :class:`TransportChunk` (or exceptions to raise at
    that point).  Once only one turn is left it is replayed forever, which
    models a model that keeps asking for the same tool.
    """

    def __init__(self, turns: list[list[Any]]) -> None:
        self.turns = list(turns)
        self.requests: list[dict[str, Any]] = []

    async def stream(self, messages, tools=None):
        self.requests.append({"messages": messages, "tools": tools})
        turn = self.turns.pop(0) if len(self.turns) > 1 else self.turns[0]
        for item in turn:
            if isinstance(item, Exception):
                raise item
            yield item


def text_turn(*pieces: str, finish_reason: str = "stop") -> list[TransportChunk]:
    """A turn streaming *pieces* of text then finishing."""
    chunks = [TransportChunk(text=p) for p in pieces]
    chunks.append(TransportChunk(
        finish_reason=finish_reason, model="test-model", id="gen-1",
    ))
    return chunks


def tool_turn(
    name: str,
    arguments: str,
    call_id: str = "call_1",
    pieces: int = 2,
) -> list[TransportChunk]:
    """A turn requesting one tool call, arguments split into *pieces*."""
    size = max(1, len(arguments) // pieces)
    parts = [arguments[i:i + size] for i in range(0, len(arguments), size)] or [""]
    chunks = [TransportChunk(tool_calls=[ToolCallFragment(
        index=0, id=call_id, name=name, arguments_delta=parts[0],
    )])]
    for part in parts[1:]:
        chunks.append(TransportChunk(tool_calls=[ToolCallFragment(
            index=0, arguments_delta=part,
        )]))
    chunks.append(TransportChunk(finish_reason="tool_calls", model="test-model"))
    return chunks


def multi_tool_turn(calls: list[tuple[str, str, str]]) -> list[TransportChunk]:
    """A turn requesting several calls; each item is ``(name, args, call_id)``."""
    chunks = [
        TransportChunk(tool_calls=[ToolCallFragment(
            index=i, id=call_id, name=name, arguments_delta=args,
        )])
        for i, (name, args, call_id) in enumerate(calls)
    ]
    chunks.append(TransportChunk(finish_reason="tool_calls", model="test-model"))
    return chunks


@pytest.fixture
def calls() -> list[dict[str, Any]]:
    """Log of handler invocations."""
    return []


@pytest.fixture
def registry(calls) -> ToolRegistry:
    reg = ToolRegistry()

    def add(a: int, b: int) -> int:
        calls.append({"tool": "add", "a": a, "b": b})
        return a + b

    async def lookup(key: str) -> dict:
        calls.append({"tool": "lookup", "key": key})
        return {"key": key, "value": key.upper()}

    def explode(**kwargs):
        raise RuntimeError("kaboom")

    reg.register(
        "add", add,
        description="Add two integers",
        schema={
            "type": "object",
            "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}},
            "required": ["a", "b"],
        },
    )
    reg.register("lookup", lookup, description="Look up a key")
    reg.register("explode", explode, description="Always fails")
    reg.register(
        "show_chart", None,
        description="Rendered by the browser",
        mode=ToolMode.CLIENT_SIDE,
    )
    return reg
