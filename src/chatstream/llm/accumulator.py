"""Reassembly of streamed assistant turns.

OpenAI-compatible providers send tool calls as incremental chunks: each
chunk has an ``index``, an ``id`` and ``function.name`` (usually first chunk
only), and ``function.arguments`` fragments that must be concatenated.
"""

from __future__ import annotations

from typing import Any

from chatstream.types import Message, MessageRole, ToolCall, ToolCallFragment


class ToolCallAccumulator:
    """Merge indexed tool-call fragments into complete calls."""

    def __init__(self) -> None:
        self._calls: dict[int, ToolCall] = {}

    def feed(self, fragment: ToolCallFragment) -> None:
        tc = self._calls.get(fragment.index)
        if tc is None:
            tc = self._calls[fragment.index] = ToolCall()
        if fragment.id is not None:
            tc.id = fragment.id
        if fragment.name is not None:
            tc.name = fragment.name
        if fragment.arguments_delta is not None:
            tc.arguments += fragment.arguments_delta

    def has_calls(self) -> bool:
        return bool(self._calls)

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in index order."""
        return [self._calls[i] for i in sorted(self._calls)]


def fragments_from_delta(delta: dict[str, Any]) -> list[ToolCallFragment]:
    """Convert ``delta.tool_calls`` from one SSE payload into fragments."""
    fragments: list[ToolCallFragment] = []
    for position, tc in enumerate(delta.get("tool_calls") or []):
        func = tc.get("function") or {}
        index = tc.get("index")
        if not isinstance(index, int):
            # Some providers omit or null the index; fall back to list position.
            index = position
        fragments.append(ToolCallFragment(
            index=index,
            id=tc.get("id"),
            name=func.get("name"),
            arguments_delta=func.get("arguments"),
        ))
    return fragments


class TurnAccumulator:
    """Collect one assistant turn: text, tool calls and completion metadata."""

    def __init__(self) -> None:
        self._text: list[str] = []
        self.tool_calls = ToolCallAccumulator()
        self.finish_reason: str | None = None
        self.model: str | None = None
        self.response_id: str | None = None
        self.usage: dict[str, int] | None = None

    def add_text(self, text: str) -> None:
        self._text.append(text)

    def add_fragment(self, fragment: ToolCallFragment) -> None:
        self.tool_calls.feed(fragment)

    @property
    def content(self) -> str:
        return "".join(self._text)

    @property
    def finished(self) -> bool:
        return self.finish_reason is not None

    def to_message(self) -> Message:
        return Message(
            role=MessageRole.ASSISTANT,
            content=self.content,
            tool_calls=self.tool_calls.finalize(),
        )
