"""Mapping of internal stream chunks onto typed wire events.

Field names inside ``data`` are part of the wire contract and use camelCase.
"""

from __future__ import annotations

import enum
import logging
import traceback
from dataclasses import dataclass, field
from typing import Any

from chatstream.types import (
    ArtifactCompleted,
    ArtifactContent,
    ArtifactStarted,
    StreamChunk,
    ToolCallState,
)

_logger = logging.getLogger(__name__)

DEFAULT_FINISH_REASON = "stop"


class WireEventType(enum.Enum):
    TEXT = "text"
    ARTIFACT_STARTED = "artifact_started"
    ARTIFACT_CONTENT = "artifact_content"
    ARTIFACT_COMPLETED = "artifact_completed"
    TOOL_EXECUTING = "tool_executing"
    TOOL_COMPLETED = "tool_completed"
    TOOL_ERROR = "tool_error"
    TOOL_CLIENT = "tool_client"
    COMPLETION = "completion"
    ERROR = "error"


TERMINAL_TYPES = (WireEventType.COMPLETION, WireEventType.ERROR)

_TOOL_STATE_TYPES = {
    ToolCallState.EXECUTING: WireEventType.TOOL_EXECUTING,
    ToolCallState.COMPLETED: WireEventType.TOOL_COMPLETED,
    ToolCallState.ERROR: WireEventType.TOOL_ERROR,
}


@dataclass
class WireEvent:
    """One event as sent to a push-transport consumer."""

    type: WireEventType
    chunk_index: int
    elapsed_ms: float
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_TYPES

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "type": self.type.value,
            "chunkIndex": self.chunk_index,
            "elapsedMs": self.elapsed_ms,
        }
        body.update({k: v for k, v in self.data.items() if v is not None})
        return body


class EventMapper:
    """Stateless apart from the terminal flag and the last position seen.

    Usage::

        mapper = EventMapper()
        async for chunk in loop.stream():
            for event in mapper.map(chunk):
                send(event)
        for event in mapper.finish(cancelled=loop.cancelled):
            send(event)
    """

    def __init__(self) -> None:
        self.terminal_sent = False
        self.last_index = -1
        self.last_elapsed_ms = 0.0

    def map(self, chunk: StreamChunk) -> list[WireEvent]:
        if self.terminal_sent:
            _logger.debug("Dropping chunk %d after terminal event", chunk.chunk_index)
            return []
        self.last_index = max(self.last_index, chunk.chunk_index)
        self.last_elapsed_ms = max(self.last_elapsed_ms, chunk.elapsed_ms)

        event_type, data = self._translate(chunk)
        if event_type is None:
            return []
        if event_type == WireEventType.COMPLETION:
            self.terminal_sent = True
        return [WireEvent(event_type, chunk.chunk_index, chunk.elapsed_ms, data)]

    @staticmethod
    def _translate(chunk: StreamChunk) -> tuple[WireEventType | None, dict[str, Any]]:
        if chunk.text_delta is not None:
            return WireEventType.TEXT, {"textDelta": chunk.text_delta}

        artifact = chunk.artifact
        if isinstance(artifact, ArtifactStarted):
            return WireEventType.ARTIFACT_STARTED, {
                "artifactId": artifact.artifact_id,
                "title": artifact.title,
                "artifactType": artifact.kind,
                "language": artifact.language,
            }
        if isinstance(artifact, ArtifactContent):
            return WireEventType.ARTIFACT_CONTENT, {
                "artifactId": artifact.artifact_id,
                "artifactType": artifact.kind,
                "contentDelta": artifact.content_delta,
            }
        if isinstance(artifact, ArtifactCompleted):
            return WireEventType.ARTIFACT_COMPLETED, {
                "artifactId": artifact.artifact_id,
                "title": artifact.title,
                "artifactType": artifact.kind,
                "language": artifact.language,
                "content": artifact.content,
            }

        tool = chunk.server_tool
        if tool is not None:
            data: dict[str, Any] = {
                "toolName": tool.name,
                "toolId": tool.id,
                "arguments": tool.arguments,
            }
            if tool.state == ToolCallState.COMPLETED:
                data["result"] = tool.result
                data["executionMs"] = tool.duration_ms
            elif tool.state == ToolCallState.ERROR:
                data["error"] = tool.error or "Unknown error"
                data["executionMs"] = tool.duration_ms
            return _TOOL_STATE_TYPES[tool.state], data

        client = chunk.client_tool
        if client is not None:
            return WireEventType.TOOL_CLIENT, {
                "toolName": client.name,
                "toolId": client.id,
                "arguments": client.arguments,
            }

        completion = chunk.completion
        if completion is not None:
            return WireEventType.COMPLETION, {
                "finishReason": completion.finish_reason,
                "model": completion.model,
                "id": completion.id,
                "usage": completion.usage,
            }

        # tool_call_delta chunks have no wire representation
        return None, {}

    def error(self, exc: BaseException) -> WireEvent:
        """Terminal event for an exception that escaped the pipeline."""
        self.terminal_sent = True
        self.last_index += 1
        return WireEvent(
            WireEventType.ERROR,
            self.last_index,
            self.last_elapsed_ms,
            {
                "message": str(exc) or type(exc).__name__,
                "details": "".join(traceback.format_exception_only(type(exc), exc)).strip(),
            },
        )

    def finish(self, cancelled: bool = False) -> list[WireEvent]:
        """Synthesize the terminal completion if the stream never sent one.

        A cancelled stream gets nothing: callers must treat it as incomplete.
        """
        if self.terminal_sent or cancelled:
            return []
        self.terminal_sent = True
        self.last_index += 1
        return [WireEvent(
            WireEventType.COMPLETION,
            self.last_index,
            self.last_elapsed_ms,
            {"finishReason": DEFAULT_FINISH_REASON},
        )]
