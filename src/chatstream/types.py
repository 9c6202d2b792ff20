"""Shared data types for chatstream."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import Any, Union


# ---------------------------------------------------------------------------
# Conversation types
# ---------------------------------------------------------------------------

class MessageRole(enum.Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class ToolCall:
    """A complete tool call as it appears in an assistant message."""

    id: str = ""
    name: str = ""
    arguments: str = ""  # raw JSON text

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class Message:
    """One entry of the conversation history."""

    role: MessageRole
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render in the OpenAI-compatible request shape."""
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        tool_calls = []
        for raw in data.get("tool_calls") or []:
            func = raw.get("function", {})
            tool_calls.append(ToolCall(
                id=raw.get("id", ""),
                name=func.get("name", ""),
                arguments=func.get("arguments", ""),
            ))
        return cls(
            role=MessageRole(data["role"]),
            content=data.get("content"),
            tool_calls=tool_calls,
            tool_call_id=data.get("tool_call_id"),
        )

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> Message:
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id)


# ---------------------------------------------------------------------------
# Tool types
# ---------------------------------------------------------------------------

class ToolMode(enum.Enum):
    AUTO_EXECUTE = "auto_execute"
    CLIENT_SIDE = "client_side"


class ToolCallState(enum.Enum):
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class ToolCallFragment:
    """A partial tool call from one streaming delta."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


# ---------------------------------------------------------------------------
# Artifact events
# ---------------------------------------------------------------------------

@dataclass
class TextDelta:
    """Plain text emitted by the artifact parser outside any artifact."""

    text: str


@dataclass
class ArtifactStarted:
    artifact_id: str
    kind: str
    title: str
    language: str | None = None


@dataclass
class ArtifactContent:
    artifact_id: str
    kind: str
    content_delta: str


@dataclass
class ArtifactCompleted:
    artifact_id: str
    kind: str
    title: str
    content: str
    language: str | None = None


ArtifactEvent = Union[ArtifactStarted, ArtifactContent, ArtifactCompleted]
ParseEvent = Union[TextDelta, ArtifactStarted, ArtifactContent, ArtifactCompleted]


@dataclass
class Artifact:
    """A fully extracted artifact block."""

    id: str
    kind: str
    title: str
    content: str
    language: str | None = None


# ---------------------------------------------------------------------------
# Stream chunks
# ---------------------------------------------------------------------------

@dataclass
class ServerToolEvent:
    """Progress of a tool executed inside the loop."""

    name: str
    id: str
    arguments: str
    state: ToolCallState
    result: str | None = None
    error: str | None = None
    duration_ms: float | None = None


@dataclass
class ClientToolEvent:
    """A tool call handed back to the caller for execution."""

    name: str
    id: str
    arguments: str


@dataclass
class CompletionInfo:
    finish_reason: str | None = None
    model: str | None = None
    id: str | None = None
    usage: dict[str, int] | None = None


_PAYLOAD_FIELDS = (
    "text_delta", "tool_call_delta", "artifact",
    "server_tool", "client_tool", "completion",
)


@dataclass
class StreamChunk:
    """One unit of the orchestrator's output stream.

    Exactly one payload field is set per chunk.
    """

    chunk_index: int
    elapsed_ms: float = 0.0
    text_delta: str | None = None
    tool_call_delta: ToolCallFragment | None = None
    artifact: ArtifactEvent | None = None
    server_tool: ServerToolEvent | None = None
    client_tool: ClientToolEvent | None = None
    completion: CompletionInfo | None = None

    def __post_init__(self) -> None:
        populated = [n for n in _PAYLOAD_FIELDS if getattr(self, n) is not None]
        if len(populated) != 1:
            raise ValueError(
                f"StreamChunk needs exactly one payload, got {populated or 'none'}"
            )

    @property
    def payload_name(self) -> str:
        for f in fields(self):
            if f.name in _PAYLOAD_FIELDS and getattr(self, f.name) is not None:
                return f.name
        return ""  # unreachable after __post_init__


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------

class RunStatus(enum.Enum):
    """How the most recent orchestrator run halted."""

    DONE = "done"
    DEFERRED = "deferred"
    MAX_ITERATIONS = "max_iterations"
    CANCELLED = "cancelled"


@dataclass
class RunResult:
    status: RunStatus
    message: Message | None
    history: list[Message]
    iterations: int = 0
