"""chatstream: streaming protocol engine for tool-augmented LLM chat."""

from chatstream.config import ChatStreamConfig, ProfileSpec, ToolLoopConfig, load_config
from chatstream.core import ToolLoop
from chatstream.llm import HttpTransport
from chatstream.parsing import ArtifactParser, parse_artifacts
from chatstream.sse import EventMapper, stream_events, stream_sse
from chatstream.tools import ToolDispatcher, ToolRegistry
from chatstream.types import Message, MessageRole, RunStatus, StreamChunk, ToolMode

__version__ = "0.1.0"

__all__ = [
    "ArtifactParser",
    "ChatStreamConfig",
    "EventMapper",
    "HttpTransport",
    "Message",
    "MessageRole",
    "ProfileSpec",
    "RunStatus",
    "StreamChunk",
    "ToolDispatcher",
    "ToolLoop",
    "ToolLoopConfig",
    "ToolMode",
    "ToolRegistry",
    "load_config",
    "parse_artifacts",
    "stream_events",
    "stream_sse",
]
