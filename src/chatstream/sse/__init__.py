"""Wire protocol for chatstream."""

from chatstream.sse.mapper import EventMapper, WireEvent, WireEventType
from chatstream.sse.writer import SSE_HEADERS, format_comment, format_sse, stream_events, stream_sse

__all__ = [
    "EventMapper",
    "SSE_HEADERS",
    "WireEvent",
    "WireEventType",
    "format_comment",
    "format_sse",
    "stream_events",
    "stream_sse",
]
