"""Server-Sent Events framing for a :class:`~chatstream.core.ToolLoop`."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator

from chatstream.core.orchestrator import ToolLoop
from chatstream.errors import ChatStreamError
from chatstream.sse.mapper import EventMapper, WireEvent

_logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def format_sse(event: WireEvent) -> str:
    """Frame one event as an SSE ``data:`` record."""
    return f"data: {json.dumps(event.to_dict())}\n\n"


def format_comment(comment: str) -> str:
    """Frame an SSE comment, e.g. for keep-alives."""
    return f": {comment}\n\n"


async def stream_events(loop: ToolLoop) -> AsyncIterator[WireEvent]:
    """Run *loop* and yield its wire events.

    Ends with exactly one ``completion`` or ``error`` event unless the loop
    was cancelled.  The loop's history holds the materialized conversation
    afterwards.
    """
    mapper = EventMapper()
    try:
        async for chunk in loop.stream():
            for event in mapper.map(chunk):
                yield event
    except ChatStreamError as e:
        _logger.warning("Stream failed: %s", e)
        yield mapper.error(e)
        return
    except Exception as e:
        _logger.exception("Unexpected error while streaming")
        yield mapper.error(e)
        return

    for event in mapper.finish(cancelled=loop.cancelled):
        yield event


async def stream_sse(loop: ToolLoop) -> AsyncIterator[str]:
    """Like :func:`stream_events` but yields framed SSE text."""
    async for event in stream_events(loop):
        yield format_sse(event)
