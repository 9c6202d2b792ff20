"""Model transport and turn accumulation for chatstream."""

from chatstream.llm.accumulator import ToolCallAccumulator, TurnAccumulator
from chatstream.llm.transport import HttpTransport, Transport, TransportChunk

__all__ = [
    "HttpTransport",
    "ToolCallAccumulator",
    "Transport",
    "TransportChunk",
    "TurnAccumulator",
]
