"""ToolLoop: the streaming tool-calling loop.

    request → accumulate turn → decide → dispatch tools → request ...

Each pass streams one assistant turn through the artifact parser and the
turn accumulator, appends the assistant message to history, and then either
stops, runs the requested tools, defers them to the caller, or gives up at
the iteration limit.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator

from chatstream.config import ToolLoopConfig
from chatstream.llm.accumulator import TurnAccumulator
from chatstream.llm.transport import Transport, TransportChunk
from chatstream.parsing.artifacts import ArtifactParser
from chatstream.parsing.definitions import ArtifactDefinition, artifacts_prompt
from chatstream.tools.dispatcher import DispatchStatus, ToolDispatcher
from chatstream.tools.registry import ToolRegistry
from chatstream.types import (
    ClientToolEvent,
    CompletionInfo,
    Message,
    MessageRole,
    ParseEvent,
    RunResult,
    RunStatus,
    ServerToolEvent,
    StreamChunk,
    TextDelta,
    ToolCall,
    ToolCallState,
    ToolMode,
)

_logger = logging.getLogger(__name__)


def max_iterations_notice(limit: int) -> str:
    return f"\n\n[Max tool iterations ({limit}) reached]"


class ToolLoop:
    """Async streaming tool loop over one conversation.

    Parameters
    ----------
    transport:
        Model backend yielding :class:`TransportChunk` objects.
    registry:
        Tools available to the model.  Read-only during a run.
    config:
        Tool loop settings (enabled flag and iteration ceiling).
    history:
        Initial conversation.  The loop owns the list from here on.
    system_prompt:
        Prepended to every request; never stored in the history.
    artifacts:
        Artifact definitions whose instructions are added to the system
        prompt.
    """

    def __init__(
        self,
        transport: Transport,
        registry: ToolRegistry | None = None,
        config: ToolLoopConfig | None = None,
        history: list[Message] | None = None,
        system_prompt: str = "",
        artifacts: list[ArtifactDefinition] | None = None,
    ) -> None:
        self._transport = transport
        self._registry = registry or ToolRegistry()
        self._config = config or ToolLoopConfig()
        self._dispatcher = ToolDispatcher(self._registry)
        self._history: list[Message] = list(history or [])
        self._system_prompt = system_prompt
        self._artifacts = list(artifacts or [])

        self._cancelled = False
        self._chunk_index = 0
        self._first_byte: float | None = None
        self.status: RunStatus | None = None
        self.iterations = 0
        self.last_message: Message | None = None

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[Message]:
        return self._history

    def add_user_message(self, content: str) -> None:
        self._history.append(Message.user(content))

    def add_tool_result(self, tool_call_id: str, content: str) -> None:
        """Supply the result of a deferred client-side tool call."""
        self._history.append(Message.tool(tool_call_id, content))

    def pending_tool_calls(self) -> list[ToolCall]:
        """Tool calls of the last assistant message that still lack a result."""
        answered: set[str] = set()
        for msg in reversed(self._history):
            if msg.role == MessageRole.TOOL and msg.tool_call_id is not None:
                answered.add(msg.tool_call_id)
            elif msg.role == MessageRole.ASSISTANT:
                return [tc for tc in msg.tool_calls if tc.id not in answered]
            else:
                break
        return []

    def cancel(self) -> None:
        """Request cancellation; checked before each read and each dispatch.

        The flag stays set until :meth:`clear_cancel`, so a cancel issued
        before :meth:`stream` starts still stops that run.
        """
        self._cancelled = True

    def clear_cancel(self) -> None:
        """Allow further runs after a cancellation."""
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def run(self) -> RunResult:
        """Drain :meth:`stream` and return the outcome."""
        async for _ in self.stream():
            pass
        return RunResult(
            status=self.status or RunStatus.DONE,
            message=self.last_message,
            history=self._history,
            iterations=self.iterations,
        )

    async def stream(self) -> AsyncIterator[StreamChunk]:
        """Run the loop, yielding chunks as they are produced."""
        self._chunk_index = 0
        self._first_byte = None
        self.status = None
        self.iterations = 0
        self.last_message = None

        if self._cancelled:
            self._halt(RunStatus.CANCELLED)
            return

        loop_enabled = self._config.enabled and len(self._registry) > 0
        limit = self._config.max_iterations

        while True:
            turn = TurnAccumulator()
            async for chunk in self._stream_turn(turn):
                yield chunk
            if self._cancelled:
                self._halt(RunStatus.CANCELLED)
                return

            message = turn.to_message()
            self._history.append(message)
            self.last_message = message
            completion = self._completion_info(turn)

            if not loop_enabled or not message.tool_calls:
                if completion is not None:
                    yield self._chunk(completion=completion)
                self._halt(RunStatus.DONE)
                return

            if self.iterations >= limit:
                yield self._chunk(text_delta=max_iterations_notice(limit))
                self._close_unanswered(message.tool_calls, limit)
                self._halt(RunStatus.MAX_ITERATIONS)
                return

            self.iterations += 1
            _logger.debug(
                "Tool round %d/%d: %d call(s)",
                self.iterations, limit, len(message.tool_calls),
            )

            deferred = False
            async for chunk in self._dispatch(message.tool_calls):
                if chunk.client_tool is not None:
                    deferred = True
                yield chunk
            if self._cancelled:
                self._halt(RunStatus.CANCELLED)
                return

            if deferred:
                if completion is not None:
                    yield self._chunk(completion=completion)
                self._halt(RunStatus.DEFERRED)
                return

    def _halt(self, status: RunStatus) -> None:
        self.status = status
        _logger.info(
            "Tool loop halted: %s after %d round(s)", status.value, self.iterations,
        )

    # ------------------------------------------------------------------
    # One assistant turn
    # ------------------------------------------------------------------

    def _request_messages(self) -> list[dict[str, Any]]:
        parts = [p for p in (self._system_prompt, artifacts_prompt(self._artifacts)) if p]
        messages: list[dict[str, Any]] = []
        if parts:
            messages.append(Message.system("\n\n".join(parts)).to_dict())
        messages.extend(m.to_dict() for m in self._history)
        return messages

    async def _stream_turn(self, turn: TurnAccumulator) -> AsyncIterator[StreamChunk]:
        parser = ArtifactParser()
        stream = self._transport.stream(
            self._request_messages(), self._registry.schemas() or None,
        )
        iterator = stream.__aiter__()
        try:
            while True:
                if self._cancelled:
                    parser.reset()
                    return
                try:
                    raw = await iterator.__anext__()
                except StopAsyncIteration:
                    break
                if self._first_byte is None:
                    self._first_byte = time.monotonic()
                for chunk in self._absorb(raw, turn, parser):
                    if self._cancelled:
                        break
                    yield chunk
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        for event in parser.finish():
            if self._cancelled:
                return
            yield self._parse_chunk(event)

    def _absorb(
        self, raw: TransportChunk, turn: TurnAccumulator, parser: ArtifactParser,
    ) -> list[StreamChunk]:
        chunks: list[StreamChunk] = []
        if raw.text:
            turn.add_text(raw.text)
            for event in parser.feed(raw.text):
                chunks.append(self._parse_chunk(event))
        for fragment in raw.tool_calls or []:
            turn.add_fragment(fragment)
            chunks.append(self._chunk(tool_call_delta=fragment))
        if raw.model:
            turn.model = raw.model
        if raw.id:
            turn.response_id = raw.id
        if raw.usage:
            turn.usage = raw.usage
        if raw.finish_reason:
            turn.finish_reason = raw.finish_reason
        return chunks

    def _parse_chunk(self, event: ParseEvent) -> StreamChunk:
        if isinstance(event, TextDelta):
            return self._chunk(text_delta=event.text)
        return self._chunk(artifact=event)

    @staticmethod
    def _completion_info(turn: TurnAccumulator) -> CompletionInfo | None:
        if not turn.finished:
            return None
        return CompletionInfo(
            finish_reason=turn.finish_reason,
            model=turn.model,
            id=turn.response_id,
            usage=turn.usage,
        )

    # ------------------------------------------------------------------
    # Tool dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, tool_calls: list[ToolCall]) -> AsyncIterator[StreamChunk]:
        for tc in tool_calls:
            if self._cancelled:
                return

            registration = self._registry.get(tc.name)
            if registration is not None and registration.mode == ToolMode.AUTO_EXECUTE:
                yield self._chunk(server_tool=ServerToolEvent(
                    name=tc.name, id=tc.id, arguments=tc.arguments,
                    state=ToolCallState.EXECUTING,
                ))
                if self._cancelled:
                    return

            outcome = await self._dispatcher.execute(tc.name, tc.arguments)

            if outcome.status == DispatchStatus.DEFERRED:
                yield self._chunk(client_tool=ClientToolEvent(
                    name=tc.name, id=tc.id, arguments=tc.arguments,
                ))
                continue

            if self._cancelled:
                # The handler already ran; record its result but emit nothing.
                self._history.append(Message.tool(tc.id, outcome.to_message_content()))
                return

            if outcome.status == DispatchStatus.COMPLETED:
                event = ServerToolEvent(
                    name=tc.name, id=tc.id, arguments=tc.arguments,
                    state=ToolCallState.COMPLETED,
                    result=outcome.result,
                    duration_ms=outcome.duration_ms,
                )
            else:
                event = ServerToolEvent(
                    name=tc.name, id=tc.id, arguments=tc.arguments,
                    state=ToolCallState.ERROR,
                    error=outcome.error_text,
                    duration_ms=outcome.duration_ms if registration is not None else None,
                )
            yield self._chunk(server_tool=event)
            self._history.append(Message.tool(tc.id, outcome.to_message_content()))

    def _close_unanswered(self, tool_calls: list[ToolCall], limit: int) -> None:
        # Keep the history valid for a later request: every call gets a result.
        for tc in tool_calls:
            self._history.append(Message.tool(
                tc.id, f"Tool call skipped: max tool iterations ({limit}) reached",
            ))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _chunk(self, **payload: Any) -> StreamChunk:
        elapsed = 0.0
        if self._first_byte is not None:
            elapsed = (time.monotonic() - self._first_byte) * 1000
        chunk = StreamChunk(chunk_index=self._chunk_index, elapsed_ms=elapsed, **payload)
        self._chunk_index += 1
        return chunk
