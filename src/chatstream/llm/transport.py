"""Model transports.

A transport turns one chat request into an async stream of
:class:`TransportChunk` objects.  :class:`HttpTransport` talks to any
OpenAI-compatible ``/chat/completions`` endpoint (OpenRouter by default)
over Server-Sent Events using ``httpx``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol

import httpx

from chatstream.config import ProfileSpec
from chatstream.errors import TransportError
from chatstream.llm.accumulator import fragments_from_delta
from chatstream.types import ToolCallFragment

_logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_BACKOFF_BASE = 1  # seconds -- exponential: 1, 2, 4
_RETRY_STATUS = (429, 500, 502, 503, 504)


@dataclass
class TransportChunk:
    """One decoded unit from the model stream."""

    text: str | None = None
    tool_calls: list[ToolCallFragment] | None = None
    finish_reason: str | None = None
    model: str | None = None
    id: str | None = None
    usage: dict[str, int] | None = None


class Transport(Protocol):
    """What the orchestrator needs from a model backend."""

    def stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[TransportChunk]:
        ...


def parse_sse_line(line: str) -> TransportChunk | None:
    """Decode one ``data: {...}`` line of an OpenAI-style stream.

    Returns *None* for comments, keep-alives, ``[DONE]`` and malformed
    payloads.
    """
    if not line.startswith("data:"):
        return None
    data_str = line[5:].strip()
    if not data_str or data_str == "[DONE]":
        return None
    try:
        data = json.loads(data_str)
    except json.JSONDecodeError:
        _logger.debug("Skipping malformed stream line: %r", data_str[:200])
        return None
    if not isinstance(data, dict):
        return None

    if "error" in data:
        err = data["error"]
        message = err.get("message", str(err)) if isinstance(err, dict) else str(err)
        raise TransportError(f"Provider error: {message}")

    choices = data.get("choices") or [{}]
    choice = choices[0]
    delta = choice.get("delta") or {}
    fragments = fragments_from_delta(delta)
    return TransportChunk(
        text=delta.get("content") or None,
        tool_calls=fragments or None,
        finish_reason=choice.get("finish_reason"),
        model=data.get("model"),
        id=data.get("id"),
        usage=data.get("usage") or None,
    )


class HttpTransport:
    """Streaming client for OpenAI-compatible chat completion APIs."""

    def __init__(
        self,
        profile: ProfileSpec,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.profile = profile
        headers = {
            "Authorization": f"Bearer {profile.resolved_api_key()}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(
            base_url=profile.url,
            headers=headers,
            timeout=httpx.Timeout(profile.timeout, connect=30, read=60),
        )

    def _payload(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.profile.model,
            "messages": messages,
            "stream": True,
        }
        if tools:
            payload["tools"] = tools
        if self.profile.extra_params:
            payload.update(self.profile.extra_params)
        return payload

    async def stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[TransportChunk]:
        """Yield decoded chunks.  Retries only before the first chunk."""
        payload = self._payload(messages, tools)
        chunks_yielded = False

        for attempt in range(_MAX_RETRIES):
            try:
                async with self._client.stream(
                    "POST", "/chat/completions", json=payload,
                ) as resp:
                    if resp.status_code in _RETRY_STATUS and attempt < _MAX_RETRIES - 1:
                        _logger.warning(
                            "LLM stream API returned %d (attempt %d/%d), retrying...",
                            resp.status_code, attempt + 1, _MAX_RETRIES,
                        )
                        await asyncio.sleep(_BACKOFF_BASE * (2 ** attempt))
                        continue
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode(errors="replace")
                        raise TransportError(
                            f"HTTP {resp.status_code}: {body[:500]}",
                            status_code=resp.status_code,
                        )

                    async for raw_line in resp.aiter_lines():
                        if raw_line.strip() == "data: [DONE]":
                            break
                        chunk = parse_sse_line(raw_line)
                        if chunk is None:
                            continue
                        chunks_yielded = True
                        yield chunk
                return
            except (httpx.TimeoutException, httpx.TransportError) as e:
                if chunks_yielded:
                    raise TransportError(f"Stream interrupted: {e}") from e
                _logger.warning(
                    "LLM stream error (attempt %d/%d): %s",
                    attempt + 1, _MAX_RETRIES, e,
                )
                if attempt < _MAX_RETRIES - 1:
                    await asyncio.sleep(_BACKOFF_BASE * (2 ** attempt))
                    continue
                raise TransportError(str(e)) from e
            except httpx.HTTPError as e:
                raise TransportError(str(e)) from e

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
