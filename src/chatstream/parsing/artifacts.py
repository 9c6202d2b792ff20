"""Incremental extraction of ``<artifact>`` blocks from streamed text.

The model may split a tag anywhere: inside the marker, inside an attribute
value or inside the closing ``</artifact>``.  :class:`ArtifactParser` keeps a
small retained buffer between calls so that every boundary is recognised
regardless of how the transport chunks the text.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field

from chatstream.types import (
    Artifact,
    ArtifactCompleted,
    ArtifactContent,
    ArtifactStarted,
    ParseEvent,
    TextDelta,
)

_logger = logging.getLogger(__name__)

OPEN_MARKER = "<artifact"
CLOSE_MARKER = "</artifact>"

DEFAULT_KIND = "code"
DEFAULT_TITLE = "Untitled"

_ATTR_RE = re.compile(
    r"""\b(id|type|title|language)\s*=\s*(?:"([^"]*)"|'([^']*)')"""
)


class ParserState(enum.Enum):
    NORMAL = "normal"
    IN_ARTIFACT = "in_artifact"


def _parse_attributes(tag: str) -> dict[str, str]:
    """Pull the known attributes out of an opening tag.

    Values are taken literally; no entity decoding.  Empty values count as
    absent.
    """
    attrs: dict[str, str] = {}
    for m in _ATTR_RE.finditer(tag):
        name = m.group(1)
        value = m.group(2) if m.group(2) is not None else m.group(3)
        if value and name not in attrs:
            attrs[name] = value
    return attrs


def _partial_marker_length(text: str) -> int:
    """Length of the longest suffix of *text* that starts the open marker."""
    for size in range(min(len(OPEN_MARKER) - 1, len(text)), 0, -1):
        if OPEN_MARKER.startswith(text[-size:]):
            return size
    return 0


class ArtifactParser:
    """Streaming artifact scanner.

    Feed it text fragments in arrival order; each call returns the events
    that became certain with that fragment::

        parser = ArtifactParser()
        for fragment in fragments:
            for event in parser.feed(fragment):
                ...
        tail = parser.finish()

    States:
      NORMAL       - outside any artifact, looking for ``<artifact``
      IN_ARTIFACT  - inside a block, looking for ``</artifact>``
    """

    def __init__(self) -> None:
        self.state = ParserState.NORMAL
        self._buffer = ""
        self._counter = 0
        self._reset_artifact()

    def _reset_artifact(self) -> None:
        self._artifact_id: str | None = None
        self._kind = DEFAULT_KIND
        self._title = DEFAULT_TITLE
        self._language: str | None = None
        self._content: list[str] = []

    @property
    def retained(self) -> str:
        """Text held back until the next fragment resolves it."""
        return self._buffer

    def feed(self, chunk: str) -> list[ParseEvent]:
        """Consume one fragment and return the resulting events in order."""
        if not chunk:
            return []
        self._buffer += chunk
        events: list[ParseEvent] = []

        progressed = True
        while progressed and self._buffer:
            if self.state == ParserState.NORMAL:
                progressed = self._scan_normal(events)
            else:
                progressed = self._scan_artifact(events)

        return events

    def _scan_normal(self, events: list[ParseEvent]) -> bool:
        start = self._buffer.find(OPEN_MARKER)
        if start == -1:
            keep = _partial_marker_length(self._buffer)
            text = self._buffer[: len(self._buffer) - keep]
            if text:
                events.append(TextDelta(text))
            self._buffer = self._buffer[len(self._buffer) - keep:]
            return False

        if start > 0:
            events.append(TextDelta(self._buffer[:start]))
            self._buffer = self._buffer[start:]

        tag_end = self._buffer.find(">")
        if tag_end == -1:
            # Opening tag still incomplete; never guess.
            return False

        attrs = _parse_attributes(self._buffer[: tag_end + 1])
        self._buffer = self._buffer[tag_end + 1:]

        self._counter += 1
        self._artifact_id = attrs.get("id") or f"art_{self._counter}"
        self._kind = attrs.get("type", DEFAULT_KIND)
        self._title = attrs.get("title", DEFAULT_TITLE)
        self._language = attrs.get("language")
        self._content = []
        self.state = ParserState.IN_ARTIFACT

        _logger.debug("Artifact %s started (%s)", self._artifact_id, self._kind)
        events.append(ArtifactStarted(
            artifact_id=self._artifact_id,
            kind=self._kind,
            title=self._title,
            language=self._language,
        ))
        return True

    def _scan_artifact(self, events: list[ParseEvent]) -> bool:
        assert self._artifact_id is not None
        end = self._buffer.find(CLOSE_MARKER)
        if end == -1:
            keep = len(CLOSE_MARKER) - 1
            if len(self._buffer) <= keep:
                return False
            emit = self._buffer[:-keep]
            self._buffer = self._buffer[-keep:]
            self._content.append(emit)
            events.append(ArtifactContent(self._artifact_id, self._kind, emit))
            return False

        remaining = self._buffer[:end]
        self._buffer = self._buffer[end + len(CLOSE_MARKER):]
        self._complete(remaining, events)
        return True

    def _complete(self, remaining: str, events: list[ParseEvent]) -> None:
        assert self._artifact_id is not None
        if remaining:
            self._content.append(remaining)
            events.append(ArtifactContent(self._artifact_id, self._kind, remaining))
        events.append(ArtifactCompleted(
            artifact_id=self._artifact_id,
            kind=self._kind,
            title=self._title,
            content="".join(self._content),
            language=self._language,
        ))
        _logger.debug("Artifact %s completed", self._artifact_id)
        self.state = ParserState.NORMAL
        self._reset_artifact()

    def finish(self) -> list[ParseEvent]:
        """Flush whatever is still retained at end of stream.

        Outside an artifact the retained text (a partial marker or an
        unterminated opening tag) is released as plain text.  Inside an
        artifact the remaining content is emitted and the artifact is closed
        with a best-effort Completed event.
        """
        events: list[ParseEvent] = []
        if self.state == ParserState.IN_ARTIFACT:
            _logger.warning(
                "Stream ended inside artifact %s; closing it", self._artifact_id,
            )
            self._complete(self._buffer, events)
        elif self._buffer:
            if self._buffer.startswith(OPEN_MARKER):
                _logger.warning("Stream ended inside an unterminated artifact tag")
            events.append(TextDelta(self._buffer))
        self._buffer = ""
        return events

    def reset(self) -> None:
        """Drop all retained state without emitting anything."""
        self._buffer = ""
        self.state = ParserState.NORMAL
        self._reset_artifact()


# ---------------------------------------------------------------------------
# Whole-text parsing
# ---------------------------------------------------------------------------

@dataclass
class ParsedText:
    """Result of :func:`parse_artifacts`."""

    text: str = ""
    artifacts: list[Artifact] = field(default_factory=list)


def parse_artifacts(text: str) -> ParsedText:
    """Split a complete response into its prose and its artifacts."""
    parser = ArtifactParser()
    result = ParsedText()
    prose: list[str] = []
    for event in parser.feed(text) + parser.finish():
        if isinstance(event, TextDelta):
            prose.append(event.text)
        elif isinstance(event, ArtifactCompleted):
            result.artifacts.append(Artifact(
                id=event.artifact_id,
                kind=event.kind,
                title=event.title,
                content=event.content,
                language=event.language,
            ))
    result.text = "".join(prose)
    return result
