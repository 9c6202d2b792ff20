"""Artifact parsing for chatstream."""

from chatstream.parsing.artifacts import ArtifactParser, ParsedText, ParserState, parse_artifacts
from chatstream.parsing.definitions import (
    ArtifactDefinition,
    artifacts_prompt,
    code_artifact,
    custom_artifact,
    data_artifact,
    document_artifact,
)

__all__ = [
    "ArtifactDefinition",
    "ArtifactParser",
    "ParsedText",
    "ParserState",
    "artifacts_prompt",
    "code_artifact",
    "custom_artifact",
    "data_artifact",
    "document_artifact",
    "parse_artifacts",
]
