"""Artifact definitions that tell the model how to emit artifact blocks."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ArtifactDefinition:
    """Describes one kind of artifact the model may produce.

    ``to_system_prompt()`` renders an instruction that shows the exact
    opening tag the parser expects.
    """

    kind: str
    title: str | None = None
    language: str | None = None
    instruction: str | None = None
    output_format: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)

    def to_system_prompt(self) -> str:
        tag = f'<artifact type="{self.kind}"'
        if self.title:
            tag += f' title="{self.title}"'
        if self.language:
            tag += f' language="{self.language}"'
        for key, value in self.attributes.items():
            tag += f' {key}="{value}"'
        tag += ">"

        prompt = f"When creating {self.kind} content, wrap it in {tag}"
        if self.instruction:
            prompt += f" {self.instruction}"
        if self.output_format:
            prompt += f" Expected format: {self.output_format}."
        return prompt


def code_artifact(title: str | None = None, language: str | None = None) -> ArtifactDefinition:
    return ArtifactDefinition(
        kind="code",
        title=title,
        language=language,
        instruction="Include appropriate file extensions in the title.",
    )


def document_artifact(
    title: str | None = None, fmt: str | None = "markdown",
) -> ArtifactDefinition:
    return ArtifactDefinition(
        kind="document",
        title=title,
        language=fmt,
        instruction="Create well-formatted, readable documentation.",
    )


def data_artifact(title: str | None = None, fmt: str | None = "json") -> ArtifactDefinition:
    return ArtifactDefinition(
        kind="data",
        title=title,
        language=fmt,
        instruction="Create structured, well-formatted data.",
    )


def custom_artifact(kind: str, title: str | None = None) -> ArtifactDefinition:
    return ArtifactDefinition(kind=kind, title=title)


def artifacts_prompt(definitions: list[ArtifactDefinition]) -> str:
    """Join several definitions into one system-prompt section."""
    lines = [d.to_system_prompt() for d in definitions]
    if lines:
        lines.append("Close every artifact with </artifact>.")
    return "\n".join(lines)
