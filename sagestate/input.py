"""A single user turn, as handed to the configuration layer."""

import json
from dataclasses import dataclass, field
from typing import Any

from sagestate.state import StateFlags

SUMMARY_WIDTH = 70


@dataclass
class Input:
    text: str
    medias: list[str] = field(default_factory=list)
    role: str | None = None
    rag: str | None = None
    # Text after retrieval augmentation, only valid until the turn is stored
    patched_text: str | None = None

    def clear_patch_text(self):
        self.patched_text = None

    def summary(self) -> str:
        """One-line summary, truncated with an ellipsis past SUMMARY_WIDTH chars"""
        text = "".join(" " if not c.isprintable() else c for c in self.text.strip())
        if len(text) > SUMMARY_WIDTH:
            return text[: SUMMARY_WIDTH - 3] + "..."
        return text

    def render(self) -> str:
        """Markdown rendition of the input, media references first."""
        if not self.medias:
            return self.text
        lines = [f"![]({m})" for m in self.medias]
        if self.text:
            lines.append(self.text)
        return "\n".join(lines)

    def state_flags(self) -> StateFlags:
        flags = StateFlags(0)
        if self.role:
            flags |= StateFlags.ROLE
        if self.rag:
            flags |= StateFlags.RAG
        return flags


@dataclass
class ToolCallResult:
    """Outcome of a function call made while answering an input"""

    name: str
    arguments: dict = field(default_factory=dict)
    output: Any = None

    def render(self) -> str:
        args = json.dumps(self.arguments, ensure_ascii=False)
        output = json.dumps(self.output, ensure_ascii=False)
        return f"> {self.name}({args})\n{output}"
