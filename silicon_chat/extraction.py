"""
Structured-content extraction from model replies.

Two channels are scanned independently:

* custom markers (``@@>>>@@@`` ... ``@@@<<<@@@``) that a prompt can ask the
  model to emit around its payload, and
* markdown fenced code blocks, which models fall back to when they ignore
  the marker instruction.

Usage::

    result = extract(reply)
    if result.has_structured_content:
        print(result.primary_content)
    for block in result.code_blocks:
        print(block.language, len(block.content))

Nested fences are matched textually and non-greedily; a fence inside a
fence yields a truncated block. That is a known limitation.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("silicon_chat")

__all__ = [
    "END_MARKER",
    "FALLBACK_LANGUAGES",
    "START_MARKER",
    "CodeBlock",
    "ExtractionOrigin",
    "ExtractionResult",
    "extract",
    "extract_code_blocks",
    "extract_custom_markers",
    "extract_fallback_block",
]

START_MARKER = "@@>>>@@@"
END_MARKER = "@@@<<<@@@"

FALLBACK_LANGUAGES = (
    "json",
    "xml",
    "csv",
    "swift",
    "javascript",
    "python",
    "html",
    "css",
    "yaml",
    "toml",
    "ini",
    "sql",
    "bash",
    "shell",
    "markdown",
    "text",
)

# A language tag is mandatory for the catalog.
_TAGGED_BLOCK = re.compile(r"```(\w+)\s*\n(.*?)\n```", re.DOTALL)

# Allow-listed tag or no tag at all.
_FALLBACK_BLOCK = re.compile(
    r"```(?:" + "|".join(FALLBACK_LANGUAGES) + r")?\s*\n(.*?)\n```",
    re.DOTALL | re.IGNORECASE,
)


class ExtractionOrigin(enum.Enum):
    """Which channel produced :attr:`ExtractionResult.primary_content`."""

    CUSTOM_MARKERS = "custom_markers"
    FENCED_FALLBACK = "fenced_fallback"
    NONE = "none"


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block with its language tag as written in the fence."""

    language: str
    content: str


@dataclass(frozen=True)
class ExtractionResult:
    """Everything extracted from one raw reply."""

    raw_response: str
    primary_content: str | None = None
    code_blocks: tuple[CodeBlock, ...] = field(default_factory=tuple)
    origin: ExtractionOrigin = ExtractionOrigin.NONE

    @property
    def has_structured_content(self) -> bool:
        return self.primary_content is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary_content": self.primary_content,
            "has_structured_content": self.has_structured_content,
            "origin": self.origin.value,
            "code_blocks": [
                {"language": block.language, "content": block.content}
                for block in self.code_blocks
            ],
        }


def extract_custom_markers(text: str) -> str | None:
    """Return the trimmed text between the first start and first end marker."""
    start = text.find(START_MARKER)
    end = text.find(END_MARKER)
    if start == -1 or end == -1:
        return None

    content_start = start + len(START_MARKER)
    if content_start >= end:
        return None

    return text[content_start:end].strip()


def extract_code_blocks(text: str) -> list[CodeBlock]:
    """Return every tagged fenced block in order of appearance."""
    blocks = [
        CodeBlock(language=match.group(1).strip(), content=match.group(2).strip())
        for match in _TAGGED_BLOCK.finditer(text)
    ]
    logger.debug("[SiliconChat] Found %d tagged code blocks", len(blocks))
    return blocks


def extract_fallback_block(text: str) -> str | None:
    """Return the first untagged or allow-listed fenced block's content."""
    match = _FALLBACK_BLOCK.search(text)
    if match is None:
        return None
    return match.group(1).strip()


def extract(text: str) -> ExtractionResult:
    """Extract structured content from a raw reply.

    Custom markers take precedence over fenced blocks for
    ``primary_content``; ``code_blocks`` is always populated.
    """
    blocks = tuple(extract_code_blocks(text))

    marked = extract_custom_markers(text)
    if marked is not None:
        logger.debug("[SiliconChat] Primary content taken from custom markers")
        return ExtractionResult(
            raw_response=text,
            primary_content=marked,
            code_blocks=blocks,
            origin=ExtractionOrigin.CUSTOM_MARKERS,
        )

    fenced = extract_fallback_block(text)
    if fenced is not None:
        logger.debug("[SiliconChat] Primary content taken from fenced block")
        return ExtractionResult(
            raw_response=text,
            primary_content=fenced,
            code_blocks=blocks,
            origin=ExtractionOrigin.FENCED_FALLBACK,
        )

    return ExtractionResult(raw_response=text, code_blocks=blocks)
