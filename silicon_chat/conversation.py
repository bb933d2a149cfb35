"""Conversation entries: immutable chat messages with memoized extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from ._threading import AtomicCounter
from .extraction import CodeBlock, ExtractionResult, extract

__all__ = ["ConversationEntry"]

_entry_ids = AtomicCounter()


def _next_entry_id() -> int:
    return _entry_ids.increment()


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ConversationEntry:
    """
    A single message in a conversation.

    Assistant entries run :func:`~silicon_chat.extraction.extract` once, at
    construction. User entries, and entries built with
    ``extract_structured=False``, never do and keep ``extraction`` as None.
    """

    text: str
    is_from_user: bool
    created_at: datetime = field(default_factory=utc_now)
    extract_structured: bool = field(default=True, repr=False, compare=False)
    id: int = field(default_factory=_next_entry_id, init=False)
    extraction: ExtractionResult | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.is_from_user and self.extract_structured:
            # frozen dataclass: bypass __setattr__ for the memoized field
            object.__setattr__(self, "extraction", extract(self.text))

    @classmethod
    def from_user(cls, text: str) -> ConversationEntry:
        return cls(text=text, is_from_user=True)

    @classmethod
    def from_assistant(cls, text: str, *, extract_structured: bool = True) -> ConversationEntry:
        return cls(text=text, is_from_user=False, extract_structured=extract_structured)

    @property
    def has_structured_content(self) -> bool:
        return self.extraction is not None and self.extraction.has_structured_content

    @property
    def extracted_content(self) -> str | None:
        return self.extraction.primary_content if self.extraction is not None else None

    @property
    def code_blocks(self) -> tuple[CodeBlock, ...]:
        return self.extraction.code_blocks if self.extraction is not None else ()

    @property
    def has_multiple_blocks(self) -> bool:
        return len(self.code_blocks) > 1
