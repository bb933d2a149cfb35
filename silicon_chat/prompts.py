"""
Prompt templates that ask the model for a single fenced block.

All four strategies instruct the model to answer in a code block tagged
with the requested output type; they differ only in phrasing.
"""

from __future__ import annotations

import enum
from collections.abc import Callable

__all__ = [
    "STRUCTURED_SUFFIX",
    "PromptStrategy",
    "build_structured_prompt",
    "decorate_base_prompt",
    "parse_strategy",
]

STRUCTURED_SUFFIX = " include the HTML followed by the CSS."


class PromptStrategy(enum.Enum):
    STANDARD = "standard"
    DIRECT = "direct"
    ROLE_BASED = "role-based"
    MARKDOWN = "markdown"


_ALIASES = {
    "default": PromptStrategy.STANDARD,
    "role": PromptStrategy.ROLE_BASED,
    "rolebased": PromptStrategy.ROLE_BASED,
    "role_based": PromptStrategy.ROLE_BASED,
    "markdown-friendly": PromptStrategy.MARKDOWN,
}


def parse_strategy(value: str | PromptStrategy | None) -> PromptStrategy:
    """Map a strategy name (case-insensitive) to :class:`PromptStrategy`.

    Unknown names fall back to ``STANDARD``.
    """
    if isinstance(value, PromptStrategy):
        return value
    normalized = (value or "").strip().lower()
    for strategy in PromptStrategy:
        if strategy.value == normalized:
            return strategy
    return _ALIASES.get(normalized, PromptStrategy.STANDARD)


def _fence(output_type: str) -> list[str]:
    return [
        f"```{output_type.lower()}",
        f"[your {output_type} content here]",
        "```",
    ]


def _standard(base_prompt: str, output_type: str) -> str:
    lines = [
        base_prompt,
        "",
        f"Please provide your response in a {output_type} code block format like this:",
        *_fence(output_type),
        "",
        f"Make sure the {output_type} content is properly formatted and valid.",
    ]
    return "\n".join(lines)


def _direct(base_prompt: str, output_type: str) -> str:
    lines = [
        base_prompt,
        "",
        f"Respond with ONLY the {output_type} content in a code block:",
        *_fence(output_type),
        "",
        "Do not include any other text or explanations.",
    ]
    return "\n".join(lines)


def _role_based(base_prompt: str, output_type: str) -> str:
    lines = [
        f"You are a {output_type} generator. Your task is to generate {output_type} content.",
        "",
        base_prompt,
        "",
        f"Format your response as a {output_type} code block:",
        *_fence(output_type),
        "",
        "Make sure the content is properly formatted and valid.",
    ]
    return "\n".join(lines)


# Same wording as the standard template: it already matches the model's
# natural markdown habits.
_markdown_friendly = _standard

_TEMPLATES: dict[PromptStrategy, Callable[[str, str], str]] = {
    PromptStrategy.STANDARD: _standard,
    PromptStrategy.DIRECT: _direct,
    PromptStrategy.ROLE_BASED: _role_based,
    PromptStrategy.MARKDOWN: _markdown_friendly,
}


def build_structured_prompt(
    base_prompt: str,
    strategy: str | PromptStrategy | None = PromptStrategy.STANDARD,
    output_type: str = "HTML",
) -> str:
    """Wrap *base_prompt* in the template selected by *strategy*."""
    return _TEMPLATES[parse_strategy(strategy)](base_prompt, output_type)


def decorate_base_prompt(base_prompt: str) -> str:
    """Append the fixed HTML + CSS instruction to a user prompt."""
    return base_prompt + STRUCTURED_SUFFIX
