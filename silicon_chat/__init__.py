"""
SiliconChat public API.

Root imports are provided lazily so CLI workflows can run even when the Apple
Foundation Models SDK is not installed in the current interpreter.
"""

from __future__ import annotations

import importlib
from typing import Any

from .exceptions import AppleFMSetupError, CompletionError

__all__ = [
    "AppleFMSetupError",
    "ChatSettings",
    "CompletionError",
    "ConversationController",
    "ConversationEntry",
    "ExtractionResult",
    "FileArtifactStore",
    "FoundationModelService",
    "PromptStrategy",
    "extract",
]

_LAZY_EXPORTS = {
    "ChatSettings": ".config",
    "ConversationController": ".controller",
    "ConversationEntry": ".conversation",
    "ExtractionResult": ".extraction",
    "FileArtifactStore": ".artifacts",
    "FoundationModelService": ".service",
    "PromptStrategy": ".prompts",
    "extract": ".extraction",
}


def __getattr__(name: str) -> Any:
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module 'silicon_chat' has no attribute {name!r}")
    module = importlib.import_module(module_name, __name__)
    return getattr(module, name)
