"""
Shared support helpers for runnable examples.

Provides a scripted backend so the examples run without the Apple
Foundation Models SDK.
"""

from __future__ import annotations

__all__ = ["ScriptedBackend"]


class _ScriptedModel:
    def is_available(self) -> tuple[bool, str | None]:
        return (True, None)


class _ScriptedSession:
    def __init__(self, replies: list[str]) -> None:
        self._replies = replies

    async def respond(self, prompt: str) -> str:
        if not self._replies:
            raise RuntimeError("scripted backend ran out of replies")
        return self._replies.pop(0)


class ScriptedBackend:
    """Backend whose sessions answer with a fixed list of replies, in order."""

    def __init__(self, replies: list[str]) -> None:
        self._replies = list(replies)

    def create_model(self) -> _ScriptedModel:
        return _ScriptedModel()

    def __call__(self, model: _ScriptedModel, instructions: str) -> _ScriptedSession:
        return _ScriptedSession(self._replies)
