"""
Conversation controller: chat history, input staging and reply handling.

All state is owned by one :class:`ConversationController` and mutated only
through its methods, under a single lock. Observers either poll
:attr:`ConversationController.state` or register a callback with
:meth:`ConversationController.subscribe`.

Each dispatch moves Idle -> Awaiting -> Idle, appending either the reply or
an error entry. Dispatches are not cancellable and the controller applies
no timeout of its own.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ._threading import CriticalSection
from .config import ChatSettings
from .conversation import ConversationEntry
from .exceptions import CompletionError
from .extraction import CodeBlock
from .prompts import PromptStrategy, build_structured_prompt, decorate_base_prompt, parse_strategy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .protocols import ArtifactPersistence, CompletionService

logger = logging.getLogger("silicon_chat")

__all__ = [
    "PLACEHOLDER_WIDGET",
    "ArtifactSource",
    "ConversationController",
    "ConversationState",
    "PendingArtifact",
    "StateChange",
    "find_script_block",
    "looks_like_tool_call",
]

PLACEHOLDER_WIDGET = """\
// Tool-generated Übersicht widget
// This is a placeholder - the actual JSX content should come from the tool
import { css } from 'uebersicht';

const widget = () => {
    return (
        <div>
            <h1>Hello World</h1>
        </div>
    );
};

export default widget;"""


class StateChange(enum.Enum):
    """What part of the controller state a notification is about."""

    HISTORY = "history"
    INPUT = "input"
    AWAITING = "awaiting"
    ERROR = "error"
    ARTIFACT = "artifact"
    CLEARED = "cleared"


class ArtifactSource(enum.Enum):
    CODE_BLOCK = "code_block"
    TOOL_CALL = "tool_call"


@dataclass(frozen=True)
class PendingArtifact:
    content: str
    source: ArtifactSource


@dataclass(frozen=True)
class ConversationState:
    """Point-in-time snapshot of a controller."""

    history: tuple[ConversationEntry, ...]
    pending_input: str
    is_awaiting_reply: bool
    last_error_message: str | None
    pending_artifact: PendingArtifact | None
    show_save_prompt: bool
    show_alert: bool
    is_booted: bool
    current_widget_code: str


# ---------------------------------------------------------------------------
# Reply policies
# ---------------------------------------------------------------------------


def find_script_block(blocks: Iterable[CodeBlock]) -> CodeBlock | None:
    """Return the first block whose tag mentions ``javascript`` or ``js``.

    The match is a case-insensitive substring test, so ``json`` and ``jsx``
    blocks qualify too.
    """
    for block in blocks:
        tag = block.language.lower()
        if "javascript" in tag or "js" in tag:
            return block
    return None


def looks_like_tool_call(reply: str) -> bool:
    """Keyword heuristic for "a tool generated a widget file".

    Case-sensitive substring test; any reply that talks about a widget
    having been created or generated will match.
    """
    return "widget" in reply and ("created" in reply or "generated" in reply)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class ConversationController:
    """
    Owns one conversation with a completion service.

    Args:
        service: The completion service replies come from. Required.
        persistence: Where :meth:`save_pending_artifact` writes artifacts.
        settings: Behavior switches; defaults to :class:`ChatSettings`.
        tool_call_policy: Predicate deciding whether a reply signals a
            tool-generated file. Defaults to :func:`looks_like_tool_call`.
    """

    def __init__(
        self,
        service: CompletionService,
        *,
        persistence: ArtifactPersistence | None = None,
        settings: ChatSettings | None = None,
        tool_call_policy: Callable[[str], bool] = looks_like_tool_call,
    ) -> None:
        if service is None:
            raise TypeError("ConversationController requires a completion service")
        self._service = service
        self._persistence = persistence
        self.settings = settings if settings is not None else ChatSettings()
        self._tool_call_policy = tool_call_policy

        self._lock = CriticalSection()
        self._history: list[ConversationEntry] = []
        self._pending_input = ""
        self._outstanding = 0
        self._last_error_message: str | None = None
        self._pending_artifact: PendingArtifact | None = None
        self._show_save_prompt = False
        self._show_alert = False
        self._is_booted = False
        self._current_widget_code = ""

        self.last_failure: CompletionError | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._subscribers: list[Callable[[StateChange, ConversationController], None]] = []

    # -- observation ---------------------------------------------------------

    @property
    def state(self) -> ConversationState:
        with self._lock:
            return ConversationState(
                history=tuple(self._history),
                pending_input=self._pending_input,
                is_awaiting_reply=self._outstanding > 0,
                last_error_message=self._last_error_message,
                pending_artifact=self._pending_artifact,
                show_save_prompt=self._show_save_prompt,
                show_alert=self._show_alert,
                is_booted=self._is_booted,
                current_widget_code=self._current_widget_code,
            )

    @property
    def history(self) -> tuple[ConversationEntry, ...]:
        with self._lock:
            return tuple(self._history)

    @property
    def pending_input(self) -> str:
        return self._pending_input

    @property
    def is_awaiting_reply(self) -> bool:
        return self._outstanding > 0

    @property
    def last_error_message(self) -> str | None:
        return self._last_error_message

    @property
    def pending_artifact(self) -> PendingArtifact | None:
        return self._pending_artifact

    @property
    def show_save_prompt(self) -> bool:
        return self._show_save_prompt

    @property
    def show_alert(self) -> bool:
        return self._show_alert

    @property
    def is_booted(self) -> bool:
        return self._is_booted

    @property
    def has_current_widget(self) -> bool:
        return bool(self._current_widget_code)

    @property
    def prompt_strategy(self) -> PromptStrategy:
        return self.settings.prompt_strategy

    @prompt_strategy.setter
    def prompt_strategy(self, value: str | PromptStrategy) -> None:
        self.settings.prompt_strategy = parse_strategy(value)

    def subscribe(
        self, callback: Callable[[StateChange, ConversationController], None]
    ) -> Callable[[], None]:
        """Call *callback* after every state change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, change: StateChange) -> None:
        for callback in list(self._subscribers):
            try:
                callback(change, self)
            except Exception:
                logger.exception("[SiliconChat] State subscriber failed on %s", change.value)

    # -- input and requests --------------------------------------------------

    def stage_input(self, text: str) -> None:
        with self._lock:
            self._pending_input = text
        self._notify(StateChange.INPUT)

    def submit_pending_input(self) -> asyncio.Task[None] | None:
        """Send the staged input. Must be called from a running event loop.

        Returns the dispatch task, or None when there was nothing to send
        (or, with ``single_flight``, while a reply is still awaited).
        """
        trimmed = self._pending_input.strip()
        if not trimmed:
            return None
        if self.settings.single_flight and self.is_awaiting_reply:
            logger.warning("[SiliconChat] Submit ignored: a reply is still pending")
            return None

        loop = asyncio.get_running_loop()
        with self._lock:
            self._history.append(ConversationEntry.from_user(trimmed))
            self._pending_input = ""
        self._notify(StateChange.HISTORY)
        self._notify(StateChange.INPUT)
        return self._schedule(loop, trimmed)

    def request_structured_reply(
        self,
        base_prompt: str,
        strategy: str | PromptStrategy | None = None,
        output_type: str | None = None,
    ) -> asyncio.Task[None]:
        """Ask for a fenced-block answer; the history shows *base_prompt* only."""
        chosen = parse_strategy(strategy) if strategy is not None else self.prompt_strategy
        decorated = build_structured_prompt(
            decorate_base_prompt(base_prompt),
            chosen,
            output_type or self.settings.output_type,
        )
        logger.debug("[SiliconChat] Structured prompt (%s):\n%s", chosen.value, decorated)

        loop = asyncio.get_running_loop()
        self._append(ConversationEntry.from_user(base_prompt))
        return self._schedule(loop, decorated)

    def boot_with_role(self, first_prompt: str) -> asyncio.Task[None]:
        """Open the conversation with a role prompt."""
        loop = asyncio.get_running_loop()
        logger.info("[SiliconChat] Booting conversation with role prompt")
        self._append(ConversationEntry.from_user(first_prompt))
        task = self._schedule(loop, first_prompt)
        with self._lock:
            self._is_booted = True
        return task

    def clear_conversation(self) -> None:
        with self._lock:
            self._history.clear()
            self._pending_artifact = None
            self._show_save_prompt = False
            self._current_widget_code = ""
            self._is_booted = False
        self._notify(StateChange.CLEARED)

    async def wait_idle(self) -> None:
        """Wait until every dispatch issued so far has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -- artifacts -----------------------------------------------------------

    def dismiss_save_prompt(self) -> None:
        with self._lock:
            self._show_save_prompt = False
        self._notify(StateChange.ARTIFACT)

    def dismiss_alert(self) -> None:
        with self._lock:
            self._show_alert = False
        self._notify(StateChange.ERROR)

    async def save_pending_artifact(self) -> str | None:
        """Persist the pending artifact. Returns the saved location, if any."""
        artifact = self._pending_artifact
        if artifact is None:
            return None
        if self._persistence is None:
            self._set_alert("Failed to save file: no artifact store configured")
            return None

        settings = self.settings
        try:
            location = await self._persistence.save(
                artifact.content,
                settings.artifact_name,
                settings.artifact_extension,
                settings.widget_directory,
            )
        except Exception as exc:
            self._set_alert(f"Failed to save file: {exc}")
            return None

        if location is None:
            reason = getattr(self._persistence, "last_error", None)
            if reason:
                self._set_alert(f"Failed to save file: {reason}")
            return None

        with self._lock:
            self._last_error_message = None
            self._show_alert = False
            self._show_save_prompt = False
        logger.info("[SiliconChat] Widget file saved to %s", location)
        self._notify(StateChange.ARTIFACT)
        return location

    def _set_alert(self, message: str) -> None:
        logger.warning("[SiliconChat] %s", message)
        with self._lock:
            self._last_error_message = message
            self._show_alert = True
        self._notify(StateChange.ERROR)

    # -- dispatch ------------------------------------------------------------

    def _append(self, entry: ConversationEntry) -> None:
        with self._lock:
            self._history.append(entry)
        self._notify(StateChange.HISTORY)

    def _schedule(self, loop: asyncio.AbstractEventLoop, prompt_text: str) -> asyncio.Task[None]:
        # Awaiting from the moment of issue; _dispatch settles the count.
        with self._lock:
            self._outstanding += 1
            self._last_error_message = None
        self._notify(StateChange.AWAITING)

        task = loop.create_task(self._dispatch(prompt_text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _dispatch(self, prompt_text: str) -> None:
        logger.info("[SiliconChat] Starting completion request")

        try:
            try:
                reply = await self._service.complete(prompt_text)
            except Exception as exc:
                logger.warning("[SiliconChat] Completion service raised: %s", exc)
                self._record_failure(str(exc) or type(exc).__name__, prompt_text)
            else:
                if reply is None:
                    self._record_failure(self._service.last_error, prompt_text)
                else:
                    self._record_reply(reply)
        finally:
            with self._lock:
                self._outstanding -= 1
            self._notify(StateChange.AWAITING)
            logger.info("[SiliconChat] Completion request settled")

    def _record_reply(self, reply: str) -> None:
        disabled = self.settings.disable_structured_content
        entry = ConversationEntry.from_assistant(reply, extract_structured=not disabled)
        self._append(entry)
        if entry.has_structured_content:
            logger.debug("[SiliconChat] Structured content: %s", entry.extracted_content)

        if not disabled:
            block = find_script_block(entry.code_blocks)
            if block is not None:
                logger.info("[SiliconChat] JavaScript block found, offering widget file")
                self._offer_artifact(PendingArtifact(block.content, ArtifactSource.CODE_BLOCK))

        if not self.settings.disable_tool_call_detection and self._tool_call_policy(reply):
            logger.info("[SiliconChat] Tool call detected, offering generated widget file")
            self._offer_artifact(PendingArtifact(PLACEHOLDER_WIDGET, ArtifactSource.TOOL_CALL))

    def _record_failure(self, reason: str | None, prompt_text: str) -> None:
        message = reason or "Unknown error"
        failure = CompletionError(message, prompt=prompt_text)
        with self._lock:
            self._history.append(ConversationEntry.from_assistant(f"Error: {message}"))
            self._last_error_message = message
            self.last_failure = failure
        self._notify(StateChange.HISTORY)
        self._notify(StateChange.ERROR)

    def _offer_artifact(self, artifact: PendingArtifact) -> None:
        with self._lock:
            self._pending_artifact = artifact
            self._current_widget_code = artifact.content
            self._show_save_prompt = True
        self._notify(StateChange.ARTIFACT)
