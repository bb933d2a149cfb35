"""
On-device completion service backed by the active model backend.

:class:`FoundationModelService` satisfies
:class:`~silicon_chat.protocols.CompletionService`: ``complete`` never
raises, it returns ``None`` and records ``last_error`` instead.
"""

from __future__ import annotations

import asyncio
import logging
import time

from .exceptions import AppleFMSetupError, ensure_model_available
from .protocols import ModelProtocol, SessionProtocol, create_model, create_session

logger = logging.getLogger("silicon_chat")

DEFAULT_INSTRUCTIONS = (
    "You are a local-first assistant running entirely on Apple Foundation Models. "
    "Be accurate, practical, and explicit about uncertainty."
)

# Transient errors that are worth retrying
_TRANSIENT_ERRORS = (TimeoutError, ConnectionError, OSError)


def _is_context_overflow(exc: BaseException) -> bool:
    error_str = str(exc)
    return (
        "Context window size exceeded" in error_str
        or "ExceededContextWindowSizeError" in error_str
    )


class FoundationModelService:
    """
    A conversational completion service.

    One session is kept across calls so the model sees prior turns. When the
    context window overflows, the session is recreated and the prompt is
    retried once on the fresh session.

    Args:
        instructions: System instructions for the session.
        model: An existing backend model. Created lazily when omitted.
        retries: Attempts per prompt for transient errors. Defaults to 1.
        debug_timing: If True, logs the time each reply took.
    """

    def __init__(
        self,
        instructions: str = DEFAULT_INSTRUCTIONS,
        model: ModelProtocol | None = None,
        retries: int = 1,
        debug_timing: bool = False,
    ) -> None:
        if retries < 1:
            raise ValueError("retries must be >= 1")
        self.instructions = instructions
        self.retries = retries
        self.debug_timing = debug_timing
        self.is_loading = False
        self.last_error: str | None = None
        self._model = model
        self._model_checked = False
        self._session: SessionProtocol | None = None

    def ensure_ready(self) -> ModelProtocol:
        """Create and validate the model, raising :class:`AppleFMSetupError` if unusable."""
        if self._model is None:
            self._model = create_model()
        if not self._model_checked:
            ensure_model_available(self._model, context="FoundationModelService")
            self._model_checked = True
        return self._model

    def reset(self) -> None:
        """Drop the current session; the next prompt starts a fresh one."""
        self._session = None

    def _current_session(self) -> SessionProtocol:
        if self._session is None:
            self._session = create_session(instructions=self.instructions, model=self.ensure_ready())
        return self._session

    async def complete(self, prompt: str) -> str | None:
        self.is_loading = True
        self.last_error = None
        try:
            return await self._complete_with_retries(prompt)
        except AppleFMSetupError as exc:
            self.last_error = str(exc)
        except Exception as exc:
            self.last_error = f"{type(exc).__name__}: {exc}"
        finally:
            self.is_loading = False
        logger.warning("[SiliconChat] Completion failed: %s", self.last_error)
        return None

    async def _complete_with_retries(self, prompt: str) -> str:
        last_exception: BaseException | None = None
        overflow_retried = False
        attempt = 0
        while attempt < self.retries:
            session = self._current_session()
            try:
                start_time = time.perf_counter()
                reply = await session.respond(prompt)
                elapsed = time.perf_counter() - start_time
                if self.debug_timing:
                    logger.info(
                        "[SiliconChat] Reply received in %.3fs. Prompt length: %d chars.",
                        elapsed,
                        len(prompt),
                    )
                return str(reply)
            except _TRANSIENT_ERRORS as exc:
                last_exception = exc
                attempt += 1
                if attempt < self.retries:
                    await asyncio.sleep((2 ** (attempt - 1)) * 0.1)
            except AppleFMSetupError:
                raise
            except Exception as exc:
                if _is_context_overflow(exc) and not overflow_retried:
                    logger.info(
                        "[SiliconChat] Context window exceeded. Clearing history and retrying..."
                    )
                    overflow_retried = True
                    self.reset()
                    continue
                raise

        raise RuntimeError(
            f"No reply after {self.retries} attempts: {last_exception}"
        ) from last_exception
