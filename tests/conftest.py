"""
Shared fixtures and fakes for the SiliconChat test suite.

CRITICAL: The apple_fm_sdk module-level mock MUST be installed before any
silicon_chat modules touch the SDK. The real SDK requires macOS 26+ with
Apple Silicon hardware and a running Foundation Model service.
"""

import asyncio
import sys
from unittest.mock import AsyncMock, MagicMock, patch

# ---------------------------------------------------------------------------
# Install a fake apple_fm_sdk into sys.modules BEFORE any silicon_chat
# imports happen.
# ---------------------------------------------------------------------------
_mock_fm = MagicMock()
_mock_fm.SystemLanguageModel = MagicMock
_mock_fm.LanguageModelSession = MagicMock
sys.modules["apple_fm_sdk"] = _mock_fm

import pytest  # noqa: E402

from silicon_chat.config import ChatSettings  # noqa: E402
from silicon_chat.controller import ConversationController  # noqa: E402
from silicon_chat.protocols import get_backend, set_backend  # noqa: E402

# ---------------------------------------------------------------------------
# Mock factory functions
# ---------------------------------------------------------------------------


def make_mock_model(available=True, reason=None):
    """Create a mock SystemLanguageModel with configurable availability."""
    model = MagicMock()
    model.is_available.return_value = (available, reason)
    return model


def make_mock_session(respond_return="ok", respond_side_effect=None):
    """Create a mock LanguageModelSession whose respond() is awaitable."""
    session = MagicMock()
    session.respond = AsyncMock()
    if respond_side_effect is not None:
        session.respond.side_effect = respond_side_effect
    else:
        session.respond.return_value = respond_return
    return session


def make_backend(model=None, sessions=None):
    """Create a backend mock handing out *sessions* in order."""
    backend = MagicMock()
    backend.create_model.return_value = model if model is not None else make_mock_model()
    backend.side_effect = list(sessions) if sessions is not None else None
    if sessions is None:
        backend.return_value = make_mock_session()
    return backend


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeCompletionService:
    """
    Completion service answering from a script.

    Each script item is either a reply string, or None for a failure that
    reports the matching ``errors`` entry. With ``gated=True`` every call
    waits until :meth:`release` is called with its prompt.
    """

    def __init__(self, replies=None, errors=None, gated=False):
        self.replies = list(replies or [])
        self.errors = list(errors or [])
        self.prompts = []
        self.last_error = None
        self._gated = gated
        self._gates = {}

    def release(self, prompt, reply, error=None):
        self._gates.setdefault(prompt, asyncio.get_running_loop().create_future())
        self._gates[prompt].set_result((reply, error))

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self._gated:
            gate = self._gates.setdefault(prompt, asyncio.get_running_loop().create_future())
            reply, error = await gate
        else:
            reply = self.replies.pop(0) if self.replies else "ok"
            error = self.errors.pop(0) if reply is None and self.errors else None
        self.last_error = error
        return reply


class FakePersistence:
    """Artifact store recording saves; returns *location* or fails with *error*."""

    def __init__(self, location="/tmp/widgets/index.jsx", error=None):
        self.location = location
        self.error = error
        self.saves = []
        self.last_error = None

    async def save(self, content, suggested_name, extension, suggested_directory=None):
        self.saves.append((content, suggested_name, extension, suggested_directory))
        self.last_error = self.error
        if self.error is not None:
            return None
        return self.location


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def service():
    return FakeCompletionService()


@pytest.fixture
def persistence():
    return FakePersistence()


@pytest.fixture
def controller(service, persistence):
    return ConversationController(
        service,
        persistence=persistence,
        settings=ChatSettings(widget_directory="/tmp/widgets"),
    )


@pytest.fixture
def restore_backend():
    """Restore the module-level backend after a test swaps it."""
    original = get_backend()
    yield
    set_backend(original)


@pytest.fixture
def mock_fm_available():
    """Patch apple_fm_sdk so the model is available and respond() returns text."""
    mock_model = make_mock_model(available=True)
    mock_session = make_mock_session(respond_return="hello from fm")

    with (
        patch("apple_fm_sdk.SystemLanguageModel", return_value=mock_model) as model_cls,
        patch("apple_fm_sdk.LanguageModelSession", return_value=mock_session) as session_cls,
    ):
        yield {
            "model_cls": model_cls,
            "model": mock_model,
            "session_cls": session_cls,
            "session": mock_session,
        }
