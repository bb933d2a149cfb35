"""
Free-threading (PEP 703 / nogil) aware locking for conversation state.

* On Python 3.13+ free-threaded builds the primitives use real locks.
* On regular GIL builds the controller still mutates state from a single
  event loop, so the lock degrades to a no-op.
"""

from __future__ import annotations

import enum
import sys
import threading

# ---------------------------------------------------------------------------
# GIL detection
# ---------------------------------------------------------------------------


def is_free_threaded() -> bool:
    """Return *True* if the interpreter is a free-threaded (nogil) build."""
    _is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
    if _is_gil_enabled is not None:
        return not _is_gil_enabled()
    return False


class GILStatus(enum.Enum):
    """Describes the current GIL state of the interpreter."""

    ENABLED = "enabled"
    DISABLED = "disabled"
    UNKNOWN = "unknown"


def get_gil_status() -> GILStatus:
    """Return the current :class:`GILStatus`."""
    _is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
    if _is_gil_enabled is None:
        if sys.version_info >= (3, 13):
            return GILStatus.UNKNOWN
        return GILStatus.ENABLED
    return GILStatus.DISABLED if not _is_gil_enabled() else GILStatus.ENABLED


# ---------------------------------------------------------------------------
# CriticalSection
# ---------------------------------------------------------------------------


class _NoOpLock:
    """A lock-alike that does nothing."""

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        return True

    def release(self) -> None:
        pass


class CriticalSection:
    """A context manager that is a real lock on nogil builds, a no-op otherwise.

    Pass ``force_lock=True`` to always use a real :class:`threading.Lock`,
    e.g. when state is touched from worker threads on a GIL build.
    """

    def __init__(self, *, force_lock: bool = False) -> None:
        self._real = force_lock or is_free_threaded()
        self._lock: threading.Lock | _NoOpLock = threading.Lock() if self._real else _NoOpLock()

    @property
    def is_real_lock(self) -> bool:
        """Return *True* when backed by a real :class:`threading.Lock`."""
        return self._real

    def __enter__(self) -> CriticalSection:
        self._lock.acquire()
        return self

    def __exit__(self, *args: object) -> None:
        self._lock.release()


# ---------------------------------------------------------------------------
# AtomicCounter
# ---------------------------------------------------------------------------


class AtomicCounter:
    """Thread-safe integer counter used for process-unique identifiers.

    Always backed by a real lock: identifiers must never repeat, even when
    entries are built from several threads.
    """

    def __init__(self, initial: int = 0) -> None:
        self._value = initial
        self._cs = CriticalSection(force_lock=True)

    def increment(self, n: int = 1) -> int:
        """Add *n* to the counter and return the new value."""
        with self._cs:
            self._value += n
            return self._value

    @property
    def value(self) -> int:
        """Current counter value."""
        with self._cs:
            return self._value
