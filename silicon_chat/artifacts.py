"""
File-backed artifact persistence.

:class:`FileArtifactStore` satisfies
:class:`~silicon_chat.protocols.ArtifactPersistence`. It remembers the last
location a save succeeded at and writes there first on later saves; only
when there is none (or that write fails) does it ask the chooser for a
path.

Usage::

    async def ask(suggested: Path) -> Path | None:
        ...  # prompt the user, return None to cancel

    store = FileArtifactStore(chooser=ask)
    path = await store.save(jsx, "index", "jsx", "~/widgets")
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Union

from .exceptions import ArtifactSaveError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    PathChooser = Callable[[Path], Union[Awaitable[Union[Path, str, None]], Path, str, None]]

logger = logging.getLogger("silicon_chat")

__all__ = ["FileArtifactStore", "write_text_atomic"]


def write_text_atomic(path: Path, content: str) -> None:
    """Write *content* to *path* via a temporary file and ``os.replace``."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
    except OSError as exc:
        raise ArtifactSaveError(f"{exc.strerror or exc} ({path})") from exc


async def _resolve_choice(chooser: PathChooser, suggestion: Path) -> Path | None:
    choice = chooser(suggestion)
    if inspect.isawaitable(choice):
        choice = await choice
    if choice is None or choice == "":
        return None
    return Path(choice).expanduser()


class FileArtifactStore:
    """
    Saves artifacts to the local filesystem.

    Args:
        chooser: Called with the suggested path when a location must be
            picked. Returns the chosen path, or None to cancel. May be async.
            Without a chooser the suggested path is used as-is.
        directory_chooser: Same contract, used by :meth:`pick_directory`.
    """

    def __init__(
        self,
        chooser: PathChooser | None = None,
        directory_chooser: PathChooser | None = None,
    ) -> None:
        self._chooser = chooser
        self._directory_chooser = directory_chooser
        self.last_saved_path: Path | None = None
        self.last_directory: Path | None = None
        self.last_error: str | None = None

    async def save(
        self,
        content: str,
        suggested_name: str = "index",
        extension: str = "jsx",
        suggested_directory: str | None = None,
    ) -> str | None:
        self.last_error = None

        if self.last_saved_path is not None:
            try:
                await asyncio.to_thread(write_text_atomic, self.last_saved_path, content)
            except ArtifactSaveError as exc:
                logger.warning("[SiliconChat] Previous path save failed: %s", exc)
            else:
                logger.info("[SiliconChat] Artifact saved to previous path %s", self.last_saved_path)
                return str(self.last_saved_path)

        directory = Path(suggested_directory).expanduser() if suggested_directory else Path.cwd()
        suggestion = directory / f"{suggested_name}.{extension}"

        if self._chooser is None:
            target = suggestion
        else:
            target = await _resolve_choice(self._chooser, suggestion)
            if target is None:
                logger.info("[SiliconChat] Artifact save cancelled")
                return None

        try:
            await asyncio.to_thread(write_text_atomic, target, content)
        except ArtifactSaveError as exc:
            self.last_error = str(exc)
            logger.warning("[SiliconChat] Failed to save artifact: %s", exc)
            return None

        self.last_saved_path = target
        logger.info("[SiliconChat] Artifact saved to %s", target)
        return str(target)

    async def pick_directory(self, initial_directory: str | None = None) -> str | None:
        """Return a directory, preferring the last one picked successfully."""
        if self.last_directory is not None:
            return str(self.last_directory)

        suggestion = Path(initial_directory).expanduser() if initial_directory else Path.cwd()
        if self._directory_chooser is None:
            chosen: Path | None = suggestion
        else:
            chosen = await _resolve_choice(self._directory_chooser, suggestion)
        if chosen is None:
            return None

        self.last_directory = chosen
        return str(chosen)

    def forget(self) -> None:
        """Forget remembered locations so the next save asks again."""
        self.last_saved_path = None
        self.last_directory = None
