"""
Tests for silicon_chat.artifacts — FileArtifactStore.

Covers:
  - Saving to the suggested path without a chooser
  - Sync and async choosers, cancellation
  - Remembering the last successful path and falling back when it breaks
  - Failure reporting through last_error
  - Directory picking memory
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from silicon_chat.artifacts import FileArtifactStore, write_text_atomic
from silicon_chat.exceptions import ArtifactSaveError
from silicon_chat.protocols import ArtifactPersistence

if TYPE_CHECKING:
    from pathlib import Path


class TestWriteTextAtomic:
    def test_creates_parents_and_writes(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "index.jsx"
        write_text_atomic(target, "content")
        assert target.read_text(encoding="utf-8") == "content"
        assert [p.name for p in target.parent.iterdir()] == ["index.jsx"]

    def test_failure_raises_artifact_save_error(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(ArtifactSaveError):
            write_text_atomic(blocker / "child.jsx", "content")


class TestSave:
    async def test_saves_to_suggested_path_without_chooser(self, tmp_path: Path):
        store = FileArtifactStore()
        location = await store.save("jsx()", "index", "jsx", str(tmp_path))

        assert location == str(tmp_path / "index.jsx")
        assert (tmp_path / "index.jsx").read_text(encoding="utf-8") == "jsx()"
        assert store.last_error is None

    async def test_sync_chooser_picks_location(self, tmp_path: Path):
        seen = []

        def chooser(suggested):
            seen.append(suggested)
            return tmp_path / "custom.jsx"

        store = FileArtifactStore(chooser=chooser)
        location = await store.save("x", "index", "jsx", str(tmp_path / "widgets"))

        assert seen == [tmp_path / "widgets" / "index.jsx"]
        assert location == str(tmp_path / "custom.jsx")

    async def test_async_chooser(self, tmp_path: Path):
        async def chooser(suggested):
            return str(tmp_path / "async.jsx")

        store = FileArtifactStore(chooser=chooser)
        assert await store.save("x", "index", "jsx") == str(tmp_path / "async.jsx")

    async def test_cancel_returns_none_without_error(self, tmp_path: Path):
        store = FileArtifactStore(chooser=lambda suggested: None)
        assert await store.save("x", "index", "jsx", str(tmp_path)) is None
        assert store.last_error is None
        assert store.last_saved_path is None

    async def test_remembers_last_successful_path(self, tmp_path: Path):
        calls = []

        def chooser(suggested):
            calls.append(suggested)
            return tmp_path / "remembered.jsx"

        store = FileArtifactStore(chooser=chooser)
        await store.save("v1", "index", "jsx", str(tmp_path))
        location = await store.save("v2", "index", "jsx", str(tmp_path))

        assert len(calls) == 1
        assert location == str(tmp_path / "remembered.jsx")
        assert (tmp_path / "remembered.jsx").read_text(encoding="utf-8") == "v2"

    async def test_falls_back_to_chooser_when_remembered_path_breaks(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = FileArtifactStore(chooser=lambda suggested: tmp_path / "fresh.jsx")
        store.last_saved_path = blocker / "old.jsx"

        location = await store.save("x", "index", "jsx", str(tmp_path))
        assert location == str(tmp_path / "fresh.jsx")

    async def test_write_failure_sets_last_error(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = FileArtifactStore(chooser=lambda suggested: blocker / "index.jsx")

        assert await store.save("x", "index", "jsx") is None
        assert store.last_error
        assert store.last_saved_path is None

    async def test_forget(self, tmp_path: Path):
        store = FileArtifactStore()
        await store.save("x", "index", "jsx", str(tmp_path))
        store.forget()
        assert store.last_saved_path is None

    def test_satisfies_persistence_protocol(self):
        assert isinstance(FileArtifactStore(), ArtifactPersistence)


class TestPickDirectory:
    async def test_uses_chooser_then_remembers(self, tmp_path: Path):
        calls = []

        def chooser(suggested):
            calls.append(suggested)
            return tmp_path / "chosen"

        store = FileArtifactStore(directory_chooser=chooser)
        first = await store.pick_directory(str(tmp_path))
        second = await store.pick_directory("/elsewhere")

        assert first == second == str(tmp_path / "chosen")
        assert calls == [tmp_path]

    async def test_cancel(self):
        store = FileArtifactStore(directory_chooser=lambda suggested: None)
        assert await store.pick_directory() is None
        assert store.last_directory is None

    async def test_without_chooser_returns_suggestion(self, tmp_path: Path):
        store = FileArtifactStore()
        assert await store.pick_directory(str(tmp_path)) == str(tmp_path)
