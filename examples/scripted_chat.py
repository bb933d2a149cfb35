"""
Scripted conversation example.

Plugs a scripted backend into ``set_backend()`` so the full controller flow
(structured request, artifact detection, save) runs without Apple FM.
"""

from __future__ import annotations

import asyncio
import tempfile

from examples._support import ScriptedBackend

from silicon_chat.artifacts import FileArtifactStore
from silicon_chat.config import ChatSettings
from silicon_chat.controller import ConversationController
from silicon_chat.protocols import get_backend, set_backend
from silicon_chat.service import FoundationModelService

REPLIES = [
    "Hi! Describe the widget you want and I will write it.",
    (
        "Here is your clock widget:\n"
        "```javascript\n"
        "export const command = 'date +%H:%M';\n"
        "export const render = ({ output }) => <h1>{output}</h1>;\n"
        "```\n"
    ),
]


async def main() -> None:
    original = get_backend()
    set_backend(ScriptedBackend(REPLIES))
    try:
        with tempfile.TemporaryDirectory() as widget_dir:
            controller = ConversationController(
                FoundationModelService(),
                persistence=FileArtifactStore(),
                settings=ChatSettings(widget_directory=widget_dir),
            )

            controller.stage_input("hello")
            await controller.submit_pending_input()
            await controller.request_structured_reply("a clock widget", strategy="direct")

            for entry in controller.history:
                speaker = "you" if entry.is_from_user else "assistant"
                print(f"{speaker}: {entry.text}")

            if controller.show_save_prompt:
                location = await controller.save_pending_artifact()
                print(f"Saved widget to {location}")
    finally:
        set_backend(original)


if __name__ == "__main__":
    asyncio.run(main())
