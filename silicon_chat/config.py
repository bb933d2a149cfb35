"""Chat settings: defaults, JSON persistence and normalization."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Union

from .prompts import PromptStrategy, parse_strategy
from .service import DEFAULT_INSTRUCTIONS

logger = logging.getLogger("silicon_chat")

__all__ = ["DEFAULT_WIDGET_DIRECTORY", "ChatSettings"]

DEFAULT_WIDGET_DIRECTORY = str(
    Path.home() / "Library" / "Application Support" / "Übersicht" / "widgets"
)


@dataclass
class ChatSettings:
    """Tunable behavior of a conversation and its artifact workflow."""

    instructions: str = DEFAULT_INSTRUCTIONS
    prompt_strategy: PromptStrategy = PromptStrategy.STANDARD
    output_type: str = "HTML"
    disable_tool_call_detection: bool = False
    disable_structured_content: bool = False
    single_flight: bool = False
    widget_directory: str | None = DEFAULT_WIDGET_DIRECTORY
    artifact_name: str = "index"
    artifact_extension: str = "jsx"
    retries: int = 1

    def __post_init__(self) -> None:
        self.prompt_strategy = parse_strategy(self.prompt_strategy)
        if self.retries < 1:
            raise ValueError("retries must be >= 1")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["prompt_strategy"] = self.prompt_strategy.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatSettings:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("[SiliconChat] Ignoring unknown settings: %s", ", ".join(unknown))
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def load(cls, path: Union[str, Path]) -> ChatSettings:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Settings file must contain a JSON object: {path}")
        return cls.from_dict(payload)

    def save(self, path: Union[str, Path]) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
