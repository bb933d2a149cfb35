"""
Command-line interface for SiliconChat.

    silicon-chat chat                 interactive chat with the on-device model
    silicon-chat extract reply.md     print extracted structured content as JSON
    silicon-chat prompt "a clock"     print a structured prompt
    silicon-chat doctor               check SDK/model setup
    silicon-chat example --list       list bundled example scripts
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import platform
import subprocess
import sys
import time
from pathlib import Path
from typing import IO, TYPE_CHECKING

import click

from ._threading import get_gil_status
from .artifacts import FileArtifactStore
from .config import ChatSettings
from .controller import ConversationController, StateChange
from .exceptions import AppleFMSetupError, require_apple_fm
from .extraction import extract
from .prompts import PromptStrategy, build_structured_prompt, decorate_base_prompt
from .service import FoundationModelService

if TYPE_CHECKING:
    from .conversation import ConversationEntry

logger = logging.getLogger("silicon_chat")

HELP_TEXT = """Slash Commands
/help                  Show command help
/clear                 Start a fresh conversation
/save                  Save the pending widget file
/structured <prompt>   Ask for an HTML code block answer
/strategy <name>       Switch prompt strategy (standard, direct, role-based, markdown)
/blocks                List code blocks of the last reply
/quit                  Leave the chat
"""

_STRATEGY_NAMES = [strategy.value for strategy in PromptStrategy]


# ---------------------------------------------------------------------------
# Subprocess helpers (examples)
# ---------------------------------------------------------------------------


def _repo_root() -> str:
    return str(Path(__file__).resolve().parent.parent)


def _run_with_timeout(
    cmd: list[str],
    cwd: str | None,
    timeout_s: float,
    env: dict[str, str] | None = None,
) -> tuple[int, bool, float]:
    start = time.perf_counter()
    try:
        proc = subprocess.run(cmd, cwd=cwd, env=env, timeout=timeout_s)
    except subprocess.TimeoutExpired:
        return 124, True, time.perf_counter() - start
    except FileNotFoundError:
        click.echo(f"command not found: {cmd[0]}", err=True)
        return 127, False, time.perf_counter() - start
    return proc.returncode, False, time.perf_counter() - start


def _discover_example_scripts() -> list[tuple[str, str]]:
    examples_dir = Path(_repo_root()) / "examples"
    if not examples_dir.is_dir():
        return []
    return [
        (path.stem, str(path))
        for path in sorted(examples_dir.glob("*.py"))
        if not path.stem.startswith("_")
    ]


# ---------------------------------------------------------------------------
# Transcript rendering
# ---------------------------------------------------------------------------


def format_entry(entry: ConversationEntry) -> str:
    stamp = entry.created_at.astimezone().strftime("%H:%M")
    speaker = "you" if entry.is_from_user else "assistant"
    lines = [f"[{stamp}] {speaker}: {entry.text}"]
    if entry.has_multiple_blocks:
        tags = ", ".join(block.language for block in entry.code_blocks)
        lines.append(f"  -> {len(entry.code_blocks)} code blocks: {tags}")
    return "\n".join(lines)


class TranscriptPrinter:
    """Echoes assistant entries as they are appended to the history."""

    def __init__(self) -> None:
        self._seen: set[int] = set()

    def __call__(self, change: StateChange, controller: ConversationController) -> None:
        if change is StateChange.CLEARED:
            self._seen.clear()
            click.echo(click.style("-- conversation cleared --", dim=True))
            return
        if change is not StateChange.HISTORY:
            return
        for entry in controller.history:
            if entry.id in self._seen:
                continue
            self._seen.add(entry.id)
            if not entry.is_from_user:
                color = "red" if entry.text.startswith("Error: ") else None
                click.echo(click.style(format_entry(entry), fg=color))


# ---------------------------------------------------------------------------
# Interactive chat
# ---------------------------------------------------------------------------


def _read_line() -> str | None:
    click.echo(click.style("you> ", bold=True), nl=False)
    line = click.get_text_stream("stdin").readline()
    if not line:
        return None
    return line.rstrip("\n")


async def _choose_save_path(suggested: Path) -> Path | None:
    answer = await asyncio.to_thread(
        click.prompt, "Save widget to", default=str(suggested), show_default=True
    )
    return Path(answer) if answer.strip() else None


async def _offer_save(controller: ConversationController) -> None:
    if not controller.show_save_prompt:
        return
    wants_save = await asyncio.to_thread(
        click.confirm, "A widget file was generated. Save it?", default=False
    )
    if not wants_save:
        controller.dismiss_save_prompt()
        return
    await _save(controller)


async def _save(controller: ConversationController) -> None:
    if controller.pending_artifact is None:
        click.echo("Nothing to save.")
        return
    location = await controller.save_pending_artifact()
    if location is not None:
        click.echo(f"Saved {location}")
    elif controller.show_alert:
        click.echo(click.style(controller.last_error_message or "Save failed", fg="red"), err=True)
        controller.dismiss_alert()


async def _run_slash_command(controller: ConversationController, raw: str) -> bool:
    """Handle a slash command. Returns False when the chat should end."""
    command, _, argument = raw.partition(" ")
    argument = argument.strip()
    command = command.lower()

    if command in {"/quit", "/exit"}:
        return False
    if command == "/help":
        click.echo(HELP_TEXT)
    elif command == "/clear":
        controller.clear_conversation()
    elif command == "/save":
        await _save(controller)
    elif command == "/structured":
        if not argument:
            click.echo("Usage: /structured <prompt>")
        else:
            await controller.request_structured_reply(argument)
            await _offer_save(controller)
    elif command == "/strategy":
        if argument:
            controller.prompt_strategy = argument
        click.echo(f"Prompt strategy: {controller.prompt_strategy.value}")
    elif command == "/blocks":
        replies = [entry for entry in controller.history if not entry.is_from_user]
        if not replies or not replies[-1].code_blocks:
            click.echo("No code blocks in the last reply.")
        for index, block in enumerate(replies[-1].code_blocks if replies else (), start=1):
            click.echo(f"--- {index}: {block.language} ---\n{block.content}")
    else:
        click.echo(f"Unknown command: {command}. Type /help for commands.")
    return True


async def run_chat(
    controller: ConversationController,
    *,
    structured: bool = False,
    role_prompt: str | None = None,
) -> None:
    """Drive *controller* from stdin until EOF or ``/quit``."""
    unsubscribe = controller.subscribe(TranscriptPrinter())
    try:
        if role_prompt:
            await controller.boot_with_role(role_prompt)
            await _offer_save(controller)

        while True:
            line = await asyncio.to_thread(_read_line)
            if line is None:
                break
            if not line.strip():
                continue
            if line.startswith("/"):
                if not await _run_slash_command(controller, line.strip()):
                    break
                continue

            if structured:
                await controller.request_structured_reply(line)
            else:
                controller.stage_input(line)
                task = controller.submit_pending_input()
                if task is not None:
                    await task
            await _offer_save(controller)
        await controller.wait_idle()
    finally:
        unsubscribe()


def _build_settings(config_path: Path | None, **overrides: object) -> ChatSettings:
    settings = ChatSettings.load(config_path) if config_path is not None else ChatSettings()
    data = settings.to_dict()
    data.update({key: value for key, value in overrides.items() if value is not None})
    return ChatSettings.from_dict(data)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.option("-v", "--verbose", count=True, help="-v for INFO logging, -vv for DEBUG.")
def cli(verbose: int) -> None:
    """SiliconChat: chat with Apple Foundation Models and save generated widgets."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    help="JSON settings file.",
)
@click.option("--strategy", type=click.Choice(_STRATEGY_NAMES, case_sensitive=False))
@click.option("--structured", is_flag=True, help="Send every message as a structured request.")
@click.option("--role-prompt", help="Role prompt sent before the first message.")
@click.option("--widget-dir", help="Directory suggested when saving widgets.")
@click.option("--single-flight", is_flag=True, default=None, help="Refuse sends while awaiting a reply.")
@click.option("--no-tool-detection", is_flag=True, default=None)
@click.option("--no-structured-content", is_flag=True, default=None)
@click.option("--retries", type=click.IntRange(min=1))
def chat(
    config_path: Path | None,
    strategy: str | None,
    structured: bool,
    role_prompt: str | None,
    widget_dir: str | None,
    single_flight: bool | None,
    no_tool_detection: bool | None,
    no_structured_content: bool | None,
    retries: int | None,
) -> None:
    """Start an interactive chat session."""
    settings = _build_settings(
        config_path,
        prompt_strategy=strategy,
        widget_directory=widget_dir,
        single_flight=single_flight,
        disable_tool_call_detection=no_tool_detection,
        disable_structured_content=no_structured_content,
        retries=retries,
    )
    service = FoundationModelService(instructions=settings.instructions, retries=settings.retries)
    service.ensure_ready()

    controller = ConversationController(
        service,
        persistence=FileArtifactStore(chooser=_choose_save_path),
        settings=settings,
    )
    click.echo("Type /help for commands, /quit to leave.")
    asyncio.run(run_chat(controller, structured=structured, role_prompt=role_prompt))


@cli.command("extract")
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.option("--primary-only", is_flag=True, help="Print only the primary content.")
def extract_command(source: IO[str], primary_only: bool) -> None:
    """Extract structured content from a model reply (file or stdin)."""
    result = extract(source.read())
    if primary_only:
        if result.primary_content is None:
            raise click.ClickException("no structured content found")
        click.echo(result.primary_content)
        return
    click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))


@cli.command("prompt")
@click.argument("base_prompt")
@click.option(
    "--strategy",
    type=click.Choice(_STRATEGY_NAMES, case_sensitive=False),
    default=PromptStrategy.STANDARD.value,
    show_default=True,
)
@click.option("--output-type", default="HTML", show_default=True)
@click.option("--suffix/--no-suffix", default=True, help="Append the HTML + CSS instruction.")
def prompt_command(base_prompt: str, strategy: str, output_type: str, suffix: bool) -> None:
    """Print the structured prompt that would be sent to the model."""
    text = decorate_base_prompt(base_prompt) if suffix else base_prompt
    click.echo(build_structured_prompt(text, strategy, output_type))


@cli.command()
def doctor() -> None:
    """Check Python, GIL and Apple Foundation Models setup."""
    click.echo(f"Python: {platform.python_version()} ({sys.executable})")
    click.echo(f"Platform: {platform.platform()}")
    click.echo(f"GIL: {get_gil_status().value}")
    try:
        require_apple_fm("doctor")
    except AppleFMSetupError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1) from exc
    click.echo("Apple Foundation Models: available")


@cli.command()
@click.option("--list", "list_only", is_flag=True, help="List available examples.")
@click.option("--timeout", "timeout_s", type=float, default=120.0, show_default=True)
@click.argument("name", required=False)
def example(list_only: bool, timeout_s: float, name: str | None) -> None:
    """List or run a bundled example script."""
    scripts = _discover_example_scripts()
    if list_only or name is None:
        for script_name, _ in scripts:
            click.echo(script_name)
        return

    paths = dict(scripts)
    if name not in paths:
        raise click.ClickException(f"unknown example: {name}")

    env = {**os.environ, "PYTHONPATH": _repo_root()}
    click.echo(f"Running {name} ...")
    rc, timed_out, elapsed = _run_with_timeout(
        [sys.executable, paths[name]], cwd=_repo_root(), timeout_s=timeout_s, env=env
    )
    if timed_out:
        click.echo(f"{name} timed out after {elapsed:.1f}s", err=True)
    raise SystemExit(rc)


def cli_entry() -> None:
    try:
        cli()
    except AppleFMSetupError as exc:
        click.echo(str(exc), err=True)
        sys.exit(2)


if __name__ == "__main__":
    cli_entry()
