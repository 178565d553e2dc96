"""Rich status display and user prompts for the CLI."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Prompt

from mashup.session.state import SessionState

console = Console()


def describe_state(state: SessionState) -> str:
    """One-line Rich-markup summary of what the session is doing."""
    if state.is_generating:
        return "[cyan]Generating mashup…[/]"
    if state.is_downloading:
        return "[cyan]Downloading project…[/]"
    if state.error:
        return f"[red]✗ {state.error}[/]"
    if state.download_succeeded:
        return f"[green]✓ Saved to {state.last_saved_path}[/]"
    if state.artifact:
        return f"[green]✓ {state.artifact.idea.app_name}[/]"
    return "[dim]No mashup yet[/]"


class SessionProgress:
    """Spinner that follows a SessionState while operations run.

    Usage::

        with SessionProgress(session.state):
            await session.generate()
    """

    def __init__(self, state: SessionState) -> None:
        self.state = state
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._task_id: int | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def __enter__(self) -> "SessionProgress":
        self._progress.__enter__()
        self._task_id = self._progress.add_task(describe_state(self.state), total=None)
        self._unsubscribe = self.state.subscribe(self._on_change)
        return self

    def __exit__(self, *args: object) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._progress.__exit__(*args)

    def _on_change(self, state: SessionState) -> None:
        if self._task_id is not None:
            self._progress.update(self._task_id, description=describe_state(state))


async def ask_user(question: str) -> str | None:
    """Prompt for a line of input without blocking the event loop.

    Reads plain lines when stdin is piped, so sessions can be scripted.
    Returns None once stdin is closed.
    """
    loop = asyncio.get_running_loop()
    if not sys.stdin.isatty():
        line = await loop.run_in_executor(None, sys.stdin.readline)
        return line.strip() if line else None

    # Suppress httpx / session chatter so the prompt renders cleanly.
    root_logger = logging.getLogger()
    prev_level = root_logger.level
    root_logger.setLevel(logging.CRITICAL)

    try:
        return await loop.run_in_executor(None, lambda: Prompt.ask(question, console=console))
    except EOFError:
        return None
    finally:
        root_logger.setLevel(prev_level)
