import sys
from pathlib import Path
from typing import Optional

import typer


def stdio_is_tty() -> bool:
    """True when both stdin and stdout are attached to a terminal."""
    try:
        return sys.stdin.isatty() and sys.stdout.isatty()
    except (AttributeError, ValueError):
        # Closed or replaced streams
        return False


class TerminalConfirmation:
    """Confirmation provider backed by the controlling terminal."""

    def is_interactive(self) -> bool:
        return stdio_is_tty()

    def ask(self, message: str) -> str:
        lines = message.splitlines() or [""]
        for line in lines[:-1]:
            typer.secho(line, fg=typer.colors.RED, err=True)
        return typer.prompt(lines[-1], default="", show_default=False).strip()


def prompt_path(message: str) -> Optional[Path]:
    """Asks for a path; None when stdio is not interactive or the answer is empty."""
    if not stdio_is_tty():
        return None
    answer = typer.prompt(message, default="", show_default=False).strip()
    return Path(answer).expanduser() if answer else None
