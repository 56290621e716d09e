"""Rich console and theme for human-readable sharegraph output.

Renderers print into a caller-owned text buffer, so a result renders to
a plain string. Rich drops colour by itself when the buffer is not a
terminal, which covers pipes and CliRunner.
"""

from __future__ import annotations

from typing import IO

from rich.console import Console
from rich.theme import Theme

_STYLES = {
    "sg.ok": "bold green",
    "sg.error": "bold red",
    "sg.warning": "bold yellow",
    "sg.op": "bold cyan",
    "sg.key": "dim",
    "sg.id": "bold blue",
    "sg.name": "bold",
    "sg.status.pending": "yellow",
    "sg.status.accepted": "green",
    "sg.perm.view": "cyan",
    "sg.perm.edit": "magenta",
    "sg.perm.owner": "bold green",
    "sg.role.admin": "bold",
}

SHAREGRAPH_THEME = Theme(_STYLES)


def create_console(file: IO[str], *, no_color: bool = False, width: int = 120) -> Console:
    return Console(
        file=file, theme=SHAREGRAPH_THEME, no_color=no_color, highlight=False, width=width
    )


def value_style(kind: str, value: str) -> str:
    """Theme style for a ``status``, ``perm`` or ``role`` value; "" if unthemed."""
    name = f"sg.{kind}.{value}"
    return name if name in _STYLES else ""
