"""Command modules of the ``sharegraph`` CLI."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click

# (module, attribute) in the order ``sharegraph --help`` lists them.
_COMMANDS = (
    ("connect", "connect"),
    ("household", "household"),
    ("share", "share"),
    ("directory", "directory"),
    ("overview", "overview"),
    ("maintenance", "check"),
    ("maintenance", "upgrade"),
)


def register_commands(cli: click.Group) -> None:
    for module_name, attr in _COMMANDS:
        module = importlib.import_module(f"sharegraph.commands.{module_name}")
        cli.add_command(getattr(module, attr))
