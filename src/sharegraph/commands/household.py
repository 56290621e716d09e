"""Command group: households."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from sharegraph.commands._base import ShareGraphGroup
from sharegraph.services.households import HouseholdService

if TYPE_CHECKING:
    from sharegraph.commands._context import AppContext

_HOUSEHOLD_EXAMPLES = """\
  sharegraph --as ann@example.com household create "Smiths" -m bob@example.com
  sharegraph --as ann@example.com household list"""


@click.group(cls=ShareGraphGroup, examples=_HOUSEHOLD_EXAMPLES)
@click.pass_obj
def household(app: AppContext) -> None:
    """Create and list households."""


@household.command(
    examples="""\
  sharegraph --as ann@example.com household create "Smiths"
  sharegraph --as ann@example.com household create "Smiths" -m bob@example.com -m cy@example.com"""
)
@click.argument("name")
@click.option("-m", "--member", "members", multiple=True, help="Invitee email or user ID.")
@click.pass_obj
def create(app: AppContext, name: str, members: tuple[str, ...]) -> None:
    """Create a household with you as admin."""
    app.emit(HouseholdService(app.store).create(app.actor(), name, list(members)))


@household.command(
    "list",
    examples="""\
  sharegraph --as ann@example.com household list""",
)
@click.pass_obj
def list_cmd(app: AppContext) -> None:
    """List the households you belong to."""
    app.emit(HouseholdService(app.store).list_for_user(app.actor()))
